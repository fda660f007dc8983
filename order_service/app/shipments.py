from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import NotFoundError, translate_db_error
from .models import Order, Shipment
from .schemas import ShipmentDetails, ShipmentRequest


def shipment_as_dict(shipment: Shipment) -> dict:
    return {column.name: getattr(shipment, column.name) for column in Shipment.__table__.columns}


def create_shipment(db: Session, req: ShipmentRequest) -> Shipment:
    shipment = Shipment(**req.model_dump())
    try:
        db.add(shipment)
        db.commit()
        db.refresh(shipment)
    except SQLAlchemyError as e:
        db.rollback()
        raise translate_db_error(e) from e
    return shipment


def list_shipments(db: Session):
    """All shipments, newest first, with the invoice number, date and total of their order."""
    rows = (
        db.query(Shipment, Order.invoice_no, Order.order_date, Order.total_amount)
        .outerjoin(Order, Order.order_no == Shipment.order_no)
        .order_by(Shipment.id.desc())
        .all()
    )
    result = []
    for shipment, invoice_no, order_date, total_amount in rows:
        item = shipment_as_dict(shipment)
        item["invoice_no"] = invoice_no
        # Order values win over the copies taken when the shipment was booked.
        if order_date is not None:
            item["order_date"] = order_date
        if total_amount is not None:
            item["total_amount"] = total_amount
        result.append(item)
    return result


def get_shipment(db: Session, shipment_id: int) -> Shipment:
    shipment = db.query(Shipment).filter(Shipment.id == shipment_id).first()
    if shipment is None:
        raise NotFoundError(f"Shipment not found: {shipment_id}")
    return shipment


def get_shipment_for_order(db: Session, order_no: str) -> Shipment:
    shipment = db.query(Shipment).filter(Shipment.order_no == order_no).first()
    if shipment is None:
        raise NotFoundError(f"No shipment found for order {order_no}")
    return shipment


def update_shipment(db: Session, shipment_id: int, req: ShipmentDetails) -> Shipment:
    shipment = get_shipment(db, shipment_id)
    for field, value in req.model_dump().items():
        setattr(shipment, field, value)
    try:
        db.commit()
        db.refresh(shipment)
    except SQLAlchemyError as e:
        db.rollback()
        raise translate_db_error(e) from e
    return shipment


def delete_shipment(db: Session, shipment_id: int):
    shipment = get_shipment(db, shipment_id)
    try:
        db.delete(shipment)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise translate_db_error(e) from e

