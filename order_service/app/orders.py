import json
from contextlib import contextmanager
from typing import NamedTuple, Optional

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from .errors import NotFoundError, ValidationError, translate_db_error
from .logging_config import get_logger
from .models import AdminUser, Order, OrderStatus, PaymentStatus, Product, StaffRole, utcnow
from .schemas import OrderRequest
from .sequences import generate_invoice_no_from_order, generate_order_no

log = get_logger(__name__)

REQUIRED_FIELDS = ("name", "address", "city", "state", "country", "pin", "mobile")


class StatusChange(NamedTuple):
    order: Order
    status: str
    invoice_no: Optional[str]


class PaymentChange(NamedTuple):
    order: Order
    already_paid: bool


class OrderStore:
    """
    Persistence for orders. Every mutating call runs in its own transaction
    and locks the order row first, so two calls for the same order number
    run one after the other.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise translate_db_error(e) from e
        finally:
            db.close()

    def create_pending(self, request: OrderRequest) -> str:
        missing = [field for field in REQUIRED_FIELDS if not getattr(request, field)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)

        order_no = generate_order_no(self.session_factory)

        with self._session() as db:
            snapshot = [self._snapshot_item(db, item) for item in request.products]
            first = snapshot[0] if snapshot else None
            order = Order(
                order_no=order_no,
                name=request.name,
                address=request.address,
                city=request.city,
                state=request.state,
                country=request.country,
                pin=request.pin,
                mobile=request.mobile,
                email=request.email or None,
                quantity=request.quantity or sum(item.qty for item in snapshot) or None,
                weight=first.weight if first else None,
                units=first.units if first else None,
                total_amount=request.total_amount,
                order_date=request.order_date or utcnow(),
                products_json=json.dumps([item.model_dump(mode="json") for item in snapshot]),
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.NOT_PAID.value,
            )
            db.add(order)
            db.commit()

        log.info("order saved as pending", order_no=order_no, items=len(snapshot))
        return order_no

    @staticmethod
    def _snapshot_item(db, item):
        # HSN comes from the catalogue as it is right now; later edits never reach this order.
        hsn = None
        if item.id is not None:
            product = db.query(Product).filter(Product.id == item.id).first()
            hsn = product.hsn if product else None
        return item.model_copy(update={"sale_price": item.sale_price or item.price, "hsn": hsn})

    def get_by_order_no(self, order_no: str) -> Optional[Order]:
        with self._session() as db:
            return db.query(Order).filter(Order.order_no == order_no).first()

    def get_by_id(self, order_id: int) -> Optional[Order]:
        with self._session() as db:
            return db.query(Order).filter(Order.id == order_id).first()

    def list_all(self):
        with self._session() as db:
            return db.query(Order).order_by(Order.id.desc()).all()

    def update_status(self, order_no: str, new_status: str) -> StatusChange:
        """
        Moves an order to new_status.

        Entering SHIPPED assigns the invoice number derived from the order
        number, unless the order already has one. The change is committed
        before this returns.

        Raises:
            ValidationError: new_status is not a known order status.
            NotFoundError: No order with that number.
        """
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status: {new_status}", ["status"])

        with self._session() as db:
            order = db.query(Order).filter(Order.order_no == order_no).with_for_update().first()
            if order is None:
                db.rollback()
                raise NotFoundError(f"Order not found: {order_no}")

            invoice_no = order.invoice_no
            if status is OrderStatus.SHIPPED and not invoice_no:
                invoice_no = generate_invoice_no_from_order(order.order_no)
                order.invoice_no = invoice_no
                order.invoice_date = utcnow()

            previous = order.status
            order.status = status.value
            db.commit()

        log.info("order status updated", order_no=order_no, previous=previous,
                 status=status.value, invoice_no=invoice_no)
        return StatusChange(order, status.value, invoice_no)

    def update_payment(self, order_no: str, payment_id: Optional[str],
                       gateway_order_id: Optional[str]) -> PaymentChange:
        """
        Records a confirmed payment and takes the ordered quantities out of stock.

        Stock is decremented with max(stock - qty, 0) so it never goes
        negative. Two orders racing for the last units can still both
        succeed; only the order row is locked, not the products.
        A repeated confirmation for an order that is already PAID changes
        nothing.
        """
        with self._session() as db:
            order = db.query(Order).filter(Order.order_no == order_no).with_for_update().first()
            if order is None:
                db.rollback()
                raise NotFoundError(f"Order not found: {order_no}")

            if order.payment_status == PaymentStatus.PAID.value:
                log.warning("payment already recorded", order_no=order_no,
                            razorpay_payment_id=order.razorpay_payment_id)
                return PaymentChange(order, True)

            order.payment_status = PaymentStatus.PAID.value
            order.status = OrderStatus.ORDER_PLACED.value
            order.razorpay_payment_id = payment_id
            order.razorpay_order_id = gateway_order_id

            for item in order.line_items:
                if item.id is None:
                    continue
                db.query(Product).filter(Product.id == item.id).update(
                    {Product.stock: case((Product.stock > item.qty, Product.stock - item.qty), else_=0)},
                    synchronize_session=False,
                )

            db.commit()

        log.info("payment recorded, stock reduced", order_no=order_no, razorpay_payment_id=payment_id)
        return PaymentChange(order, False)

    def staff_emails(self):
        with self._session() as db:
            rows = (
                db.query(AdminUser.email)
                .filter(AdminUser.role.in_([StaffRole.ADMIN.value, StaffRole.STAFF.value]))
                .filter(AdminUser.email.isnot(None))
                .filter(AdminUser.email != "")
                .all()
            )
        return [email for (email,) in rows]
