from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import catalogue, dashboard, exports, shipments
from .config import get_settings
from .consumers import start_consumer_thread
from .database import Base, SessionLocal, engine, get_db
from .errors import (
    GatewayError,
    NotFoundError,
    RenderError,
    ServiceError,
    StorageError,
    TransientError,
    ValidationError,
)
from .logging_config import get_logger, setup_logging
from .messaging.mailer import Mailer, NullTransport, SmtpTransport
from .messaging.producer import NullProducer, RabbitMQProducer
from .models import Order
from .orders import OrderStore
from .payments import RazorpayClient
from .pdf import InvoiceRenderer
from .schemas import (
    CategoryRequest,
    CreatePaymentRequest,
    OrderRequest,
    PaymentUpdateRequest,
    ProductRequest,
    ShipmentDetails,
    ShipmentRequest,
    StatusUpdateRequest,
)
from .sequences import generate_invoice_no_from_order
from .workflow import OrderWorkflow

settings = get_settings()
setup_logging(settings.log_level, settings.log_json)
log = get_logger(__name__)


def build_workflow(settings, session_factory) -> OrderWorkflow:
    """Wires the workflow to the real collaborators named in settings."""
    if settings.mail_enabled:
        transport = SmtpTransport(settings.smtp_host, settings.smtp_port, settings.email_user,
                                  settings.email_pass, settings.smtp_secure, settings.smtp_timeout)
    else:
        transport = NullTransport()
    producer = RabbitMQProducer(settings.rabbitmq_host) if settings.rabbitmq_host else NullProducer()
    renderer = InvoiceRenderer(settings.seller, settings.chrome_bin, settings.invoice_dir,
                               settings.render_timeout)
    return OrderWorkflow(
        store=OrderStore(session_factory),
        renderer=renderer,
        mailer=Mailer(transport, settings.email_user),
        producer=producer,
        frontend_url=settings.frontend_url,
    )


@lru_cache(maxsize=1)
def get_workflow() -> OrderWorkflow:
    return build_workflow(settings, SessionLocal)


def get_store(workflow: OrderWorkflow = Depends(get_workflow)) -> OrderStore:
    return workflow.store


def get_gateway() -> RazorpayClient:
    return RazorpayClient(settings.razorpay_key_id, settings.razorpay_key_secret,
                          settings.razorpay_base_url, settings.gateway_timeout)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables on startup if they don't exist.
    Base.metadata.create_all(bind=engine)
    if settings.rabbitmq_host:
        start_consumer_thread(get_workflow(), settings.rabbitmq_host)
        log.info("payment consumer thread started", host=settings.rabbitmq_host)
    log.info("order service started", database=engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title="Vitalimes Order Service", lifespan=lifespan)

_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    TransientError: 503,
    StorageError: 500,
    RenderError: 502,
    GatewayError: 502,
}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    status_code = next((code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500)
    if status_code >= 500:
        log.error("request failed", path=request.url.path, error=str(exc), kind=type(exc).__name__)
    body = {"success": False, "error": str(exc)}
    if isinstance(exc, ValidationError) and exc.fields:
        body["fields"] = exc.fields
    return JSONResponse(status_code=status_code, content=body)


def order_to_dict(order: Order, with_products=False) -> dict:
    data = {column.name: getattr(order, column.name) for column in Order.__table__.columns}
    if with_products:
        data["products"] = [item.model_dump(mode="json") for item in order.line_items]
    return data


@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Order service is running"}


# --- Orders ---

@app.post("/api/orders/create-order-pending")
def create_order_pending(req: OrderRequest, store: OrderStore = Depends(get_store)):
    order_no = store.create_pending(req)
    return {"success": True, "message": "Order saved as PENDING", "order_no": order_no}


@app.get("/api/orders/all")
def list_orders(store: OrderStore = Depends(get_store)):
    return {"success": True, "orders": [order_to_dict(o) for o in store.list_all()]}


@app.get("/api/orders/get/{order_no}")
def get_order(order_no: str, store: OrderStore = Depends(get_store)):
    order = store.get_by_order_no(order_no)
    if order is None:
        raise NotFoundError("Order not found")
    return {"success": True, "order": order_to_dict(order)}


@app.post("/api/orders/update-status")
def update_status(req: StatusUpdateRequest, workflow: OrderWorkflow = Depends(get_workflow)):
    change = workflow.change_status(req.order_no, req.status)
    return {
        "success": True,
        "message": f"Order status updated to {change.status}",
        "invoice_no": change.invoice_no,
    }


@app.post("/api/orders/update-payment")
def update_payment(req: PaymentUpdateRequest, workflow: OrderWorkflow = Depends(get_workflow)):
    order = workflow.confirm_payment(req.order_no, req.razorpay_payment_id, req.razorpay_order_id)
    return {
        "success": True,
        "message": "Payment recorded, stock reduced and emails sent.",
        "status": order.status,
        "payment_status": order.payment_status,
    }


@app.get("/api/orders/invoice/{order_no}")
def download_invoice(order_no: str, workflow: OrderWorkflow = Depends(get_workflow)):
    pdf = workflow.regenerate_invoice(order_no)
    filename = f"{generate_invoice_no_from_order(order_no)}.pdf"
    return Response(content=pdf, media_type="application/pdf",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(content=content, media_type=exports.XLSX_MEDIA_TYPE,
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@app.get("/api/orders/export-excel")
def export_month(year: int = None, month: int = None, db: Session = Depends(get_db)):
    start, end = exports.month_range(year, month)
    workbook = exports.build_register(exports.invoiced_orders(db, start, end))
    return _xlsx(workbook, f"orders-{start:%Y-%m}.xlsx")


@app.get("/api/orders/export-excel-range")
def export_range(start_month: str = Query(None, alias="from"), end_month: str = Query(None, alias="to"),
                 db: Session = Depends(get_db)):
    start, end = exports.span_range(start_month, end_month)
    workbook = exports.build_register(exports.invoiced_orders(db, start, end))
    return _xlsx(workbook, f"orders-{start_month}-to-{end_month}.xlsx")


# Declared after the literal /api/orders/... paths so those win.
@app.get("/api/orders/{order_id}")
def get_order_by_id(order_id: int, store: OrderStore = Depends(get_store)):
    order = store.get_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return {"success": True, "order": order_to_dict(order, with_products=True)}


# --- Payment gateway ---

@app.get("/api/payment/test")
def payment_test():
    return {"message": "Payment route working"}


@app.post("/api/payment/create-payment")
def create_payment(req: CreatePaymentRequest, gateway: RazorpayClient = Depends(get_gateway)):
    order = gateway.create_order(req.amount)
    return {"success": True, "order": order, "key": gateway.key_id}


# --- Shipments ---

@app.post("/api/shipments/create")
def create_shipment(req: ShipmentRequest, db: Session = Depends(get_db)):
    shipment = shipments.create_shipment(db, req)
    return {"success": True, "message": "Shipment created successfully", "id": shipment.id}


@app.get("/api/shipments/all")
def list_shipments(db: Session = Depends(get_db)):
    return {"success": True, "shipments": shipments.list_shipments(db)}


@app.get("/api/shipments/get/{shipment_id}")
def get_shipment(shipment_id: int, db: Session = Depends(get_db)):
    return {"success": True, "shipment": shipments.shipment_as_dict(shipments.get_shipment(db, shipment_id))}


@app.get("/api/shipments/order/{order_no}")
def get_order_shipment(order_no: str, db: Session = Depends(get_db)):
    shipment = shipments.get_shipment_for_order(db, order_no)
    return {"success": True, "shipment": shipments.shipment_as_dict(shipment)}


@app.put("/api/shipments/update/{shipment_id}")
def update_shipment(shipment_id: int, req: ShipmentDetails, db: Session = Depends(get_db)):
    shipments.update_shipment(db, shipment_id, req)
    return {"success": True, "message": "Shipment updated successfully"}


@app.delete("/api/shipments/delete/{shipment_id}")
def delete_shipment(shipment_id: int, db: Session = Depends(get_db)):
    shipments.delete_shipment(db, shipment_id)
    return {"success": True, "message": "Shipment deleted successfully"}


# --- Dashboard ---

@app.get("/api/dashboard")
def get_dashboard(db: Session = Depends(get_db)):
    return {"success": True, **dashboard.summary(db)}


# --- Catalogue ---

@app.get("/api/products")
def list_products(status: str = "Active", db: Session = Depends(get_db)):
    products = catalogue.list_products(db, status)
    return {"success": True,
            "products": [catalogue.product_as_dict(p, settings.public_base_url) for p in products]}


@app.get("/api/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = catalogue.get_product(db, product_id)
    return {"success": True, "product": catalogue.product_as_dict(product, settings.public_base_url)}


@app.post("/api/products")
def create_product(req: ProductRequest, db: Session = Depends(get_db)):
    product = catalogue.create_product(db, req)
    return {"success": True, "product": catalogue.product_as_dict(product, settings.public_base_url)}


@app.put("/api/products/{product_id}")
def update_product(product_id: int, req: ProductRequest, db: Session = Depends(get_db)):
    product = catalogue.update_product(db, product_id, req)
    return {"success": True, "product": catalogue.product_as_dict(product, settings.public_base_url)}


@app.delete("/api/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db)):
    catalogue.delete_product(db, product_id)
    return {"success": True, "message": "Product deleted successfully"}


@app.get("/api/categories")
def list_categories(db: Session = Depends(get_db)):
    return {"success": True, "categories": [catalogue.category_as_dict(c) for c in catalogue.list_categories(db)]}


@app.get("/api/categories/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)):
    return {"success": True, "category": catalogue.category_as_dict(catalogue.get_category(db, category_id))}


@app.post("/api/categories")
def create_category(req: CategoryRequest, db: Session = Depends(get_db)):
    return {"success": True, "category": catalogue.category_as_dict(catalogue.create_category(db, req))}


@app.put("/api/categories/{category_id}")
def update_category(category_id: int, req: CategoryRequest, db: Session = Depends(get_db)):
    category = catalogue.update_category(db, category_id, req)
    return {"success": True, "category": catalogue.category_as_dict(category)}


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    catalogue.delete_category(db, category_id)
    return {"success": True}
