import enum
import json
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from pydantic import ValidationError as SchemaError

from .database import Base  # Import the Base class from our database setup
from .logging_config import get_logger
from .schemas import LineItem

log = get_logger(__name__)


def utcnow():
    """Naive UTC timestamp, the form the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    ORDER_PLACED = "ORDER_PLACED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


class PaymentStatus(str, enum.Enum):
    NOT_PAID = "NOT_PAID"
    PAID = "PAID"


class StaffRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    USER = "USER"


# One row per counter type; value only ever grows.
class Counter(Base):
    __tablename__ = "counters"

    type = Column(String(32), primary_key=True)
    value = Column(Integer, nullable=False)


# Defines the ORM model for an 'Order' stored in the database.
class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)  # Auto-incrementing primary key.
    order_no = Column(String(32), unique=True, nullable=False, index=True)  # Business-level order number.
    invoice_no = Column(String(40), unique=True, nullable=True)
    invoice_date = Column(DateTime, nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.NOT_PAID.value)
    razorpay_payment_id = Column(String(64), nullable=True)
    razorpay_order_id = Column(String(64), nullable=True)

    # Line items frozen at creation time, serialized as a JSON array.
    products_json = Column(Text, nullable=False, default="[]")
    quantity = Column(Integer, nullable=True)
    weight = Column(String(32), nullable=True)
    units = Column(String(32), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    name = Column(String(120), nullable=False)
    email = Column(String(160), nullable=True)
    mobile = Column(String(20), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(80), nullable=False)
    state = Column(String(80), nullable=False)
    country = Column(String(80), nullable=False)
    pin = Column(String(12), nullable=False)

    order_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def line_items(self):
        """The embedded snapshot as LineItem values. Corrupt blobs read as empty."""
        try:
            raw = json.loads(self.products_json or "[]")
        except ValueError:
            log.warning("products_json is not valid JSON", order_no=self.order_no)
            return ()
        if not isinstance(raw, list):
            log.warning("products_json is not a list", order_no=self.order_no)
            return ()
        try:
            return tuple(LineItem.model_validate(item) for item in raw)
        except SchemaError:
            log.warning("products_json holds malformed line items", order_no=self.order_no)
            return ()


# Catalogue entry. The order workflow only reads hsn and decrements stock.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(120), nullable=True)
    hsn = Column(String(16), nullable=True)
    units = Column(String(32), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="Active")
    # Object-storage keys, at most six, serialized as a JSON array.
    images_json = Column(Text, nullable=False, default="[]")
    video = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    variants = relationship("ProductVariant", cascade="all, delete-orphan", order_by="ProductVariant.id")

    @property
    def images(self):
        try:
            keys = json.loads(self.images_json or "[]")
        except ValueError:
            return []
        return keys if isinstance(keys, list) else []


# One sellable pack size of a product.
class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    weight = Column(String(32), nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    sale_price = Column(Numeric(12, 2), nullable=False, default=0)
    offer_percent = Column(Numeric(5, 2), nullable=False, default=0)
    tax_percent = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    category_name = Column(String(120), nullable=False)
    date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="Active")
    image_url = Column(String(255), nullable=True)  # Object-storage key, not a URL.
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(160), nullable=True)
    role = Column(String(10), nullable=False, default=StaffRole.USER.value)


# Courier record for a dispatched order.
class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    order_no = Column(String(32), nullable=False, index=True)
    name = Column(String(120))
    city = Column(String(80))
    state = Column(String(80))
    country = Column(String(80))
    address = Column(Text)
    pin = Column(String(12))
    phone = Column(String(20))
    mobile = Column(String(20))
    quantity = Column(Integer)
    total_amount = Column(Numeric(12, 2))
    order_date = Column(DateTime)
    waybill = Column(String(64))
    weight = Column(String(32))
    shipment_length = Column(String(16))
    shipment_breadth = Column(String(16))
    shipment_height = Column(String(16))
    payment_mode = Column(String(16))
    cod_amount = Column(Numeric(12, 2))
    products_desc = Column(Text)
    shipping_mode = Column(String(32))
    fragile_item = Column(String(8))
    ship_date = Column(DateTime)
    barcode_value = Column(String(64))
    barcode_image = Column(Text)
