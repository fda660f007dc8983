from datetime import date as CalendarDate
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LineItem(BaseModel):
    """One product inside an order, frozen at the moment the order was created."""
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    id: Optional[int] = None
    title: Optional[str] = None
    qty: int = Field(1, ge=1)
    weight: Optional[str] = None
    units: Optional[str] = None
    price: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    hsn: Optional[str] = None
    img: Optional[str] = None

    @field_validator("qty", mode="before")
    @classmethod
    def _default_qty(cls, value):
        # A missing, null or zero quantity counts as one unit.
        return 1 if value in (None, "", 0, "0") else value

    @property
    def gross_unit(self) -> Decimal:
        """Price the customer paid per unit, tax included."""
        return self.sale_price or self.price


class OrderRequest(BaseModel):
    """Checkout payload. Address fields are checked by the store so it can list every missing one."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pin: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    quantity: Optional[int] = None
    total_amount: Decimal = Decimal("0")
    order_date: Optional[datetime] = None
    products: List[LineItem] = []


class StatusUpdateRequest(BaseModel):
    order_no: str
    status: str


class PaymentUpdateRequest(BaseModel):
    order_no: str
    razorpay_payment_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class ShipmentDetails(BaseModel):
    """Logistics fields an operator can edit after the shipment is booked."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    waybill: Optional[str] = None
    weight: Optional[str] = None
    shipment_length: Optional[str] = None
    shipment_breadth: Optional[str] = None
    shipment_height: Optional[str] = None
    payment_mode: Optional[str] = None
    cod_amount: Optional[Decimal] = None
    products_desc: Optional[str] = None
    shipping_mode: Optional[str] = None
    fragile_item: Optional[str] = None
    ship_date: Optional[datetime] = None
    barcode_value: Optional[str] = None
    barcode_image: Optional[str] = None


class ShipmentRequest(ShipmentDetails):
    order_no: str
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    pin: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    quantity: Optional[int] = None
    total_amount: Optional[Decimal] = None
    order_date: Optional[datetime] = None


class VariantRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    weight: Optional[str] = None
    price: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    offer_percent: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    stock: Optional[int] = None


class ProductRequest(BaseModel):
    """Catalogue product with its pack sizes. images are object-storage keys or URLs."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    hsn: Optional[str] = None
    status: str = "Active"
    units: Optional[str] = None
    stock: Optional[int] = None
    variants: List[VariantRequest] = []
    images: List[str] = []
    video: Optional[str] = None


class CategoryRequest(BaseModel):
    category_name: Optional[str] = None
    date: Optional[CalendarDate] = None
    status: str = "Active"
    image_url: Optional[str] = None
