"""
Invoice register export: one spreadsheet row per invoiced line item.

Orders are selected by invoice_date, so only shipped (invoiced) orders
appear. The amounts come from compose_invoice() and therefore match the
printed invoices to the paisa.
"""

from datetime import datetime
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy.orm import Session

from .errors import ValidationError
from .invoice import TAX_RATE, compose_invoice
from .models import Order

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COLUMNS = [
    ("Sl. No", 6),
    ("Order No", 15),
    ("Invoice No", 17),
    ("Invoice Date", 12),
    ("Customer Name", 20),
    ("Mobile", 14),
    ("City", 14),
    ("State", 14),
    ("PIN", 10),
    ("Address", 35),
    ("Product", 20),
    ("HSN", 12),
    ("Weight", 10),
    ("Unit", 10),
    ("Qty", 8),
    ("Unit Price", 12),
    ("Net Amount (excl. GST)", 18),
    ("Tax Rate", 10),
    ("Tax Amount", 14),
    ("Total Amount", 14),
]
CURRENCY_COLUMNS = ("P", "Q", "S", "T")
CURRENCY_FORMAT = "₹#,##0.00;[Red]-₹#,##0.00"


def month_range(year, month):
    """[first day of the month, first day of the next month)."""
    if not year or not month or not 1 <= month <= 12:
        raise ValidationError("year & month query params required", ["year", "month"])
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def span_range(start_month, end_month):
    """Whole months from start_month to end_month inclusive, both given as "YYYY-MM"."""
    if not start_month or not end_month:
        raise ValidationError("from & to query params required", ["from", "to"])
    try:
        start = datetime.strptime(start_month, "%Y-%m")
        last = datetime.strptime(end_month, "%Y-%m")
    except ValueError:
        raise ValidationError("from & to must look like YYYY-MM", ["from", "to"])
    if last < start:
        raise ValidationError("to must not be before from", ["from", "to"])
    _, end = month_range(last.year, last.month)
    return start, end


def invoiced_orders(db: Session, start, end):
    return (
        db.query(Order)
        .filter(Order.invoice_date >= start, Order.invoice_date < end)
        .order_by(Order.invoice_date, Order.id)
        .all()
    )


def register_rows(orders):
    """Yields the sheet rows (without the header) for the given orders."""
    serial = 0
    for order in orders:
        items = order.line_items
        for index, line in enumerate(compose_invoice(order).lines):
            item = items[index] if index < len(items) else None
            serial += 1
            yield [
                serial,
                order.order_no,
                order.invoice_no or "",
                order.invoice_date.date() if order.invoice_date else None,
                order.name,
                order.mobile,
                order.city,
                order.state,
                order.pin,
                order.address,
                (item.title if item else None) or line.description or "Product",
                (item.hsn if item else None) or "",
                (item.weight if item else None) or "",
                (item.units if item else None) or "",
                line.qty,
                float(line.unit_price),
                float(line.net_amount),
                f"{TAX_RATE}%",
                float(line.tax_amount),
                float(line.total_amount),
            ]


def build_register(orders) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Orders"

    sheet.append([title for title, _ in COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for cell, (_, width) in zip(sheet[1], COLUMNS):
        sheet.column_dimensions[cell.column_letter].width = width

    for row in register_rows(orders):
        sheet.append(row)

    for letter in CURRENCY_COLUMNS:
        for cell in sheet[letter][1:]:
            cell.number_format = CURRENCY_FORMAT
    for cell in sheet["D"][1:]:
        cell.number_format = "DD/MM/YYYY"

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
