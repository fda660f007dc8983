"""
Invoice composition: tax-inclusive line breakdown, totals, amount in words
and the HTML page that is printed to PDF.

Prices on the storefront include GST. Each line is split back into its net
and tax parts per unit, rounded to paise, and only then multiplied by the
quantity. Historical invoices were produced that way, so the order of
rounding must stay as it is.
"""

from decimal import ROUND_HALF_UP, Decimal
from html import escape
from typing import List, NamedTuple, Optional

TAX_RATE = Decimal(5)
TAX_TYPE = "IGST"

_PAISE = Decimal("0.01")
_HUNDRED = Decimal(100)

_ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
         "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen",
         "Eighteen", "Nineteen"]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


class InvoiceLine(NamedTuple):
    serial: int
    description: str
    qty: int
    unit_price: Decimal
    net_amount: Decimal
    tax_rate: Decimal
    tax_type: str
    tax_amount: Decimal
    total_amount: Decimal


class Invoice(NamedTuple):
    order_no: str
    invoice_no: Optional[str]
    lines: List[InvoiceLine]
    total_net: Decimal
    total_tax: Decimal
    grand_total: Decimal
    amount_in_words: str
    hsn: Optional[str]


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(_PAISE, rounding=ROUND_HALF_UP)


def split_tax(gross_unit, rate=TAX_RATE):
    """Split a tax-inclusive unit price into (net, tax), both rounded to paise."""
    gross = Decimal(str(gross_unit))
    net = _money(gross * _HUNDRED / (_HUNDRED + rate))
    tax = _money(gross - net)
    return net, tax


def _line(serial, description, qty, gross_unit):
    gross = Decimal(str(gross_unit))
    net_unit, tax_unit = split_tax(gross)
    return InvoiceLine(
        serial=serial,
        description=description,
        qty=qty,
        unit_price=_money(gross),
        net_amount=_money(net_unit * qty),
        tax_rate=TAX_RATE,
        tax_type=TAX_TYPE,
        tax_amount=_money(tax_unit * qty),
        total_amount=_money(gross * qty),
    )


def _describe(item) -> str:
    parts = []
    if item.title:
        parts.append(item.title)
    if item.weight:
        parts.append(item.weight)
    if item.hsn:
        parts.append(f"HSN:{item.hsn}")
    return " | ".join(parts)


def compose_invoice(order) -> Invoice:
    """
    Builds the invoice figures for an order from its frozen line items.

    An order whose snapshot is empty or unreadable is billed as a single
    "Items" line for the order's total amount.
    """
    items = order.line_items
    lines = [_line(idx, _describe(item), item.qty, item.gross_unit) for idx, item in enumerate(items, start=1)]

    if not lines:
        # The order total is already the whole bill; quantity is informational.
        gross = _money(order.total_amount or 0)
        net, tax = split_tax(gross)
        lines = [InvoiceLine(1, "Items", order.quantity or 1, gross, net, TAX_RATE, TAX_TYPE, tax, gross)]

    total_net = sum((line.net_amount for line in lines), Decimal("0.00"))
    total_tax = sum((line.tax_amount for line in lines), Decimal("0.00"))
    grand_total = sum((line.total_amount for line in lines), Decimal("0.00"))

    return Invoice(
        order_no=order.order_no,
        invoice_no=order.invoice_no,
        lines=lines,
        total_net=total_net,
        total_tax=total_tax,
        grand_total=grand_total,
        amount_in_words=amount_in_words(grand_total),
        hsn=items[0].hsn if items else None,
    )


def _below_thousand(n: int) -> str:
    words = []
    if n > 99:
        words += [_ONES[n // 100], "Hundred"]
        n %= 100
    if n > 19:
        words.append(_TENS[n // 10])
        n %= 10
    if n > 0:
        words.append(_ONES[n])
    return " ".join(words)


def _indian_words(n: int) -> str:
    crore, rest = divmod(n, 10000000)
    lakh, rest = divmod(rest, 100000)
    thousand, rest = divmod(rest, 1000)

    groups = []
    if crore:
        groups.append(f"{_indian_words(crore)} Crore")
    if lakh:
        groups.append(f"{_below_thousand(lakh)} Lakh")
    if thousand:
        groups.append(f"{_below_thousand(thousand)} Thousand")
    if rest:
        groups.append(_below_thousand(rest))
    return " ".join(groups)


def amount_in_words(amount) -> str:
    """
    Spells a rupee amount in the Indian numbering system.

    >>> amount_in_words(123456)
    'One Lakh Twenty Three Thousand Four Hundred Fifty Six only'
    """
    n = int(Decimal(str(amount or 0)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if n <= 0:
        return "Zero only"
    return f"{_indian_words(n)} only"


def _date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def render_invoice_html(invoice: Invoice, order, seller) -> str:
    """Fixed A4 layout: seller, buyer, numbers, line table, words, signature."""
    rows = "".join(
        f"""
        <tr>
          <td class="c">{line.serial}</td>
          <td>{escape(line.description)}</td>
          <td class="r">&#8377;{line.unit_price:.2f}</td>
          <td class="c">{line.qty}</td>
          <td class="r">&#8377;{line.net_amount:.2f}</td>
          <td class="c">{line.tax_rate}%</td>
          <td class="c">{line.tax_type}</td>
          <td class="r">&#8377;{line.tax_amount:.2f}</td>
          <td class="r">&#8377;{line.total_amount:.2f}</td>
        </tr>"""
        for line in invoice.lines
    )
    seller_address = "<br>".join(escape(part) for part in seller.address_lines)
    hsn_row = f'<div><b>HSN Code:</b> {escape(invoice.hsn)}</div>' if invoice.hsn else ""
    invoice_date = order.invoice_date or order.order_date

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
  @page {{ size: A4; margin: 10mm; }}
  body {{ font-family: Arial, sans-serif; font-size: 11px; color: #000; }}
  .page {{ max-width: 700px; margin: 0 auto; padding: 10px 15px; border: 1px solid #ccc; }}
  .row {{ display: flex; justify-content: space-between; }}
  table {{ width: 100%; border-collapse: collapse; margin-top: 10px; }}
  th, td {{ border: 1px solid #000; padding: 4px; }}
  th {{ background: #f2f2f2; }}
  .c {{ text-align: center; }}
  .r {{ text-align: right; }}
</style>
</head>
<body>
<div class="page">
  <div class="row">
    <div><b>{escape(seller.name)}</b></div>
    <div class="r">
      <div style="font-weight:bold; font-size:14px;">Tax Invoice/Bill of Supply/Cash Memo</div>
      <div style="font-size:10px;">(For Supplier)</div>
    </div>
  </div>

  <div class="row" style="margin-top:10px;">
    <div style="width:55%;">
      <div><b>Sold By :</b></div>
      <div>{escape(seller.name)}<br>{seller_address}</div>
      <div style="margin-top:10px;">
        {hsn_row}
        <div><b>PAN No:</b> {escape(seller.pan)}</div>
        <div><b>GST Registration No:</b> {escape(seller.gst_registration)}</div>
      </div>
      <div style="margin-top:10px;"><b>FSSAI License No.</b><br>{escape(seller.fssai_license)}</div>
    </div>
    <div style="width:40%;" class="r">
      <div><b>Billing Address :</b></div>
      <div>
        {escape(order.name or "")}<br>
        {escape(order.address or "")}<br>
        {escape(order.city or "")}, {escape(order.state or "")}, {escape(order.pin or "")}<br>
        {escape(order.country or "")}<br>
        <b>Mobile:</b> {escape(order.mobile or "")}
      </div>
    </div>
  </div>

  <div class="row" style="margin-top:15px;">
    <div>
      <div><b>Order Number:</b> {escape(invoice.order_no)}</div>
      <div><b>Order Date:</b> {_date(order.order_date)}</div>
    </div>
    <div class="r">
      <div><b>Invoice Number:</b> {escape(invoice.invoice_no or "Not assigned")}</div>
      <div><b>Invoice Date:</b> {_date(invoice_date)}</div>
    </div>
  </div>

  <table>
    <thead>
      <tr>
        <th class="c">Sl. No</th><th>Description</th><th class="r">Unit Price</th><th class="c">Qty</th>
        <th class="r">Net Amount</th><th class="c">Tax Rate</th><th class="c">Tax Type</th>
        <th class="r">Tax Amount</th><th class="r">Total Amount</th>
      </tr>
    </thead>
    <tbody>{rows}
      <tr style="font-weight:bold;">
        <td colspan="7" class="r">TOTAL:</td>
        <td class="r">&#8377;{invoice.total_tax:.2f}</td>
        <td class="r">&#8377;{invoice.grand_total:.2f}</td>
      </tr>
    </tbody>
  </table>

  <div style="margin-top:10px; border-top:1px solid #000;">
    <div style="margin-top:8px;"><b>Amount in Words:</b><br>{escape(invoice.amount_in_words)}</div>
    <div class="row" style="margin-top:30px; align-items:flex-end;">
      <div><b>Whether tax is payable under reverse charge -</b> No</div>
      <div class="r">
        <div><b>For {escape(seller.name)}:</b></div>
        <div style="margin-top:40px; font-style:italic; font-weight:bold;">Authorized Signatory</div>
      </div>
    </div>
  </div>
</div>
</body>
</html>
"""
