"""
Order status workflow.

Ties a payment confirmation or an admin status change to its side effects:
invoice PDF, customer and staff mails, and an outbound event.

The database change always commits first. Everything after the commit is
advisory: each side effect is attempted on its own, its failure is logged,
and the caller still gets the committed status and invoice number.
"""

from html import escape

from .errors import NotFoundError, RenderError, StorageError, TransientError, ValidationError
from .logging_config import get_logger
from .messaging.mailer import Attachment
from .models import OrderStatus

log = get_logger(__name__)


class OrderWorkflow:

    def __init__(self, store, renderer, mailer, producer, frontend_url=""):
        self.store = store
        self.renderer = renderer
        self.mailer = mailer
        self.producer = producer
        self.frontend_url = frontend_url.rstrip("/")

    def confirm_payment(self, order_no, payment_id=None, gateway_order_id=None):
        """Marks the order paid, reduces stock, then notifies customer and staff."""
        change = self.store.update_payment(order_no, payment_id, gateway_order_id)
        order = change.order
        if change.already_paid:
            return order

        amount = f"{order.total_amount:.2f}" if order.total_amount is not None else "0.00"
        name = escape(order.name or "")
        user_html = f"""
      <h2>Payment Confirmed</h2>
      <p>Hi {name},</p>
      <p>Your payment of &#8377;{amount} has been successfully received for order <strong>{order_no}</strong>.</p>
      <p>We will notify you when your order is shipped.</p>
      <p><a href="{self.frontend_url}/orders/{order_no}">View Order</a></p>
    """
        admin_html = f"""
      <h2>New Paid Order</h2>
      <p>Order <strong>{order_no}</strong> has been paid by {name} (&#8377;{amount}).</p>
      <p><a href="{self.frontend_url}/admin/orders/{order_no}">View Order</a></p>
    """

        if order.email:
            self.mailer.send(subject=f"Payment Confirmed: {order_no}", html=user_html, to=order.email)
        self._notify_staff(subject=f"New Paid Order: {order_no}", html=admin_html)

        self.producer.publish_event(
            {"order_no": order_no, "status": order.status, "payment_status": order.payment_status,
             "razorpay_payment_id": payment_id, "total_amount": amount},
            routing_key="order.paid",
        )
        return order

    def change_status(self, order_no, status):
        """
        Applies an admin status change.

        Shipping renders the invoice from the committed order and attaches
        it to both mails. If rendering fails the mails still go out, just
        without the PDF; regenerate_invoice() can produce it later.
        """
        change = self.store.update_status(order_no, status)
        order = change.order

        attachments = []
        if change.status == OrderStatus.SHIPPED.value:
            try:
                pdf = self.renderer.render(order)
                attachments.append(Attachment(f"{change.invoice_no}.pdf", pdf))
            except RenderError as e:
                log.error("invoice rendering failed, notifying without attachment",
                          order_no=order_no, invoice_no=change.invoice_no, error=str(e))

        subject = f"Order {change.status}: {order_no}"
        if order.email:
            self.mailer.send(
                subject=subject,
                html=f"<h3>Your order {order_no} has been {change.status}</h3>",
                to=order.email,
                attachments=attachments,
            )
        self._notify_staff(
            subject=subject,
            html=f"<h3>Order {order_no} status changed to {change.status}</h3>",
            attachments=attachments,
        )

        self.producer.publish_event(
            {"order_no": order_no, "status": change.status, "invoice_no": change.invoice_no},
            routing_key="order.status_changed",
        )
        return change

    def regenerate_invoice(self, order_no) -> bytes:
        """Renders the invoice again for an order that already has an invoice number."""
        order = self.store.get_by_order_no(order_no)
        if order is None:
            raise NotFoundError(f"Order not found: {order_no}")
        if not order.invoice_no:
            raise ValidationError(f"Order {order_no} has no invoice number yet", ["invoice_no"])
        return self.renderer.render(order)

    def _notify_staff(self, subject, html, attachments=()):
        try:
            emails = self.store.staff_emails()
        except (TransientError, StorageError) as e:
            log.error("staff lookup failed, staff not notified", subject=subject, error=str(e))
            return
        if emails:
            self.mailer.send(subject=subject, html=html, bcc=emails, attachments=attachments)
