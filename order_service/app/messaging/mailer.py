import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import NamedTuple

from ..errors import DeliveryError
from ..logging_config import get_logger

log = get_logger(__name__)


class Attachment(NamedTuple):
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


class SmtpTransport:
    """Sends one message per connection through the configured SMTP server."""

    def __init__(self, host, port, user, password, secure=True, timeout=30.0):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.secure = secure
        self.timeout = timeout

    def deliver(self, message: EmailMessage):
        try:
            if self.secure:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                    smtp.login(self.user, self.password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                    smtp.starttls()
                    smtp.login(self.user, self.password)
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            raise DeliveryError(str(e)) from e


class NullTransport:
    """Used when no SMTP server is configured. Drops every message."""

    def deliver(self, message: EmailMessage):
        log.info("mail transport not configured, message dropped", subject=message["Subject"])


class Mailer:
    """
    Best-effort mail dispatch.

    send() returns nothing and never raises: a failed delivery is logged
    and dropped. Callers send mail only after their database work has
    committed, and a lost mail must not undo or block that work. There is
    no retry queue.
    """

    def __init__(self, transport, sender_address=None, sender_name="VITALIMES"):
        self.transport = transport
        self.sender_address = sender_address
        self.sender_name = sender_name

    def send(self, subject, html, to=None, bcc=None, attachments=()):
        if not to and not bcc:
            log.debug("mail without recipients skipped", subject=subject)
            return

        try:
            self.transport.deliver(self.build_message(subject, html, to, bcc, attachments))
        except DeliveryError as e:
            log.error("mail delivery failed", subject=subject, to=to, error=str(e))
            return
        log.info("mail sent", subject=subject, to=to, attachments=len(attachments))

    def build_message(self, subject, html, to=None, bcc=None, attachments=()) -> EmailMessage:
        """
        Raises:
            DeliveryError: A header or attachment is unusable, e.g. an address
                containing a line break.
        """
        try:
            message = EmailMessage()
            if self.sender_address:
                message["From"] = formataddr((self.sender_name, self.sender_address))
            if to:
                message["To"] = to
            if bcc:
                message["Bcc"] = ", ".join(bcc) if isinstance(bcc, (list, tuple)) else bcc
            message["Subject"] = subject
            message.set_content("This message requires an HTML capable mail client.")
            message.add_alternative(html, subtype="html")
            for attachment in attachments:
                maintype, subtype = attachment.mime_type.split("/", 1)
                message.add_attachment(attachment.content, maintype=maintype, subtype=subtype,
                                       filename=attachment.filename)
        except (ValueError, TypeError) as e:
            raise DeliveryError(f"message could not be built: {e}") from e
        return message
