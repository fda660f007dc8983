import time
from decimal import ROUND_HALF_UP, Decimal

import requests

from .errors import GatewayError
from .logging_config import get_logger

log = get_logger(__name__)


class RazorpayClient:
    """
    Client for the Razorpay Orders API.

    The storefront creates a gateway order here, the customer pays in the
    Razorpay checkout, and the resulting payment id comes back through
    /api/orders/update-payment (or the payment.captured event).
    """

    def __init__(self, key_id, key_secret, base_url="https://api.razorpay.com/v1", timeout=10.0,
                 session=None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def create_order(self, amount, currency="INR") -> dict:
        """
        Creates a gateway order for an amount in rupees.

        Returns:
            dict: The gateway's order object (id, amount in paise, currency, receipt, ...).

        Raises:
            GatewayError: Not configured, unreachable, or an error response.
        """
        if not (self.key_id and self.key_secret):
            raise GatewayError("Payment gateway is not configured")

        paise = int((Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        payload = {
            "amount": paise,
            "currency": currency,
            "receipt": f"VTL-{int(time.time() * 1000)}",
        }
        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
            response.raise_for_status()  # Raises an exception for 4xx/5xx status codes
            order = response.json()
        except requests.exceptions.RequestException as e:
            log.error("razorpay order creation failed", amount=paise, error=str(e))
            raise GatewayError(f"Payment gateway error: {e}") from e

        log.info("razorpay order created", gateway_order_id=order.get("id"), amount=paise)
        return order
