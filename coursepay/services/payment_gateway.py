"""UddoktaPay hosted-checkout adapter.

Checkout is a single signed POST to ``{base_url}/checkout-v2``.  The
gateway answers with ``{"status": true, "payment_url": ...}`` on success
or ``{"status": false, "message": ...}`` when it refuses the request.
The student is redirected to ``payment_url``; the outcome arrives later
as a webhook whose body is described by ``WebhookPayload``.

Signature
---------
``md5_hex(api_key + amount + email + transaction_id)``, sent in the
``RT-UDDOKTAPAY-SIGNATURE`` header next to the ``RT-UDDOKTAPAY-API-KEY``
header.  ``amount`` is rendered the way a JSON number prints (``1000``,
``899.1``), so the value hashed is exactly the value in the body.

Transport
---------
Each checkout opens a short-lived ``httpx.AsyncClient``.  Tests inject
``httpx.MockTransport`` through the ``transport`` argument instead of
patching the network.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

import httpx
from pydantic import BaseModel

from coursepay.core.config import SETTINGS
from coursepay.core.metrics import GATEWAY_LATENCY, PAYMENT_CHECKOUTS

logger = logging.getLogger(__name__)

API_KEY_HEADER = "RT-UDDOKTAPAY-API-KEY"
SIGNATURE_HEADER = "RT-UDDOKTAPAY-SIGNATURE"


class GatewayError(Exception):
    """The gateway refused the checkout or could not be reached."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def format_amount(amount: Decimal) -> str:
    """Render an amount without trailing zeros: 1000.00 -> '1000', 899.10 -> '899.1'."""
    return format(Decimal(amount).normalize(), "f")


def sign(api_key: str, amount: Decimal, email: str, transaction_id: str) -> str:
    raw = f"{api_key}{format_amount(amount)}{email}{transaction_id}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    full_name: str
    email: str
    amount: Decimal
    student_id: UUID
    course_id: UUID
    enrollment_id: UUID
    transaction_id: str
    coupon_used: str | None
    discount_amount: Decimal
    redirect_url: str
    cancel_url: str
    webhook_url: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "email": self.email,
            "amount": float(self.amount),
            "metadata": {
                "student_id": str(self.student_id),
                "course_id": str(self.course_id),
                "enrollment_id": str(self.enrollment_id),
                "transaction_id": self.transaction_id,
                "coupon_used": self.coupon_used,
                "discount_amount": float(self.discount_amount),
            },
            "redirect_url": self.redirect_url,
            "cancel_url": self.cancel_url,
            "webhook_url": self.webhook_url,
        }


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    checkout_url: str
    transaction_id: str


class WebhookPayload(BaseModel):
    """Body the gateway POSTs to our webhook URL."""

    invoice_id: str | None = None
    transaction_id: str
    payment_status: str  # COMPLETED | FAILED | CANCELLED | anything else
    payment_method: str | None = None
    amount: Decimal | None = None
    metadata: dict[str, Any] | None = None


class PaymentGateway(Protocol):
    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession: ...


class UddoktaPayGateway:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        headers = {
            API_KEY_HEADER: self._api_key,
            SIGNATURE_HEADER: sign(
                self._api_key, request.amount, request.email, request.transaction_id
            ),
            "accept": "application/json",
            "content-type": "application/json",
        }
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/checkout-v2", json=request.to_payload(), headers=headers
                )
        except httpx.HTTPError as e:
            PAYMENT_CHECKOUTS.labels(outcome="gateway_rejected").inc()
            logger.warning(
                "Gateway unreachable transaction_id=%s: %s", request.transaction_id, e
            )
            raise GatewayError("Payment gateway unavailable") from e
        finally:
            GATEWAY_LATENCY.observe(time.perf_counter() - started)

        body = _json_or_empty(response)
        if response.is_success and body.get("status") is True and body.get("payment_url"):
            PAYMENT_CHECKOUTS.labels(outcome="created").inc()
            logger.info("Checkout created transaction_id=%s", request.transaction_id)
            return CheckoutSession(
                checkout_url=body["payment_url"],
                transaction_id=request.transaction_id,
            )

        message = body.get("message") or "Payment initiation failed"
        PAYMENT_CHECKOUTS.labels(outcome="gateway_rejected").inc()
        logger.warning(
            "Gateway refused checkout transaction_id=%s http_status=%d message=%s",
            request.transaction_id,
            response.status_code,
            message,
        )
        raise GatewayError(str(message))


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

payment_gateway: PaymentGateway = UddoktaPayGateway(
    api_key=SETTINGS.gateway_api_key,
    base_url=SETTINGS.gateway_base_url,
    timeout=SETTINGS.gateway_timeout_seconds,
)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with a MockTransport-backed gateway."""
    return payment_gateway
