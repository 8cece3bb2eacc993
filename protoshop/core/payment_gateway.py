# protoshop/core/payment_gateway.py
"""
PhonePe (checkout v2) redirect payment gateway adapter.

Three operations, all synchronous HTTP calls with an explicit timeout and
no retry loop:

  - authenticate()            client-credentials -> access token
  - initiate(...)             create a payment, return the hosted page URL
  - check_status(order_id)    normalized settlement state

The provider is not consistent about response shapes, so values are looked
up through ordered lists of key paths (see REDIRECT_URL_PATHS and
STATE_PATHS) instead of ad-hoc attribute probing.
"""
import hashlib
import hmac
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any

import requests

from protoshop.core.config import Settings
from protoshop.core.errors import (
    GatewayAuthError,
    GatewayError,
    GatewayHTTPError,
    GatewayInitiationError,
    GatewayTimeoutError,
)
from protoshop.core.logging import get_logger

logger = get_logger(__name__)

ENDPOINTS: dict[str, dict[str, str]] = {
    "sandbox": {
        "auth": "https://api-preprod.phonepe.com/apis/pg-sandbox/v1/oauth/token",
        "pay": "https://api-preprod.phonepe.com/apis/pg-sandbox/checkout/v2/pay",
        "status": "https://api-preprod.phonepe.com/apis/pg-sandbox/checkout/v2/order",
    },
    "production": {
        "auth": "https://api.phonepe.com/apis/identity-manager/v1/oauth/token",
        "pay": "https://api.phonepe.com/apis/pg/checkout/v2/pay",
        "status": "https://api.phonepe.com/apis/pg/checkout/v2/order",
    },
}

# Tried in order; first non-empty value wins.
REDIRECT_URL_PATHS: list[tuple[str, tuple[str, ...]]] = [
    ("root", ("redirectUrl",)),
    ("data", ("data", "redirectUrl")),
    ("instrument", ("data", "instrumentResponse", "redirectInfo", "url")),
]

STATE_PATHS: list[tuple[str, ...]] = [("state",), ("data", "state")]
CODE_PATHS: list[tuple[str, ...]] = [("code",), ("responseCode",), ("data", "responseCode")]

SUCCESS_CODES = {"PAYMENT_SUCCESS"}
SUCCESS_STATES = {"COMPLETED", "SUCCESS"}
FAILED_CODES = {"PAYMENT_ERROR", "PAYMENT_DECLINED"}
FAILED_STATES = {"FAILED", "DECLINED"}
CANCELLED_CODES = {"PAYMENT_CANCELLED"}
CANCELLED_STATES = {"CANCELLED"}
PENDING_CODES = {"PAYMENT_PENDING"}
PENDING_STATES = {"PENDING"}


class PaymentState(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PENDING = "pending"
    UNKNOWN = "unknown"


def dig(payload: Any, path: tuple[str, ...]) -> Any:
    """Follow `path` through nested dicts; None if any hop is missing."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_match(payload: Any, paths: list[tuple[str, ...]]) -> Any:
    for path in paths:
        value = dig(payload, path)
        if value:
            return value
    return None


def extract_redirect_url(payload: dict[str, Any]) -> str:
    """
    Locate the hosted payment page URL in a pay response.

    Raises:
        GatewayInitiationError: no strategy matched; carries the provider's
            message/code when present.
    """
    for name, path in REDIRECT_URL_PATHS:
        url = dig(payload, path)
        if isinstance(url, str) and url:
            logger.debug("Redirect URL found via %s strategy", name)
            return url

    failure = first_match(payload, [("message",), ("code",), ("data", "message")])
    raise GatewayInitiationError(f"PhonePe says: {failure or 'Unknown Error'}")


def normalize_state(code: str | None, state: str | None) -> PaymentState:
    """Map provider code/state fields onto PaymentState."""
    code = (code or "").upper()
    state = (state or "").upper()

    if code in SUCCESS_CODES or state in SUCCESS_STATES:
        return PaymentState.SUCCESS
    if code in CANCELLED_CODES or state in CANCELLED_STATES:
        return PaymentState.CANCELLED
    if code in FAILED_CODES or state in FAILED_STATES:
        return PaymentState.FAILED
    if code in PENDING_CODES or state in PENDING_STATES:
        return PaymentState.PENDING
    return PaymentState.UNKNOWN


def parse_settlement(payload: dict[str, Any]) -> PaymentState:
    """Read code/state from root or nested `data` and normalize."""
    return normalize_state(
        first_match(payload, CODE_PATHS),
        first_match(payload, STATE_PATHS),
    )


def to_minor_units(amount: Decimal) -> int:
    """Rupees -> paise, rounded half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PhonePeGateway:
    """
    Thin adapter over the PhonePe checkout v2 API.

    The access token is fetched on every initiate/check_status call; it is
    short-lived and the exchange is idempotent.
    """

    name = "phonepe"

    def __init__(self, settings: Settings, http: requests.Session | None = None):
        self.settings = settings
        self.http = http or requests.Session()
        self.urls = ENDPOINTS.get(settings.PHONEPE_ENV, ENDPOINTS["sandbox"])
        self.timeout = settings.PHONEPE_TIMEOUT_SECONDS

    # ----- transport -----

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            logger.warning("PhonePe %s %s timed out after %ss", method, url, self.timeout)
            raise GatewayTimeoutError("Payment gateway timed out")
        except requests.RequestException as exc:
            logger.error("PhonePe %s %s failed: %s", method, url, exc)
            raise GatewayError(f"Payment gateway unreachable: {exc}")

        logger.info("PhonePe %s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ----- operations -----

    def authenticate(self) -> str:
        """
        Exchange client id/secret for a bearer credential.

        Raises:
            GatewayAuthError: non-2xx response or no access_token in body.
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self.settings.PHONEPE_CLIENT_ID,
            "client_secret": self.settings.PHONEPE_CLIENT_SECRET,
            "client_version": self.settings.PHONEPE_CLIENT_VERSION,
        }
        response = self._request(
            "POST",
            self.urls["auth"],
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if not response.ok:
            logger.error("PhonePe auth failed: %s %s", response.status_code, response.text)
            raise GatewayAuthError("Failed to authenticate with PhonePe Payment Gateway")

        token = self._json(response).get("access_token")
        if not token:
            raise GatewayAuthError("PhonePe auth response did not include an access token")
        return token

    def initiate(
        self,
        order_id: str,
        amount: Decimal,
        payer_id: str,
        phone: str | None = None,
    ) -> str:
        """
        Start a PG_CHECKOUT payment and return the redirect URL.

        Args:
            order_id: our order id, used as merchantOrderId.
            amount: order total in rupees; sent in paise.
            payer_id: customer id (informational, sent as metaInfo).
            phone: customer phone, if known.
        """
        token = self.authenticate()
        payload = {
            "merchantOrderId": order_id,
            "amount": to_minor_units(amount),
            "metaInfo": {"udf1": payer_id, "udf2": phone or ""},
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "message": f"Payment for Order {order_id}",
                "merchantUrls": {
                    "redirectUrl": f"{self.settings.FRONTEND_URL}/orders",
                    "redirectMode": "REDIRECT",
                    "callbackUrl": (
                        f"{self.settings.BACKEND_URL}"
                        f"{self.settings.API_PREFIX}/orders/payment/callback"
                    ),
                },
            },
        }
        logger.info("Initiating PhonePe payment for order %s (%s)", order_id, amount)

        response = self._request(
            "POST",
            self.urls["pay"],
            json=payload,
            headers={"Authorization": f"O-Bearer {token}"},
        )
        body = self._json(response)
        if not response.ok:
            message = body.get("message") or "Payment Gateway Error"
            raise GatewayHTTPError(message, response.status_code)

        return extract_redirect_url(body)

    def check_status(self, order_id: str) -> PaymentState:
        """
        Fetch the settlement state for a previously initiated payment.

        Raises:
            GatewayHTTPError: non-2xx (status kept in `upstream_status`).
            GatewayTimeoutError: call exceeded the configured timeout.
        """
        token = self.authenticate()
        response = self._request(
            "GET",
            f"{self.urls['status']}/{order_id}/status",
            headers={"Authorization": f"O-Bearer {token}"},
        )
        body = self._json(response)
        if not response.ok:
            raise GatewayHTTPError(
                body.get("message") or f"Status check failed for {order_id}",
                response.status_code,
            )
        return parse_settlement(body)


def verify_callback_authorization(settings: Settings, header: str | None) -> bool:
    """
    Check the callback Authorization header.

    PhonePe sends sha256("<username>:<password>") using the credentials
    configured in its dashboard. Callbacks are rejected while no
    credentials are configured.
    """
    username = settings.PHONEPE_CALLBACK_USERNAME
    password = settings.PHONEPE_CALLBACK_PASSWORD
    if not username or not password:
        logger.warning("Callback credentials are not configured; rejecting callback")
        return False
    if not header:
        return False

    expected = hashlib.sha256(f"{username}:{password}".encode("utf-8")).hexdigest()
    received = header.strip()
    if received.upper().startswith("SHA256 "):
        received = received[7:].strip()
    # compare_digest only accepts ASCII str; headers are latin-1 decoded
    return hmac.compare_digest(expected.encode("ascii"), received.lower().encode("utf-8", "replace"))
