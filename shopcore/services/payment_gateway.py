"""
Razorpay REST integration
Based on https://razorpay.com/docs/api/
Authentication uses HTTP basic auth (key id / key secret)

All amounts cross this boundary in minor currency units (paise).
"""
import hashlib
import hmac
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import requests

from .errors import GatewayNotConfigured, GatewayRejected, GatewayTimeout


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sign_payment(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    """
    Razorpay API client:
    - orders / payments / refunds endpoints used by checkout
    - every call has a bounded timeout; timeouts and connection errors raise GatewayTimeout
    - non-2xx responses raise GatewayRejected with the gateway's error detail attached
    """

    API_BASE_URL = "https://api.razorpay.com/v1"

    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        *,
        timeout: float = 10.0,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout
        self.base_url = (base_url or self.API_BASE_URL).rstrip("/")
        self._http = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config) -> "RazorpayGateway":
        return cls(config.razorpay_key_id, config.razorpay_key_secret, timeout=config.gateway_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: Optional[str]) -> bool:
        if not self.key_secret:
            self.logger.error("Razorpay key secret not configured; rejecting signature")
            return False
        expected = sign_payment(self.key_secret, gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected, str(signature or ""))

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.configured:
            raise GatewayNotConfigured(
                "Razorpay not configured. Please set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            self.logger.warning("Razorpay %s %s unreachable: %s", method, path, exc)
            raise GatewayTimeout() from exc

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = {"text": response.text[:200]}
            self.logger.error("Razorpay %s %s failed: %s %s", method, path, response.status_code, detail)
            raise GatewayRejected(status_code=response.status_code, detail=detail)
        try:
            return response.json()
        except ValueError as exc:
            self.logger.error("Razorpay %s %s returned non-JSON body", method, path)
            raise GatewayRejected(status_code=response.status_code) from exc

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/orders",
            {
                "amount": int(amount_minor),
                "currency": currency,
                "receipt": receipt,
                "payment_capture": 1,
            },
        )

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/payments/{payment_id}")

    def capture(self, payment_id: str, amount_minor: int, currency: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/payments/{payment_id}/capture",
            {"amount": int(amount_minor), "currency": currency},
        )

    def refund(self, payment_id: str, amount_minor: int, notes: str = "Refund") -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            {"amount": int(amount_minor), "notes": {"reason": notes}},
        )
