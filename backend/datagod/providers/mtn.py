from __future__ import annotations

import hashlib
import hmac

from flask import current_app

from datagod.providers.base import (
    FulfillmentProvider,
    FulfillmentRequest,
    ProviderResult,
    VerifyResult,
    PROCESSING,
    classify_provider_status,
    parse_balance,
)
from datagod.utils.networks import MTN_FAMILY

SIGNATURE_PREFIX = "sha256="


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return SIGNATURE_PREFIX + hmac.new(secret.encode("utf-8"), raw_body or b"", hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature_header: str | None, secret: str | None = None) -> bool:
    """HMAC-SHA256 of the raw body sent as ``sha256=<hex>``; a bare hex digest is also accepted."""
    if secret is None:
        secret = current_app.config.get("MTN_WEBHOOK_SECRET") or current_app.config.get("MTN_API_KEY") or ""
    if not secret or not signature_header:
        return False
    given = signature_header.strip().lower()
    if not given.startswith(SIGNATURE_PREFIX):
        given = SIGNATURE_PREFIX + given
    return hmac.compare_digest(compute_webhook_signature(raw_body, secret), given)


class MTNProvider(FulfillmentProvider):
    """Sykes MTN bundle API."""

    name = "mtn"
    family = MTN_FAMILY

    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self._base_url = base_url
        self._api_key = api_key

    @property
    def base_url(self) -> str:
        return (self._base_url or current_app.config.get("MTN_API_BASE_URL") or "").rstrip("/")

    def _headers(self) -> dict:
        return {"X-API-KEY": self._api_key or current_app.config.get("MTN_API_KEY") or ""}

    def initiate(self, req: FulfillmentRequest) -> ProviderResult:
        payload = {
            "recipient_phone": req.phone,
            "network": req.network,
            "size_gb": req.volume_gb,
            "reference": req.reference,
        }
        current_app.logger.info("[MTN] initiate: recipient=%s size=%sGB reference=%s", req.phone, req.volume_gb, req.reference)
        http_status, body = self._post(f"{self.base_url}/api/orders", payload, self._headers())

        if http_status is None:
            return ProviderResult(ok=False, reference=req.reference, error=body.error, error_code="REQUEST_FAILED")
        if not body.ok:
            return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                                  error=f"Unparseable provider response ({body.error})", error_code="INVALID_RESPONSE")

        data = body.data
        if http_status != 200 or data.get("success") is False:
            message = data.get("message") or f"API returned {http_status}"
            current_app.logger.error("[MTN] initiate failed for %s: %s", req.reference, message)
            return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                                  error=str(message), error_code=f"HTTP_{http_status}", raw=data)

        order = data.get("order")
        external_id = data.get("order_id") or (order.get("id") if isinstance(order, dict) else order) or ""
        return ProviderResult(ok=True, reference=req.reference, external_id=str(external_id),
                              http_status=http_status, raw=data)

    def verify(self, reference: str, *, big_time: bool = False) -> VerifyResult:
        http_status, body = self._post(f"{self.base_url}/api/orders/status", {"reference_id": reference}, self._headers())
        if http_status != 200 or not body.ok:
            return VerifyResult(status=PROCESSING, error=body.error or f"http_{http_status}")

        data = body.data
        order = data.get("order") if isinstance(data.get("order"), dict) else {}
        text = str(order.get("status") or data.get("status") or "")
        return VerifyResult(status=classify_provider_status(text), raw_status=text, raw=data)

    def check_balance(self) -> float | None:
        http_status, body = self._get(f"{self.base_url}/api/balance", self._headers())
        if http_status != 200 or not body.ok or body.data.get("success") is False:
            current_app.logger.warning("[MTN] balance check failed: %s", body.error or f"http_{http_status}")
            return None
        return parse_balance(body.data, ("balance", "wallet_balance", "amount"))
