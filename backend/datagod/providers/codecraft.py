from __future__ import annotations

from flask import current_app

from datagod.providers.base import (
    FulfillmentProvider,
    FulfillmentRequest,
    ProviderResult,
    VerifyResult,
    PROCESSING,
    classify_provider_status,
)
from datagod.utils.networks import CODECRAFT_FAMILY

ERROR_CODES = {
    100: "Admin wallet balance is low",
    101: "Service out of stock",
    102: "Agent not found",
    103: "Price not found",
    555: "Network not found",
}


def _as_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CodeCraftProvider(FulfillmentProvider):
    """Code Craft Network: AT-iShare, AT-BigTime and Telecel bundles."""

    name = "codecraft"
    family = CODECRAFT_FAMILY

    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self._base_url = base_url
        self._api_key = api_key

    @property
    def base_url(self) -> str:
        return (self._base_url or current_app.config.get("CODECRAFT_API_URL") or "").rstrip("/")

    @property
    def api_key(self) -> str:
        return self._api_key or current_app.config.get("CODECRAFT_API_KEY") or ""

    def initiate(self, req: FulfillmentRequest) -> ProviderResult:
        endpoint = "initiate_big_time.php" if req.big_time else "initiate.php"
        payload = {
            "agent_api": self.api_key,
            "recipient_number": req.phone,
            "network": req.network,
            "gig": f"{req.volume_gb:g}",
            "reference_id": req.reference,
        }
        current_app.logger.info(
            "[CODECRAFT] initiate %s: recipient=%s network=%s gig=%s reference=%s",
            endpoint, req.phone, req.network, payload["gig"], req.reference,
        )
        http_status, body = self._post(f"{self.base_url}/{endpoint}", payload)

        if http_status is None:
            return ProviderResult(ok=False, reference=req.reference, error=body.error, error_code="REQUEST_FAILED")
        if not body.ok:
            return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                                  error=f"Unparseable provider response ({body.error})", error_code="INVALID_RESPONSE")

        data = body.data
        api_status = _as_int(data.get("status"))
        if http_status == 200 and api_status == 200:
            return ProviderResult(ok=True, reference=req.reference, external_id=req.reference,
                                  http_status=http_status, raw=data)

        code = api_status or http_status
        message = ERROR_CODES.get(code) or f"API Error: {data.get('message') or 'Unknown error'}"
        current_app.logger.error("[CODECRAFT] initiate failed for %s: %s %s", req.reference, code, message)
        return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                              error=message, error_code=f"CODE_{code}", raw=data)

    def verify(self, reference: str, *, big_time: bool = False) -> VerifyResult:
        endpoint = "response_big_time.php" if big_time else "response_regular.php"
        http_status, body = self._post(
            f"{self.base_url}/{endpoint}",
            {"reference_id": reference, "agent_api": self.api_key},
        )
        if http_status is None or not body.ok:
            return VerifyResult(status=PROCESSING, error=body.error or "unparseable")

        data = body.data
        if str(data.get("status") or "").lower() == "success" and _as_int(data.get("code")) == 200:
            details = data.get("order_details") or {}
            text = str(details.get("order_status") or "") if isinstance(details, dict) else ""
            return VerifyResult(status=classify_provider_status(text), raw_status=text, raw=data)

        # Lookup not answered yet; not evidence of failure.
        return VerifyResult(status=PROCESSING, raw_status=str(data.get("message") or ""), raw=data)
