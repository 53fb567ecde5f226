from __future__ import annotations

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

# DataKazina network ids by provider network code
NETWORK_IDS = {"MTN": 3, "AT": 2, "TELECEL": 1}

_TRANSACTION_ID_KEYS = ("transaction_id", "id", "order_id", "reference", "incoming_api_ref")
_BALANCE_KEYS = ("Wallet Balance", "balance", "wallet_balance", "amount", "console_balance")


class DataKazinaProvider(FulfillmentProvider):
    """DataKazina reseller API, the alternative MTN upstream.

    Status lookups take DataKazina's own transaction id, which initiate
    returns as ``external_id``.
    """

    name = "datakazina"
    family = MTN_FAMILY

    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self._base_url = base_url
        self._api_key = api_key

    @property
    def base_url(self) -> str:
        return (self._base_url or current_app.config.get("DATAKAZINA_API_URL") or "").rstrip("/")

    def _headers(self) -> dict:
        return {"x-api-key": self._api_key or current_app.config.get("DATAKAZINA_API_KEY") or ""}

    def status_reference(self, reference: str, external_id: str | None = None) -> str:
        return external_id or reference

    def initiate(self, req: FulfillmentRequest) -> ProviderResult:
        network_id = NETWORK_IDS.get(req.network)
        if network_id is None:
            return ProviderResult(ok=False, reference=req.reference, error=f"Unsupported network: {req.network}",
                                  error_code="UNSUPPORTED_NETWORK")
        payload = {
            "recipient_msisdn": req.phone,
            "network_id": network_id,
            "shared_bundle": req.volume_gb,
            "incoming_api_ref": req.reference,
        }
        current_app.logger.info("[DATAKAZINA] initiate: recipient=%s size=%sGB reference=%s",
                                req.phone, req.volume_gb, req.reference)
        http_status, body = self._post(f"{self.base_url}/buy-data-package", payload, self._headers())

        if http_status is None:
            return ProviderResult(ok=False, reference=req.reference, error=body.error, error_code="REQUEST_FAILED")
        if not body.ok:
            return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                                  error=f"Unparseable provider response ({body.error})", error_code="INVALID_RESPONSE")

        data = body.data
        rejected = (
            not 200 <= http_status < 300
            or data.get("success") is False
            or str(data.get("status") or "").lower() == "error"
            or bool(data.get("error"))
        )
        if rejected:
            message = data.get("message") or data.get("error") or f"API returned {http_status}"
            current_app.logger.error("[DATAKAZINA] initiate failed for %s: %s", req.reference, message)
            return ProviderResult(ok=False, reference=req.reference, http_status=http_status,
                                  error=str(message), error_code=f"HTTP_{http_status}", raw=data)

        external_id = next((data.get(k) for k in _TRANSACTION_ID_KEYS if data.get(k)), None) or req.reference
        return ProviderResult(ok=True, reference=req.reference, external_id=str(external_id),
                              http_status=http_status, raw=data)

    def verify(self, reference: str, *, big_time: bool = False) -> VerifyResult:
        http_status, body = self._post(f"{self.base_url}/fetch-single-transaction",
                                       {"transaction_id": reference}, self._headers())
        if http_status is None or not 200 <= http_status < 300 or not body.ok:
            return VerifyResult(status=PROCESSING, error=body.error or f"http_{http_status}")

        data = body.data
        transaction = data.get("transaction") or data.get("data") or data
        if not isinstance(transaction, dict):
            transaction = {}
        text = str(transaction.get("status") or "")
        return VerifyResult(status=classify_provider_status(text), raw_status=text, raw=data)

    def check_balance(self) -> float | None:
        http_status, body = self._get(f"{self.base_url}/check-console-balance", self._headers())
        if http_status is None or not 200 <= http_status < 300 or not body.ok:
            current_app.logger.warning("[DATAKAZINA] balance check failed: %s", body.error or f"http_{http_status}")
            return None
        return parse_balance(body.data, _BALANCE_KEYS)
