from __future__ import annotations

from dataclasses import dataclass, field

import requests
from flask import current_app

from datagod.utils.json_extract import JsonExtraction, extract_json_object

COMPLETED = "completed"
FAILED = "failed"
PROCESSING = "processing"

_FAILED_MARKERS = ("unsuccessful", "failed", "error", "cancelled", "canceled", "rejected", "refund")
_COMPLETED_MARKERS = ("successful", "delivered", "completed")


def classify_provider_status(text: str | None) -> str:
    """Map free-text provider status to completed | failed | processing.

    Failure markers win, so "Order Failed - Cancelled" is failed and
    "Unsuccessful" is not read as a success. Unknown or empty text is processing.
    """
    t = (text or "").strip().lower()
    if not t:
        return PROCESSING
    if any(m in t for m in _FAILED_MARKERS):
        return FAILED
    if any(m in t for m in _COMPLETED_MARKERS):
        return COMPLETED
    return PROCESSING


@dataclass
class FulfillmentRequest:
    order_id: int
    phone: str
    network: str  # provider network code: MTN | AT | TELECEL
    volume_gb: float
    reference: str
    big_time: bool = False


@dataclass
class ProviderResult:
    ok: bool
    reference: str = ""
    external_id: str = ""
    error: str = ""
    error_code: str = ""
    http_status: int | None = None
    raw: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "reference": self.reference,
            "external_id": self.external_id,
            "error": self.error,
            "error_code": self.error_code,
            "http_status": self.http_status,
            "raw": self.raw,
        }


@dataclass
class VerifyResult:
    status: str
    raw_status: str = ""
    error: str = ""
    raw: dict = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.status in (COMPLETED, FAILED)


class FulfillmentProvider:
    """Upstream data-delivery API. Subclasses never raise for transport errors."""

    name = "provider"
    family = ""

    @property
    def method_tag(self) -> str:
        return f"auto_{self.name}"

    def initiate(self, req: FulfillmentRequest) -> ProviderResult:
        raise NotImplementedError

    def verify(self, reference: str, *, big_time: bool = False) -> VerifyResult:
        raise NotImplementedError

    def status_reference(self, reference: str, external_id: str | None = None) -> str:
        """Identifier verify() expects; most upstreams track our own reference."""
        return reference

    def check_balance(self) -> float | None:
        """Upstream wallet balance, or None when unsupported or the call failed."""
        return None

    def _timeout(self) -> float:
        return float(current_app.config.get("PROVIDER_TIMEOUT_SECONDS") or 30)

    def _post(self, url: str, payload: dict, headers: dict | None = None) -> tuple[int | None, JsonExtraction]:
        """POST JSON; returns (http_status, extraction). http_status is None on transport failure."""
        h = {"Content-Type": "application/json", "Accept": "application/json"}
        h.update(headers or {})
        try:
            r = requests.post(url, json=payload, headers=h, timeout=self._timeout())
        except requests.Timeout:
            current_app.logger.warning("[PROVIDER] %s timed out: %s", self.name, url)
            return None, JsonExtraction(ok=False, error="timeout")
        except requests.RequestException as e:
            current_app.logger.warning("[PROVIDER] %s request failed: %s", self.name, e)
            return None, JsonExtraction(ok=False, error=f"request_error:{e}")
        return r.status_code, extract_json_object(r.content)

    def _get(self, url: str, headers: dict | None = None) -> tuple[int | None, JsonExtraction]:
        h = {"Accept": "application/json"}
        h.update(headers or {})
        try:
            r = requests.get(url, headers=h, timeout=self._timeout())
        except requests.RequestException as e:
            current_app.logger.warning("[PROVIDER] %s GET failed: %s", self.name, e)
            return None, JsonExtraction(ok=False, error=f"request_error:{e}")
        return r.status_code, extract_json_object(r.content)


def parse_balance(data: dict, keys: tuple) -> float | None:
    """First numeric value among ``keys``; strings like "GHS 1,250.50" are accepted."""
    for key in keys:
        value = data.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, str):
            value = "".join(ch for ch in value if ch.isdigit() or ch in ".-")
        try:
            return round(float(value), 2)
        except (TypeError, ValueError):
            continue
    return None
