from __future__ import annotations

import hmac
import hashlib

from flask import current_app


def _secret() -> str:
    return (current_app.config.get("PAYSTACK_SECRET_KEY") or "").strip()


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature_header: str | None, secret: str | None = None) -> bool:
    """HMAC-SHA512 of the raw body, hex encoded, as sent in X-Paystack-Signature."""
    secret = secret if secret is not None else _secret()
    if not secret or not signature_header:
        return False
    digest = compute_signature(raw_body or b"", secret)
    return hmac.compare_digest(digest, signature_header.strip().lower())
