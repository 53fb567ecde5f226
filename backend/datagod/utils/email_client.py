from __future__ import annotations

import requests
from flask import current_app

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


def send_brevo_email(*, to: str, subject: str, text: str) -> tuple[bool, str]:
    """Transactional email through Brevo. Returns (ok, message_id_or_reason)."""
    api_key = current_app.config.get("BREVO_API_KEY")
    if not api_key:
        return False, "BREVO_API_KEY not set"

    payload = {
        "sender": {"email": current_app.config.get("EMAIL_SENDER") or "noreply@datagod.app", "name": "DataGod"},
        "to": [{"email": (to or "").strip()}],
        "subject": subject,
        "textContent": text,
    }
    headers = {"api-key": api_key, "accept": "application/json", "content-type": "application/json"}

    try:
        r = requests.post(BREVO_URL, json=payload, headers=headers, timeout=10)
        if 200 <= r.status_code < 300:
            try:
                ref = str((r.json() or {}).get("messageId") or "sent")
            except ValueError:
                ref = "sent"
            return True, ref
        return False, f"brevo_http_{r.status_code}"
    except requests.RequestException as e:
        return False, f"brevo_exception:{e}"
