from __future__ import annotations

import requests
from flask import current_app

from datagod.utils.phone import to_international

TERMII_BASE = "https://api.ng.termii.com/api"


def send_termii_message(*, to: str, message: str, channel: str = "generic") -> tuple[bool, str]:
    """Send an SMS via Termii.

    - SMS: channel="generic" (or "dnd" if you have it enabled)
    """

    api_key = current_app.config.get("TERMII_API_KEY")
    sender = current_app.config.get("TERMII_SENDER_ID") or "DATAGOD"

    if not api_key:
        return False, "TERMII_API_KEY not set"

    ch = (channel or "generic").strip().lower()
    if ch not in {"generic", "dnd"}:
        ch = "generic"

    payload = {
        "to": to_international(to),
        "from": sender,
        "sms": message,
        "type": "plain",
        "channel": ch,
        "api_key": api_key,
    }

    try:
        r = requests.post(f"{TERMII_BASE}/sms/send", json=payload, timeout=10)
        if 200 <= r.status_code < 300:
            try:
                ref = str((r.json() or {}).get("message_id") or "sent")
            except ValueError:
                ref = "sent"
            return True, ref
        return False, f"termii_http_{r.status_code}"
    except requests.RequestException as e:
        return False, f"termii_exception:{e}"
