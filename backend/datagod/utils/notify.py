from __future__ import annotations

from datetime import datetime
import json
from typing import Any, Dict, Optional

from flask import current_app

from datagod.extensions import db
from datagod.models import Notification, User
from datagod.utils.email_client import send_brevo_email
from datagod.utils.termii_client import send_termii_message

CHANNELS = ("in_app", "sms", "email")

TEMPLATES = {
    "order_payment_confirmed": (
        "Payment received",
        "DATAGOD: Payment confirmed for order #{order_id}! {network} {volume}GB to {phone} - GHS {amount}. Processing...",
    ),
    "order_delivered": (
        "Order delivered",
        "DATAGOD: Order #{order_id} delivered. {network} {volume}GB sent to {phone}. Thank you!",
    ),
    "wallet_topup_success": (
        "Wallet topped up",
        "DATAGOD: Your wallet has been topped up with GHS {amount}. New balance: GHS {balance}.",
    ),
    "wallet_topup_failed": (
        "Wallet top-up failed",
        "DATAGOD: Your wallet top-up of GHS {amount} failed. Please try again or contact support.",
    ),
    "fulfillment_failed_admin": (
        "Fulfillment failed",
        "[ADMIN] Fulfillment FAILED! Order: {order_id} | {phone} | {network} {volume}GB | Reason: {reason}",
    ),
}


class _Blank(dict):
    def __missing__(self, key):
        return ""


def render(template: str, payload: Optional[Dict[str, Any]] = None) -> tuple[str, str]:
    title, body = TEMPLATES.get(template, (template, "{message}"))
    return title, body.format_map(_Blank(payload or {}))


class NotificationGateway:
    """Plain-text send contract over in-app rows, Termii SMS and Brevo email.

    ``send`` never raises; failures are logged and recorded on the row.
    """

    def send(self, user_id: int | None, channel: str, template: str, payload: Optional[Dict[str, Any]] = None,
             *, recipient: str | None = None) -> Notification | None:
        try:
            return self._send(user_id, channel, template, payload or {}, recipient)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("[NOTIFY] %s/%s for user %s failed", channel, template, user_id)
            return None

    def _send(self, user_id, channel, template, payload, recipient):
        if channel not in CHANNELS:
            current_app.logger.warning("[NOTIFY] unknown channel %s", channel)
            return None

        title, message = render(template, payload)
        to = recipient or self._resolve_recipient(user_id, channel)

        n = Notification(
            user_id=user_id,
            channel=channel,
            template=template,
            recipient=to,
            message=message,
            status="queued",
            meta=json.dumps({"title": title, **{k: v for k, v in payload.items() if isinstance(v, (str, int, float))}}),
        )
        db.session.add(n)

        if channel == "in_app":
            n.provider = "local"
            if user_id:
                mark_sent(n, "local")
            else:
                mark_skipped(n, "no_user")
        elif not to:
            mark_skipped(n, "no_recipient")
        elif channel == "sms":
            n.provider = "termii"
            if not current_app.config.get("SMS_ENABLED"):
                mark_skipped(n, "sms_disabled")
            else:
                ok, ref = send_termii_message(to=to, message=message)
                (mark_sent if ok else mark_failed)(n, ref)
        else:
            n.provider = "brevo"
            if not current_app.config.get("EMAIL_ENABLED"):
                mark_skipped(n, "email_disabled")
            else:
                ok, ref = send_brevo_email(to=to, subject=title, text=message)
                (mark_sent if ok else mark_failed)(n, ref)

        db.session.commit()
        current_app.logger.info("[NOTIFY] %s %s -> %s: %s", channel, template, to or user_id, n.status)
        return n

    @staticmethod
    def _resolve_recipient(user_id, channel) -> str | None:
        if not user_id or channel == "in_app":
            return None
        user = db.session.get(User, int(user_id))
        if not user:
            return None
        return user.phone if channel == "sms" else user.email


def notify_admins(gateway, template: str, payload: Dict[str, Any]) -> int:
    """SMS every ADMIN_PHONES entry and email every ADMIN_EMAILS entry. Returns sends attempted."""
    sent = 0
    for phone in current_app.config.get("ADMIN_PHONES") or []:
        gateway.send(None, "sms", template, payload, recipient=phone)
        sent += 1
    for email in current_app.config.get("ADMIN_EMAILS") or []:
        gateway.send(None, "email", template, payload, recipient=email)
        sent += 1
    return sent


def mark_sent(n: Notification, provider_ref: str = "") -> None:
    n.status = "sent"
    n.provider_ref = provider_ref[:120] if provider_ref else None
    n.sent_at = datetime.utcnow()


def mark_skipped(n: Notification, provider_ref: str = "") -> None:
    n.status = "skipped"
    n.provider_ref = provider_ref[:120] if provider_ref else None


def mark_failed(n: Notification, provider_ref: str = "") -> None:
    n.status = "failed"
    n.provider_ref = provider_ref[:120] if provider_ref else None
