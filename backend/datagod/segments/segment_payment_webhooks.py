from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from datagod.errors import DataGodError, error_response
from datagod.extensions import db
from datagod.services import get_mtn_webhook_handler, get_webhook_handler

webhooks_bp = Blueprint("webhooks_bp", __name__, url_prefix="/api/webhooks")

_WEBHOOKS_INIT_DONE = False


@webhooks_bp.before_app_request
def _ensure_tables_once():
    global _WEBHOOKS_INIT_DONE
    if _WEBHOOKS_INIT_DONE:
        return
    try:
        db.create_all()
    except Exception as e:
        current_app.logger.warning("[WEBHOOK] create_all skipped: %s", e)
    _WEBHOOKS_INIT_DONE = True


@webhooks_bp.errorhandler(DataGodError)
def _datagod_error(err):
    return error_response(err)


@webhooks_bp.post("/paystack")
def paystack_webhook():
    """Paystack charge events. Signature is checked against the raw body."""
    raw = request.get_data(cache=True) or b""
    sig = request.headers.get("X-Paystack-Signature")
    result = get_webhook_handler().handle(raw, sig)
    return jsonify(result), 200


@webhooks_bp.post("/mtn")
def mtn_webhook():
    """MTN order status callbacks, signed with HMAC-SHA256 over the raw body."""
    raw = request.get_data(cache=True) or b""
    sig = (
        request.headers.get("X-Webhook-Signature")
        or request.headers.get("X-Signature")
        or request.headers.get("Signature")
    )
    result = get_mtn_webhook_handler().handle(raw, sig)
    return jsonify(result), 200
