from __future__ import annotations

from flask import Blueprint, jsonify, request

from datagod.auth import admin_required
from datagod.errors import DataGodError, OrderNotFound, error_response
from datagod.extensions import db
from datagod.models import FulfillmentLog, Order
from datagod.services import get_orchestrator

fulfillment_admin_bp = Blueprint("fulfillment_admin_bp", __name__, url_prefix="/api/admin/fulfillment")


@fulfillment_admin_bp.errorhandler(DataGodError)
def _datagod_error(err):
    return error_response(err)


def _limit(default: int = 50) -> int:
    try:
        return max(1, min(int(request.args.get("limit") or default), 500))
    except (TypeError, ValueError):
        return default


def _outcome_response(outcome):
    if outcome.ok:
        return jsonify(outcome.to_dict()), 200
    status = 409 if outcome.code in ("MAX_RETRIES_EXCEEDED", "ALREADY_FULFILLED", "ALREADY_PROCESSING") else 400
    return jsonify(outcome.to_dict()), status


@fulfillment_admin_bp.get("/logs")
@admin_required
def list_logs():
    q = FulfillmentLog.query
    status = (request.args.get("status") or "").strip().lower()
    if status:
        q = q.filter(FulfillmentLog.status == status)
    provider = (request.args.get("provider") or "").strip().lower()
    if provider:
        q = q.filter(FulfillmentLog.provider == provider)
    rows = q.order_by(FulfillmentLog.updated_at.desc()).limit(_limit()).all()
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200


@fulfillment_admin_bp.get("/<int:order_id>")
@admin_required
def get_fulfillment(order_id: int):
    order = db.session.get(Order, order_id)
    if not order:
        raise OrderNotFound(f"Order {order_id} not found")
    log = FulfillmentLog.query.filter_by(order_id=order_id).first()
    return jsonify({"ok": True, "order": order.to_dict(), "log": log.to_dict() if log else None}), 200


@fulfillment_admin_bp.post("/<int:order_id>/fulfill")
@admin_required
def fulfill_now(order_id: int):
    return _outcome_response(get_orchestrator().fulfill_order(order_id, manual=True))


@fulfillment_admin_bp.post("/<int:order_id>/retry")
@admin_required
def retry(order_id: int):
    return _outcome_response(get_orchestrator().retry_fulfillment(order_id))


@fulfillment_admin_bp.post("/retry-due")
@admin_required
def retry_due():
    results = get_orchestrator().retry_due(limit=_limit())
    return jsonify({"ok": True, "count": len(results), "results": [r.to_dict() for r in results]}), 200


@fulfillment_admin_bp.post("/sync-processing")
@admin_required
def sync_processing():
    results = get_orchestrator().sync_processing(limit=_limit())
    return jsonify({"ok": True, "count": len(results), "results": [r.to_dict() for r in results]}), 200


@fulfillment_admin_bp.get("/mtn-balance")
@admin_required
def mtn_balance():
    result = get_orchestrator().mtn_balance()
    if not result["ok"]:
        return jsonify({"ok": False, "provider": result["provider"], "message": "Failed to fetch MTN balance"}), 502
    return jsonify(result), 200
