from __future__ import annotations

from flask import Blueprint, jsonify, request

from datagod.auth import admin_required
from datagod.jobs.wallet_reconciler import reconcile_wallets

admin_wallets_bp = Blueprint("admin_wallets_bp", __name__, url_prefix="/api/admin/wallets")


@admin_wallets_bp.post("/reconcile")
@admin_required
def reconcile():
    data = request.get_json(silent=True) or {}
    try:
        limit = int(data.get("limit") or 500)
    except (TypeError, ValueError):
        return jsonify({"message": "limit must be an integer"}), 400
    return jsonify({"ok": True, **reconcile_wallets(limit=limit)}), 200
