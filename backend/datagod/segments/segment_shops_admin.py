from __future__ import annotations

from flask import Blueprint, jsonify

from datagod.auth import admin_required
from datagod.jobs.shop_balance_sync import sync_all_shop_balances
from datagod.models import ShopAvailableBalance
from datagod.utils.profits import approve_withdrawal

shops_admin_bp = Blueprint("shops_admin_bp", __name__, url_prefix="/api/admin")


@shops_admin_bp.post("/shops/sync-balances")
@admin_required
def sync_balances():
    return jsonify(sync_all_shop_balances()), 200


@shops_admin_bp.get("/shops/<int:shop_id>/balance")
@admin_required
def shop_balance(shop_id: int):
    snap = ShopAvailableBalance.query.filter_by(shop_id=shop_id).first()
    if not snap:
        return jsonify({"message": "No balance snapshot for shop"}), 404
    return jsonify({"ok": True, "balance": snap.to_dict()}), 200


@shops_admin_bp.post("/withdrawals/<int:withdrawal_id>/approve")
@admin_required
def approve(withdrawal_id: int):
    res = approve_withdrawal(withdrawal_id)
    status = res.pop("status", 200)
    return jsonify(res), status
