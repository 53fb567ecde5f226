from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from datagod.auth import admin_required
from datagod.models import BlacklistedPhone
from datagod.utils.blacklist import add_to_blacklist, remove_from_blacklist
from datagod.utils.phone import is_valid_phone

blacklist_bp = Blueprint("blacklist_bp", __name__, url_prefix="/api/admin/blacklist")


@blacklist_bp.get("")
@admin_required
def list_blacklist():
    rows = BlacklistedPhone.query.order_by(BlacklistedPhone.created_at.desc()).limit(500).all()
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200


@blacklist_bp.post("")
@admin_required
def add_phone():
    data = request.get_json(silent=True) or {}
    phone = (data.get("phone_number") or data.get("phone") or "").strip()
    if not is_valid_phone(phone):
        return jsonify({"message": "A valid phone number is required"}), 400
    row = add_to_blacklist(phone, reason=data.get("reason") or "", added_by=current_user.id)
    return jsonify({"ok": True, "item": row.to_dict()}), 201


@blacklist_bp.delete("/<phone>")
@admin_required
def remove_phone(phone: str):
    if not remove_from_blacklist(phone):
        return jsonify({"message": "Not found"}), 404
    return jsonify({"ok": True}), 200
