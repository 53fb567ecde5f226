from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from datagod.auth import admin_required
from datagod.extensions import db
from datagod.models import AuditLog
from datagod.utils.networks import SETTING_KEYS
from datagod.utils.settings_provider import MTN_PROVIDER_KEY, MTN_PROVIDERS, SettingsProvider

settings_bp = Blueprint("settings_bp", __name__, url_prefix="/api/admin/settings")


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    s = str(value or "").strip().lower()
    if s in ("1", "true", "yes", "on", "enabled"):
        return True
    if s in ("0", "false", "no", "off", "disabled"):
        return False
    return None


@settings_bp.get("/auto-fulfillment")
@admin_required
def get_auto_fulfillment():
    return jsonify({"ok": True, "flags": SettingsProvider().auto_fulfillment_flags()}), 200


@settings_bp.post("/auto-fulfillment")
@admin_required
def set_auto_fulfillment():
    data = request.get_json(silent=True) or {}
    family = (data.get("family") or "").strip().lower()
    enabled = _parse_bool(data.get("enabled"))
    if family not in SETTING_KEYS:
        return jsonify({"message": f"family must be one of: {', '.join(sorted(SETTING_KEYS))}"}), 400
    if enabled is None:
        return jsonify({"message": "enabled must be a boolean"}), 400

    settings = SettingsProvider()
    settings.set_auto_fulfillment_enabled(family, enabled)
    AuditLog.record(
        "auto_fulfillment_toggled",
        actor_user_id=current_user.id,
        target_type="app_setting",
        target_id=SETTING_KEYS[family],
        meta={"family": family, "enabled": enabled},
    )
    db.session.commit()
    return jsonify({"ok": True, "flags": settings.auto_fulfillment_flags()}), 200


@settings_bp.get("/mtn-provider")
@admin_required
def get_mtn_provider():
    return jsonify({"ok": True, "provider": SettingsProvider().mtn_provider_name(), "options": list(MTN_PROVIDERS)}), 200


@settings_bp.post("/mtn-provider")
@admin_required
def set_mtn_provider():
    data = request.get_json(silent=True) or {}
    name = (data.get("provider") or "").strip().lower()
    if name not in MTN_PROVIDERS:
        return jsonify({"message": f"provider must be one of: {', '.join(MTN_PROVIDERS)}"}), 400

    settings = SettingsProvider()
    previous = settings.mtn_provider_name()
    settings.set_mtn_provider_name(name)
    AuditLog.record(
        "mtn_provider_changed",
        actor_user_id=current_user.id,
        target_type="app_setting",
        target_id=MTN_PROVIDER_KEY,
        meta={"from": previous, "to": name},
    )
    db.session.commit()
    current_app.logger.info("[SETTINGS] MTN provider switched %s -> %s by %s", previous, name, current_user.id)
    return jsonify({"ok": True, "provider": name}), 200
