from __future__ import annotations

from datetime import datetime

from flask import current_app

from datagod.extensions import db
from datagod.models import AppSetting
from datagod.utils.networks import SETTING_KEYS

_TRUE = {"true", "1", "yes", "on", "enabled"}
_FALSE = {"false", "0", "no", "off", "disabled"}

MTN_PROVIDER_KEY = "mtn_provider_selection"
MTN_PROVIDERS = ("sykes", "datakazina")
DEFAULT_MTN_PROVIDER = "sykes"
MTN_BALANCE_THRESHOLD_KEY = "mtn_balance_alert_threshold"
DEFAULT_MTN_BALANCE_THRESHOLD = 500.0


class SettingsProvider:
    """Reads global switches from app_settings.

    Auto-fulfillment is fail-open: a missing, malformed, or unreadable setting
    reads as enabled so paid orders are not silently parked.
    """

    def get(self, key: str) -> str | None:
        row = AppSetting.query.filter_by(key=key).first()
        return row.value if row else None

    def set(self, key: str, value: str) -> AppSetting:
        row = AppSetting.query.filter_by(key=key).first()
        if not row:
            row = AppSetting(key=key)
        row.value = value
        row.updated_at = datetime.utcnow()
        db.session.add(row)
        db.session.commit()
        return row

    def is_auto_fulfillment_enabled(self, family: str) -> bool:
        key = SETTING_KEYS.get(family)
        if not key:
            return True
        try:
            raw = self.get(key)
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning("[SETTINGS] could not read %s, defaulting to enabled: %s", key, e)
            return True
        if raw is None:
            return True
        value = str(raw).strip().lower()
        if value in _FALSE:
            return False
        if value not in _TRUE:
            current_app.logger.warning("[SETTINGS] unrecognised value %r for %s, defaulting to enabled", raw, key)
        return True

    def set_auto_fulfillment_enabled(self, family: str, enabled: bool) -> AppSetting:
        return self.set(SETTING_KEYS[family], "true" if enabled else "false")

    def auto_fulfillment_flags(self) -> dict:
        return {family: self.is_auto_fulfillment_enabled(family) for family in SETTING_KEYS}

    def mtn_provider_name(self) -> str:
        """Selected MTN upstream; anything unreadable or unknown reads as the default."""
        try:
            raw = self.get(MTN_PROVIDER_KEY)
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning("[SETTINGS] could not read %s, using %s: %s", MTN_PROVIDER_KEY, DEFAULT_MTN_PROVIDER, e)
            return DEFAULT_MTN_PROVIDER
        value = str(raw or "").strip().lower()
        return value if value in MTN_PROVIDERS else DEFAULT_MTN_PROVIDER

    def set_mtn_provider_name(self, name: str) -> AppSetting:
        value = str(name or "").strip().lower()
        if value not in MTN_PROVIDERS:
            raise ValueError(f"Unknown MTN provider: {name}")
        return self.set(MTN_PROVIDER_KEY, value)

    def mtn_balance_threshold(self) -> float:
        try:
            return float(self.get(MTN_BALANCE_THRESHOLD_KEY) or DEFAULT_MTN_BALANCE_THRESHOLD)
        except (TypeError, ValueError):
            return DEFAULT_MTN_BALANCE_THRESHOLD
