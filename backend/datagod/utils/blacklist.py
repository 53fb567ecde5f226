from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from datagod.extensions import db
from datagod.models import BlacklistedPhone
from datagod.utils.phone import normalize_phone


def is_phone_blacklisted(phone: str | None) -> bool:
    """Live registry lookup. A failed lookup reads as not blacklisted (fail-open)."""
    normalized = normalize_phone(phone)
    if not normalized:
        return False
    try:
        return BlacklistedPhone.query.filter_by(phone_number=normalized).first() is not None
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("[BLACKLIST] lookup failed for %s: %s", normalized, e)
        return False


def add_to_blacklist(phone: str, reason: str = "", added_by: int | None = None) -> BlacklistedPhone | None:
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    existing = BlacklistedPhone.query.filter_by(phone_number=normalized).first()
    if existing:
        return existing
    row = BlacklistedPhone(phone_number=normalized, reason=(reason or "")[:240], added_by=added_by)
    try:
        db.session.add(row)
        db.session.commit()
        return row
    except IntegrityError:
        db.session.rollback()
        return BlacklistedPhone.query.filter_by(phone_number=normalized).first()


def remove_from_blacklist(phone: str) -> bool:
    normalized = normalize_phone(phone)
    row = BlacklistedPhone.query.filter_by(phone_number=normalized).first()
    if not row:
        return False
    db.session.delete(row)
    db.session.commit()
    return True
