from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from datagod.extensions import db
from datagod.models import ShopCustomer
from datagod.utils.phone import normalize_phone


def track_customer(order) -> ShopCustomer | None:
    """Upsert the shop's customer row for a paid order."""
    if not order.shop_id:
        return None
    phone = normalize_phone(order.customer_phone)
    if not phone:
        return None

    now = datetime.utcnow()
    row = ShopCustomer.query.filter_by(shop_id=order.shop_id, phone_number=phone).first()
    if not row:
        row = ShopCustomer(shop_id=order.shop_id, phone_number=phone, first_order_at=now,
                           total_orders=0, total_spent=0.0)
    row.email = order.customer_email or row.email
    row.name = order.customer_name or row.name
    row.total_orders = int(row.total_orders or 0) + 1
    row.total_spent = round(float(row.total_spent or 0.0) + float(order.price or 0.0), 2)
    row.last_order_at = now
    try:
        db.session.add(row)
        db.session.commit()
        return row
    except IntegrityError:
        db.session.rollback()
        return None
