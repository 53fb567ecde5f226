from __future__ import annotations

from flask import current_app
from sqlalchemy import union

from datagod.extensions import db
from datagod.models import Shop, ShopProfit, Withdrawal
from datagod.utils.profits import sync_shop_balance


def _shop_ids() -> list:
    q = union(
        db.select(Shop.id),
        db.select(ShopProfit.shop_id),
        db.select(Withdrawal.shop_id),
    )
    return sorted({int(r[0]) for r in db.session.execute(q).all() if r[0] is not None})


def sync_all_shop_balances() -> dict:
    """Rebuild every shop's available-balance snapshot.

    A shop that fails is rolled back and reported; the rest still sync.
    """
    synced = 0
    failed = []
    for shop_id in _shop_ids():
        try:
            sync_shop_balance(shop_id)
            synced += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception("[BALANCE] sync failed for shop %s", shop_id)
            failed.append(shop_id)
    return {"ok": not failed, "synced": synced, "failed": failed}
