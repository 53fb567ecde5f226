from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from datagod.extensions import db
from datagod.models import ShopProfit, ShopAvailableBalance, Withdrawal

PROFIT_CHAIN_ATTEMPTS = 3


def compute_available_balance(credited_profit: float, approved_withdrawals: float) -> float:
    return max(0.0, round(float(credited_profit or 0.0) - float(approved_withdrawals or 0.0), 2))


def _last_profit(shop_id: int) -> ShopProfit | None:
    return ShopProfit.query.filter_by(shop_id=shop_id).order_by(ShopProfit.seq.desc()).first()


def record_shop_profit(*, shop_id: int, order_id: int, amount: float, status: str = "credited",
                       commit: bool = True) -> ShopProfit:
    """Append one profit row; balance_before chains from the shop's previous row.

    Each row takes the next per-shop ``seq`` and (shop_id, seq) is unique, so two
    writers that read the same tail cannot both land. With commit=True the losing
    writer rolls back and re-chains from the new tail. With commit=False the row
    is only flushed and any conflict raises IntegrityError to the caller.
    Replays for the same (shop, order) return the existing row.
    """
    amt = round(float(amount or 0.0), 2)
    attempts = PROFIT_CHAIN_ATTEMPTS if commit else 1
    for attempt in range(1, attempts + 1):
        existing = ShopProfit.query.filter_by(shop_id=shop_id, order_id=order_id).first()
        if existing:
            return existing

        last = _last_profit(shop_id)
        before = float(last.balance_after or 0.0) if last else 0.0
        row = ShopProfit(
            shop_id=shop_id,
            order_id=order_id,
            seq=int(last.seq or 0) + 1 if last else 1,
            profit_amount=amt,
            balance_before=before,
            balance_after=round(before + amt, 2),
            status=status,
        )
        db.session.add(row)
        if not commit:
            db.session.flush()
            return row
        try:
            db.session.commit()
            return row
        except IntegrityError:
            db.session.rollback()
            existing = ShopProfit.query.filter_by(shop_id=shop_id, order_id=order_id).first()
            if existing:
                return existing
            if attempt >= attempts:
                raise
            current_app.logger.warning("[PROFIT] shop %s chain moved during insert (attempt %s), re-chaining",
                                       shop_id, attempt)


def profit_breakdown(shop_id: int) -> dict:
    rows = (
        db.session.query(ShopProfit.status, func.coalesce(func.sum(ShopProfit.profit_amount), 0.0))
        .filter(ShopProfit.shop_id == shop_id)
        .group_by(ShopProfit.status)
        .all()
    )
    by_status = {status: float(total or 0.0) for status, total in rows}
    return {
        "total": round(sum(by_status.values()), 2),
        "pending": round(by_status.get("pending", 0.0), 2),
        "credited": round(by_status.get("credited", 0.0), 2),
        "withdrawn": round(by_status.get("withdrawn", 0.0), 2),
    }


def approved_withdrawals_total(shop_id: int) -> float:
    total = db.session.query(func.coalesce(func.sum(Withdrawal.amount), 0.0)).filter(
        Withdrawal.shop_id == shop_id,
        Withdrawal.status == "approved",
    ).scalar() or 0.0
    return round(float(total), 2)


def sync_shop_balance(shop_id: int) -> ShopAvailableBalance:
    """Rebuild the shop's available-balance snapshot (delete + insert)."""
    breakdown = profit_breakdown(shop_id)
    approved = approved_withdrawals_total(shop_id)
    available = compute_available_balance(breakdown["credited"], approved)

    ShopAvailableBalance.query.filter_by(shop_id=shop_id).delete()
    snap = ShopAvailableBalance(
        shop_id=shop_id,
        available_balance=available,
        total_profit=breakdown["total"],
        pending_profit=breakdown["pending"],
        credited_profit=breakdown["credited"],
        withdrawn_profit=breakdown["withdrawn"],
        approved_withdrawals=approved,
        created_at=datetime.utcnow(),
    )
    try:
        db.session.add(snap)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("[BALANCE] shop %s available=%.2f credited=%.2f approved_withdrawals=%.2f",
                            shop_id, available, breakdown["credited"], approved)
    return snap


def approve_withdrawal(withdrawal_id: int) -> dict:
    w = db.session.get(Withdrawal, int(withdrawal_id))
    if not w:
        return {"ok": False, "error": "Withdrawal not found", "status": 404}
    if w.status != "pending":
        return {"ok": False, "error": f"Withdrawal is already {w.status}", "status": 409}

    w.status = "approved"
    w.approved_at = datetime.utcnow()
    db.session.add(w)
    db.session.commit()

    snap = sync_shop_balance(int(w.shop_id))
    return {"ok": True, "withdrawal": w.to_dict(), "balance": snap.to_dict(), "status": 200}
