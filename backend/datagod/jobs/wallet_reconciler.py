from __future__ import annotations

from datetime import datetime

from datagod.extensions import db
from sqlalchemy import func
from datagod.models import Wallet, WalletTransaction, AuditLog


def _sum_ledger(user_id: int) -> float:
    credits = db.session.query(func.coalesce(func.sum(WalletTransaction.amount), 0.0)).filter(
        WalletTransaction.user_id == int(user_id),
        WalletTransaction.type == "credit",
        WalletTransaction.status == "completed",
    ).scalar() or 0.0
    debits = db.session.query(func.coalesce(func.sum(WalletTransaction.amount), 0.0)).filter(
        WalletTransaction.user_id == int(user_id),
        WalletTransaction.type == "debit",
        WalletTransaction.status == "completed",
    ).scalar() or 0.0
    return float(credits) - float(debits)


def reconcile_wallets(*, limit: int = 500, tolerance: float = 0.01) -> dict:
    """Compare each wallet's stored balance with its completed ledger entries.

    Nothing is corrected; mismatches are written to audit_logs as wallet_anomaly.
    """
    checked = 0
    anomalies = 0
    now = datetime.utcnow()

    # least recently checked first, so a limited run still sweeps every wallet over time
    wallets = (
        Wallet.query
        .order_by(Wallet.last_reconciled_at.is_(None).desc(), Wallet.last_reconciled_at.asc(), Wallet.id.asc())
        .limit(int(limit))
        .all()
    )

    for w in wallets:
        checked += 1
        w.last_reconciled_at = now
        computed = _sum_ledger(int(w.user_id))
        stored = float(w.balance or 0.0)
        if abs(computed - stored) <= float(tolerance):
            continue

        anomalies += 1
        meta = {
            "issues": ["ledger_mismatch"],
            "wallet_id": int(w.id),
            "user_id": int(w.user_id),
            "computed_balance": round(computed, 2),
            "stored_balance": round(stored, 2),
            "currency": w.currency or "GHS",
            "at": now.isoformat(),
        }
        AuditLog.record("wallet_anomaly", target_type="wallet", target_id=w.id, meta=meta, created_at=now)
    db.session.commit()
    return {"checked": checked, "anomalies": anomalies}
