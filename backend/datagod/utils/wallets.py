from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from datagod.extensions import db
from datagod.models import Wallet, WalletTransaction
from sqlalchemy.exc import IntegrityError


@dataclass
class CreditResult:
    applied: bool
    reason: str = ""
    transaction: WalletTransaction | None = None
    amount: float = 0.0
    balance_after: float = 0.0


def get_or_create_wallet(user_id: int) -> Wallet:
    w = Wallet.query.filter_by(user_id=user_id).first()
    if w:
        return w
    w = Wallet(user_id=user_id, balance=0.0, currency="GHS")
    try:
        db.session.add(w)
        db.session.flush()
        return w
    except IntegrityError:
        db.session.rollback()
        w = Wallet.query.filter_by(user_id=user_id).first()
        if w:
            return w
        raise


def net_topup_amount(amount_paid: float, fee: float) -> float:
    return round(float(amount_paid or 0.0) - float(fee or 0.0), 2)


def _completed_credit(user_id: int, reference: str) -> WalletTransaction | None:
    return WalletTransaction.query.filter_by(
        user_id=user_id, reference=reference, type="credit", status="completed"
    ).first()


def credit_wallet_topup(
    *,
    user_id: int,
    reference: str,
    amount_paid: float,
    fee: float = 0.0,
    description: str = "Wallet top-up via Paystack",
) -> CreditResult:
    """At most one completed credit per (reference, user).

    Commits whatever is pending in the session together with the credit, so the
    caller's payment status change and the balance move land atomically. A
    duplicate-insert from a concurrent delivery is reported as already applied.
    """
    existing = _completed_credit(user_id, reference)
    if existing:
        return CreditResult(applied=False, reason="already_applied", transaction=existing,
                            amount=float(existing.amount or 0.0), balance_after=float(existing.balance_after or 0.0))

    net = net_topup_amount(amount_paid, fee)
    if net <= 0:
        return CreditResult(applied=False, reason="non_positive_amount", amount=net)

    w = get_or_create_wallet(user_id)
    before = float(w.balance or 0.0)
    after = round(before + net, 2)

    txn = WalletTransaction(
        user_id=user_id,
        type="credit",
        amount=net,
        reference=reference,
        balance_before=before,
        balance_after=after,
        status="completed",
        description=(description or "")[:240],
    )
    try:
        db.session.add(txn)
        db.session.flush()
        # Increment in SQL so concurrent credits for other references are not lost.
        db.session.query(Wallet).filter(Wallet.id == w.id).update(
            {Wallet.balance: Wallet.balance + net, Wallet.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = _completed_credit(user_id, reference)
        return CreditResult(applied=False, reason="already_applied", transaction=existing,
                            amount=float(existing.amount or 0.0) if existing else 0.0,
                            balance_after=float(existing.balance_after or 0.0) if existing else 0.0)

    return CreditResult(applied=True, transaction=txn, amount=net, balance_after=after)


def record_failed_topup(*, user_id: int, reference: str, amount: float, reason: str = "") -> WalletTransaction | None:
    """Audit row for a failed top-up; the balance is untouched."""
    w = get_or_create_wallet(user_id)
    balance = float(w.balance or 0.0)
    txn = WalletTransaction(
        user_id=user_id,
        type="credit",
        amount=round(float(amount or 0.0), 2),
        reference=reference,
        balance_before=balance,
        balance_after=balance,
        status="failed",
        description=(f"Wallet top-up failed: {reason}" if reason else "Wallet top-up failed")[:240],
    )
    try:
        db.session.add(txn)
        db.session.commit()
        return txn
    except IntegrityError:
        db.session.rollback()
        return WalletTransaction.query.filter_by(user_id=user_id, reference=reference, type="credit").first()
