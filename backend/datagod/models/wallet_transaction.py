from datetime import datetime

from datagod.extensions import db


class WalletTransaction(db.Model):
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        db.UniqueConstraint("reference", "user_id", "type", name="uq_wallet_txn_ref_user_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)  # credit/debit
    amount = db.Column(db.Float, nullable=False, default=0.0)

    reference = db.Column(db.String(128), nullable=False, index=True)
    balance_before = db.Column(db.Float, nullable=False, default=0.0)
    balance_after = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default="completed")  # completed | failed
    description = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "type": self.type,
            "amount": float(self.amount or 0.0),
            "reference": self.reference,
            "balance_before": float(self.balance_before or 0.0),
            "balance_after": float(self.balance_after or 0.0),
            "status": self.status,
            "description": self.description or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
