from datetime import datetime

from datagod.extensions import db


class PaymentRecord(db.Model):
    __tablename__ = "wallet_payments"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(128), nullable=False, unique=True, index=True)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)

    # pending -> completed | failed, exactly once
    status = db.Column(db.String(16), nullable=False, default="pending")

    amount = db.Column(db.Float, nullable=False, default=0.0)
    fee = db.Column(db.Float, nullable=False, default=0.0)
    amount_received = db.Column(db.Float, nullable=True)

    gateway_transaction_id = db.Column(db.String(64), nullable=True)
    gateway_response = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self):
        return {
            "id": int(self.id),
            "reference": self.reference,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "shop_id": self.shop_id,
            "status": self.status,
            "amount": float(self.amount or 0.0),
            "fee": float(self.fee or 0.0),
            "amount_received": float(self.amount_received) if self.amount_received is not None else None,
            "gateway_transaction_id": self.gateway_transaction_id or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
