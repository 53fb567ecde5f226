from datetime import datetime

from datagod.extensions import db


class ShopAvailableBalance(db.Model):
    """Read cache of a shop's withdrawable balance. Rebuilt, never edited."""

    __tablename__ = "shop_available_balance"

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, unique=True, index=True)

    available_balance = db.Column(db.Float, nullable=False, default=0.0)
    total_profit = db.Column(db.Float, nullable=False, default=0.0)
    pending_profit = db.Column(db.Float, nullable=False, default=0.0)
    credited_profit = db.Column(db.Float, nullable=False, default=0.0)
    withdrawn_profit = db.Column(db.Float, nullable=False, default=0.0)
    approved_withdrawals = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "shop_id": int(self.shop_id),
            "available_balance": float(self.available_balance or 0.0),
            "total_profit": float(self.total_profit or 0.0),
            "pending_profit": float(self.pending_profit or 0.0),
            "credited_profit": float(self.credited_profit or 0.0),
            "withdrawn_profit": float(self.withdrawn_profit or 0.0),
            "approved_withdrawals": float(self.approved_withdrawals or 0.0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
