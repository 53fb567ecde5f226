from datetime import datetime

from datagod.extensions import db


class ShopProfit(db.Model):
    __tablename__ = "shop_profits"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "order_id", name="uq_shop_profits_shop_order"),
        db.UniqueConstraint("shop_id", "seq", name="uq_shop_profits_shop_seq"),
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    # position in the shop's balance chain, 1-based
    seq = db.Column(db.Integer, nullable=False, default=1)

    profit_amount = db.Column(db.Float, nullable=False, default=0.0)
    balance_before = db.Column(db.Float, nullable=False, default=0.0)
    balance_after = db.Column(db.Float, nullable=False, default=0.0)

    # pending | credited | withdrawn
    status = db.Column(db.String(16), nullable=False, default="credited", index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "shop_id": int(self.shop_id),
            "order_id": int(self.order_id),
            "seq": int(self.seq or 0),
            "profit_amount": float(self.profit_amount or 0.0),
            "balance_before": float(self.balance_before or 0.0),
            "balance_after": float(self.balance_after or 0.0),
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
