from datetime import datetime

from datagod.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)

    # shop | wallet
    order_type = db.Column(db.String(16), nullable=False, default="shop", index=True)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    customer_phone = db.Column(db.String(32), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_name = db.Column(db.String(120), nullable=True)

    # Free text as captured at checkout: "MTN", "AT - iShare", "Telecel", "AT - BigTime", ...
    network = db.Column(db.String(32), nullable=True)
    volume_gb = db.Column(db.Float, nullable=False, default=0.0)
    price = db.Column(db.Float, nullable=False, default=0.0)

    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    # pending -> processing -> completed | failed (failed -> processing on retry)
    order_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    profit_amount = db.Column(db.Float, nullable=False, default=0.0)
    parent_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True)
    parent_profit_amount = db.Column(db.Float, nullable=False, default=0.0)

    queue = db.Column(db.String(24), nullable=True)  # e.g. "blacklisted"

    fulfillment_method = db.Column(db.String(24), nullable=True)  # auto_codecraft | auto_mtn | manual
    external_order_id = db.Column(db.String(64), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_blacklisted(self) -> bool:
        return (self.queue or "").strip().lower() == "blacklisted"

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_type": self.order_type,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "customer_phone": self.customer_phone or "",
            "customer_email": self.customer_email or "",
            "customer_name": self.customer_name or "",
            "network": self.network or "",
            "volume_gb": float(self.volume_gb or 0.0),
            "price": float(self.price or 0.0),
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "profit_amount": float(self.profit_amount or 0.0),
            "parent_shop_id": self.parent_shop_id,
            "parent_profit_amount": float(self.parent_profit_amount or 0.0),
            "queue": self.queue or "",
            "fulfillment_method": self.fulfillment_method or "",
            "external_order_id": self.external_order_id or "",
            "payment_reference": self.payment_reference or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
