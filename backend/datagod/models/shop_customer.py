from datetime import datetime

from datagod.extensions import db


class ShopCustomer(db.Model):
    __tablename__ = "shop_customers"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "phone_number", name="uq_shop_customers_shop_phone"),
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    phone_number = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(120), nullable=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Float, nullable=False, default=0.0)
    first_order_at = db.Column(db.DateTime, nullable=True)
    last_order_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": int(self.id),
            "shop_id": int(self.shop_id),
            "phone_number": self.phone_number,
            "email": self.email or "",
            "name": self.name or "",
            "total_orders": int(self.total_orders or 0),
            "total_spent": float(self.total_spent or 0.0),
            "first_order_at": self.first_order_at.isoformat() if self.first_order_at else None,
            "last_order_at": self.last_order_at.isoformat() if self.last_order_at else None,
        }
