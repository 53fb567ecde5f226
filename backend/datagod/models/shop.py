from datetime import datetime

from datagod.extensions import db


class Shop(db.Model):
    __tablename__ = "shops"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False, default="")
    slug = db.Column(db.String(120), nullable=True, unique=True)

    # Sub-agent shops resell under a parent shop.
    parent_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "name": self.name,
            "slug": self.slug or "",
            "parent_shop_id": self.parent_shop_id,
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
