from datetime import datetime
from datagod.extensions import db

class Withdrawal(db.Model):
    __tablename__ = "withdrawal_requests"
    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), index=True, nullable=False)
    user_id = db.Column(db.Integer, index=True, nullable=True)
    amount = db.Column(db.Float, nullable=False)
    destination = db.Column(db.String(120))
    # pending -> approved | rejected
    status = db.Column(db.String(20), nullable=False, default="pending")
    reference = db.Column(db.String(64), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    approved_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": int(self.id),
            "shop_id": int(self.shop_id),
            "user_id": self.user_id,
            "amount": float(self.amount or 0.0),
            "destination": self.destination or "",
            "status": self.status,
            "reference": self.reference or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }
