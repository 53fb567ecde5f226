import json
from datetime import datetime

from datagod.extensions import db


class FulfillmentLog(db.Model):
    __tablename__ = "fulfillment_logs"

    id = db.Column(db.Integer, primary_key=True)
    # One row per order; retries update it in place.
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    order_type = db.Column(db.String(16), nullable=False, default="shop")  # wallet | shop

    phone_number = db.Column(db.String(32), nullable=True)
    network = db.Column(db.String(32), nullable=True)
    provider = db.Column(db.String(32), nullable=True)

    # pending | processing | success | failed
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    attempt_number = db.Column(db.Integer, nullable=False, default=1)
    max_attempts = db.Column(db.Integer, nullable=False, default=3)

    api_response = db.Column(db.Text, nullable=True)  # JSON string
    error_message = db.Column(db.String(400), nullable=True)
    retry_after = db.Column(db.DateTime, nullable=True)
    fulfilled_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def retries_exhausted(self) -> bool:
        return int(self.attempt_number or 0) >= int(self.max_attempts or 0)

    def api_response_dict(self):
        raw = (self.api_response or "").strip()
        if not raw:
            return {}
        try:
            d = json.loads(raw)
            return d if isinstance(d, dict) else {"raw": d}
        except ValueError:
            return {"raw": raw}

    def to_dict(self):
        return {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "order_type": self.order_type,
            "phone_number": self.phone_number or "",
            "network": self.network or "",
            "provider": self.provider or "",
            "status": self.status,
            "attempt_number": int(self.attempt_number or 0),
            "max_attempts": int(self.max_attempts or 0),
            "api_response": self.api_response_dict(),
            "error_message": self.error_message or "",
            "retry_after": self.retry_after.isoformat() if self.retry_after else None,
            "fulfilled_at": self.fulfilled_at.isoformat() if self.fulfilled_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
