from datetime import datetime

from datagod.extensions import db


class BlacklistedPhone(db.Model):
    __tablename__ = "blacklisted_phone_numbers"

    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    reason = db.Column(db.String(240), nullable=True)
    added_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "phone_number": self.phone_number,
            "reason": self.reason or "",
            "added_by": self.added_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
