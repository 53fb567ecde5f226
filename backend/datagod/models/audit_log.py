import json
from datetime import datetime

from datagod.extensions import db


class AuditLog(db.Model):
    """Append-only trail: webhook receipts, admin toggles, wallet anomalies."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_action_created", "action", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_user_id = db.Column(db.Integer, nullable=True)  # None for system events
    action = db.Column(db.String(64), nullable=False)
    target_type = db.Column(db.String(64), nullable=True)
    # Payment references and setting keys are not integers
    target_id = db.Column(db.String(128), nullable=True)
    meta = db.Column(db.Text, nullable=True)  # JSON string
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @classmethod
    def record(cls, action: str, *, target_type=None, target_id=None, actor_user_id=None, meta=None,
               created_at=None):
        """Add an entry to the session. The caller commits."""
        row = cls(
            actor_user_id=actor_user_id,
            action=action,
            target_type=target_type,
            target_id=str(target_id)[:128] if target_id not in (None, "") else None,
            meta=json.dumps(meta, default=str) if meta is not None else None,
            created_at=created_at or datetime.utcnow(),
        )
        db.session.add(row)
        return row

    def meta_dict(self) -> dict:
        try:
            d = json.loads(self.meta or "{}")
        except ValueError:
            return {"raw": self.meta}
        return d if isinstance(d, dict) else {"raw": d}

    def to_dict(self):
        return {
            "id": int(self.id),
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "target_type": self.target_type or "",
            "target_id": self.target_id or "",
            "meta": self.meta_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
