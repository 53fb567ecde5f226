from __future__ import annotations

import json

from flask import current_app

from datagod.errors import WebhookAuthError, WebhookPayloadError
from datagod.extensions import db
from datagod.models import AuditLog, Order
from datagod.providers.mtn import verify_webhook_signature
from datagod.services.fulfillment import FulfillmentOrchestrator
from datagod.utils.tasks import run_best_effort

STATUS_CHANGED = "order.status_changed"

# event -> status text for events that carry the outcome in their name
EVENT_STATUS = {
    "order.completed": "completed",
    "order.success": "completed",
    "order.failed": "failed",
    "order.error": "failed",
    "order.processing": "processing",
    "order.pending": "pending",
}


class MTNStatusWebhookHandler:
    """Applies MTN order status callbacks to orders left in processing.

    Orders are matched on ``external_order_id``, the id the upstream returned
    at initiate. Callbacks for unknown orders are acknowledged and ignored.
    """

    def __init__(self, orchestrator: FulfillmentOrchestrator):
        self.orchestrator = orchestrator

    def handle(self, raw_body: bytes, signature: str | None) -> dict:
        if not verify_webhook_signature(raw_body, signature):
            current_app.logger.warning("[MTN-WEBHOOK] rejected: invalid or missing signature")
            raise WebhookAuthError("Invalid signature")

        event_name, order_data = self._parse(raw_body)
        external_id = str(order_data.get("id") or "").strip()
        if not event_name or not external_id:
            raise WebhookPayloadError("Missing event or order.id")

        status_text = self._status_for(event_name, order_data)
        current_app.logger.info("[MTN-WEBHOOK] %s for %s: %s", event_name, external_id, status_text or "-")
        run_best_effort("audit-mtn-webhook", self._audit, event_name, external_id, order_data)

        if status_text is None:
            return {"received": True, "skipped": "unhandled_event"}

        order = Order.query.filter_by(external_order_id=external_id).first()
        if not order:
            current_app.logger.warning("[MTN-WEBHOOK] no order for external id %s", external_id)
            return {"received": True, "skipped": "order_not_found"}

        outcome = self.orchestrator.apply_provider_status(order, status_text, raw=order_data)
        return {"received": True, "order_id": order.id, "result": outcome.code}

    @staticmethod
    def _parse(raw_body: bytes) -> tuple[str, dict]:
        try:
            payload = json.loads(raw_body or b"")
        except ValueError:
            raise WebhookPayloadError("Body is not valid JSON")
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Body must be a JSON object")
        order = payload.get("order")
        return str(payload.get("event") or "").strip(), order if isinstance(order, dict) else {}

    @staticmethod
    def _status_for(event_name: str, order_data: dict) -> str | None:
        if event_name == STATUS_CHANGED:
            status = str(order_data.get("status") or "").strip().lower()
            return "completed" if status == "success" else status
        return EVENT_STATUS.get(event_name)

    @staticmethod
    def _audit(event_name: str, external_id: str, order_data: dict) -> None:
        AuditLog.record(
            "mtn_webhook",
            target_type="order",
            target_id=external_id,
            meta={"event": event_name, "status": order_data.get("status"), "message": order_data.get("message")},
        )
        db.session.commit()
