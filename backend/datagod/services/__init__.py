from flask import current_app

from datagod.services.fulfillment import FulfillmentOrchestrator
from datagod.services.mtn_webhook import MTNStatusWebhookHandler
from datagod.services.webhook import PaymentWebhookHandler


def get_orchestrator() -> FulfillmentOrchestrator:
    """App-scoped orchestrator; create_app callers may pre-seed one in app.extensions."""
    orch = current_app.extensions.get("datagod_orchestrator")
    if orch is None:
        orch = FulfillmentOrchestrator()
        current_app.extensions["datagod_orchestrator"] = orch
    return orch


def get_webhook_handler() -> PaymentWebhookHandler:
    handler = current_app.extensions.get("datagod_webhook_handler")
    if handler is None:
        orch = get_orchestrator()
        handler = PaymentWebhookHandler(orchestrator=orch, notifier=orch.notifier)
        current_app.extensions["datagod_webhook_handler"] = handler
    return handler


def get_mtn_webhook_handler() -> MTNStatusWebhookHandler:
    handler = current_app.extensions.get("datagod_mtn_webhook_handler")
    if handler is None:
        handler = MTNStatusWebhookHandler(orchestrator=get_orchestrator())
        current_app.extensions["datagod_mtn_webhook_handler"] = handler
    return handler
