import pytest

from datagod.extensions import db
from datagod.models import AuditLog, FulfillmentLog, Order
from datagod.utils.networks import MTN_FAMILY


@pytest.fixture
def processing_order(app, factory, orchestrator, providers):
    """An MTN order accepted upstream whose polls ran out before a verdict."""
    providers[MTN_FAMILY].statuses = []
    order = factory.order(shop=factory.shop(), network="MTN", customer_phone="0541234567",
                          payment_status="completed")
    orchestrator.fulfill_order(order.id)
    order = db.session.get(Order, order.id)
    assert order.order_status == "processing"
    return order


class TestMtnWebhookRejections:
    def test_missing_signature(self, app, mtn_post):
        r = mtn_post("order.completed", {"id": "1"}, signature=None)
        assert r.status_code == 401
        assert r.get_json()["code"] == "INVALID_SIGNATURE"

    def test_wrong_signature(self, app, mtn_post, processing_order):
        r = mtn_post("order.completed", {"id": processing_order.external_order_id}, signature="sha256=" + "0" * 64)
        assert r.status_code == 401
        assert db.session.get(Order, processing_order.id).order_status == "processing"

    def test_malformed_body(self, app, mtn_post):
        assert mtn_post(None, None, raw=b"{oops").status_code == 400

    @pytest.mark.parametrize("event, order", [
        ("", {"id": "1"}),
        ("order.completed", {}),
        ("order.completed", "1"),
    ])
    def test_missing_event_or_order_id(self, app, mtn_post, event, order):
        r = mtn_post(event, order)
        assert r.status_code == 400
        assert r.get_json()["code"] == "INVALID_PAYLOAD"


class TestMtnStatusUpdates:
    @pytest.mark.parametrize("event, status", [
        ("order.completed", None),
        ("order.success", None),
        ("order.status_changed", "completed"),
        ("order.status_changed", "success"),
    ])
    def test_completion_events(self, app, mtn_post, processing_order, notifier, event, status):
        body = {"id": processing_order.external_order_id, "status": status, "message": "Delivered"}

        r = mtn_post(event, body)

        assert r.status_code == 200
        assert r.get_json() == {"received": True, "order_id": processing_order.id, "result": "COMPLETED"}
        assert db.session.get(Order, processing_order.id).order_status == "completed"
        assert FulfillmentLog.query.filter_by(order_id=processing_order.id).one().status == "success"
        assert "order_delivered" in notifier.templates("sms")

    @pytest.mark.parametrize("event, status", [
        ("order.failed", None),
        ("order.error", None),
        ("order.status_changed", "failed"),
    ])
    def test_failure_events(self, app, mtn_post, processing_order, notifier, event, status):
        r = mtn_post(event, {"id": processing_order.external_order_id, "status": status})

        assert r.get_json()["result"] == "PROVIDER_FAILED"
        assert db.session.get(Order, processing_order.id).order_status == "failed"
        log = FulfillmentLog.query.filter_by(order_id=processing_order.id).one()
        assert log.status == "failed"
        assert log.retry_after is not None
        assert "fulfillment_failed_admin" in notifier.templates()

    @pytest.mark.parametrize("event", ["order.processing", "order.pending"])
    def test_interim_events_change_nothing(self, app, mtn_post, processing_order, event):
        r = mtn_post(event, {"id": processing_order.external_order_id})
        assert r.get_json()["result"] == "PROCESSING"
        assert db.session.get(Order, processing_order.id).order_status == "processing"

    def test_alternate_signature_header(self, app, mtn_post, processing_order):
        r = mtn_post("order.completed", {"id": processing_order.external_order_id}, header="X-Signature")
        assert r.status_code == 200
        assert db.session.get(Order, processing_order.id).order_status == "completed"

    def test_redelivered_completion_is_acknowledged(self, app, mtn_post, processing_order, notifier):
        mtn_post("order.completed", {"id": processing_order.external_order_id})
        sent = len(notifier.sent)

        r = mtn_post("order.completed", {"id": processing_order.external_order_id})

        assert r.get_json()["result"] == "ALREADY_FULFILLED"
        assert len(notifier.sent) == sent

    def test_unknown_order_is_acknowledged(self, app, mtn_post):
        r = mtn_post("order.completed", {"id": "NO-SUCH-ORDER"})
        assert r.status_code == 200
        assert r.get_json() == {"received": True, "skipped": "order_not_found"}

    def test_unhandled_event_is_acknowledged(self, app, mtn_post, processing_order):
        r = mtn_post("order.refund_requested", {"id": processing_order.external_order_id})
        assert r.get_json() == {"received": True, "skipped": "unhandled_event"}
        assert db.session.get(Order, processing_order.id).order_status == "processing"

    def test_every_verified_event_is_audited(self, app, mtn_post):
        mtn_post("order.status_changed", {"id": "EXT-5", "status": "processing", "message": "queued"})
        row = AuditLog.query.filter_by(action="mtn_webhook").one()
        assert row.target_id == "EXT-5"
        assert row.meta_dict() == {"event": "order.status_changed", "status": "processing", "message": "queued"}
