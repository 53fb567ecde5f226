"""
Shared fixtures for the settlement and fulfillment test suites.

The app runs on in-memory SQLite with fulfillment executed inline, zero real
sleeping, fake upstream providers and a notification gateway that records
instead of sending.
"""
import json
from unittest.mock import Mock

import pytest

from datagod import create_app
from datagod.extensions import db
from datagod.models import Order, PaymentRecord, Shop, User
from datagod.providers import (
    FulfillmentProvider,
    ProviderResult,
    VerifyResult,
    classify_provider_status,
)
from datagod.providers.mtn import compute_webhook_signature
from datagod.services.fulfillment import FulfillmentOrchestrator
from datagod.utils.jwt_utils import create_access_token
from datagod.utils.networks import CODECRAFT_FAMILY, MTN_FAMILY
from datagod.utils.paystack_client import compute_signature

PAYSTACK_SECRET = "sk_test_datagod_secret"
MTN_WEBHOOK_SECRET = "mtn_test_webhook_secret"


class FakeProvider(FulfillmentProvider):
    """Scripted upstream: initiate returns a fixed result, verify pops statuses in order."""

    def __init__(self, name, family, statuses=None, initiate_ok=True, initiate_error="",
                 external_prefix="", balance=None):
        self.name = name
        self.family = family
        self.statuses = list(statuses if statuses is not None else ["Successful"])
        self.initiate_ok = initiate_ok
        self.initiate_error = initiate_error
        self.external_prefix = external_prefix
        self.balance = balance
        self.initiate_calls = []
        self.verify_calls = []

    def initiate(self, req):
        self.initiate_calls.append(req)
        if not self.initiate_ok:
            return ProviderResult(ok=False, reference=req.reference, error=self.initiate_error or "Service out of stock",
                                  error_code="CODE_101", http_status=200, raw={"status": 101})
        return ProviderResult(ok=True, reference=req.reference, external_id=f"{self.external_prefix}{req.reference}",
                              http_status=200, raw={"status": 200})

    def status_reference(self, reference, external_id=None):
        # upstreams that issue their own ids are polled by that id
        return external_id if self.external_prefix and external_id else reference

    def check_balance(self):
        return self.balance

    def verify(self, reference, *, big_time=False):
        self.verify_calls.append((reference, big_time))
        text = self.statuses.pop(0) if self.statuses else ""
        return VerifyResult(status=classify_provider_status(text), raw_status=text, raw={"order_status": text})


class RecordingGateway:
    def __init__(self):
        self.sent = []

    def send(self, user_id, channel, template, payload=None, *, recipient=None):
        self.sent.append({
            "user_id": user_id,
            "channel": channel,
            "template": template,
            "payload": dict(payload or {}),
            "recipient": recipient,
        })
        return None

    def templates(self, channel=None):
        return [s["template"] for s in self.sent if channel is None or s["channel"] == channel]


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key-0123456789",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "PAYSTACK_SECRET_KEY": PAYSTACK_SECRET,
        "MTN_WEBHOOK_SECRET": MTN_WEBHOOK_SECRET,
        "FULFILLMENT_ASYNC": False,
        "FULFILLMENT_POLL_DELAYS": (0.0, 0.0, 0.0),
        "FULFILLMENT_MAX_ATTEMPTS": 3,
        "SMS_ENABLED": False,
        "EMAIL_ENABLED": False,
        "ADMIN_PHONES": ["0200000001"],
        "ADMIN_EMAILS": ["ops@datagod.test"],
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def providers():
    return {
        CODECRAFT_FAMILY: FakeProvider("codecraft", CODECRAFT_FAMILY),
        MTN_FAMILY: FakeProvider("mtn", MTN_FAMILY),
    }


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def notifier():
    return RecordingGateway()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def orchestrator(app, providers, notifier, sleep):
    orch = FulfillmentOrchestrator(providers=providers, notifier=notifier, sleep=sleep, poll_delays=(5, 10, 15))
    app.extensions["datagod_orchestrator"] = orch
    app.extensions.pop("datagod_webhook_handler", None)
    app.extensions.pop("datagod_mtn_webhook_handler", None)
    return orch


@pytest.fixture
def client(app, orchestrator):
    return app.test_client()


@pytest.fixture
def factory(app):
    class Factory:
        _n = 0

        def user(self, role="customer", phone=None):
            Factory._n += 1
            u = User(name=f"User {Factory._n}", email=f"user{Factory._n}@datagod.test",
                     phone=phone, role=role)
            db.session.add(u)
            db.session.commit()
            return u

        def shop(self, owner=None, parent=None):
            owner = owner or self.user(role="shop_owner")
            Factory._n += 1
            s = Shop(user_id=owner.id, name=f"Shop {Factory._n}", slug=f"shop-{Factory._n}",
                     parent_shop_id=parent.id if parent else None)
            db.session.add(s)
            db.session.commit()
            return s

        def order(self, shop=None, **kw):
            fields = {
                "order_type": "shop",
                "shop_id": shop.id if shop else None,
                "customer_phone": "0241234567",
                "customer_email": "buyer@datagod.test",
                "customer_name": "Ama Buyer",
                "network": "AT - iShare",
                "volume_gb": 1.0,
                "price": 10.0,
                "profit_amount": 2.0,
            }
            fields.update(kw)
            o = Order(**fields)
            db.session.add(o)
            db.session.commit()
            return o

        def payment(self, reference, order=None, user=None, amount=10.0, fee=0.0, status="pending"):
            p = PaymentRecord(
                reference=reference,
                order_id=order.id if order else None,
                shop_id=order.shop_id if order else None,
                user_id=user.id if user else None,
                amount=amount,
                fee=fee,
                status=status,
            )
            db.session.add(p)
            db.session.commit()
            return p

    return Factory()


@pytest.fixture
def paystack_post(client):
    """POST a signed (or deliberately unsigned) Paystack event to the webhook."""

    def _post(event, data, *, signature="auto", raw=None):
        body = raw if raw is not None else json.dumps({"event": event, "data": data}).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if signature == "auto":
            headers["X-Paystack-Signature"] = compute_signature(body, PAYSTACK_SECRET)
        elif signature is not None:
            headers["X-Paystack-Signature"] = signature
        return client.post("/api/webhooks/paystack", data=body, headers=headers)

    return _post


@pytest.fixture
def admin_headers(factory):
    admin = factory.user(role="admin")
    return {"Authorization": f"Bearer {create_access_token(admin.id)}"}


@pytest.fixture
def mtn_post(client):
    """POST an MTN order status callback signed the way the upstream signs it."""

    def _post(event, order, *, signature="auto", raw=None, header="X-Webhook-Signature"):
        body = raw if raw is not None else json.dumps({"event": event, "order": order}).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if signature == "auto":
            headers[header] = compute_webhook_signature(body, MTN_WEBHOOK_SECRET)
        elif signature is not None:
            headers[header] = signature
        return client.post("/api/webhooks/mtn", data=body, headers=headers)

    return _post
