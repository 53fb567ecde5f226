from __future__ import annotations

import json
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from datagod.errors import (
    DataGodError,
    PaymentNotFound,
    WebhookAuthError,
    WebhookPayloadError,
    WebhookProcessingError,
)
from datagod.extensions import db
from datagod.models import AuditLog, Order, PaymentRecord
from datagod.services.fulfillment import FulfillmentOrchestrator
from datagod.utils.customers import track_customer
from datagod.utils.notify import NotificationGateway
from datagod.utils.paystack_client import verify_signature
from datagod.utils.profits import record_shop_profit, sync_shop_balance
from datagod.utils.tasks import run_best_effort
from datagod.utils.wallets import credit_wallet_topup, record_failed_topup

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"
HANDLED_EVENTS = (CHARGE_SUCCESS, CHARGE_FAILED)
SETTLE_ATTEMPTS = 2


def _minor_to_major(amount) -> float:
    try:
        return round(float(amount or 0) / 100.0, 2)
    except (TypeError, ValueError):
        return 0.0


class PaymentWebhookHandler:
    """Settles Paystack charge events against wallet_payments.

    The payment (and, for shop orders, the order and profit rows) is committed
    in one transaction before any side effect runs. Replays of a settled
    reference are acknowledged without touching the ledger.
    """

    def __init__(self, orchestrator: FulfillmentOrchestrator | None = None,
                 notifier: NotificationGateway | None = None):
        self.notifier = notifier or NotificationGateway()
        self.orchestrator = orchestrator or FulfillmentOrchestrator(notifier=self.notifier)

    def handle(self, raw_body: bytes, signature: str | None) -> dict:
        if not verify_signature(raw_body, signature):
            current_app.logger.warning("[WEBHOOK] rejected: invalid or missing signature")
            raise WebhookAuthError("Invalid signature")

        event_name, data = self._parse(raw_body)
        reference = str(data.get("reference") or "").strip()
        current_app.logger.info("[WEBHOOK] %s received for %s", event_name, reference or "-")
        run_best_effort("audit-webhook", self._audit, event_name, reference, data)

        if event_name not in HANDLED_EVENTS:
            return {"received": True, "skipped": "unhandled_event"}
        if not reference:
            raise WebhookPayloadError("Missing data.reference")

        payment = PaymentRecord.query.filter_by(reference=reference).first()
        if not payment:
            current_app.logger.warning("[WEBHOOK] payment record not found: %s", reference)
            raise PaymentNotFound(f"Payment {reference} not found")
        if payment.is_terminal:
            current_app.logger.info("[WEBHOOK] %s already %s, ignoring %s", reference, payment.status, event_name)
            return {"received": True, "skipped": f"already_{payment.status}"}

        for attempt in range(1, SETTLE_ATTEMPTS + 1):
            try:
                if event_name == CHARGE_SUCCESS:
                    return self._charge_success(payment, data)
                return self._charge_failed(payment, data)
            except DataGodError:
                db.session.rollback()
                raise
            except IntegrityError:
                # Either a concurrent delivery settled this reference first, or a
                # concurrent settlement for another order took the shop's next profit seq.
                db.session.rollback()
                current = PaymentRecord.query.filter_by(reference=reference).first()
                if current and current.is_terminal:
                    return {"received": True, "skipped": f"already_{current.status}"}
                if current is None or attempt >= SETTLE_ATTEMPTS:
                    current_app.logger.exception("[WEBHOOK] integrity error settling %s", reference)
                    raise WebhookProcessingError("Webhook processing failed")
                current_app.logger.warning("[WEBHOOK] integrity conflict settling %s (attempt %s), retrying",
                                           reference, attempt)
                payment = current
            except Exception:
                db.session.rollback()
                current_app.logger.exception("[WEBHOOK] failed settling %s", reference)
                raise WebhookProcessingError("Webhook processing failed")

    @staticmethod
    def _parse(raw_body: bytes) -> tuple[str, dict]:
        try:
            payload = json.loads(raw_body or b"")
        except ValueError:
            raise WebhookPayloadError("Body is not valid JSON")
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Body must be a JSON object")
        data = payload.get("data")
        return str(payload.get("event") or ""), data if isinstance(data, dict) else {}

    @staticmethod
    def _audit(event_name: str, reference: str, data: dict) -> None:
        AuditLog.record(
            "paystack_webhook",
            target_type="payment",
            target_id=reference,
            meta={"event": event_name, "status": data.get("status"), "amount": data.get("amount")},
        )
        db.session.commit()

    # ------------------------------------------------------------------
    # charge.success
    # ------------------------------------------------------------------
    def _charge_success(self, payment: PaymentRecord, data: dict) -> dict:
        now = datetime.utcnow()
        received = _minor_to_major(data.get("amount"))
        payment.status = "completed"
        payment.amount_received = received
        payment.gateway_transaction_id = str(data.get("id") or "")[:64] or None
        payment.gateway_response = str(data.get("gateway_response") or "")[:240] or None
        payment.updated_at = now
        db.session.add(payment)

        if payment.amount and received + 0.005 < float(payment.amount):
            current_app.logger.warning("[WEBHOOK] %s underpaid: expected %.2f got %.2f",
                                       payment.reference, float(payment.amount), received)

        if payment.order_id:
            return self._settle_order(payment, now)
        return self._settle_topup(payment, received)

    def _settle_order(self, payment: PaymentRecord, now: datetime) -> dict:
        order = db.session.get(Order, int(payment.order_id))
        if not order:
            current_app.logger.error("[WEBHOOK] %s links missing order %s", payment.reference, payment.order_id)
            db.session.commit()
            return {"received": True}

        order.payment_status = "completed"
        order.payment_reference = payment.reference
        order.updated_at = now
        db.session.add(order)

        shops = []
        if order.shop_id:
            record_shop_profit(shop_id=order.shop_id, order_id=order.id,
                               amount=order.profit_amount, commit=False)
            shops.append(order.shop_id)
        if order.parent_shop_id and float(order.parent_profit_amount or 0.0) > 0:
            record_shop_profit(shop_id=order.parent_shop_id, order_id=order.id,
                               amount=order.parent_profit_amount, commit=False)
            shops.append(order.parent_shop_id)

        db.session.commit()
        current_app.logger.info("[WEBHOOK] %s settled order %s (profits for shops %s)",
                                payment.reference, order.id, shops or "-")

        run_best_effort(f"track-customer-{order.id}", track_customer, order)
        run_best_effort(f"blacklist-check-{order.id}", self._flag_blacklisted_phone, order)
        if order.is_blacklisted:
            current_app.logger.info("[WEBHOOK] order %s is blacklisted; no confirmation sent", order.id)
        else:
            run_best_effort(f"confirm-order-{order.id}", self._confirm_purchase, order, payment)
        for shop_id in shops:
            run_best_effort(f"sync-balance-{shop_id}", sync_shop_balance, shop_id)
        run_best_effort(f"dispatch-order-{order.id}", self.orchestrator.dispatch, order)
        return {"received": True}

    def _flag_blacklisted_phone(self, order: Order) -> None:
        if order.is_blacklisted or not self.orchestrator.blacklist_check(order.customer_phone):
            return
        order.queue = "blacklisted"
        db.session.add(order)
        db.session.commit()
        current_app.logger.info("[WEBHOOK] order %s phone is blacklisted; order flagged", order.id)

    def _confirm_purchase(self, order: Order, payment: PaymentRecord) -> None:
        payload = {
            "order_id": order.id,
            "network": order.network or "",
            "volume": f"{float(order.volume_gb or 0.0):g}",
            "phone": order.customer_phone or "",
            "amount": f"{float(payment.amount_received or order.price or 0.0):.2f}",
        }
        if order.customer_phone:
            self.notifier.send(order.user_id, "sms", "order_payment_confirmed", payload, recipient=order.customer_phone)
        if order.customer_email:
            self.notifier.send(order.user_id, "email", "order_payment_confirmed", payload, recipient=order.customer_email)

    def _settle_topup(self, payment: PaymentRecord, received: float) -> dict:
        if not payment.user_id:
            raise WebhookProcessingError(f"Top-up {payment.reference} has no owner")

        result = credit_wallet_topup(
            user_id=int(payment.user_id),
            reference=payment.reference,
            amount_paid=received,
            fee=float(payment.fee or 0.0),
        )
        if not result.applied:
            # Still settle the payment row; the credit already exists or there is nothing to add.
            if payment.status != "completed":
                # a concurrent credit won the insert and the session was rolled back
                payment.status = "completed"
                payment.amount_received = received
                payment.updated_at = datetime.utcnow()
                db.session.add(payment)
            db.session.commit()
            current_app.logger.info("[WEBHOOK] top-up %s not credited: %s", payment.reference, result.reason)
            return {"received": True}

        current_app.logger.info("[WEBHOOK] wallet %s credited %.2f via %s", payment.user_id, result.amount, payment.reference)
        payload = {"amount": f"{result.amount:.2f}", "balance": f"{result.balance_after:.2f}", "reference": payment.reference}
        for channel in ("in_app", "sms"):
            run_best_effort(f"notify-topup-{payment.reference}", self.notifier.send,
                            int(payment.user_id), channel, "wallet_topup_success", payload)
        return {"received": True}

    # ------------------------------------------------------------------
    # charge.failed
    # ------------------------------------------------------------------
    def _charge_failed(self, payment: PaymentRecord, data: dict) -> dict:
        now = datetime.utcnow()
        payment.status = "failed"
        payment.gateway_transaction_id = str(data.get("id") or "")[:64] or None
        payment.gateway_response = str(data.get("gateway_response") or "")[:240] or None
        payment.updated_at = now
        db.session.add(payment)

        order = db.session.get(Order, int(payment.order_id)) if payment.order_id else None
        if order:
            order.payment_status = "failed"
            order.updated_at = now
            db.session.add(order)
        db.session.commit()
        current_app.logger.info("[WEBHOOK] %s marked failed", payment.reference)

        if not payment.order_id and payment.user_id:
            amount = _minor_to_major(data.get("amount")) or float(payment.amount or 0.0)
            run_best_effort(
                f"failed-topup-{payment.reference}",
                record_failed_topup,
                user_id=int(payment.user_id),
                reference=payment.reference,
                amount=amount,
                reason=payment.gateway_response or "",
            )
            run_best_effort(f"notify-failed-topup-{payment.reference}", self.notifier.send,
                            int(payment.user_id), "sms", "wallet_topup_failed", {"amount": f"{amount:.2f}"})
        return {"received": True}
