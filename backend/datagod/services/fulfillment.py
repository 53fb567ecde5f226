"""Order fulfillment: eligibility, provider submission, polling, retries.

One FulfillmentLog row per order tracks the provider side; the order's
``order_status`` only moves through ``transition_fulfillment``.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from datagod.errors import OrderNotFound
from datagod.extensions import db
from datagod.models import FulfillmentLog, Order, Shop
from datagod.providers import (
    COMPLETED,
    FAILED,
    FulfillmentRequest,
    ProviderResult,
    VerifyResult,
    PROCESSING,
    classify_provider_status,
    default_providers,
    mtn_upstreams,
)
from datagod.utils.blacklist import is_phone_blacklisted
from datagod.utils.networks import MTN_FAMILY, NetworkRoute, resolve_network
from datagod.utils.notify import NotificationGateway, notify_admins
from datagod.utils.order_state import transition_fulfillment
from datagod.utils.phone import is_valid_phone, normalize_phone
from datagod.utils.settings_provider import SettingsProvider
from datagod.utils.tasks import dispatch_background, run_best_effort

LOG_PENDING = "pending"
LOG_PROCESSING = "processing"
LOG_SUCCESS = "success"
LOG_FAILED = "failed"

# minutes to wait after attempt N fails
RETRY_BACKOFF_MINUTES = {1: 5, 2: 15, 3: 60}


def next_retry_time(attempt_number: int, now: datetime | None = None) -> datetime:
    minutes = RETRY_BACKOFF_MINUTES.get(int(attempt_number or 1), 60)
    return (now or datetime.utcnow()) + timedelta(minutes=minutes)


@dataclass
class Eligibility:
    eligible: bool
    reason: str = ""
    route: NetworkRoute | None = None


def evaluate_eligibility(order, auto_enabled: bool, phone_blacklisted: bool) -> Eligibility:
    """Decide whether a paid order may go to a provider automatically. No I/O."""
    route = resolve_network(order.network)
    if route is None:
        return Eligibility(False, "unsupported_network")
    if not auto_enabled:
        return Eligibility(False, "auto_fulfillment_disabled", route)
    if order.is_blacklisted:
        return Eligibility(False, "order_blacklisted", route)
    if phone_blacklisted:
        return Eligibility(False, "phone_blacklisted", route)
    return Eligibility(True, "", route)


@dataclass
class FulfillmentOutcome:
    order_id: int
    ok: bool
    status: str
    code: str = ""
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "ok": self.ok,
            "status": self.status,
            "code": self.code,
            "message": self.message,
        }


def _dump(raw) -> str:
    try:
        return json.dumps(raw or {}, default=str)[:8000]
    except (TypeError, ValueError):
        return json.dumps({"raw": str(raw)[:8000]})


def _fmt_volume(volume) -> str:
    return f"{float(volume or 0.0):g}"


class FulfillmentOrchestrator:
    """Drives orders through providers.

    ``providers`` maps network family to provider. ``upstreams`` optionally maps
    the mtn_provider_selection setting values to MTN providers; when present the
    selected one replaces the MTN family entry for new submissions.
    """

    def __init__(self, providers: dict | None = None, settings: SettingsProvider | None = None,
                 notifier: NotificationGateway | None = None, sleep=None, poll_delays=None,
                 blacklist_check=None, upstreams: dict | None = None):
        if providers is None:
            providers = default_providers()
            upstreams = upstreams if upstreams is not None else mtn_upstreams()
        self.providers = providers
        self.upstreams = upstreams or {}
        self.settings = settings or SettingsProvider()
        self.notifier = notifier or NotificationGateway()
        self.sleep = sleep or time.sleep
        self._poll_delays = poll_delays
        self.blacklist_check = blacklist_check or is_phone_blacklisted

    @property
    def poll_delays(self) -> tuple:
        if self._poll_delays is not None:
            return tuple(self._poll_delays)
        return tuple(current_app.config.get("FULFILLMENT_POLL_DELAYS") or (5.0, 10.0, 15.0))

    # ------------------------------------------------------------------
    # provider selection
    # ------------------------------------------------------------------
    def mtn_provider(self):
        if self.upstreams:
            chosen = self.upstreams.get(self.settings.mtn_provider_name())
            if chosen is not None:
                return chosen
        return self.providers.get(MTN_FAMILY)

    def provider_for(self, route: NetworkRoute | None):
        if route is None:
            return None
        if route.family == MTN_FAMILY:
            return self.mtn_provider()
        return self.providers.get(route.family)

    def _provider_named(self, name: str | None):
        if not name:
            return None
        for provider in list(self.upstreams.values()) + list(self.providers.values()):
            if provider.name == name:
                return provider
        return None

    def mtn_balance(self) -> dict:
        """Balance of the selected MTN upstream against the alert threshold."""
        provider = self.mtn_provider()
        balance = provider.check_balance() if provider is not None else None
        if balance is None:
            return {"ok": False, "provider": getattr(provider, "name", None), "balance": None}
        threshold = self.settings.mtn_balance_threshold()
        is_low = balance < threshold
        if is_low:
            current_app.logger.warning("[FULFILL] %s balance %.2f below threshold %.2f", provider.name, balance, threshold)
        return {
            "ok": True,
            "provider": provider.name,
            "balance": balance,
            "currency": "GHS",
            "threshold": threshold,
            "is_low": is_low,
            "alert": f"Balance is below GHS {threshold:.2f}" if is_low else None,
        }

    # ------------------------------------------------------------------
    # eligibility
    # ------------------------------------------------------------------
    def check_eligibility(self, order, *, respect_settings: bool = True) -> Eligibility:
        route = resolve_network(order.network)
        auto_enabled = True
        if route is not None and respect_settings:
            auto_enabled = self.settings.is_auto_fulfillment_enabled(route.family)
        return evaluate_eligibility(order, auto_enabled, self.blacklist_check(order.customer_phone))

    def dispatch(self, order) -> Eligibility:
        """Eligibility gate used after payment; eligible orders are fulfilled in the background."""
        elig = self.check_eligibility(order)
        if not elig.eligible:
            current_app.logger.info("[FULFILL] order %s not auto-fulfilled: %s", order.id, elig.reason)
            if elig.reason == "phone_blacklisted" and not order.is_blacklisted:
                order.queue = "blacklisted"
                db.session.add(order)
                db.session.commit()
            return elig
        dispatch_background(f"fulfill-order-{order.id}", self.fulfill_order, int(order.id))
        return elig

    # ------------------------------------------------------------------
    # fulfillment
    # ------------------------------------------------------------------
    def _get_order(self, order_id) -> Order:
        order = db.session.get(Order, int(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    def fulfill_order(self, order_id: int, *, manual: bool = False) -> FulfillmentOutcome:
        """First submission of a paid order. manual=True bypasses the auto-fulfillment switch."""
        order = self._get_order(order_id)
        log = FulfillmentLog.query.filter_by(order_id=order.id).first()

        if order.order_status == COMPLETED or (log and log.status == LOG_SUCCESS):
            return FulfillmentOutcome(order.id, True, order.order_status, "ALREADY_FULFILLED")
        if log and log.status == LOG_PROCESSING:
            return FulfillmentOutcome(order.id, True, order.order_status, "ALREADY_PROCESSING")
        if log and log.status == LOG_FAILED:
            return FulfillmentOutcome(order.id, False, order.order_status, "ALREADY_ATTEMPTED",
                                      "Use retry for failed fulfillments")

        elig = self.check_eligibility(order, respect_settings=not manual)
        if elig.reason == "unsupported_network" and order.payment_status == "completed":
            problem = f"Unsupported network: {order.network or ''}"
            current_app.logger.error("[FULFILL] order %s failed validation: %s", order.id, problem)
            log = self._upsert_log(order, None, None, log, attempt=1, phone=normalize_phone(order.customer_phone))
            self._mark_failed(order, log, problem, api_response={"validation_error": problem})
            return FulfillmentOutcome(order.id, False, order.order_status, "VALIDATION_FAILED", problem)
        if not elig.eligible:
            return FulfillmentOutcome(order.id, False, order.order_status, "NOT_ELIGIBLE", elig.reason)
        if order.payment_status != "completed":
            return FulfillmentOutcome(order.id, False, order.order_status, "NOT_PAID")

        return self._submit(order, elig.route, log, attempt=1)

    def retry_fulfillment(self, order_id: int) -> FulfillmentOutcome:
        order = self._get_order(order_id)
        log = FulfillmentLog.query.filter_by(order_id=order.id).first()
        if not log:
            return FulfillmentOutcome(order.id, False, order.order_status, "LOG_NOT_FOUND", "Fulfillment log not found")
        if log.status == LOG_SUCCESS or order.order_status == COMPLETED:
            return FulfillmentOutcome(order.id, False, order.order_status, "ALREADY_FULFILLED")
        if log.status == LOG_PROCESSING:
            return FulfillmentOutcome(order.id, False, order.order_status, "ALREADY_PROCESSING")
        if log.retries_exhausted:
            current_app.logger.warning("[FULFILL] order %s: max attempts (%s) reached", order.id, log.max_attempts)
            return FulfillmentOutcome(order.id, False, order.order_status, "MAX_RETRIES_EXCEEDED",
                                      f"Max retry attempts ({log.max_attempts}) exceeded")

        # Manual retries ignore the auto-fulfillment switch but never the blacklist.
        elig = self.check_eligibility(order, respect_settings=False)
        if not elig.eligible:
            return FulfillmentOutcome(order.id, False, order.order_status, "NOT_ELIGIBLE", elig.reason)

        return self._submit(order, elig.route, log, attempt=int(log.attempt_number or 0) + 1)

    def retry_due(self, now: datetime | None = None, limit: int = 50) -> list:
        """Retry failed fulfillments whose backoff window has passed."""
        now = now or datetime.utcnow()
        due = (
            FulfillmentLog.query
            .filter(FulfillmentLog.status == LOG_FAILED)
            .filter(FulfillmentLog.retry_after.isnot(None))
            .filter(FulfillmentLog.retry_after <= now)
            .filter(FulfillmentLog.attempt_number < FulfillmentLog.max_attempts)
            .order_by(FulfillmentLog.retry_after.asc())
            .limit(limit)
            .all()
        )
        results = []
        for log in due:
            outcome = run_best_effort(f"retry-order-{log.order_id}", self.retry_fulfillment, log.order_id)
            if outcome is None:
                outcome = FulfillmentOutcome(log.order_id, False, "", "RETRY_ERROR")
            results.append(outcome)
        return results

    def sync_processing(self, limit: int = 50) -> list:
        """One verification pass over orders left in processing."""
        stuck = (
            FulfillmentLog.query
            .filter(FulfillmentLog.status == LOG_PROCESSING)
            .order_by(FulfillmentLog.updated_at.asc())
            .limit(limit)
            .all()
        )
        results = []
        for log in stuck:
            outcome = run_best_effort(f"sync-order-{log.order_id}", self._sync_one, log)
            if outcome is None:
                outcome = FulfillmentOutcome(log.order_id, False, "", "SYNC_ERROR")
            results.append(outcome)
        return results

    def _sync_one(self, log: FulfillmentLog) -> FulfillmentOutcome:
        order = self._get_order(log.order_id)
        route = resolve_network(order.network)
        provider = self._provider_named(log.provider) or self.provider_for(route)
        if route is None or provider is None:
            return FulfillmentOutcome(order.id, False, order.order_status, "UNSUPPORTED_NETWORK")
        reference = provider.status_reference(str(order.id), order.external_order_id)
        verdict = provider.verify(reference, big_time=route.big_time)
        return self._finalize(order, route, provider, verdict)

    def apply_provider_status(self, order: Order, raw_status: str, *, raw: dict | None = None) -> FulfillmentOutcome:
        """Apply a status pushed by a provider callback to an order in processing."""
        if order.order_status == COMPLETED:
            return FulfillmentOutcome(order.id, True, order.order_status, "ALREADY_FULFILLED")
        if order.order_status != PROCESSING:
            return FulfillmentOutcome(order.id, False, order.order_status, "NOT_PROCESSING")

        verdict = VerifyResult(status=classify_provider_status(raw_status), raw_status=raw_status or "", raw=raw or {})
        if not verdict.terminal:
            return FulfillmentOutcome(order.id, True, order.order_status, "PROCESSING", verdict.raw_status)

        route = resolve_network(order.network)
        log = FulfillmentLog.query.filter_by(order_id=order.id).first()
        provider = self._provider_named(log.provider if log else None) or self.provider_for(route)
        if route is None or provider is None:
            return FulfillmentOutcome(order.id, False, order.order_status, "UNSUPPORTED_NETWORK")
        return self._finalize(order, route, provider, verdict)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _submit(self, order: Order, route: NetworkRoute, log: FulfillmentLog | None, *, attempt: int) -> FulfillmentOutcome:
        provider = self.provider_for(route)
        phone = normalize_phone(order.customer_phone)
        volume = float(order.volume_gb or 0.0)

        problem = ""
        if provider is None:
            problem = f"No provider configured for {route.family}"
        elif not is_valid_phone(phone):
            problem = f"Invalid phone number: {order.customer_phone or ''}"
        elif volume <= 0:
            problem = f"Invalid volume: {order.volume_gb}"

        log = self._upsert_log(order, route, provider, log, attempt=attempt, phone=phone)

        if problem:
            current_app.logger.error("[FULFILL] order %s failed validation: %s", order.id, problem)
            self._mark_failed(order, log, problem, api_response={"validation_error": problem})
            return FulfillmentOutcome(order.id, False, order.order_status, "VALIDATION_FAILED", problem)

        req = FulfillmentRequest(
            order_id=int(order.id),
            phone=phone,
            network=route.provider_code,
            volume_gb=volume,
            reference=str(order.id),
            big_time=route.big_time,
        )
        try:
            result: ProviderResult = provider.initiate(req)
        except Exception as e:
            current_app.logger.exception("[FULFILL] order %s: %s initiate raised", order.id, provider.name)
            result = ProviderResult(ok=False, reference=req.reference, error=f"Provider error: {e}",
                                    error_code="INITIATE_ERROR")

        if not result.ok:
            current_app.logger.error("[FULFILL] order %s initiate failed (attempt %s): %s", order.id, attempt, result.error)
            self._mark_failed(order, log, result.error or "Provider rejected the order", api_response=result.to_dict())
            return FulfillmentOutcome(order.id, False, order.order_status, result.error_code or "INITIATE_FAILED", result.error)

        log.status = LOG_PROCESSING
        log.api_response = _dump(result.to_dict())
        log.error_message = None
        log.retry_after = None
        log.updated_at = datetime.utcnow()
        transition_fulfillment(order, PROCESSING, method=provider.method_tag)
        order.external_order_id = (result.external_id or result.reference or str(order.id))[:64]
        db.session.add_all([log, order])
        db.session.commit()
        current_app.logger.info("[FULFILL] order %s accepted by %s (attempt %s)", order.id, provider.name, attempt)

        reference = provider.status_reference(req.reference, order.external_order_id)
        verdict = self.poll(provider, reference, big_time=route.big_time)
        return self._finalize(order, route, provider, verdict)

    def poll(self, provider, reference: str, *, big_time: bool = False) -> VerifyResult:
        """Verify after each configured delay; stop at the first terminal status."""
        last = VerifyResult(status=PROCESSING)
        for delay in self.poll_delays:
            self.sleep(delay)
            try:
                last = provider.verify(reference, big_time=big_time)
            except Exception as e:
                current_app.logger.exception("[FULFILL] verify %s raised", reference)
                last = VerifyResult(status=PROCESSING, error=str(e))
                continue
            current_app.logger.info("[FULFILL] verify %s after %ss: %s (%s)", reference, delay, last.status, last.raw_status)
            if last.terminal:
                return last
        return last

    def _finalize(self, order: Order, route: NetworkRoute, provider, verdict: VerifyResult) -> FulfillmentOutcome:
        log = FulfillmentLog.query.filter_by(order_id=order.id).first()

        if verdict.status == COMPLETED:
            now = datetime.utcnow()
            transition_fulfillment(order, COMPLETED, method=provider.method_tag)
            if log:
                log.status = LOG_SUCCESS
                log.fulfilled_at = now
                log.retry_after = None
                log.api_response = _dump(verdict.raw)
                log.updated_at = now
                db.session.add(log)
            db.session.add(order)
            db.session.commit()
            current_app.logger.info("[FULFILL] order %s delivered via %s", order.id, provider.name)
            run_best_effort(f"notify-delivered-{order.id}", self._notify_delivered, order)
            return FulfillmentOutcome(order.id, True, order.order_status, "COMPLETED")

        if verdict.status == FAILED:
            reason = verdict.raw_status or verdict.error or "Provider reported failure"
            self._mark_failed(order, log, reason, api_response=verdict.raw)
            return FulfillmentOutcome(order.id, False, order.order_status, "PROVIDER_FAILED", reason)

        # Polls exhausted without a verdict; left for sync_processing.
        return FulfillmentOutcome(order.id, True, order.order_status, "PROCESSING", verdict.raw_status)

    def _upsert_log(self, order, route, provider, log, *, attempt: int, phone: str) -> FulfillmentLog:
        now = datetime.utcnow()
        if log is None:
            log = FulfillmentLog(
                order_id=order.id,
                max_attempts=int(current_app.config.get("FULFILLMENT_MAX_ATTEMPTS") or 3),
                created_at=now,
            )
        log.order_type = order.order_type or "shop"
        log.phone_number = phone or order.customer_phone
        log.network = route.name if route else (order.network or "")[:32]
        log.provider = provider.name if provider else None
        log.attempt_number = max(int(log.attempt_number or 0), int(attempt))
        log.status = LOG_PENDING
        log.updated_at = now
        db.session.add(log)
        db.session.flush()
        return log

    def _mark_failed(self, order: Order, log: FulfillmentLog | None, reason: str, *, api_response=None) -> None:
        transition_fulfillment(order, FAILED)
        if log:
            log.status = LOG_FAILED
            log.error_message = (reason or "")[:400]
            log.api_response = _dump(api_response)
            log.retry_after = None if log.retries_exhausted else next_retry_time(log.attempt_number)
            log.updated_at = datetime.utcnow()
            db.session.add(log)
        db.session.add(order)
        db.session.commit()
        self._notify_failure(order, reason)

    def _payload(self, order: Order, **extra) -> dict:
        payload = {
            "order_id": order.id,
            "phone": order.customer_phone or "",
            "network": order.network or "",
            "volume": _fmt_volume(order.volume_gb),
            "amount": f"{float(order.price or 0.0):.2f}",
        }
        payload.update(extra)
        return payload

    def _notify_delivered(self, order: Order) -> None:
        payload = self._payload(order)
        user_id = order.user_id
        if not user_id and order.shop_id:
            shop = db.session.get(Shop, int(order.shop_id))
            user_id = shop.user_id if shop else None
        if user_id:
            self.notifier.send(user_id, "in_app", "order_delivered", payload)
        if order.customer_phone:
            self.notifier.send(order.user_id, "sms", "order_delivered", payload, recipient=order.customer_phone)

    def _notify_failure(self, order: Order, reason: str) -> None:
        run_best_effort(
            f"notify-failure-{order.id}",
            notify_admins,
            self.notifier,
            "fulfillment_failed_admin",
            self._payload(order, reason=(reason or "")[:50]),
        )
