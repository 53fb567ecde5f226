"""Best-effort side effects.

Side effects (notifications, customer tracking, balance sync) must never undo
or fail the financial mutation that triggered them. They are run through
``run_best_effort`` so every failure lands in the log instead of vanishing.
"""
from __future__ import annotations

import threading

from flask import current_app

from datagod.extensions import db


def run_best_effort(label: str, fn, *args, **kwargs):
    """Call fn; on error roll back the session, log, and return None."""
    try:
        return fn(*args, **kwargs)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[TASK] best-effort step %s failed", label)
        return None


def dispatch_background(label: str, fn, *args, **kwargs) -> threading.Thread | None:
    """Fire-and-forget fn in a daemon thread with its own app context.

    With FULFILLMENT_ASYNC off (tests, CLI runs) fn runs inline, still best-effort.
    """
    app = current_app._get_current_object()
    if not app.config.get("FULFILLMENT_ASYNC", True):
        run_best_effort(label, fn, *args, **kwargs)
        return None

    def _runner():
        with app.app_context():
            try:
                run_best_effort(label, fn, *args, **kwargs)
            finally:
                db.session.remove()

    t = threading.Thread(target=_runner, name=f"datagod-{label}", daemon=True)
    t.start()
    app.logger.info("[TASK] dispatched %s in background", label)
    return t
