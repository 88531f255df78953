# Overview: Visit evidence events. The route scheduler emits, task owners subscribe.

"""
Visit evidence signals.

The evidence store never writes task tables directly. It announces changes
here and the task-completion propagator (services/propagation_service.py)
subscribes. Receivers run synchronously in the emitting request.

All signals are sent with the route schedule id as sender unless noted.

visit_completed
    kwargs: visit_date, user_id, store_id, snapshot_id (None for toggles)
visit_reopened
    kwargs: visit_date, user_id, store_id
visit_evidence_removed
    sender: snapshot id
    kwargs: store_id, user_id, visit_date of the snapshot. Receivers look up
    a replacement per affected row.
"""

from blinker import Namespace
from flask import current_app

from .extensions import db
from .services.concurrency import run_with_retry

_signals = Namespace()

visit_completed = _signals.signal("visit-completed")
visit_reopened = _signals.signal("visit-reopened")
visit_evidence_removed = _signals.signal("visit-evidence-removed")


def send_best_effort(signal, sender, **kwargs) -> bool:
    """
    Deliver a completion event after the evidence write has committed.

    Receivers' writes are committed here, retried on lock/version conflicts,
    and on final failure rolled back and logged. The evidence row is never
    affected. Returns True when every receiver succeeded.
    """
    attempts = int(current_app.config.get("PROPAGATION_RETRY_ATTEMPTS", 3))

    def _op():
        signal.send(sender, **kwargs)
        db.session.commit()

    try:
        run_with_retry(_op, attempts=attempts)
        return True
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Propagation of %s failed for route schedule %s (%s)", signal.name, sender, kwargs
        )
        return False
