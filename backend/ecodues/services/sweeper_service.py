# Overview: Service-layer operations for overdue sweeps; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import DUE_MODELS
from ..models.dues import TIERS, DUE_STATUS_PENDING, DUE_STATUS_OVERDUE
from ..validation import ValidationError
from ecodues.time_utils import utcnow, today
from .concurrency import conditional_update, run_with_retry
from .ledger_service import append_due_event, EVENT_DUES_SWEPT


def sweep_overdue(
    *,
    as_of: date | None = None,
    tier: str | None = None,
    owner_id: int | None = None,
) -> dict[str, int]:
    """
    Move pending dues whose due_date is before as_of to overdue.

    Only pending rows match, so overdue and paid dues are never touched and
    a second sweep for the same date changes nothing. No cascade runs.

    Returns {tier: rows_updated} for every tier swept.
    """
    if tier is not None and tier not in TIERS:
        raise ValidationError(f"Invalid tier: {tier}. Must be one of {list(TIERS)}")
    if owner_id is not None and tier is None:
        raise ValidationError("owner_id requires a tier")

    as_of = as_of or today()
    tiers = [tier] if tier else list(TIERS)

    def _op():
        now = utcnow()
        counts: dict[str, int] = {}
        for t in tiers:
            model = DUE_MODELS[t]
            q = db.session.query(model).filter(
                model.status == DUE_STATUS_PENDING,
                model.due_date < as_of,
            )
            if owner_id is not None:
                q = q.filter(model.owner_id == owner_id)
            count = conditional_update(
                q, {"status": DUE_STATUS_OVERDUE, "overdue_at": now, "updated_at": now}
            )
            counts[t] = count
            if count:
                append_due_event(
                    event_type=EVENT_DUES_SWEPT,
                    tier=t,
                    occurred_at=now,
                    payload={"as_of": as_of.isoformat(), "count": count, "owner_id": owner_id},
                )
        db.session.commit()
        return counts

    counts = run_with_retry(_op)
    current_app.logger.info("Overdue sweep as of %s: %s", as_of.isoformat(), counts)
    return counts
