# Overview: Service-layer operations for the due audit ledger; encapsulates business logic and database work.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import DueEvent
from ecodues.time_utils import utcnow
"""
Due Ledger Invariants (authoritative)

- Append-only audit log for the disposal-due lifecycle.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back settlement leaves no event behind.
- occurred_at is business time; created_at is system time (DB default).
"""

EVENT_DUE_OPENED = "due.opened"
EVENT_DUE_SETTLED = "due.settled"
EVENT_DUE_CASCADED = "due.cascaded"
EVENT_DUE_TERMINAL = "due.terminal"
EVENT_DUE_UNRESOLVED_PARTY = "due.unresolved_party"
EVENT_DUES_SWEPT = "dues.swept_overdue"


def append_due_event(
    *,
    event_type: str,
    tier: str,
    due_id: int | None = None,
    related_tier: str | None = None,
    related_due_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> DueEvent:
    """
    Append-only due event.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    ev = DueEvent(
        event_type=event_type,
        tier=tier,
        due_id=due_id,
        related_tier=related_tier,
        related_due_id=related_due_id,
        occurred_at=occurred_at or utcnow(),
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_due_events(*, tier: str, due_id: int, limit: int = 100) -> list[DueEvent]:
    return (
        db.session.query(DueEvent)
        .filter_by(tier=tier, due_id=due_id)
        .order_by(DueEvent.occurred_at.asc(), DueEvent.id.asc())
        .limit(limit)
        .all()
    )
