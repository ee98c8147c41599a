from __future__ import annotations

from ..extensions import db
from ecodues.time_utils import to_utc_z


class DueEvent(db.Model):
    """Append-only audit row for the due lifecycle (opened, settled, cascade outcome, swept)."""
    __tablename__ = "due_events"
    __table_args__ = (
        db.Index("ix_due_events_tier_due", "tier", "due_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., due.opened, due.settled, due.unresolved_party

    # What it refers to; due_id is NULL for bulk events (sweeps)
    tier = db.Column(db.String(16), nullable=False, index=True)
    due_id = db.Column(db.Integer, nullable=True)

    related_tier = db.Column(db.String(16), nullable=True)
    related_due_id = db.Column(db.Integer, nullable=True)

    # Business vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Optional structured metadata (keep small; do not denormalize domain state)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "tier": self.tier,
            "due_id": self.due_id,
            "related_tier": self.related_tier,
            "related_due_id": self.related_due_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }
