# Overview: Service-layer operations for disposal dues; the cascade state machine.

# backend/ecodues/services/dues_service.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Company, DUE_MODELS
from ..models.dues import (
    TIER_CONSUMER,
    TIER_BUSINESS,
    TIER_RETAILER,
    TIER_COMPANY,
    TIERS,
    DUE_STATUS_PENDING,
    DUE_STATUS_PAID,
    DUE_STATUSES,
    SOURCE_ORIGIN,
    SOURCE_CONSUMER_CHAIN,
    SOURCE_BUSINESS_CHAIN,
    SOURCE_RETAILER_CHAIN,
    SOURCE_COMPANY_PURCHASE,
    SOURCE_DIRECT_PURCHASE,
    next_tier,
)
from ..validation import ValidationError, NotFoundError, require_positive_amount
from ecodues.time_utils import utcnow, add_days
from .concurrency import lock_for_update, conditional_update, run_with_retry
from .ledger_service import (
    append_due_event,
    EVENT_DUE_OPENED,
    EVENT_DUE_SETTLED,
    EVENT_DUE_CASCADED,
    EVENT_DUE_TERMINAL,
    EVENT_DUE_UNRESOLVED_PARTY,
)
from .resolution_service import resolve_next_party
"""
Due Cascade Invariants (authoritative)

State machine (per due):
- pending -> paid
- pending -> overdue   (sweeper only)
- overdue -> paid
- paid is terminal. Settling a paid due raises AlreadySettled and changes nothing.

Cascade:
- settle() is the only way a due becomes paid.
- The paid transition is a conditional UPDATE (status != 'paid'); a zero
  row count means another writer won and this call raises AlreadySettled.
  Exactly one cascade therefore happens per due.
- On the paid transition the next tier's party is resolved and one new
  pending due is opened for it: same amount, parent_due_id = settled due,
  due_date = now + tier offset.
- Company dues end the chain and add their amount to the company's
  total_disposal_collected.
- A due that already has a child (retailer half of a direct purchase pair)
  does not cascade again.
- Settlement, resolution, next-due creation and the audit events commit in
  one transaction or not at all.

Amounts pass through unchanged. Nothing is apportioned.
"""

TIER_OFFSET_DAYS = {
    TIER_CONSUMER: 30,
    TIER_BUSINESS: 15,
    TIER_RETAILER: 10,
    TIER_COMPANY: 7,
}

DIRECT_RETAILER_OFFSET_DAYS = 30
DIRECT_COMPANY_OFFSET_DAYS = 37

# Source type of a cascade-opened due, keyed by the tier it is opened on
CHAIN_SOURCE_TYPES = {
    TIER_BUSINESS: SOURCE_CONSUMER_CHAIN,
    TIER_RETAILER: SOURCE_BUSINESS_CHAIN,
    TIER_COMPANY: SOURCE_RETAILER_CHAIN,
}

OUTCOME_CASCADED = "cascaded"
OUTCOME_TERMINAL = "terminal"
OUTCOME_UNRESOLVED_PARTY = "unresolved_party"
OUTCOME_ALREADY_LINKED = "already_linked"


class DueError(Exception):
    """Raised for due lifecycle errors."""
    pass


class DueNotFound(NotFoundError):
    def __init__(self, tier: str, due_id: int):
        super().__init__(f"{tier.capitalize()} due {due_id} not found")
        self.tier = tier
        self.due_id = due_id


class AlreadySettled(DueError):
    def __init__(self, tier: str, due_id: int):
        super().__init__(f"{tier.capitalize()} due {due_id} is already paid")
        self.tier = tier
        self.due_id = due_id


@dataclass
class SettleResult:
    due: object
    next_due: object | None
    outcome: str

    def to_dict(self) -> dict:
        return {
            "due": self.due.to_dict(),
            "next_due": self.next_due.to_dict() if self.next_due is not None else None,
            "outcome": self.outcome,
        }


def model_for_tier(tier: str):
    model = DUE_MODELS.get(tier)
    if model is None:
        raise ValidationError(f"Invalid tier: {tier}. Must be one of {list(TIERS)}")
    return model


# =============================================================================
# CREATION (no commit; callers own the transaction)
# =============================================================================

def create_root_due(
    *,
    tier: str,
    owner_id: int,
    amount,
    origin_ref: int | None = None,
    now: datetime | None = None,
):
    """Open a pending root due at `tier`. Flushes, does not commit."""
    model = model_for_tier(tier)
    value = require_positive_amount("amount", amount)
    now = now or utcnow()

    due = model(
        owner_id=owner_id,
        amount=value,
        due_date=add_days(now, TIER_OFFSET_DAYS[tier]),
        status=DUE_STATUS_PENDING,
        source_type=SOURCE_ORIGIN,
        created_at=now,
        updated_at=now,
    )
    # Only consumer dues carry the originating transaction as a column
    if tier == TIER_CONSUMER:
        due.origin_transaction_id = origin_ref
    db.session.add(due)
    db.session.flush()

    append_due_event(
        event_type=EVENT_DUE_OPENED,
        tier=tier,
        due_id=due.id,
        occurred_at=now,
        payload={"amount": str(due.amount), "source_type": SOURCE_ORIGIN, "origin_ref": origin_ref},
    )
    return due


def create_direct_due_pair(
    *,
    retailer_id: int,
    company_id: int,
    amount,
    txn_ref: int | None = None,
    now: datetime | None = None,
):
    """
    Retailer bought straight from a company: open both dues at once.

    The company due hangs off the retailer due, so settling the retailer due
    later finds the link already in place.
    """
    value = require_positive_amount("amount", amount)
    now = now or utcnow()
    retailer_model = DUE_MODELS[TIER_RETAILER]
    company_model = DUE_MODELS[TIER_COMPANY]

    retailer_due = retailer_model(
        owner_id=retailer_id,
        parent_due_id=None,
        amount=value,
        due_date=add_days(now, DIRECT_RETAILER_OFFSET_DAYS),
        status=DUE_STATUS_PENDING,
        source_type=SOURCE_COMPANY_PURCHASE,
        created_at=now,
        updated_at=now,
    )
    db.session.add(retailer_due)
    db.session.flush()

    company_due = company_model(
        owner_id=company_id,
        parent_due_id=retailer_due.id,
        amount=value,
        due_date=add_days(now, DIRECT_COMPANY_OFFSET_DAYS),
        status=DUE_STATUS_PENDING,
        source_type=SOURCE_DIRECT_PURCHASE,
        created_at=now,
        updated_at=now,
    )
    db.session.add(company_due)
    db.session.flush()

    for due in (retailer_due, company_due):
        append_due_event(
            event_type=EVENT_DUE_OPENED,
            tier=due.tier,
            due_id=due.id,
            related_tier=TIER_RETAILER if due is company_due else None,
            related_due_id=retailer_due.id if due is company_due else None,
            occurred_at=now,
            payload={"amount": str(value), "source_type": due.source_type, "txn_ref": txn_ref},
        )
    return retailer_due, company_due


def open_root_due(*, owner_id: int, origin_ref: int | None, amount, tier: str = TIER_CONSUMER):
    def _op():
        due = create_root_due(tier=tier, owner_id=owner_id, amount=amount, origin_ref=origin_ref)
        db.session.commit()
        return due

    due = run_with_retry(_op)
    current_app.logger.info("Opened %s due %s for owner %s amount %s", tier, due.id, owner_id, due.amount)
    return due


def open_direct_retailer_company_due(*, retailer_id: int, company_id: int, amount, txn_ref: int | None = None):
    def _op():
        pair = create_direct_due_pair(
            retailer_id=retailer_id, company_id=company_id, amount=amount, txn_ref=txn_ref,
        )
        db.session.commit()
        return pair

    return run_with_retry(_op)


# =============================================================================
# SETTLEMENT
# =============================================================================

def _open_next_due(due, *, owner_id: int, now: datetime):
    tier = next_tier(due.tier)
    model = DUE_MODELS[tier]
    child = model(
        owner_id=owner_id,
        parent_due_id=due.id,
        amount=due.amount,
        due_date=add_days(now, TIER_OFFSET_DAYS[tier]),
        status=DUE_STATUS_PENDING,
        source_type=CHAIN_SOURCE_TYPES[tier],
        created_at=now,
        updated_at=now,
    )
    db.session.add(child)
    db.session.flush()
    return child


def _existing_child(due):
    tier = next_tier(due.tier)
    if tier is None:
        return None
    model = DUE_MODELS[tier]
    return (
        db.session.query(model)
        .filter(model.parent_due_id == due.id)
        .order_by(model.id.asc())
        .first()
    )


def settle(tier: str, due_id: int) -> SettleResult:
    """
    Mark a due paid and advance the cascade one tier.

    WHY a conditional UPDATE instead of read-then-write: two settle calls
    racing on the same due must not both open a next-tier due. Only the
    writer whose UPDATE matched a non-paid row continues.
    """
    model = model_for_tier(tier)

    def _op():
        due = lock_for_update(db.session.query(model).filter_by(id=due_id)).first()
        if due is None:
            raise DueNotFound(tier, due_id)
        if due.status == DUE_STATUS_PAID:
            raise AlreadySettled(tier, due_id)

        now = utcnow()
        previous_status = due.status
        rows = conditional_update(
            db.session.query(model).filter(model.id == due_id, model.status != DUE_STATUS_PAID),
            {"status": DUE_STATUS_PAID, "paid_at": now, "updated_at": now},
        )
        if rows != 1:
            raise AlreadySettled(tier, due_id)
        db.session.refresh(due)

        append_due_event(
            event_type=EVENT_DUE_SETTLED,
            tier=tier,
            due_id=due.id,
            occurred_at=now,
            payload={"amount": str(due.amount), "previous_status": previous_status},
        )

        if tier == TIER_COMPANY:
            conditional_update(
                db.session.query(Company).filter(Company.id == due.owner_id),
                {
                    "total_disposal_collected": db.func.coalesce(Company.total_disposal_collected, 0)
                    + due.amount
                },
            )
            append_due_event(event_type=EVENT_DUE_TERMINAL, tier=tier, due_id=due.id, occurred_at=now)
            return SettleResult(due, None, OUTCOME_TERMINAL)

        linked = _existing_child(due)
        if linked is not None:
            return SettleResult(due, linked, OUTCOME_ALREADY_LINKED)

        match = resolve_next_party(due)
        if match is None:
            append_due_event(
                event_type=EVENT_DUE_UNRESOLVED_PARTY,
                tier=tier,
                due_id=due.id,
                related_tier=next_tier(tier),
                occurred_at=now,
                note=f"No {next_tier(tier)} party could be resolved",
            )
            return SettleResult(due, None, OUTCOME_UNRESOLVED_PARTY)

        child = _open_next_due(due, owner_id=match.owner_id, now=now)
        append_due_event(
            event_type=EVENT_DUE_OPENED,
            tier=child.tier,
            due_id=child.id,
            related_tier=tier,
            related_due_id=due.id,
            occurred_at=now,
            payload={"amount": str(child.amount), "source_type": child.source_type},
        )
        append_due_event(
            event_type=EVENT_DUE_CASCADED,
            tier=tier,
            due_id=due.id,
            related_tier=child.tier,
            related_due_id=child.id,
            occurred_at=now,
            payload={"owner_id": match.owner_id, "via": match.via},
        )
        return SettleResult(due, child, OUTCOME_CASCADED)

    def _settle_and_commit():
        result = _op()
        db.session.commit()
        return result

    result = run_with_retry(_settle_and_commit)

    if result.outcome == OUTCOME_UNRESOLVED_PARTY:
        current_app.logger.warning(
            "Settled %s due %s but no %s party could be resolved; cascade stops here",
            tier, due_id, next_tier(tier),
        )
    elif result.outcome == OUTCOME_CASCADED:
        current_app.logger.info(
            "Settled %s due %s; opened %s due %s",
            tier, due_id, result.next_due.tier, result.next_due.id,
        )
    else:
        current_app.logger.info("Settled %s due %s (%s)", tier, due_id, result.outcome)
    return result


# =============================================================================
# QUERIES
# =============================================================================

def get_due(tier: str, due_id: int):
    model = model_for_tier(tier)
    due = db.session.query(model).filter_by(id=due_id).first()
    if due is None:
        raise DueNotFound(tier, due_id)
    return due


def list_dues(
    *,
    tier: str,
    status: str | None = None,
    owner_id: int | None = None,
    limit: int = 200,
):
    model = model_for_tier(tier)
    q = db.session.query(model)
    if status:
        if status not in DUE_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {list(DUE_STATUSES)}")
        q = q.filter(model.status == status)
    if owner_id is not None:
        q = q.filter(model.owner_id == owner_id)
    return q.order_by(model.created_at.desc(), model.id.desc()).limit(limit).all()


def get_due_chain(tier: str, due_id: int) -> list:
    """
    Dues linked to this one, ordered from the chain's root to its leaf.

    Walks parent links down to the root, then first children up to the
    newest due.
    """
    due = get_due(tier, due_id)

    ancestors = []
    current = due
    while current.parent_due_id is not None:
        parent_tier = TIERS[TIERS.index(current.tier) - 1]
        parent = db.session.query(DUE_MODELS[parent_tier]).filter_by(id=current.parent_due_id).first()
        if parent is None:
            break
        ancestors.append(parent)
        current = parent

    descendants = []
    current = due
    while True:
        child = _existing_child(current)
        if child is None:
            break
        descendants.append(child)
        current = child

    return list(reversed(ancestors)) + [due] + descendants
