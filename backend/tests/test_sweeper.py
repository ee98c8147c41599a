# Overview: Pytest coverage for the overdue sweep.

from datetime import timedelta

import pytest

from ecodues.models import ConsumerDue, BusinessDue, DueEvent
from ecodues.services.dues_service import open_root_due, settle
from ecodues.services.sweeper_service import sweep_overdue
from ecodues.time_utils import today
from ecodues.validation import ValidationError


class TestSweepOverdue:
    """Pending dues past their due date become overdue; nothing else moves."""

    def test_marks_pending_past_due(self, db_session, consumer):
        due = open_root_due(owner_id=consumer.id, origin_ref=None, amount="3.00", tier="consumer")

        counts = sweep_overdue(as_of=due.due_date + timedelta(days=1))

        assert counts == {"consumer": 1, "business": 0, "retailer": 0, "company": 0}
        db_session.refresh(due)
        assert due.status == "overdue"
        assert due.overdue_at is not None

    def test_due_date_equal_to_cutoff_is_not_overdue(self, db_session, consumer):
        due = open_root_due(owner_id=consumer.id, origin_ref=None, amount="3.00", tier="consumer")

        counts = sweep_overdue(as_of=due.due_date)

        assert counts["consumer"] == 0
        db_session.refresh(due)
        assert due.status == "pending"

    def test_sweep_is_idempotent(self, db_session, consumer):
        due = open_root_due(owner_id=consumer.id, origin_ref=None, amount="3.00", tier="consumer")
        cutoff = due.due_date + timedelta(days=5)

        assert sweep_overdue(as_of=cutoff)["consumer"] == 1
        assert sweep_overdue(as_of=cutoff)["consumer"] == 0
        assert db_session.query(DueEvent).filter_by(event_type="dues.swept_overdue").count() == 1

    def test_paid_dues_untouched_and_no_cascade(self, db_session, consumer, business):
        paid = open_root_due(owner_id=consumer.id, origin_ref=None, amount="1.00", tier="consumer")
        settle("consumer", paid.id)

        sweep_overdue(as_of=today() + timedelta(days=365))

        db_session.refresh(paid)
        assert paid.status == "paid"
        assert db_session.query(BusinessDue).count() == 0

    def test_scoped_to_tier_and_owner(self, db_session, consumer, owner, business):
        mine = open_root_due(owner_id=consumer.id, origin_ref=None, amount="1.00", tier="consumer")
        other = open_root_due(owner_id=owner.id, origin_ref=None, amount="1.00", tier="consumer")
        biz = open_root_due(owner_id=business.id, origin_ref=None, amount="1.00", tier="business")

        counts = sweep_overdue(
            as_of=today() + timedelta(days=60),
            tier="consumer",
            owner_id=consumer.id,
        )

        assert counts == {"consumer": 1}
        statuses = {d.id: d.status for d in db_session.query(ConsumerDue).all()}
        assert statuses[mine.id] == "overdue"
        assert statuses[other.id] == "pending"
        assert db_session.query(BusinessDue).filter_by(id=biz.id).one().status == "pending"

    def test_owner_without_tier_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sweep_overdue(owner_id=1)

    def test_invalid_tier_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sweep_overdue(tier="wholesale")
