from __future__ import annotations

from ..extensions import db
from ecodues.time_utils import to_utc_z, to_iso_date

"""
Disposal due tables (one per tier).

All four share one column layout (DueColumnsMixin) so the cascade engine
can treat them generically: owner_id is the paying party for the tier and
parent_due_id points into the table one tier below.
"""

TIER_CONSUMER = "consumer"
TIER_BUSINESS = "business"
TIER_RETAILER = "retailer"
TIER_COMPANY = "company"

# Ordered leaf to root
TIERS = (TIER_CONSUMER, TIER_BUSINESS, TIER_RETAILER, TIER_COMPANY)

DUE_STATUS_PENDING = "pending"
DUE_STATUS_PAID = "paid"
DUE_STATUS_OVERDUE = "overdue"
DUE_STATUSES = (DUE_STATUS_PENDING, DUE_STATUS_PAID, DUE_STATUS_OVERDUE)

SOURCE_ORIGIN = "origin"
SOURCE_CONSUMER_CHAIN = "consumer_chain"
SOURCE_BUSINESS_CHAIN = "business_chain"
SOURCE_RETAILER_CHAIN = "retailer_chain"
SOURCE_COMPANY_PURCHASE = "company_purchase"
SOURCE_DIRECT_PURCHASE = "direct_purchase"


class DueColumnsMixin:
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=DUE_STATUS_PENDING, index=True)
    source_type = db.Column(db.String(32), nullable=False, default=SOURCE_ORIGIN, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    overdue_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tier = ""

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} owner_id={self.owner_id} "
            f"amount={self.amount} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tier": self.tier,
            "owner_id": self.owner_id,
            "parent_due_id": self.parent_due_id,
            "amount": str(self.amount),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "source_type": self.source_type,
            "created_at": to_utc_z(self.created_at),
            "paid_at": to_utc_z(self.paid_at),
            "overdue_at": to_utc_z(self.overdue_at),
        }


class ConsumerDue(DueColumnsMixin, db.Model):
    __tablename__ = "consumer_disposal_dues"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_consumer_dues_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )
    tier = TIER_CONSUMER

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Consumer dues are always roots
    parent_due_id = None
    origin_transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    origin_transaction = db.relationship("Transaction")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["origin_transaction_id"] = self.origin_transaction_id
        return data


class BusinessDue(DueColumnsMixin, db.Model):
    __tablename__ = "business_disposal_dues"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_business_dues_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )
    tier = TIER_BUSINESS

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    parent_due_id = db.Column(db.Integer, db.ForeignKey("consumer_disposal_dues.id"), nullable=True, index=True)

    parent = db.relationship("ConsumerDue", backref=db.backref("children", lazy=True))


class RetailerDue(DueColumnsMixin, db.Model):
    __tablename__ = "retailer_disposal_dues"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_retailer_dues_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )
    tier = TIER_RETAILER

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False, index=True)
    # NULL for direct retailer -> company purchases
    parent_due_id = db.Column(db.Integer, db.ForeignKey("business_disposal_dues.id"), nullable=True, index=True)

    parent = db.relationship("BusinessDue", backref=db.backref("children", lazy=True))


class CompanyDue(DueColumnsMixin, db.Model):
    __tablename__ = "company_disposal_dues"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_company_dues_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )
    tier = TIER_COMPANY

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    parent_due_id = db.Column(db.Integer, db.ForeignKey("retailer_disposal_dues.id"), nullable=True, index=True)

    parent = db.relationship("RetailerDue", backref=db.backref("children", lazy=True))


DUE_MODELS = {
    TIER_CONSUMER: ConsumerDue,
    TIER_BUSINESS: BusinessDue,
    TIER_RETAILER: RetailerDue,
    TIER_COMPANY: CompanyDue,
}


def next_tier(tier: str) -> str | None:
    """Tier one step toward the root, or None at the company tier."""
    idx = TIERS.index(tier)
    return TIERS[idx + 1] if idx + 1 < len(TIERS) else None
