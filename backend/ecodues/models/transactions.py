from __future__ import annotations

from ..extensions import db
from ecodues.time_utils import to_utc_z

COMPANY_PAYMENT_PENDING = "pending"
COMPANY_PAYMENT_COMPLETED = "completed"
COMPANY_PAYMENT_FAILED = "failed"


class Transaction(db.Model):
    """
    Consumer-facing sale.

    A row with plastic_disposal_fee > 0 originates a root consumer due.
    Retailer restocking is also logged here with a zero fee.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("plastic_disposal_fee >= 0", name="ck_transactions_fee_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("retailer_inventory.id"), nullable=True, index=True)

    cost_paid = db.Column(db.Numeric(12, 2), nullable=False)
    plastic_disposal_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory = db.relationship("RetailerInventory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "inventory_id": self.inventory_id,
            "cost_paid": str(self.cost_paid),
            "plastic_disposal_fee": str(self.plastic_disposal_fee),
            "occurred_at": to_utc_z(self.occurred_at),
        }


class RetailerTransaction(db.Model):
    """Money a retailer collected from a business."""
    __tablename__ = "retailer_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    business = db.relationship("Business")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "business_id": self.business_id,
            "amount": str(self.amount),
            "occurred_at": to_utc_z(self.occurred_at),
        }


class CompanyPayment(db.Model):
    """Money a retailer paid to a company."""
    __tablename__ = "company_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=COMPANY_PAYMENT_COMPLETED, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    company = db.relationship("Company")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "retailer_id": self.retailer_id,
            "amount": str(self.amount),
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
        }
