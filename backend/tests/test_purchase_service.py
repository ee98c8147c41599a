# Overview: Pytest coverage for purchase flows.

"""
Purchase Flow Tests

Every flow writes its stock movement, money rows and dues together:
a rejected flow leaves no trace in any table.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from ecodues.models import (
    ConsumerDue,
    RetailerDue,
    CompanyDue,
    CompanyProduct,
    Company,
    RetailerInventory,
    RetailerBusinessLink,
    BusinessTransaction,
    InventoryTransaction,
    Transaction,
    CompanyPayment,
    RetailerTransaction,
)
from ecodues.services.purchase_service import (
    record_consumer_purchase,
    record_business_purchase,
    record_retailer_company_purchase,
    record_business_collection,
    record_company_payment,
    register_business_with_retailer,
)
from ecodues.services.dues_service import settle
from ecodues.services.inventory_service import InsufficientStock
from ecodues.validation import ValidationError, NotFoundError


class TestConsumerPurchase:
    def test_fee_opens_root_due(self, db_session, consumer, stocked_item):
        result = record_consumer_purchase(
            buyer_id=consumer.id,
            inventory_id=stocked_item.id,
            amount_paid="100.00",
            disposal_fee="20.00",
        )

        txn = result.transaction
        assert txn.cost_paid == Decimal("100.00")
        assert txn.plastic_disposal_fee == Decimal("20.00")

        assert len(result.dues) == 1
        due = result.dues[0]
        assert due.owner_id == consumer.id
        assert due.origin_transaction_id == txn.id
        assert due.amount == Decimal("20.00")
        assert due.status == "pending"

    def test_zero_fee_opens_no_due(self, db_session, consumer, stocked_item):
        result = record_consumer_purchase(
            buyer_id=consumer.id,
            inventory_id=stocked_item.id,
            amount_paid="5.00",
            disposal_fee="0",
        )
        assert result.dues == []
        assert db_session.query(ConsumerDue).count() == 0
        assert db_session.query(Transaction).count() == 1

    def test_quantity_draws_stock(self, db_session, consumer, stocked_item):
        record_consumer_purchase(
            buyer_id=consumer.id,
            inventory_id=stocked_item.id,
            amount_paid="6.00",
            disposal_fee="1.50",
            quantity=3,
        )
        db_session.refresh(stocked_item)
        assert stocked_item.quantity == 97

    def test_insufficient_stock_leaves_no_sale(self, db_session, consumer, stocked_item):
        with pytest.raises(InsufficientStock):
            record_consumer_purchase(
                buyer_id=consumer.id,
                inventory_id=stocked_item.id,
                amount_paid="6.00",
                disposal_fee="1.50",
                quantity=1000,
            )
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(ConsumerDue).count() == 0

    def test_fee_cannot_exceed_amount_paid(self, db_session, consumer, stocked_item):
        with pytest.raises(ValidationError):
            record_consumer_purchase(
                buyer_id=consumer.id,
                inventory_id=stocked_item.id,
                amount_paid="0.00",
                disposal_fee="500.00",
            )
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(ConsumerDue).count() == 0

    def test_unknown_buyer(self, db_session, stocked_item):
        with pytest.raises(NotFoundError):
            record_consumer_purchase(
                buyer_id=777,
                inventory_id=stocked_item.id,
                amount_paid="1.00",
                disposal_fee="0.10",
            )

    def test_negative_fee_rejected(self, db_session, consumer, stocked_item):
        with pytest.raises(ValidationError):
            record_consumer_purchase(
                buyer_id=consumer.id,
                inventory_id=stocked_item.id,
                amount_paid="1.00",
                disposal_fee="-0.10",
            )


class TestBusinessPurchase:
    def test_plastic_cost_becomes_owner_due(self, db_session, owner, business, retailer, stocked_item):
        result = record_business_purchase(
            business_id=business.id,
            inventory_id=stocked_item.id,
            quantity=20,
            unit_price="1.50",
            plastic_grams=200,
            plastic_cost_per_gram="0.10",
        )

        inv_tx = result.inventory_transaction
        assert inv_tx.business_id == business.id
        assert inv_tx.total_amount == Decimal("30.00")
        assert inv_tx.plastic_disposal_cost == Decimal("20.00")

        assert db_session.query(BusinessTransaction).filter_by(business_id=business.id).count() == 1
        assert db_session.query(RetailerBusinessLink).filter_by(
            business_id=business.id, retailer_id=retailer.id
        ).count() == 1

        due = result.dues[0]
        assert due.tier == "consumer"
        assert due.owner_id == owner.id
        assert due.amount == Decimal("20.00")
        assert result.transaction.user_id == owner.id

        db_session.refresh(stocked_item)
        assert stocked_item.quantity == 80

    def test_default_rate_from_config(self, app, db_session, business, stocked_item):
        result = record_business_purchase(
            business_id=business.id,
            inventory_id=stocked_item.id,
            quantity=1,
            unit_price="1.00",
            plastic_grams=50,
        )
        expected = (Decimal("50") * app.config["DEFAULT_PLASTIC_COST_PER_GRAM"]).quantize(Decimal("0.01"))
        assert result.dues[0].amount == expected

    def test_owner_due_cascades_through_the_business(self, db_session, business, retailer, company, stocked_item):
        """Owner pays -> their business -> registered retailer -> product's company."""
        result = record_business_purchase(
            business_id=business.id,
            inventory_id=stocked_item.id,
            quantity=2,
            unit_price="1.00",
            plastic_grams=30,
            plastic_cost_per_gram="0.10",
        )
        due = result.dues[0]
        owners = []
        for tier in ("consumer", "business", "retailer"):
            due = settle(tier, due.id).next_due
            owners.append(due.owner_id)
        assert owners == [business.id, retailer.id, company.id]

    def test_repeat_purchase_keeps_single_link(self, db_session, business, stocked_item):
        for _ in range(2):
            record_business_purchase(
                business_id=business.id,
                inventory_id=stocked_item.id,
                quantity=1,
                unit_price="1.00",
                plastic_grams=0,
            )
        assert db_session.query(RetailerBusinessLink).count() == 1
        assert db_session.query(ConsumerDue).count() == 0

    def test_insufficient_stock_rolls_back_everything(self, db_session, business, stocked_item):
        with pytest.raises(InsufficientStock):
            record_business_purchase(
                business_id=business.id,
                inventory_id=stocked_item.id,
                quantity=101,
                unit_price="1.00",
                plastic_grams=10,
            )
        assert db_session.query(InventoryTransaction).count() == 0
        assert db_session.query(BusinessTransaction).count() == 0
        assert db_session.query(RetailerBusinessLink).count() == 0


class TestRetailerCompanyPurchase:
    def test_direct_pair_for_material(self, db_session, retailer, company, product):
        """500 g at 0.10/g: a 50.00 retailer due and company due, no consumer/business dues."""
        result = record_retailer_company_purchase(
            retailer_id=retailer.id,
            company_id=company.id,
            quantity=500,
            disposal_cost_per_unit="0.10",
            unit_price="0.02",
        )

        retailer_due, company_due = result.dues
        assert isinstance(retailer_due, RetailerDue)
        assert isinstance(company_due, CompanyDue)
        assert retailer_due.amount == company_due.amount == Decimal("50.00")
        assert retailer_due.source_type == "company_purchase"
        assert company_due.source_type == "direct_purchase"
        assert retailer_due.due_date == retailer_due.created_at.date() + timedelta(days=30)
        assert company_due.due_date == company_due.created_at.date() + timedelta(days=37)
        assert db_session.query(ConsumerDue).count() == 0

        assert result.inventory.quantity == 500
        assert result.transaction.plastic_disposal_fee == Decimal("0.00")
        assert result.payment.amount == Decimal("10.00")
        assert result.payment.status == "completed"

    def test_defaults_to_product_disposal_cost(self, db_session, retailer, company, product):
        result = record_retailer_company_purchase(
            retailer_id=retailer.id,
            company_id=company.id,
            quantity=100,
        )
        assert result.dues[0].amount == Decimal("5.00")
        assert result.payment is None

    def test_company_without_products(self, db_session, retailer):
        empty = Company(name="NoStock Ltd")
        db_session.add(empty)
        db_session.commit()

        with pytest.raises(ValidationError):
            record_retailer_company_purchase(retailer_id=retailer.id, company_id=empty.id, quantity=1)
        assert db_session.query(RetailerInventory).count() == 0

    def test_product_must_belong_to_company(self, db_session, retailer, company, product):
        other = Company(name="Other Co")
        db_session.add(other)
        db_session.flush()
        foreign = CompanyProduct(company_id=other.id, name="HDPE", disposal_cost=Decimal("0.02"))
        db_session.add(foreign)
        db_session.commit()

        with pytest.raises(ValidationError):
            record_retailer_company_purchase(
                retailer_id=retailer.id,
                company_id=company.id,
                quantity=1,
                company_product_id=foreign.id,
            )


class TestMoneyLogs:
    def test_business_collection(self, db_session, retailer, business):
        row = record_business_collection(retailer_id=retailer.id, business_id=business.id, amount="12.345")
        assert row.amount == Decimal("12.35")
        assert db_session.query(RetailerTransaction).count() == 1

    def test_collection_amount_must_be_positive(self, db_session, retailer, business):
        with pytest.raises(ValidationError):
            record_business_collection(retailer_id=retailer.id, business_id=business.id, amount="0")

    def test_company_payment(self, db_session, retailer, company):
        row = record_company_payment(retailer_id=retailer.id, company_id=company.id, amount="40")
        assert row.status == "completed"
        assert db_session.query(CompanyPayment).count() == 1

    def test_company_payment_status_checked(self, db_session, retailer, company):
        with pytest.raises(ValidationError):
            record_company_payment(retailer_id=retailer.id, company_id=company.id, amount="40", status="refunded")

    def test_registration_is_idempotent(self, db_session, business, retailer):
        first = register_business_with_retailer(business_id=business.id, retailer_id=retailer.id)
        second = register_business_with_retailer(business_id=business.id, retailer_id=retailer.id)
        assert first.id == second.id
        assert db_session.query(RetailerBusinessLink).count() == 1
