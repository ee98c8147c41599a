# Overview: Pytest coverage for inventory accounting.

from decimal import Decimal

import pytest

from ecodues.models import CompanyProduct, RetailerInventory, InventoryTransaction
from ecodues.services.inventory_service import (
    InsufficientStock,
    apply_inventory_movement,
    compute_new_quantity,
    create_custom_product,
    derive_status,
    plastic_cost,
    record_inventory_movement,
    stock_in_from_company,
    total_amount,
)
from ecodues.validation import ValidationError, NotFoundError


class TestPureHelpers:
    def test_quantity_rules(self):
        assert compute_new_quantity(10, 3, "purchase") == 7
        assert compute_new_quantity(10, 3, "return") == 13
        assert compute_new_quantity(10, 3, "adjustment") == 3

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            compute_new_quantity(10, 3, "theft")

    def test_status_derivation(self):
        assert derive_status(0) == "out_of_stock"
        assert derive_status(5) == "available"
        assert derive_status(0, "discontinued") == "discontinued"

    def test_money_helpers_round_half_up(self):
        assert plastic_cost(Decimal("12.5"), Decimal("0.1")) == Decimal("1.25")
        assert plastic_cost(Decimal("1"), Decimal("0.005")) == Decimal("0.01")
        assert total_amount(3, Decimal("0.335")) == Decimal("1.01")


class TestApplyMovement:
    def test_purchase_draws_stock(self, db_session, stocked_item):
        apply_inventory_movement(stocked_item, 30, "purchase")
        db_session.commit()
        db_session.refresh(stocked_item)
        assert stocked_item.quantity == 70
        assert stocked_item.status == "available"

    def test_insufficient_stock_writes_nothing(self, db_session, stocked_item):
        with pytest.raises(InsufficientStock) as exc:
            apply_inventory_movement(stocked_item, 101, "purchase")
        assert exc.value.on_hand == 100
        assert exc.value.requested == 101
        db_session.rollback()

        reloaded = db_session.query(RetailerInventory).filter_by(id=stocked_item.id).one()
        assert reloaded.quantity == 100

    def test_draining_stock_marks_out_of_stock(self, db_session, stocked_item):
        apply_inventory_movement(stocked_item, 100, "purchase")
        assert stocked_item.status == "out_of_stock"

    def test_discontinued_survives_movements(self, db_session, stocked_item):
        stocked_item.status = "discontinued"
        apply_inventory_movement(stocked_item, 5, "return")
        assert stocked_item.status == "discontinued"
        assert stocked_item.quantity == 105

    def test_adjustment_sets_absolute_quantity(self, db_session, stocked_item):
        apply_inventory_movement(stocked_item, 0, "adjustment")
        assert stocked_item.quantity == 0
        assert stocked_item.status == "out_of_stock"

    def test_negative_delta_rejected(self, db_session, stocked_item):
        with pytest.raises(ValidationError):
            apply_inventory_movement(stocked_item, -4, "return")
        assert stocked_item.quantity == 100


class TestRecordMovement:
    def test_logs_inventory_transaction(self, db_session, stocked_item, business):
        tx = record_inventory_movement(inventory_id=stocked_item.id, quantity=4, kind="purchase", business_id=business.id)

        assert tx.transaction_type == "purchase"
        assert tx.total_amount == Decimal("8.00")
        assert tx.plastic_quantity_purchased == Decimal("40")
        assert tx.plastic_disposal_cost == Decimal("2.00")
        db_session.refresh(stocked_item)
        assert stocked_item.quantity == 96

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            record_inventory_movement(inventory_id=424242, quantity=1, kind="return")

    def test_rejected_movement_not_logged(self, db_session, stocked_item):
        with pytest.raises(InsufficientStock):
            record_inventory_movement(inventory_id=stocked_item.id, quantity=500, kind="purchase")
        assert db_session.query(InventoryTransaction).count() == 0


class TestStockIn:
    def test_creates_then_tops_up_row(self, db_session, retailer, product):
        item = stock_in_from_company(
            retailer_id=retailer.id,
            product=product,
            quantity=500,
            unit_price="0.02",
            disposal_cost_per_unit="0.10",
        )
        db_session.commit()
        assert item.quantity == 500
        assert item.plastic_quantity_grams == Decimal("1")
        assert item.plastic_cost_per_gram == Decimal("0.1000")
        assert item.total_plastic_cost == Decimal("0.10")

        again = stock_in_from_company(
            retailer_id=retailer.id,
            product=product,
            quantity=250,
            unit_price="0.02",
            disposal_cost_per_unit="0.10",
        )
        db_session.commit()
        assert again.id == item.id
        assert again.quantity == 750
        assert db_session.query(RetailerInventory).count() == 1


class TestCustomProduct:
    """Retailer assembles its own product out of plastic materials."""

    def test_assembly_draws_materials_and_prices_plastic(self, db_session, retailer, stocked_item):
        item = create_custom_product(
            retailer_id=retailer.id,
            product_name="Refill Bottle",
            product_category="bottles",
            quantity=4,
            unit_price="3.50",
            materials=[{"inventory_id": stocked_item.id, "grams_per_unit": 5}],
        )

        assert item.is_custom_product is True
        assert item.quantity == 4
        assert item.plastic_quantity_grams == Decimal("5")
        assert item.total_plastic_cost == Decimal("0.25")
        assert item.display_name == "Refill Bottle"

        product = db_session.query(CompanyProduct).filter_by(id=item.company_product_id).one()
        assert product.company_id is None
        assert product.retailer_id == retailer.id

        db_session.refresh(stocked_item)
        assert stocked_item.quantity == 80

    def test_over_draw_refused_atomically(self, db_session, retailer, stocked_item):
        with pytest.raises(InsufficientStock):
            create_custom_product(
                retailer_id=retailer.id,
                product_name="Crate",
                product_category="custom",
                quantity=10,
                unit_price="9.00",
                materials=[{"inventory_id": stocked_item.id, "grams_per_unit": 11}],
            )

        reloaded = db_session.query(RetailerInventory).filter_by(id=stocked_item.id).one()
        assert reloaded.quantity == 100
        assert db_session.query(RetailerInventory).count() == 1
        assert db_session.query(CompanyProduct).filter_by(company_id=None).count() == 0

    def test_requires_materials(self, db_session, retailer):
        with pytest.raises(ValidationError):
            create_custom_product(
                retailer_id=retailer.id,
                product_name="Empty",
                product_category="custom",
                quantity=1,
                unit_price="1.00",
                materials=[],
            )
