# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/ecodues/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import CompanyProduct, RetailerInventory, InventoryTransaction, Retailer
from ..models.inventory import (
    INVENTORY_STATUS_AVAILABLE,
    INVENTORY_STATUS_OUT_OF_STOCK,
    INVENTORY_STATUS_DISCONTINUED,
    MOVEMENT_PURCHASE,
    MOVEMENT_RETURN,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_KINDS,
)
from ..validation import (
    ValidationError,
    NotFoundError,
    as_money,
    coerce_decimal,
    coerce_int,
    require_quantity,
    require_non_negative_amount,
    require_non_negative_rate,
)
from ecodues.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Accounting Invariants (authoritative)

Quantity model:
- RetailerInventory.quantity is a mutable counter, never negative.
- purchase:   new = quantity - delta  (units leaving stock to a buyer)
- return:     new = quantity + delta
- adjustment: new = delta             (absolute set, for corrections)
- A purchase that would go below zero raises InsufficientStock and writes
  nothing. Quantities are never clamped.

Status:
- Derived from quantity on every movement: 0 -> out_of_stock, else available.
- 'discontinued' is set externally and survives movements.

Plastic cost:
- plastic_quantity_grams and plastic_cost_per_gram are per unit.
- total_plastic_cost = grams * cost/gram (per unit), 2dp half-up.
- A company purchase seeds disposal cost = quantity * disposal_cost_per_unit.

Rows are never deleted.
"""


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    pass


class InsufficientStock(InventoryError):
    """A purchase would drive on-hand quantity below zero."""
    def __init__(self, inventory_id: int, on_hand: int, requested: int):
        super().__init__(
            f"Insufficient inventory for item {inventory_id}. "
            f"Current: {on_hand}, Requested: {requested}"
        )
        self.inventory_id = inventory_id
        self.on_hand = on_hand
        self.requested = requested


# =============================================================================
# PURE ACCOUNTING HELPERS
# =============================================================================

def derive_status(quantity: int, current_status: str | None = None) -> str:
    if current_status == INVENTORY_STATUS_DISCONTINUED:
        return INVENTORY_STATUS_DISCONTINUED
    return INVENTORY_STATUS_OUT_OF_STOCK if quantity == 0 else INVENTORY_STATUS_AVAILABLE


def plastic_cost(grams, cost_per_gram) -> Decimal:
    """Plastic disposal cost for a mass at a per-gram rate (2dp, half-up)."""
    return as_money(Decimal(grams) * Decimal(cost_per_gram))


def total_amount(quantity: int, unit_price) -> Decimal:
    return as_money(Decimal(quantity) * Decimal(unit_price))


def disposal_cost_for(quantity: int, disposal_cost_per_unit) -> Decimal:
    """Disposal obligation created by stocking `quantity` units from a company."""
    return as_money(Decimal(quantity) * Decimal(disposal_cost_per_unit))


def compute_new_quantity(current: int, quantity_delta: int, kind: str) -> int:
    if kind == MOVEMENT_PURCHASE:
        return current - quantity_delta
    if kind == MOVEMENT_RETURN:
        return current + quantity_delta
    if kind == MOVEMENT_ADJUSTMENT:
        return quantity_delta
    raise ValidationError(f"Invalid movement kind: {kind}. Must be one of {list(MOVEMENT_KINDS)}")


# =============================================================================
# LOOKUPS
# =============================================================================

def get_inventory_item(inventory_id: int, *, lock: bool = False) -> RetailerInventory:
    query = db.session.query(RetailerInventory).filter_by(id=inventory_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError(f"Inventory item {inventory_id} not found")
    return item


def list_inventory(*, retailer_id: int, status: str | None = None) -> list[RetailerInventory]:
    q = db.session.query(RetailerInventory).filter_by(retailer_id=retailer_id)
    if status:
        q = q.filter(RetailerInventory.status == status)
    return q.order_by(RetailerInventory.id.asc()).all()


def list_inventory_transactions(*, inventory_id: int, limit: int = 200) -> list[InventoryTransaction]:
    get_inventory_item(inventory_id)
    return (
        db.session.query(InventoryTransaction)
        .filter_by(inventory_id=inventory_id)
        .order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# MOVEMENTS
# =============================================================================

def apply_inventory_movement(item: RetailerInventory, quantity_delta, kind: str) -> RetailerInventory:
    """
    Core movement logic without locking, retry or commit.

    Called inside the caller's transaction (purchase flows, custom product
    assembly, record_inventory_movement).
    """
    if kind not in MOVEMENT_KINDS:
        raise ValidationError(f"Invalid movement kind: {kind}. Must be one of {list(MOVEMENT_KINDS)}")
    delta = require_quantity("quantity", quantity_delta, allow_zero=(kind == MOVEMENT_ADJUSTMENT))

    current = int(item.quantity or 0)
    new_quantity = compute_new_quantity(current, delta, kind)
    if new_quantity < 0:
        raise InsufficientStock(item.id, current, delta)

    item.quantity = new_quantity
    item.status = derive_status(new_quantity, item.status)
    item.updated_at = utcnow()
    db.session.flush()
    return item


def record_inventory_movement(
    *,
    inventory_id: int,
    quantity: int,
    kind: str,
    business_id: int | None = None,
) -> InventoryTransaction:
    """
    Apply a movement and log it as an inventory transaction.

    Plastic figures on the log row are for the moved units.
    """
    def _op():
        item = get_inventory_item(inventory_id, lock=True)
        apply_inventory_movement(item, quantity, kind)

        moved = int(quantity)
        tx = InventoryTransaction(
            inventory_id=item.id,
            business_id=business_id,
            quantity=moved,
            transaction_type=kind,
            unit_price=item.unit_price,
            total_amount=total_amount(moved, item.unit_price),
            plastic_quantity_purchased=Decimal(item.plastic_quantity_grams or 0) * moved,
            plastic_disposal_cost=as_money(Decimal(item.total_plastic_cost or 0) * moved),
            occurred_at=utcnow(),
        )
        db.session.add(tx)
        db.session.commit()
        return tx

    return run_with_retry(_op)


def stock_in_from_company(
    *,
    retailer_id: int,
    product: CompanyProduct,
    quantity: int,
    unit_price,
    disposal_cost_per_unit,
    grams_per_unit=1,
) -> RetailerInventory:
    """
    Add company stock to the retailer's (non-custom) inventory row for the product,
    creating it on first stock-in. No commit.
    """
    qty = require_quantity("quantity", quantity)
    grams = coerce_decimal("grams_per_unit", grams_per_unit)
    if grams <= 0:
        raise ValidationError("grams_per_unit must be > 0")
    rate = require_non_negative_rate("disposal_cost_per_unit", disposal_cost_per_unit)

    item = lock_for_update(
        db.session.query(RetailerInventory).filter_by(
            retailer_id=retailer_id,
            company_product_id=product.id,
            is_custom_product=False,
        )
    ).order_by(RetailerInventory.id.asc()).first()

    if item is None:
        item = RetailerInventory(
            retailer_id=retailer_id,
            company_product_id=product.id,
            quantity=0,
            status=INVENTORY_STATUS_OUT_OF_STOCK,
            is_custom_product=False,
        )
        db.session.add(item)

    item.unit_price = as_money(unit_price)
    item.plastic_quantity_grams = grams
    item.plastic_cost_per_gram = (rate / grams).quantize(Decimal("0.0001"))
    item.total_plastic_cost = as_money(rate)
    item.quantity = int(item.quantity or 0)
    db.session.flush()

    return apply_inventory_movement(item, qty, MOVEMENT_RETURN)


def create_custom_product(
    *,
    retailer_id: int,
    product_name: str,
    product_category: str,
    quantity: int,
    unit_price,
    materials: list[dict],
    product_description: str | None = None,
) -> RetailerInventory:
    """
    Assemble a retailer's own product from plastic materials in stock.

    materials: [{"inventory_id": int, "grams_per_unit": number}, ...]

    Per unit: grams = sum(grams_per_unit); plastic cost = sum(grams * material cost/gram).
    Each material is drawn down by grams_per_unit * quantity; a shortfall on
    any material aborts the whole assembly.
    """
    qty = require_quantity("quantity", quantity)
    price = require_non_negative_amount("unit_price", unit_price)
    if not product_name or not str(product_name).strip():
        raise ValidationError("product_name is required")
    if not materials:
        raise ValidationError("At least one plastic material is required")

    def _op():
        retailer = db.session.query(Retailer).filter_by(id=retailer_id).first()
        if retailer is None:
            raise NotFoundError(f"Retailer {retailer_id} not found")

        total_grams = Decimal("0")
        unit_plastic_cost = Decimal("0")
        draws: list[tuple[RetailerInventory, int]] = []

        for material in materials:
            grams_per_unit = coerce_decimal("grams_per_unit", material.get("grams_per_unit"))
            if grams_per_unit <= 0:
                raise ValidationError("grams_per_unit must be > 0")
            source = get_inventory_item(coerce_int("inventory_id", material.get("inventory_id")), lock=True)
            if source.retailer_id != retailer_id:
                raise ValidationError(f"Material {source.id} does not belong to retailer {retailer_id}")

            total_grams += grams_per_unit
            unit_plastic_cost += grams_per_unit * Decimal(source.plastic_cost_per_gram or 0)

            grams_used = grams_per_unit * qty
            if grams_used != grams_used.to_integral_value():
                raise ValidationError("grams_per_unit * quantity must be a whole number of grams")
            draws.append((source, int(grams_used)))

        avg_cost_per_gram = (unit_plastic_cost / total_grams).quantize(Decimal("0.0001"))

        product = CompanyProduct(
            company_id=None,
            retailer_id=retailer_id,
            name=str(product_name).strip(),
            category=product_category or "custom",
            disposal_cost=avg_cost_per_gram,
        )
        db.session.add(product)
        db.session.flush()

        item = RetailerInventory(
            retailer_id=retailer_id,
            company_product_id=product.id,
            product_name=product.name,
            product_category=product.category,
            product_description=product_description,
            quantity=qty,
            unit_price=price,
            status=derive_status(qty),
            plastic_quantity_grams=total_grams,
            plastic_cost_per_gram=avg_cost_per_gram,
            total_plastic_cost=as_money(unit_plastic_cost),
            is_custom_product=True,
        )
        db.session.add(item)

        for source, grams_used in draws:
            apply_inventory_movement(source, grams_used, MOVEMENT_PURCHASE)

        db.session.commit()
        return item

    return run_with_retry(_op)
