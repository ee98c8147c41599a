# Overview: Service-layer operations for purchases; composes inventory accounting and due creation.

"""
Purchase Flows

WHY: A sale touches stock, money logs and disposal dues at once. Each flow
below does all of its writes inside one transaction so a failed stock draw
or a bad reference never leaves a due without its sale (or the reverse).

- consumer purchase:  transaction row, optional stock draw, root consumer due
- business purchase:  stock draw, inventory + business transaction rows,
                      retailer link, and a consumer due for the business owner
- company purchase:   retailer stock-in, transaction + payment rows, and the
                      direct retailer/company due pair
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    User,
    Business,
    Retailer,
    Company,
    CompanyProduct,
    RetailerBusinessLink,
    InventoryTransaction,
    BusinessTransaction,
    Transaction,
    RetailerTransaction,
    CompanyPayment,
)
from ..models.dues import TIER_CONSUMER
from ..models.inventory import MOVEMENT_PURCHASE, MOVEMENT_RETURN
from ..models.transactions import COMPANY_PAYMENT_COMPLETED, COMPANY_PAYMENT_PENDING, COMPANY_PAYMENT_FAILED
from ..validation import (
    ValidationError,
    NotFoundError,
    as_money,
    coerce_decimal,
    require_quantity,
    require_positive_amount,
    require_non_negative_amount,
    require_non_negative_rate,
)
from ecodues.time_utils import utcnow
from .concurrency import run_with_retry
from .inventory_service import (
    get_inventory_item,
    apply_inventory_movement,
    stock_in_from_company,
    plastic_cost,
    total_amount,
    disposal_cost_for,
)
from .dues_service import create_root_due, create_direct_due_pair

COMPANY_PAYMENT_STATUSES = (COMPANY_PAYMENT_PENDING, COMPANY_PAYMENT_COMPLETED, COMPANY_PAYMENT_FAILED)


@dataclass
class PurchaseResult:
    """Rows written by one purchase flow; unused slots stay None."""
    transaction: object | None = None
    inventory_transaction: object | None = None
    business_transaction: object | None = None
    inventory: object | None = None
    payment: object | None = None
    dues: list = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {}
        for key in ("transaction", "inventory_transaction", "business_transaction", "inventory", "payment"):
            row = getattr(self, key)
            data[key] = row.to_dict() if row is not None else None
        data["dues"] = [d.to_dict() for d in self.dues]
        return data


def _require(model, row_id, label: str):
    row = db.session.query(model).filter_by(id=row_id).first()
    if row is None:
        raise NotFoundError(f"{label} {row_id} not found")
    return row


def _ensure_link(business_id: int, retailer_id: int, *, now=None) -> RetailerBusinessLink:
    link = (
        db.session.query(RetailerBusinessLink)
        .filter_by(business_id=business_id, retailer_id=retailer_id)
        .first()
    )
    if link is None:
        link = RetailerBusinessLink(
            business_id=business_id,
            retailer_id=retailer_id,
            established_at=now or utcnow(),
        )
        db.session.add(link)
        db.session.flush()
    return link


# =============================================================================
# CONSUMER
# =============================================================================

def record_consumer_purchase(
    *,
    buyer_id: int,
    inventory_id: int,
    amount_paid,
    disposal_fee,
    quantity: int | None = None,
) -> PurchaseResult:
    """
    Log a consumer sale and open the root consumer due for its disposal fee.

    The fee is part of the amount paid. No due is opened when the fee is
    zero. When quantity is given the units are drawn from stock in the
    same transaction.
    """
    paid = require_non_negative_amount("amount_paid", amount_paid)
    fee = require_non_negative_amount("disposal_fee", disposal_fee)
    if fee > paid:
        raise ValidationError("disposal_fee cannot exceed amount_paid")
    qty = require_quantity("quantity", quantity) if quantity is not None else None

    def _op():
        _require(User, buyer_id, "User")
        item = get_inventory_item(inventory_id, lock=qty is not None)
        if qty is not None:
            apply_inventory_movement(item, qty, MOVEMENT_PURCHASE)

        now = utcnow()
        txn = Transaction(
            user_id=buyer_id,
            inventory_id=item.id,
            cost_paid=paid,
            plastic_disposal_fee=fee,
            occurred_at=now,
            created_at=now,
        )
        db.session.add(txn)
        db.session.flush()

        result = PurchaseResult(transaction=txn, inventory=item)
        if fee > 0:
            due = create_root_due(tier=TIER_CONSUMER, owner_id=buyer_id, amount=fee, origin_ref=txn.id, now=now)
            result.dues.append(due)

        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Consumer purchase: user %s item %s paid %s fee %s",
        buyer_id, inventory_id, paid, fee,
    )
    return result


# =============================================================================
# BUSINESS
# =============================================================================

def record_business_purchase(
    *,
    business_id: int,
    inventory_id: int,
    quantity: int,
    unit_price,
    plastic_grams,
    plastic_cost_per_gram=None,
) -> PurchaseResult:
    """
    Business buys stock from a retailer.

    plastic_grams is the plastic mass of the whole purchase. Its disposal
    cost (grams * cost/gram) becomes a consumer-tier due owed by the
    business owner, so the cascade runs owner -> business -> retailer -> company.
    """
    qty = require_quantity("quantity", quantity)
    price = require_non_negative_amount("unit_price", unit_price)
    grams = coerce_decimal("plastic_grams", plastic_grams)
    if grams < 0:
        raise ValidationError("plastic_grams must be >= 0")
    if plastic_cost_per_gram is None:
        plastic_cost_per_gram = current_app.config.get("DEFAULT_PLASTIC_COST_PER_GRAM", Decimal("0.10"))
    rate = require_non_negative_rate("plastic_cost_per_gram", plastic_cost_per_gram)

    def _op():
        business = _require(Business, business_id, "Business")
        item = get_inventory_item(inventory_id, lock=True)
        apply_inventory_movement(item, qty, MOVEMENT_PURCHASE)

        now = utcnow()
        disposal = plastic_cost(grams, rate)
        goods_total = total_amount(qty, price)

        inv_tx = InventoryTransaction(
            inventory_id=item.id,
            business_id=business.id,
            quantity=qty,
            transaction_type=MOVEMENT_PURCHASE,
            unit_price=price,
            total_amount=goods_total,
            plastic_quantity_purchased=grams,
            plastic_disposal_cost=disposal,
            occurred_at=now,
            created_at=now,
        )
        biz_tx = BusinessTransaction(
            business_id=business.id,
            inventory_id=item.id,
            status="completed",
            occurred_at=now,
        )
        db.session.add_all([inv_tx, biz_tx])
        db.session.flush()

        _ensure_link(business.id, item.retailer_id, now=now)

        result = PurchaseResult(
            inventory_transaction=inv_tx,
            business_transaction=biz_tx,
            inventory=item,
        )

        if disposal > 0:
            if business.owner_id is None:
                current_app.logger.warning(
                    "Business %s has no owner; no disposal due opened for purchase %s",
                    business.id, inv_tx.id,
                )
            else:
                txn = Transaction(
                    user_id=business.owner_id,
                    inventory_id=item.id,
                    cost_paid=goods_total,
                    plastic_disposal_fee=disposal,
                    occurred_at=now,
                    created_at=now,
                )
                db.session.add(txn)
                db.session.flush()
                result.transaction = txn
                result.dues.append(
                    create_root_due(
                        tier=TIER_CONSUMER,
                        owner_id=business.owner_id,
                        amount=disposal,
                        origin_ref=txn.id,
                        now=now,
                    )
                )

        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Business purchase: business %s item %s qty %s disposal %s",
        business_id, inventory_id, qty, result.inventory_transaction.plastic_disposal_cost,
    )
    return result


# =============================================================================
# RETAILER <- COMPANY
# =============================================================================

def _pick_product(company: Company, company_product_id: int | None) -> CompanyProduct:
    if company_product_id is not None:
        product = _require(CompanyProduct, company_product_id, "Product")
        if product.company_id != company.id:
            raise ValidationError(f"Product {product.id} is not sold by company {company.id}")
        return product

    product = (
        db.session.query(CompanyProduct)
        .filter_by(company_id=company.id)
        .order_by(CompanyProduct.id.asc())
        .first()
    )
    if product is None:
        raise ValidationError(f"Company {company.id} has no products to purchase")
    return product


def record_retailer_company_purchase(
    *,
    retailer_id: int,
    company_id: int,
    quantity: int,
    disposal_cost_per_unit=None,
    company_product_id: int | None = None,
    unit_price=None,
) -> PurchaseResult:
    """
    Retailer restocks directly from a company.

    The disposal cost (quantity * per-unit rate) opens a retailer due and a
    company due together instead of waiting for a cascade.
    """
    qty = require_quantity("quantity", quantity)
    price = require_non_negative_amount("unit_price", unit_price if unit_price is not None else 0)

    def _op():
        retailer = _require(Retailer, retailer_id, "Retailer")
        company = _require(Company, company_id, "Company")
        product = _pick_product(company, company_product_id)

        rate = disposal_cost_per_unit
        if rate is None:
            rate = product.disposal_cost or 0
        rate = require_non_negative_rate("disposal_cost_per_unit", rate)

        now = utcnow()
        item = stock_in_from_company(
            retailer_id=retailer.id,
            product=product,
            quantity=qty,
            unit_price=price,
            disposal_cost_per_unit=rate,
        )

        disposal = disposal_cost_for(qty, rate)
        goods_total = total_amount(qty, price)

        inv_tx = InventoryTransaction(
            inventory_id=item.id,
            business_id=None,
            quantity=qty,
            transaction_type=MOVEMENT_RETURN,
            unit_price=price,
            total_amount=goods_total,
            plastic_quantity_purchased=Decimal(item.plastic_quantity_grams or 0) * qty,
            plastic_disposal_cost=disposal,
            occurred_at=now,
            created_at=now,
        )
        txn = Transaction(
            user_id=retailer.user_id,
            inventory_id=item.id,
            cost_paid=goods_total,
            plastic_disposal_fee=Decimal("0.00"),
            occurred_at=now,
            created_at=now,
        )
        db.session.add_all([inv_tx, txn])
        db.session.flush()

        result = PurchaseResult(transaction=txn, inventory_transaction=inv_tx, inventory=item)

        if goods_total > 0:
            payment = CompanyPayment(
                company_id=company.id,
                retailer_id=retailer.id,
                amount=goods_total,
                status=COMPANY_PAYMENT_COMPLETED,
                occurred_at=now,
            )
            db.session.add(payment)
            db.session.flush()
            result.payment = payment

        if disposal > 0:
            retailer_due, company_due = create_direct_due_pair(
                retailer_id=retailer.id,
                company_id=company.id,
                amount=disposal,
                txn_ref=txn.id,
                now=now,
            )
            result.dues.extend([retailer_due, company_due])

        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Company purchase: retailer %s company %s qty %s dues %s",
        retailer_id, company_id, qty, [d.id for d in result.dues],
    )
    return result


# =============================================================================
# MONEY LOGS / LINKS
# =============================================================================

def record_business_collection(*, retailer_id: int, business_id: int | None, amount) -> RetailerTransaction:
    value = require_positive_amount("amount", amount)

    def _op():
        _require(Retailer, retailer_id, "Retailer")
        if business_id is not None:
            _require(Business, business_id, "Business")
        row = RetailerTransaction(
            retailer_id=retailer_id,
            business_id=business_id,
            amount=value,
            occurred_at=utcnow(),
        )
        db.session.add(row)
        db.session.commit()
        return row

    return run_with_retry(_op)


def record_company_payment(
    *,
    retailer_id: int,
    company_id: int,
    amount,
    status: str = COMPANY_PAYMENT_COMPLETED,
) -> CompanyPayment:
    value = require_positive_amount("amount", amount)
    if status not in COMPANY_PAYMENT_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {list(COMPANY_PAYMENT_STATUSES)}")

    def _op():
        _require(Retailer, retailer_id, "Retailer")
        _require(Company, company_id, "Company")
        row = CompanyPayment(
            company_id=company_id,
            retailer_id=retailer_id,
            amount=as_money(value),
            status=status,
            occurred_at=utcnow(),
        )
        db.session.add(row)
        db.session.commit()
        return row

    return run_with_retry(_op)


def register_business_with_retailer(*, business_id: int, retailer_id: int) -> RetailerBusinessLink:
    """Idempotent: registering twice returns the existing link."""
    def _op():
        _require(Business, business_id, "Business")
        _require(Retailer, retailer_id, "Retailer")
        link = _ensure_link(business_id, retailer_id)
        db.session.commit()
        return link

    return run_with_retry(_op)
