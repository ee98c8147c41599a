# Overview: Service-layer operations for reporting; read-only aggregates over dues, money logs and stock.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func

from ecodues.extensions import db
from ecodues.models import (
    User,
    Business,
    Retailer,
    Company,
    CompanyProduct,
    RetailerInventory,
    InventoryTransaction,
    RetailerTransaction,
    CompanyPayment,
    ConsumerDue,
    BusinessDue,
    RetailerDue,
    CompanyDue,
    DUE_MODELS,
)
from ecodues.models.dues import (
    TIERS,
    DUE_STATUSES,
    DUE_STATUS_PAID,
    DUE_STATUS_PENDING,
    DUE_STATUS_OVERDUE,
    SOURCE_COMPANY_PURCHASE,
)
from ecodues.models.inventory import MOVEMENT_PURCHASE, MOVEMENT_RETURN
from ecodues.models.transactions import COMPANY_PAYMENT_COMPLETED
from ecodues.validation import as_money
from ecodues.time_utils import parse_iso_datetime, month_key, to_utc_z, to_iso_date

UNKNOWN_CONSUMER = "Unknown Consumer"
UNKNOWN_BUSINESS = "Unknown Business"
UNKNOWN_RETAILER = "Unknown Retailer"
UNKNOWN_COMPANY = "Unknown Company"

FLOW_AT_CONSUMER = "at_consumer"
FLOW_AT_BUSINESS = "at_business"
FLOW_AT_RETAILER = "at_retailer"
FLOW_AT_COMPANY = "at_company"
FLOW_COMPLETED = "completed"
FLOW_DIRECT = "direct_retailer_company"


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start and end must be ISO-8601 datetimes")
    return start_dt, end_dt


def _apply_range(q, column, start_dt, end_dt):
    if start_dt:
        q = q.filter(column >= start_dt)
    if end_dt:
        q = q.filter(column <= end_dt)
    return q


def _money(value) -> str:
    return str(as_money(value or 0))


def _tier_model(tier: str):
    model = DUE_MODELS.get(tier)
    if model is None:
        raise ReportError(f"Invalid tier: {tier}. Must be one of {list(TIERS)}")
    return model


def _require_retailer(retailer_id: int) -> Retailer:
    retailer = db.session.query(Retailer).filter_by(id=retailer_id).first()
    if not retailer:
        raise ReportError("Retailer not found")
    return retailer


def _names(model, ids) -> dict[int, str]:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    rows = db.session.query(model.id, model.name).filter(model.id.in_(ids)).all()
    return {row.id: row.name for row in rows}


# =============================================================================
# DUES
# =============================================================================

def party_due_summary(*, tier: str, owner_id: int) -> dict:
    """
    Totals for one party at one tier.

    total_owed counts pending and overdue dues; net_balance is everything
    assigned minus everything paid, so it equals total_owed.
    """
    model = _tier_model(tier)

    rows = (
        db.session.query(model.status, func.count(model.id), func.coalesce(func.sum(model.amount), 0))
        .filter(model.owner_id == owner_id)
        .group_by(model.status)
        .all()
    )

    counts = {status: 0 for status in DUE_STATUSES}
    sums = {status: Decimal("0") for status in DUE_STATUSES}
    for status, count, total in rows:
        counts[status] = int(count)
        sums[status] = Decimal(str(total))

    total_owed = sums[DUE_STATUS_PENDING] + sums[DUE_STATUS_OVERDUE]
    total_paid = sums[DUE_STATUS_PAID]
    total_assigned = total_owed + total_paid

    return {
        "tier": tier,
        "owner_id": owner_id,
        "total_owed": _money(total_owed),
        "total_overdue": _money(sums[DUE_STATUS_OVERDUE]),
        "total_paid": _money(total_paid),
        "net_balance": _money(total_assigned - total_paid),
        "counts": counts,
    }


def monthly_due_trend(
    *,
    tier: str,
    owner_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
) -> list[dict]:
    """Dues created per calendar month (YYYY-MM), oldest first."""
    model = _tier_model(tier)
    start_dt, end_dt = _parse_range(start, end)

    q = db.session.query(model.created_at, model.amount, model.status)
    if owner_id is not None:
        q = q.filter(model.owner_id == owner_id)
    q = _apply_range(q, model.created_at, start_dt, end_dt)

    buckets: dict[str, dict] = {}
    for created_at, amount, status in q.all():
        key = month_key(created_at)
        bucket = buckets.setdefault(key, {"count": 0, "amount": Decimal("0"), "paid_amount": Decimal("0")})
        bucket["count"] += 1
        bucket["amount"] += Decimal(str(amount))
        if status == DUE_STATUS_PAID:
            bucket["paid_amount"] += Decimal(str(amount))

    return [
        {
            "month": key,
            "count": b["count"],
            "amount": _money(b["amount"]),
            "paid_amount": _money(b["paid_amount"]),
        }
        for key, b in sorted(buckets.items())
    ]


def disposal_flow_tracking() -> list[dict]:
    """
    One row per due chain with every tier's due and where the money sits.

    Consumer-rooted chains come first (ordered by consumer due), then direct
    retailer -> company pairs (ordered by retailer due).
    """
    chains = (
        db.session.query(ConsumerDue, BusinessDue, RetailerDue, CompanyDue)
        .outerjoin(BusinessDue, BusinessDue.parent_due_id == ConsumerDue.id)
        .outerjoin(RetailerDue, RetailerDue.parent_due_id == BusinessDue.id)
        .outerjoin(CompanyDue, CompanyDue.parent_due_id == RetailerDue.id)
        .order_by(ConsumerDue.id.asc())
        .all()
    )
    directs = (
        db.session.query(RetailerDue, CompanyDue)
        .outerjoin(CompanyDue, CompanyDue.parent_due_id == RetailerDue.id)
        .filter(
            RetailerDue.parent_due_id.is_(None),
            RetailerDue.source_type == SOURCE_COMPANY_PURCHASE,
        )
        .order_by(RetailerDue.id.asc())
        .all()
    )

    rows = [(c, b, r, co) for c, b, r, co in chains] + [(None, None, r, co) for r, co in directs]

    user_names = _names(User, [c.owner_id for c, _, _, _ in rows if c is not None])
    business_names = _names(Business, [b.owner_id for _, b, _, _ in rows if b is not None])
    retailer_names = _names(Retailer, [r.owner_id for _, _, r, _ in rows if r is not None])
    company_names = _names(Company, [co.owner_id for _, _, _, co in rows if co is not None])

    def _slot(due, names, unknown):
        if due is None:
            return None
        return {
            "due_id": due.id,
            "owner_id": due.owner_id,
            "owner_name": names.get(due.owner_id, unknown),
            "amount": str(due.amount),
            "status": due.status,
            "due_date": to_iso_date(due.due_date),
            "source_type": due.source_type,
        }

    result = []
    for consumer, business, retailer, company in rows:
        result.append({
            "consumer": _slot(consumer, user_names, UNKNOWN_CONSUMER),
            "business": _slot(business, business_names, UNKNOWN_BUSINESS),
            "retailer": _slot(retailer, retailer_names, UNKNOWN_RETAILER),
            "company": _slot(company, company_names, UNKNOWN_COMPANY),
            "flow_stage": _flow_stage(business, retailer, company),
        })
    return result


def _flow_stage(business, retailer, company) -> str:
    if company is not None and company.status == DUE_STATUS_PAID:
        return FLOW_COMPLETED
    if retailer is not None and retailer.source_type == SOURCE_COMPANY_PURCHASE:
        return FLOW_DIRECT
    if company is not None:
        return FLOW_AT_COMPANY
    if retailer is not None:
        return FLOW_AT_RETAILER
    if business is not None:
        return FLOW_AT_BUSINESS
    return FLOW_AT_CONSUMER


# =============================================================================
# RETAILER MONEY
# =============================================================================

def monthly_collection_trend(
    *,
    retailer_id: int,
    start: str | None = None,
    end: str | None = None,
    months: int | None = 6,
) -> list[dict]:
    """Money collected from businesses per month; the last `months` buckets."""
    _require_retailer(retailer_id)
    start_dt, end_dt = _parse_range(start, end)

    q = db.session.query(RetailerTransaction.occurred_at, RetailerTransaction.amount).filter(
        RetailerTransaction.retailer_id == retailer_id
    )
    q = _apply_range(q, RetailerTransaction.occurred_at, start_dt, end_dt)

    buckets: dict[str, Decimal] = {}
    for occurred_at, amount in q.all():
        key = month_key(occurred_at)
        buckets[key] = buckets.get(key, Decimal("0")) + Decimal(str(amount or 0))

    trend = [{"month": key, "amount": _money(total)} for key, total in sorted(buckets.items())]
    if months:
        trend = trend[-months:]
    return trend


def top_counterparties(
    *,
    retailer_id: int,
    limit: int = 5,
    start: str | None = None,
    end: str | None = None,
) -> list[dict]:
    """Businesses ranked by amount collected from them."""
    _require_retailer(retailer_id)
    start_dt, end_dt = _parse_range(start, end)

    total = func.sum(RetailerTransaction.amount)
    q = (
        db.session.query(
            RetailerTransaction.business_id,
            Business.name,
            total.label("amount"),
            func.count(RetailerTransaction.id).label("transactions"),
        )
        .outerjoin(Business, Business.id == RetailerTransaction.business_id)
        .filter(
            RetailerTransaction.retailer_id == retailer_id,
            RetailerTransaction.business_id.isnot(None),
        )
    )
    q = _apply_range(q, RetailerTransaction.occurred_at, start_dt, end_dt)
    rows = (
        q.group_by(RetailerTransaction.business_id, Business.name)
        .order_by(total.desc(), RetailerTransaction.business_id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "business_id": row.business_id,
            "name": row.name or UNKNOWN_BUSINESS,
            "amount": _money(row.amount),
            "transactions": int(row.transactions),
        }
        for row in rows
    ]


def retailer_company_balances(*, retailer_id: int) -> list[dict]:
    """
    What a retailer owes each company for disposal, against what it has paid.

    owed = sum(quantity * product disposal_cost) over current inventory
    paid = completed company payments
    net_owed never goes below zero
    """
    _require_retailer(retailer_id)

    owed_rows = (
        db.session.query(
            CompanyProduct.company_id,
            func.sum(RetailerInventory.quantity * CompanyProduct.disposal_cost).label("owed"),
        )
        .join(CompanyProduct, CompanyProduct.id == RetailerInventory.company_product_id)
        .filter(
            RetailerInventory.retailer_id == retailer_id,
            CompanyProduct.company_id.isnot(None),
        )
        .group_by(CompanyProduct.company_id)
        .all()
    )
    paid_rows = (
        db.session.query(
            CompanyPayment.company_id,
            func.sum(CompanyPayment.amount).label("paid"),
            func.max(CompanyPayment.occurred_at).label("last_payment"),
        )
        .filter(
            CompanyPayment.retailer_id == retailer_id,
            CompanyPayment.status == COMPANY_PAYMENT_COMPLETED,
            CompanyPayment.company_id.isnot(None),
        )
        .group_by(CompanyPayment.company_id)
        .all()
    )

    balances: dict[int, dict] = {}
    for company_id, owed in owed_rows:
        balances[company_id] = {"owed": Decimal(str(owed or 0)), "paid": Decimal("0"), "last_payment": None}
    for company_id, paid, last_payment in paid_rows:
        entry = balances.setdefault(company_id, {"owed": Decimal("0"), "paid": Decimal("0"), "last_payment": None})
        entry["paid"] = Decimal(str(paid or 0))
        entry["last_payment"] = last_payment

    names = _names(Company, balances.keys())
    summaries = []
    for company_id, entry in balances.items():
        if entry["owed"] <= 0 and entry["paid"] <= 0:
            continue
        last_payment = entry["last_payment"]
        if isinstance(last_payment, str):
            last_payment = parse_iso_datetime(last_payment)
        summaries.append({
            "company_id": company_id,
            "company_name": names.get(company_id, UNKNOWN_COMPANY),
            "total_owed": _money(entry["owed"]),
            "total_paid": _money(entry["paid"]),
            "net_owed": _money(max(Decimal("0"), entry["owed"] - entry["paid"])),
            "last_payment": to_utc_z(last_payment),
        })
    summaries.sort(key=lambda s: s["company_id"])
    return summaries


# =============================================================================
# INVENTORY
# =============================================================================

def inventory_movements_by_month(
    *,
    retailer_id: int,
    start: str | None = None,
    end: str | None = None,
) -> list[dict]:
    """Units purchased out of and returned into a retailer's stock per month."""
    _require_retailer(retailer_id)
    start_dt, end_dt = _parse_range(start, end)

    q = (
        db.session.query(
            InventoryTransaction.occurred_at,
            InventoryTransaction.transaction_type,
            InventoryTransaction.quantity,
        )
        .join(RetailerInventory, RetailerInventory.id == InventoryTransaction.inventory_id)
        .filter(RetailerInventory.retailer_id == retailer_id)
    )
    q = _apply_range(q, InventoryTransaction.occurred_at, start_dt, end_dt)

    buckets: dict[str, dict] = {}
    for occurred_at, kind, qty in q.all():
        bucket = buckets.setdefault(month_key(occurred_at), {"purchases": 0, "returns": 0})
        if kind == MOVEMENT_PURCHASE:
            bucket["purchases"] += int(qty or 0)
        elif kind == MOVEMENT_RETURN:
            bucket["returns"] += int(qty or 0)

    return [{"month": key, **b} for key, b in sorted(buckets.items())]


def inventory_snapshot(*, retailer_id: int) -> dict:
    """Current stock for a retailer with value and plastic totals."""
    _require_retailer(retailer_id)
    items = (
        db.session.query(RetailerInventory)
        .filter_by(retailer_id=retailer_id)
        .order_by(RetailerInventory.id.asc())
        .all()
    )

    stock_value = Decimal("0")
    plastic_grams = Decimal("0")
    plastic_cost = Decimal("0")
    for item in items:
        qty = int(item.quantity or 0)
        stock_value += Decimal(item.unit_price or 0) * qty
        plastic_grams += Decimal(item.plastic_quantity_grams or 0) * qty
        plastic_cost += Decimal(item.total_plastic_cost or 0) * qty

    return {
        "retailer_id": retailer_id,
        "items": [item.to_dict() for item in items],
        "product_count": len(items),
        "stock_value": _money(stock_value),
        "plastic_on_hand_grams": str(plastic_grams.quantize(Decimal("0.001"))),
        "plastic_cost_on_hand": _money(plastic_cost),
    }
