# Overview: Upstream party lookup for the due cascade; read-only queries, no writes.

"""
Party Resolution

WHY: Who owes the next tier's due is not stored anywhere. It is looked up
from relationships and purchase history at settle time.

KNOWN LIMITATION: every step is a "first match" heuristic. A business that
sold through several retailers, or a retailer stocking several companies'
products, resolves to a single party and the full amount passes to it; no
apportionment is attempted. The only knob is DUE_RESOLUTION_POLICY:

- first_match  (default): the oldest matching row wins
- latest_match: the most recent matching row wins

Lookup order per step:
- consumer -> business: a business owned by the paying user, else the first
  business purchase recorded on the originating transaction's inventory item
- business -> retailer: registered retailer link, else the retailer owning an
  inventory item the business has bought from
- retailer -> company: a company whose product is in the retailer's inventory
- company -> (none): the chain ends
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import (
    Business,
    BusinessTransaction,
    CompanyProduct,
    ConsumerDue,
    InventoryTransaction,
    RetailerBusinessLink,
    RetailerInventory,
    Transaction,
)
from ..models.dues import TIER_CONSUMER, TIER_BUSINESS, TIER_RETAILER, TIER_COMPANY

POLICY_FIRST_MATCH = "first_match"
POLICY_LATEST_MATCH = "latest_match"
VALID_POLICIES = (POLICY_FIRST_MATCH, POLICY_LATEST_MATCH)

VIA_BUSINESS_OWNER = "business_owner"
VIA_BUSINESS_PURCHASE = "business_purchase"
VIA_REGISTERED_BUSINESS = "registered_business"
VIA_INVENTORY_HISTORY = "inventory_history"
VIA_RETAILER_INVENTORY = "retailer_inventory"


@dataclass(frozen=True)
class PartyMatch:
    owner_id: int
    via: str


def check_policy(policy: str) -> str:
    if policy not in VALID_POLICIES:
        raise ValueError(f"Unknown DUE_RESOLUTION_POLICY {policy!r}. Must be one of {list(VALID_POLICIES)}")
    return policy


def current_policy() -> str:
    return check_policy(current_app.config.get("DUE_RESOLUTION_POLICY", POLICY_FIRST_MATCH))


def _ordered(query, policy: str, *columns):
    if policy == POLICY_LATEST_MATCH:
        return query.order_by(*[c.desc() for c in columns])
    return query.order_by(*[c.asc() for c in columns])


def resolve_business_for_consumer_due(due: ConsumerDue, policy: str) -> PartyMatch | None:
    q = db.session.query(Business.id).filter(Business.owner_id == due.owner_id)
    row = _ordered(q, policy, Business.id).first()
    if row is not None:
        return PartyMatch(row.id, VIA_BUSINESS_OWNER)

    if due.origin_transaction_id is None:
        return None
    txn = db.session.query(Transaction).filter_by(id=due.origin_transaction_id).first()
    if txn is None or txn.inventory_id is None:
        return None

    q = db.session.query(BusinessTransaction.business_id).filter(
        BusinessTransaction.inventory_id == txn.inventory_id,
        BusinessTransaction.status != "cancelled",
    )
    row = _ordered(q, policy, BusinessTransaction.occurred_at, BusinessTransaction.id).first()
    if row is not None:
        return PartyMatch(row.business_id, VIA_BUSINESS_PURCHASE)
    return None


def resolve_retailer_for_business(business_id: int, policy: str) -> PartyMatch | None:
    q = db.session.query(RetailerBusinessLink.retailer_id).filter(
        RetailerBusinessLink.business_id == business_id,
    )
    row = _ordered(q, policy, RetailerBusinessLink.established_at, RetailerBusinessLink.id).first()
    if row is not None:
        return PartyMatch(row.retailer_id, VIA_REGISTERED_BUSINESS)

    q = db.session.query(RetailerInventory.retailer_id).join(
        InventoryTransaction, InventoryTransaction.inventory_id == RetailerInventory.id
    ).filter(InventoryTransaction.business_id == business_id)
    row = _ordered(q, policy, InventoryTransaction.occurred_at, InventoryTransaction.id).first()
    if row is not None:
        return PartyMatch(row.retailer_id, VIA_INVENTORY_HISTORY)
    return None


def resolve_company_for_retailer(retailer_id: int, policy: str) -> PartyMatch | None:
    q = db.session.query(CompanyProduct.company_id).join(
        RetailerInventory, RetailerInventory.company_product_id == CompanyProduct.id
    ).filter(
        RetailerInventory.retailer_id == retailer_id,
        CompanyProduct.company_id.isnot(None),
    )
    row = _ordered(q, policy, RetailerInventory.id).first()
    if row is not None:
        return PartyMatch(row.company_id, VIA_RETAILER_INVENTORY)
    return None


def resolve_next_party(due, policy: str | None = None) -> PartyMatch | None:
    """
    Find who owes the next tier for a due being settled.

    Returns None when no party can be found; company-tier dues never have one.
    """
    policy = policy or current_policy()
    if due.tier == TIER_CONSUMER:
        return resolve_business_for_consumer_due(due, policy)
    if due.tier == TIER_BUSINESS:
        return resolve_retailer_for_business(due.owner_id, policy)
    if due.tier == TIER_RETAILER:
        return resolve_company_for_retailer(due.owner_id, policy)
    if due.tier == TIER_COMPANY:
        return None
    raise ValueError(f"Unknown tier: {due.tier}")
