# backend/ecodues/routes/purchases.py
"""
Purchase routes.

Each endpoint runs one purchase flow; stock, money logs and the dues it
opens are written together or not at all.

Error mapping:
- 400 malformed input
- 404 unknown user / business / retailer / company / inventory item
- 409 insufficient stock
"""
from flask import Blueprint, current_app, request

from ..validation import PayloadPolicy, validate_payload, ValidationError, NotFoundError
from ..services import purchase_service
from ..services.inventory_service import InsufficientStock
from ..services.concurrency import PersistenceFailure


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

CONSUMER_PURCHASE_POLICY = PayloadPolicy(
    fields={
        "buyer_id": "int",
        "inventory_id": "int",
        "amount_paid": "decimal",
        "disposal_fee": "decimal",
        "quantity": "int",
    },
    required=frozenset({"buyer_id", "inventory_id", "amount_paid", "disposal_fee"}),
)

BUSINESS_PURCHASE_POLICY = PayloadPolicy(
    fields={
        "business_id": "int",
        "inventory_id": "int",
        "quantity": "int",
        "unit_price": "decimal",
        "plastic_grams": "decimal",
        "plastic_cost_per_gram": "decimal",
    },
    required=frozenset({"business_id", "inventory_id", "quantity", "unit_price", "plastic_grams"}),
)

COMPANY_PURCHASE_POLICY = PayloadPolicy(
    fields={
        "retailer_id": "int",
        "company_id": "int",
        "quantity": "int",
        "disposal_cost_per_unit": "decimal",
        "company_product_id": "int",
        "unit_price": "decimal",
    },
    required=frozenset({"retailer_id", "company_id", "quantity"}),
)

COLLECTION_POLICY = PayloadPolicy(
    fields={"retailer_id": "int", "business_id": "int", "amount": "decimal"},
    required=frozenset({"retailer_id", "amount"}),
)

COMPANY_PAYMENT_POLICY = PayloadPolicy(
    fields={"retailer_id": "int", "company_id": "int", "amount": "decimal", "status": "string"},
    required=frozenset({"retailer_id", "company_id", "amount"}),
)

REGISTRATION_POLICY = PayloadPolicy(
    fields={"business_id": "int", "retailer_id": "int"},
    required=frozenset({"business_id", "retailer_id"}),
)


def _purchase(policy: PayloadPolicy, func):
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=policy)
        result = func(**data)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStock as e:
        return {
            "error": str(e),
            "inventory_id": e.inventory_id,
            "on_hand": e.on_hand,
            "requested": e.requested,
        }, 409
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to record purchase via %s", func.__name__)
        return {"error": "Internal server error"}, 500
    return result.to_dict(), 201


@purchases_bp.post("/consumer")
def consumer_purchase_route():
    """Consumer buys an item; a non-zero disposal fee opens a consumer due."""
    return _purchase(CONSUMER_PURCHASE_POLICY, purchase_service.record_consumer_purchase)


@purchases_bp.post("/business")
def business_purchase_route():
    """Business buys retailer stock; its plastic cost becomes a due for the owner."""
    return _purchase(BUSINESS_PURCHASE_POLICY, purchase_service.record_business_purchase)


@purchases_bp.post("/company")
def company_purchase_route():
    """Retailer restocks from a company; opens the direct retailer/company due pair."""
    return _purchase(COMPANY_PURCHASE_POLICY, purchase_service.record_retailer_company_purchase)


@purchases_bp.post("/collections")
def business_collection_route():
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=COLLECTION_POLICY)
        row = purchase_service.record_business_collection(
            retailer_id=data["retailer_id"],
            business_id=data.get("business_id"),
            amount=data["amount"],
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to record business collection")
        return {"error": "Internal server error"}, 500
    return {"collection": row.to_dict()}, 201


@purchases_bp.post("/company-payments")
def company_payment_route():
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=COMPANY_PAYMENT_POLICY)
        row = purchase_service.record_company_payment(**data)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to record company payment")
        return {"error": "Internal server error"}, 500
    return {"payment": row.to_dict()}, 201


@purchases_bp.post("/registrations")
def register_business_route():
    """Register a business with a retailer. Idempotent."""
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=REGISTRATION_POLICY)
        link = purchase_service.register_business_with_retailer(**data)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        current_app.logger.info("Registration rejected: %s", e)
        return {"error": str(e)}, 404
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to register business with retailer")
        return {"error": "Internal server error"}, 500
    return {"link": link.to_dict()}, 200
