# backend/ecodues/routes/inventory.py
"""
Inventory routes.

Movements:
- purchase:   units leave stock (409 when stock would go negative)
- return:     units come back
- adjustment: quantity is set to the given value

Quantities are never clamped; a rejected movement writes nothing.
"""
from flask import Blueprint, current_app, request

from ..validation import PayloadPolicy, validate_payload, ValidationError, NotFoundError
from ..services.concurrency import PersistenceFailure
from ..services.inventory_service import (
    InsufficientStock,
    get_inventory_item,
    list_inventory,
    list_inventory_transactions,
    record_inventory_movement,
    create_custom_product,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MOVEMENT_POLICY = PayloadPolicy(
    fields={"quantity": "int", "kind": "string", "business_id": "int"},
    required=frozenset({"quantity", "kind"}),
)

CUSTOM_PRODUCT_POLICY = PayloadPolicy(
    fields={
        "retailer_id": "int",
        "product_name": "string",
        "product_category": "string",
        "product_description": "string",
        "quantity": "int",
        "unit_price": "decimal",
        "materials": "list",
    },
    required=frozenset({"retailer_id", "product_name", "quantity", "unit_price", "materials"}),
)


def _insufficient(e: InsufficientStock):
    return {
        "error": str(e),
        "inventory_id": e.inventory_id,
        "on_hand": e.on_hand,
        "requested": e.requested,
    }, 409


@inventory_bp.get("")
def list_inventory_route():
    retailer_id = request.args.get("retailer_id", type=int)
    if not retailer_id:
        return {"error": "retailer_id is required"}, 400
    status = request.args.get("status")
    items = list_inventory(retailer_id=retailer_id, status=status)
    return {"items": [item.to_dict() for item in items]}, 200


@inventory_bp.get("/<int:inventory_id>")
def get_inventory_route(inventory_id: int):
    try:
        item = get_inventory_item(inventory_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"item": item.to_dict()}, 200


@inventory_bp.get("/<int:inventory_id>/transactions")
def inventory_transactions_route(inventory_id: int):
    limit = request.args.get("limit", 200, type=int)
    try:
        rows = list_inventory_transactions(inventory_id=inventory_id, limit=limit)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"transactions": [row.to_dict() for row in rows]}, 200


@inventory_bp.post("/<int:inventory_id>/movements")
def movement_route(inventory_id: int):
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=MOVEMENT_POLICY)
        tx = record_inventory_movement(
            inventory_id=inventory_id,
            quantity=data["quantity"],
            kind=data["kind"],
            business_id=data.get("business_id"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStock as e:
        return _insufficient(e)
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to record movement on inventory %s", inventory_id)
        return {"error": "Internal server error"}, 500

    item = get_inventory_item(inventory_id)
    return {"transaction": tx.to_dict(), "item": item.to_dict()}, 201


@inventory_bp.post("/custom-products")
def custom_product_route():
    """
    Assemble a retailer's own product from plastic materials in stock.

    materials: [{"inventory_id": 3, "grams_per_unit": 12.5}, ...]
    """
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=CUSTOM_PRODUCT_POLICY)
        item = create_custom_product(
            retailer_id=data["retailer_id"],
            product_name=data["product_name"],
            product_category=data.get("product_category") or "custom",
            product_description=data.get("product_description"),
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            materials=data["materials"],
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStock as e:
        return _insufficient(e)
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to create custom product")
        return {"error": "Internal server error"}, 500
    return {"item": item.to_dict()}, 201
