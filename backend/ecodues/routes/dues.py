# backend/ecodues/routes/dues.py
"""
Disposal due routes.

Settling is the only write here besides the sweep. A second settle of the
same due answers 409 so a client can tell "already paid" from "paid now".
"""
from flask import Blueprint, current_app, request

from ..validation import PayloadPolicy, validate_payload, ValidationError, NotFoundError
from ..services import dues_service, sweeper_service
from ..services.ledger_service import list_due_events
from ..services.concurrency import PersistenceFailure


dues_bp = Blueprint("dues", __name__, url_prefix="/api/dues")

SWEEP_POLICY = PayloadPolicy(
    fields={"as_of": "date", "tier": "string", "owner_id": "int"},
)


@dues_bp.get("")
def list_dues_route():
    tier = request.args.get("tier")
    if not tier:
        return {"error": "tier is required"}, 400

    owner_id = request.args.get("owner_id", type=int)
    status = request.args.get("status")
    limit = request.args.get("limit", 200, type=int)

    try:
        dues = dues_service.list_dues(tier=tier, status=status, owner_id=owner_id, limit=limit)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"dues": [d.to_dict() for d in dues]}, 200


@dues_bp.get("/<tier>/<int:due_id>")
def get_due_route(tier: str, due_id: int):
    try:
        due = dues_service.get_due(tier, due_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    events = list_due_events(tier=tier, due_id=due_id)
    return {"due": due.to_dict(), "events": [ev.to_dict() for ev in events]}, 200


@dues_bp.get("/<tier>/<int:due_id>/chain")
def due_chain_route(tier: str, due_id: int):
    try:
        chain = dues_service.get_due_chain(tier, due_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"chain": [d.to_dict() for d in chain]}, 200


@dues_bp.post("/<tier>/<int:due_id>/settle")
def settle_due_route(tier: str, due_id: int):
    """
    Mark a due paid and advance the cascade.

    Response outcome is one of: cascaded, terminal, unresolved_party, already_linked.
    """
    try:
        result = dues_service.settle(tier, due_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except dues_service.AlreadySettled as e:
        return {"error": str(e)}, 409
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to settle %s due %s", tier, due_id)
        return {"error": "Internal server error"}, 500
    return result.to_dict(), 200


@dues_bp.post("/sweep")
def sweep_route():
    try:
        data = validate_payload(payload=request.get_json(silent=True), policy=SWEEP_POLICY)
        counts = sweeper_service.sweep_overdue(
            as_of=data.get("as_of"),
            tier=data.get("tier") or None,
            owner_id=data.get("owner_id"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceFailure:
        raise
    except Exception:
        current_app.logger.exception("Failed to sweep overdue dues")
        return {"error": "Internal server error"}, 500
    return {"swept": counts}, 200
