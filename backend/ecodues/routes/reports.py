from flask import Blueprint, jsonify, request

from ecodues.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _retailer_report(func, **extra):
    retailer_id = request.args.get("retailer_id", type=int)
    if not retailer_id:
        return jsonify({"error": "retailer_id is required"}), 400
    try:
        return jsonify(func(retailer_id=retailer_id, **extra)), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/dues/summary")
def due_summary_report():
    tier = request.args.get("tier")
    owner_id = request.args.get("owner_id", type=int)
    if not tier or not owner_id:
        return jsonify({"error": "tier and owner_id are required"}), 400

    try:
        report = reporting_service.party_due_summary(tier=tier, owner_id=owner_id)
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/dues/monthly")
def monthly_due_report():
    tier = request.args.get("tier")
    if not tier:
        return jsonify({"error": "tier is required"}), 400

    try:
        report = reporting_service.monthly_due_trend(
            tier=tier,
            owner_id=request.args.get("owner_id", type=int),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify({"months": report}), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/dues/flow")
def disposal_flow_report():
    return jsonify({"flows": reporting_service.disposal_flow_tracking()}), 200


@reports_bp.get("/collections/monthly")
def monthly_collection_report():
    return _retailer_report(
        reporting_service.monthly_collection_trend,
        start=request.args.get("start"),
        end=request.args.get("end"),
        months=request.args.get("months", 6, type=int),
    )


@reports_bp.get("/collections/top-businesses")
def top_businesses_report():
    return _retailer_report(
        reporting_service.top_counterparties,
        limit=request.args.get("limit", 5, type=int),
        start=request.args.get("start"),
        end=request.args.get("end"),
    )


@reports_bp.get("/company-balances")
def company_balances_report():
    return _retailer_report(reporting_service.retailer_company_balances)


@reports_bp.get("/inventory/movements")
def inventory_movements_report():
    return _retailer_report(
        reporting_service.inventory_movements_by_month,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )


@reports_bp.get("/inventory/snapshot")
def inventory_snapshot_report():
    return _retailer_report(reporting_service.inventory_snapshot)
