from flask import Blueprint, jsonify, request

from ..services import reporting_service


stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("")
def store_stats():
    return jsonify(reporting_service.store_stats()), 200


@stats_bp.get("/top-products")
def top_products():
    limit = request.args.get("limit", type=int)
    try:
        rows = reporting_service.top_products(limit)
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"items": rows, "count": len(rows)}), 200
