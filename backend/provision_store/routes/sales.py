# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/provision_store/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import ledger_service, sales_service
from ..services.sales_service import SaleError
from ..validation import ValidationError, parse_cart


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Record a sale from a cart.

    Body: {"items": [{"product_id": 1, "quantity": 3}, ...]}
    Prices are always taken from the catalog; any price_cents/cost_cents
    sent with a line is ignored for totals.
    """
    try:
        lines = parse_cart(request.get_json(silent=True))
        result = sales_service.process_sale(lines)
        body = {"message": "Sale completed successfully"}
        body.update(result.to_dict())
        return jsonify(body), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """List sale headers with item counts, newest first."""
    sales = ledger_service.list_sales()
    return jsonify({"items": sales, "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with its items."""
    sale = ledger_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify(sale), 200
