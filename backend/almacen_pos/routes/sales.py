# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, request, jsonify, g

from .. import notifications
from ..decorators import require_auth, require_role
from ..formatting import format_currency
from ..hooks import use_sales
from ..services import role_service, sales_service
from ..services.sales_service import SaleError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_role("sales", "manager")
def create_sale_route():
    """
    Register a sale.

    Request body:
    {
        "almacen_id": "...",
        "metodo_pago": "efectivo",
        "cliente": "Ana",                     // optional
        "items": [{"id": "...", "cantidad": 2, "precio": 1.5}]
    }
    """
    data = request.get_json() or {}
    allowed = role_service.user_store_ids(g.current_roles)
    if allowed is not None and data.get("almacen_id") not in allowed:
        return jsonify({"error": "No tiene permiso para vender en esta sucursal"}), 403

    try:
        sale = sales_service.build_sale(
            data.get("items") or [],
            data.get("almacen_id"),
            data.get("metodo_pago"),
            customer_name=data.get("cliente"),
            user_id=g.current_user_id,
        )
        record = sales_service.create_sale(sale)
    except SaleError as exc:
        notifications.error("Error al procesar la venta", exc)
        return jsonify({"error": str(exc), "details": exc.details}), 400
    except Exception as exc:
        current_app.logger.exception("Unexpected error creating sale")
        return jsonify({"error": str(exc)}), 500

    notifications.success(
        "Venta registrada",
        f"Total: {format_currency(record.total, current_app.config['DEFAULT_CURRENCY'])}",
    )
    result = record.to_dict()
    result["detalles"] = sales_service.fetch_sale_details(record.id)
    return jsonify(result), 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    limit = request.args.get("limit", 10, type=int)
    query = use_sales(limit)
    if not query.ok:
        return jsonify({"error": str(query.error)}), 500
    return jsonify(query.data), 200


@sales_bp.get("/today")
@require_auth
def sales_today_route():
    return jsonify(sales_service.fetch_sales_today()), 200


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    sale = sales_service.fetch_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    result = sale.to_dict()
    result["detalles"] = sales_service.fetch_sale_details(sale_id)
    return jsonify(result), 200
