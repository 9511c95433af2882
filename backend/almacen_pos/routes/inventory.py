# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..services import inventory_service
from ..services.inventory_service import InventoryError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/transfers")
@require_auth
@require_role("manager")
def transfer_route():
    """
    Move stock between two stores.

    Request body:
    {
        "producto_id": "...",
        "almacen_origen_id": "...",
        "almacen_destino_id": "...",
        "cantidad": 5,
        "notas": "..."          // optional
    }
    """
    data = request.get_json() or {}
    try:
        movement = inventory_service.transfer_inventory(
            data.get("producto_id"),
            data.get("almacen_origen_id"),
            data.get("almacen_destino_id"),
            data.get("cantidad"),
            notes=data.get("notas"),
        )
    except InventoryError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(movement.to_dict()), 201


@inventory_bp.get("/transfers")
@require_auth
def transfer_history_route():
    limit = request.args.get("limit", 10, type=int)
    return jsonify(inventory_service.transfer_history(limit=limit)), 200


@inventory_bp.get("/stores/<store_id>/products")
@require_auth
def products_in_store_route(store_id: str):
    return jsonify(inventory_service.products_in_store(store_id)), 200


@inventory_bp.get("")
@require_auth
def inventory_rows_route():
    """Raw inventory rows, optionally for one store (``store_id``)."""
    rows = inventory_service.inventory_rows(request.args.get("store_id"))
    return jsonify([row.to_dict() for row in rows]), 200
