# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_role
from ..formatting import display_stock
from ..hooks import use_products
from ..services import products_service, inventory_service, role_service
from ..services.products_service import ProductError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Products with aggregated stock.

    Query params:
    - store_id: str - restrict stock columns to one store ("all" by default)
    - q: str - name search
    - category_id: str
    - in_store: str - only products with positive stock in that store

    Users limited to some stores only see products stocked in them.
    """
    query = use_products(request.args.get("store_id", "all"))
    if not query.ok:
        return jsonify({"error": str(query.error)}), 500

    products = products_service.filter_products(
        query.data,
        search_term=request.args.get("q"),
        category_id=request.args.get("category_id"),
        store_id=request.args.get("in_store"),
        user_store_ids=role_service.user_store_ids(g.current_roles),
    )
    shown_store = request.args.get("in_store") or request.args.get("store_id")
    for product in products:
        product["stock_display"] = display_stock(product, shown_store)
    return jsonify(products), 200


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    return jsonify(products_service.low_stock_products()), 200


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id: str):
    product = products_service.get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product), 200


@products_bp.post("")
@require_auth
@require_role("manager")
def create_product_route():
    """
    Create a product from the product form.

    Request body (form field names):
    {
        "name": "Arroz",
        "salePrice": 2.5,
        "purchasePrice": 1.8,
        "category": "...", "unit": "...",
        "minStock": 5, "maxStock": 50,
        "location": "<store id>" | "no-location",
        "initialStock": 10
    }
    """
    data = request.get_json() or {}
    try:
        product = products_service.create_product(data)
    except ProductError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(products_service.get_product(product.id)), 201


@products_bp.put("/<product_id>")
@require_auth
@require_role("manager")
def update_product_route(product_id: str):
    """Update a product; ``stockAdjustment`` with a ``location`` adjusts its stock there."""
    data = request.get_json() or {}
    try:
        product = products_service.update_product(product_id, data)
    except ProductError as exc:
        if str(exc) == "Product not found":
            return jsonify({"error": str(exc)}), 404
        return jsonify({"error": str(exc)}), 400
    return jsonify(products_service.get_product(product.id)), 200


@products_bp.delete("/<product_id>")
@require_auth
@require_role("manager")
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id)
    except ProductError as exc:
        return jsonify({"error": str(exc)}), 404
    return jsonify({"success": True}), 200


@products_bp.get("/<product_id>/movements")
@require_auth
def product_movements_route(product_id: str):
    limit = request.args.get("limit", 50, type=int)
    return jsonify(inventory_service.product_movements(product_id, limit=limit)), 200
