# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Dashboard counters, sales per store (total and monthly), sales share per
category, top sellers, products whose sales dropped, revenue trends, hourly
distribution, per-item trends, inventory levels and margins.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..hooks import use_dashboard_stats
from ..services import reporting_service
from ..services.reporting_service import ReportError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _id_list(name: str) -> list[str]:
    """``name`` as repeated params or one comma-separated value."""
    values = request.args.getlist(name)
    ids = []
    for value in values:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


@analytics_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return jsonify(use_dashboard_stats().data), 200


@analytics_bp.get("/sales-by-store")
@require_auth
@require_role("manager")
def sales_by_store_route():
    result = reporting_service.total_sales_by_store(request.args.get("time_range"), _id_list("store_ids"))
    return jsonify(result), 200


@analytics_bp.get("/store-monthly-sales")
@require_auth
@require_role("manager")
def store_monthly_sales_route():
    result = reporting_service.store_monthly_sales(request.args.get("time_range"), _id_list("store_ids"))
    return jsonify(result), 200


@analytics_bp.get("/sales-by-category")
@require_auth
@require_role("manager")
def sales_by_category_route():
    try:
        result = reporting_service.sales_by_category(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/top-products")
@require_auth
@require_role("manager")
def top_products_route():
    try:
        result = reporting_service.top_selling_products(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
            limit=request.args.get("limit", reporting_service.TOP_PRODUCTS_LIMIT, type=int),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/non-selling-products")
@require_auth
@require_role("manager")
def non_selling_products_route():
    try:
        result = reporting_service.non_selling_products(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/sales-trend")
@require_auth
@require_role("manager")
def sales_trend_route():
    try:
        result = reporting_service.sales_trend(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/sales-by-hour")
@require_auth
@require_role("manager")
def sales_by_hour_route():
    try:
        result = reporting_service.sales_hourly_distribution(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/item-sales-trend")
@require_auth
@require_role("manager")
def item_sales_trend_route():
    """
    Query params:
    - product_ids: str - repeated or comma separated (required)
    - time_range: week | month | year
    - store_id: str
    """
    product_ids = _id_list("product_ids")
    if not product_ids:
        return jsonify({"error": "product_ids is required"}), 400
    try:
        result = reporting_service.item_sales_trend(
            request.args.get("time_range"),
            request.args.get("store_id"),
            product_ids,
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@analytics_bp.get("/inventory-levels")
@require_auth
@require_role("manager")
def inventory_levels_route():
    return jsonify(reporting_service.inventory_levels(store_id=request.args.get("store_id"))), 200


@analytics_bp.get("/product-profitability")
@require_auth
@require_role("manager")
def product_profitability_route():
    limit = request.args.get("limit", reporting_service.PROFITABILITY_LIMIT, type=int)
    return jsonify(reporting_service.product_profitability(limit=limit)), 200


@analytics_bp.get("/margin-by-category")
@require_auth
@require_role("manager")
def margin_by_category_route():
    try:
        result = reporting_service.margin_by_category(
            request.args.get("time_range"),
            store_id=request.args.get("store_id"),
        )
        return jsonify(result), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
