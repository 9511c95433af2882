# Overview: Flask API routes for stores, categories and units; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..hooks import use_stores
from ..services import store_service


stores_bp = Blueprint("stores", __name__, url_prefix="/api")


@stores_bp.get("/stores")
@require_auth
def list_stores():
    query = use_stores()
    if not query.ok:
        return jsonify({"error": str(query.error)}), 500
    return jsonify(query.data), 200


@stores_bp.post("/stores")
@require_auth
@require_role("manager")
def create_store():
    data = request.get_json() or {}
    try:
        store = store_service.create_store(
            nombre=data.get("nombre"),
            direccion=data.get("direccion"),
        )
        return jsonify(store.to_dict()), 201
    except store_service.StoreError as exc:
        return jsonify({"error": str(exc)}), 400


@stores_bp.get("/stores/<store_id>")
@require_auth
def get_store(store_id: str):
    store = store_service.get_store(store_id)
    if not store:
        return jsonify({"error": "Store not found"}), 404
    return jsonify(store.to_dict()), 200


@stores_bp.put("/stores/<store_id>")
@require_auth
@require_role("manager")
def update_store(store_id: str):
    data = request.get_json() or {}
    try:
        store = store_service.update_store(
            store_id,
            nombre=data.get("nombre"),
            direccion=data.get("direccion"),
        )
        return jsonify(store.to_dict()), 200
    except store_service.StoreError as exc:
        return jsonify({"error": str(exc)}), 400


@stores_bp.delete("/stores/<store_id>")
@require_auth
@require_role("admin")
def delete_store(store_id: str):
    try:
        store_service.delete_store(store_id)
        return jsonify({"success": True}), 200
    except store_service.StoreError as exc:
        return jsonify({"error": str(exc)}), 400


@stores_bp.get("/categories")
@require_auth
def list_categories():
    return jsonify([c.to_dict() for c in store_service.list_categories()]), 200


@stores_bp.post("/categories")
@require_auth
@require_role("manager")
def create_category():
    data = request.get_json() or {}
    try:
        category = store_service.create_category(data.get("nombre"))
        return jsonify(category.to_dict()), 201
    except store_service.StoreError as exc:
        return jsonify({"error": str(exc)}), 400


@stores_bp.get("/units")
@require_auth
def list_units():
    return jsonify([u.to_dict() for u in store_service.list_units()]), 200


@stores_bp.post("/units")
@require_auth
@require_role("manager")
def create_unit():
    data = request.get_json() or {}
    try:
        unit = store_service.create_unit(data.get("nombre"), data.get("abreviatura"))
        return jsonify(unit.to_dict()), 201
    except store_service.StoreError as exc:
        return jsonify({"error": str(exc)}), 400
