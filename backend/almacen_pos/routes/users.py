# Overview: Flask API routes for user and role management; parses input and returns JSON responses.

"""
User management routes.

Provides endpoints for:
- Users with their roles (list, search, get, delete)
- Role assignment (single insert, replace-all, remove)

All endpoints require authentication; writes require the admin role.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..hooks import use_users_and_roles, use_user_roles
from ..services import role_service, user_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin", "manager")
def list_users():
    """
    List users with their roles.

    Query params:
    - q: str - case-insensitive match on email or full name
    """
    term = request.args.get("q")
    if term:
        return jsonify(user_service.search_users(term)), 200

    query = use_users_and_roles()
    if not query.ok:
        return jsonify({"error": str(query.error)}), 500
    return jsonify(query.data), 200


@users_bp.get("/roles")
@require_auth
@require_role("admin", "manager")
def list_roles_with_names():
    return jsonify(role_service.list_roles_with_store_names()), 200


@users_bp.get("/<user_id>")
@require_auth
@require_role("admin", "manager")
def get_user(user_id: str):
    user = user_service.get_user_with_roles(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify(user), 200


@users_bp.delete("/<user_id>")
@require_auth
@require_role("admin")
def delete_user(user_id: str):
    """Delete the user's roles and profile; the auth account goes through delete-user."""
    if not user_service.delete_user_records(user_id):
        return jsonify({"success": False}), 400
    return jsonify({"success": True}), 200


@users_bp.get("/<user_id>/roles")
@require_auth
@require_role("admin", "manager")
def get_user_roles(user_id: str):
    query = use_user_roles(user_id)
    if not query.ok:
        return jsonify({"error": str(query.error)}), 500
    return jsonify(query.data), 200


@users_bp.post("/<user_id>/roles")
@require_auth
@require_role("admin")
def add_user_role(user_id: str):
    """
    Add one role unless an identical assignment exists.

    Request body:
    {
        "role": "sales",
        "almacen_id": "..."      // required for sales
    }
    """
    data = request.get_json() or {}
    if not role_service.add_role(user_id, data.get("role"), data.get("almacen_id")):
        return jsonify({"success": False}), 400
    return jsonify({"success": True, "roles": role_service.fetch_user_roles(user_id)}), 201


@users_bp.put("/<user_id>/roles")
@require_auth
@require_role("admin")
def replace_user_roles(user_id: str):
    """
    Replace every role of the user.

    Request body:
    {
        "role": "sales",
        "almacen_ids": ["...", "..."]   // one row per store for sales
    }
    """
    data = request.get_json() or {}
    almacen_ids = data.get("almacen_ids")
    if almacen_ids is not None and not isinstance(almacen_ids, list):
        return jsonify({"error": "almacen_ids must be a list"}), 400

    if not role_service.replace_roles(user_id, data.get("role"), almacen_ids):
        return jsonify({"success": False}), 400
    return jsonify({"success": True, "roles": role_service.fetch_user_roles(user_id)}), 200


@users_bp.delete("/roles/<role_id>")
@require_auth
@require_role("admin")
def remove_user_role(role_id: str):
    if not role_service.remove_role(role_id):
        return jsonify({"error": "Role not found"}), 404
    return jsonify({"success": True}), 200
