# Overview: Flask API routes for the signed-in user; profile, roles and sync repair.

"""
Authentication API routes

Sign-in itself happens against hosted auth; these routes only read the
current session and repair the user's application rows.
"""

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import role_service, user_service, user_sync_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current auth user, profile and roles, plus the stores the user is limited to."""
    return jsonify({
        "user": {
            "id": g.current_user_id,
            "email": g.current_user.get("email"),
        },
        "profile": user_service.get_user_with_roles(g.current_user_id),
        "roles": g.current_roles,
        "store_ids": role_service.user_store_ids(g.current_roles),
    }), 200


@auth_bp.post("/repair")
@require_auth
def repair_route():
    """Re-run the profile and default-role sync for the current user."""
    if not user_sync_service.repair_user_sync(g.current_user_id, g.current_user):
        return jsonify({"success": False}), 500
    return jsonify({
        "success": True,
        "roles": role_service.fetch_user_roles(g.current_user_id),
    }), 200
