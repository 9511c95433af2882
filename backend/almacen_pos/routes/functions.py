# Overview: Privileged edge functions (delete-user, get_user_id_by_email, sync-users).

"""
Edge functions

These endpoints run with the service-role key against hosted auth. They
answer any origin (CORS headers are added by the app) and reply to OPTIONS
preflights with "ok".

Every error is returned as ``{"error": message}``:
- 400: missing input, or hosted auth refused the operation
- 401: missing or invalid Bearer token
- 403: caller is not an admin
- 404: no auth user for the given email
- 500: anything unexpected
"""

from flask import Blueprint, current_app, jsonify, request

from ..auth_client import AuthError
from ..decorators import bearer_token
from ..extensions import db, hosted_auth
from ..models import UserRole
from ..services import user_sync_service
from ..services.user_sync_service import UserSyncError


functions_bp = Blueprint("functions", __name__, url_prefix="/functions/v1")


def _preflight():
    return "ok", 200


@functions_bp.route("/delete-user", methods=["POST", "OPTIONS"])
def delete_user_function():
    """
    Delete an auth account. Bearer-authenticated, admin only.

    Request body: {"userId": "..."}
    """
    if request.method == "OPTIONS":
        return _preflight()

    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "No se proporcionó token de autenticación"}), 401

        try:
            caller = hosted_auth.get_user(token)
        except AuthError:
            caller = None
        if not caller or not caller.get("id"):
            return jsonify({"error": "Token de autenticación inválido"}), 401

        is_admin = db.session.query(UserRole).filter_by(user_id=caller["id"], role="admin").count()
        if not is_admin:
            return jsonify({"error": "No tienes permisos para eliminar usuarios"}), 403

        data = request.get_json(silent=True) or {}
        user_id = data.get("userId")
        if not user_id:
            return jsonify({"error": "Se requiere el ID del usuario"}), 400

        try:
            hosted_auth.delete_user(user_id)
        except AuthError as exc:
            return jsonify({"error": str(exc)}), 400

        current_app.logger.info("Auth user %s deleted by %s", user_id, caller["id"])
        return jsonify({"success": True}), 200
    except Exception as exc:
        current_app.logger.exception("delete-user failed")
        return jsonify({"error": str(exc)}), 500


@functions_bp.route("/get_user_id_by_email", methods=["POST", "OPTIONS"])
def get_user_id_by_email_function():
    """
    Look up an auth user id by email.

    Request body: {"email": "..."}; the response body is the id as a JSON string.
    """
    if request.method == "OPTIONS":
        return _preflight()

    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        if not email:
            return jsonify({"error": "Se requiere el email"}), 400

        try:
            user = hosted_auth.find_user_by_email(email)
        except AuthError as exc:
            current_app.logger.error("Error al buscar usuario: %s", exc)
            return jsonify({"error": f"Error al buscar usuario: {exc}"}), 500

        if not user:
            return jsonify({"error": "Usuario no encontrado"}), 404

        return jsonify(user["id"]), 200
    except Exception:
        current_app.logger.exception("get_user_id_by_email failed")
        return jsonify({"error": "Error interno del servidor"}), 500


@functions_bp.route("/sync-users", methods=["POST", "OPTIONS"])
def sync_users_function():
    """Create missing profiles and default roles for every auth user."""
    if request.method == "OPTIONS":
        return _preflight()

    if not current_app.config.get("SUPABASE_URL") or not current_app.config.get("SUPABASE_SERVICE_ROLE_KEY"):
        return jsonify({"error": "Configuración de Supabase no disponible"}), 500

    try:
        summary = user_sync_service.sync_all_users()
    except UserSyncError as exc:
        return jsonify({"error": str(exc)}), 500
    except Exception as exc:
        current_app.logger.exception("sync-users failed")
        return jsonify({"error": str(exc)}), 500
    return jsonify(summary), 200
