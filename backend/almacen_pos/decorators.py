# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .auth_client import AuthError, display_name_for
from .extensions import db, hosted_auth
from .models import Profile
from .services import role_service, user_sync_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _is_authenticated() -> bool:
    return hasattr(g, "current_user_id")


def require_auth(f):
    """
    Require a hosted-auth session.

    Sets the following Flask g attributes:
    - g.current_user: the auth user object returned by hosted auth
    - g.current_user_id: its id
    - g.current_roles: the user's role rows (dicts)

    A user seen for the first time gets a profile and the default role
    before the route runs.

    Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        try:
            auth_user = hosted_auth.get_user(token)
        except AuthError as exc:
            return jsonify({"error": str(exc)}), 401

        if not auth_user or not auth_user.get("id"):
            return jsonify({"error": "Invalid or expired token"}), 401

        user_id = auth_user["id"]
        roles = role_service.fetch_user_roles(user_id)
        if not roles or db.session.get(Profile, user_id) is None:
            user_sync_service.sync_user_to_tables(user_id, auth_user.get("email"), display_name_for(auth_user))
            roles = role_service.fetch_user_roles(user_id)

        g.current_user = auth_user
        g.current_user_id = user_id
        g.current_roles = roles

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require any of ``roles``; admin satisfies every role.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not any(role_service.has_role(g.current_roles, role) for role in roles):
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
