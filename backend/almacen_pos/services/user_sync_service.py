# Overview: Keeps profiles and default roles in step with hosted auth users.

"""
User synchronization.

Every auth user needs a ``profiles`` row and at least one ``user_roles``
row. New users get a default "viewer" role with no store. The check runs on
first authenticated request, on demand (repair) and in bulk (sync-users).

Failures abort the current user's sync, are logged and surface as an error
notification; nothing is retried or rolled back beyond the session.
"""
from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import notifications
from ..auth_client import AuthError, display_name_for
from ..extensions import db, hosted_auth
from ..models import Profile, UserRole, DEFAULT_ROLE


class UserSyncError(Exception):
    """Raised when a user cannot be synchronized."""
    pass


def ensure_profile(user_id: str, email: str | None, full_name: str | None) -> bool:
    """Create the profile row when missing. Returns True when a row was created."""
    if db.session.query(Profile).filter_by(id=user_id).first():
        return False
    db.session.add(Profile(id=user_id, email=email, full_name=full_name))
    db.session.flush()
    return True


def ensure_default_role(user_id: str) -> bool:
    """Create the default viewer role when the user has none. Returns True when created."""
    if db.session.query(UserRole).filter_by(user_id=user_id).count():
        return False
    db.session.add(UserRole(user_id=user_id, role=DEFAULT_ROLE, almacen_id=None))
    db.session.flush()
    return True


def sync_user_to_tables(user_id: str, email: str | None, full_name: str | None) -> bool:
    try:
        current_app.logger.info("Syncing user %s (%s)", user_id, email)
        created_profile = ensure_profile(user_id, email, full_name)
        created_role = ensure_default_role(user_id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al sincronizar usuario", exc)
        return False

    if created_profile:
        current_app.logger.info("Profile created for user %s", user_id)
    if created_role:
        current_app.logger.info("Default role created for user %s", user_id)
    return True


def repair_user_sync(user_id: str, auth_user: dict[str, Any] | None) -> bool:
    """Re-run the sync for the authenticated user ``auth_user``; ids must match."""
    if not auth_user or auth_user.get("id") != user_id:
        notifications.error(
            "Error al reparar usuario",
            "No se pudo obtener información del usuario autenticado",
        )
        return False

    email = auth_user.get("email") or ""
    if not sync_user_to_tables(user_id, email, display_name_for(auth_user)):
        return False

    notifications.success("Usuario reparado exitosamente", "Todos los datos están ahora sincronizados")
    return True


def sync_all_users() -> dict:
    """
    Bulk reconciliation between hosted auth and the application tables.

    Per-user insert failures are logged and skipped; a failure listing auth
    users aborts with UserSyncError.
    """
    try:
        auth_users = hosted_auth.list_all_users()
    except AuthError as exc:
        raise UserSyncError(f"Error obteniendo usuarios de auth: {exc}") from exc

    profiles = db.session.query(Profile).all()
    profile_ids = {p.id for p in profiles}
    current_app.logger.info("Found %d auth users and %d profiles", len(auth_users), len(profiles))

    created_profiles = 0
    created_profile_details = []
    for auth_user in auth_users:
        if auth_user.get("id") in profile_ids:
            continue
        details = {
            "id": auth_user["id"],
            "email": auth_user.get("email"),
            "full_name": display_name_for(auth_user, fallback="Usuario sin nombre"),
        }
        try:
            db.session.add(Profile(**details))
            db.session.add(UserRole(user_id=auth_user["id"], role=DEFAULT_ROLE, almacen_id=None))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to create profile for %s", details["email"])
            continue
        created_profiles += 1
        created_profile_details.append(details)

    users_with_roles = {row[0] for row in db.session.query(UserRole.user_id).distinct().all()}
    created_roles = 0
    for profile_id in sorted(profile_ids - users_with_roles):
        try:
            db.session.add(UserRole(user_id=profile_id, role=DEFAULT_ROLE, almacen_id=None))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to create default role for %s", profile_id)
            continue
        created_roles += 1

    auth_ids = {u.get("id") for u in auth_users}
    orphaned = [{"id": p.id, "email": p.email} for p in profiles if p.id not in auth_ids]

    return {
        "success": True,
        "created_profiles": created_profiles,
        "created_roles": created_roles,
        "orphaned_profiles": len(orphaned),
        "orphaned_profile_details": orphaned,
        "created_profile_details": created_profile_details,
        "message": f"Created {created_profiles} profiles and {created_roles} roles",
    }
