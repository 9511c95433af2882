from __future__ import annotations

from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError

from .. import notifications
from ..extensions import db
from ..models import Profile, UserRole


def process_user_data(profiles: Iterable[Profile], roles: Iterable[UserRole]) -> list[dict]:
    """Join profiles with their role rows; each role carries its store name."""
    roles_by_user: dict[str, list[dict]] = {}
    for role in roles:
        roles_by_user.setdefault(role.user_id, []).append(role.to_dict())

    return [
        {
            "id": profile.id,
            "email": profile.email or "",
            "full_name": profile.full_name or None,
            "created_at": profile.to_dict()["created_at"],
            "roles": roles_by_user.get(profile.id, []),
        }
        for profile in profiles
    ]


def fetch_users_with_roles() -> list[dict]:
    profiles = db.session.query(Profile).order_by(Profile.email.asc()).all()
    roles = db.session.query(UserRole).order_by(UserRole.created_at.asc()).all()
    return process_user_data(profiles, roles)


def get_user_with_roles(user_id: str) -> dict | None:
    profile = db.session.query(Profile).filter_by(id=user_id).first()
    if not profile:
        return None
    roles = db.session.query(UserRole).filter_by(user_id=user_id).order_by(UserRole.created_at.asc()).all()
    return process_user_data([profile], roles)[0]


def search_users(term: str | None) -> list[dict]:
    users = fetch_users_with_roles()
    term = (term or "").strip().lower()
    if not term:
        return users
    return [
        u for u in users
        if term in (u["email"] or "").lower() or term in (u["full_name"] or "").lower()
    ]


def delete_user_records(user_id: str, on_success: Callable[[], None] | None = None) -> bool:
    """
    Remove the user's role rows, then the profile row.

    The auth account is untouched; deleting it is the delete-user function's job.
    """
    try:
        db.session.query(UserRole).filter_by(user_id=user_id).delete()
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al eliminar roles del usuario", exc)
        return False

    try:
        deleted = db.session.query(Profile).filter_by(id=user_id).delete()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al eliminar usuario", exc)
        return False

    if not deleted:
        notifications.error("Error al eliminar usuario", "Usuario no encontrado")
        return False

    notifications.success("Usuario eliminado correctamente")
    if on_success:
        on_success()
    return True
