# Overview: Role assignment, role lookup and store scoping for users.

"""
Role Service

Two ways of assigning roles coexist:

- ``add_role`` checks the user's current roles for an identical
  assignment and inserts a single row.
- ``replace_roles`` deletes every role row of the user and bulk-inserts the
  new set (one row per store for "sales").

Both report failures as notifications, return a boolean and call the
optional ``on_success`` callback after a successful write.
"""
from __future__ import annotations

from typing import Callable, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import notifications
from ..extensions import db
from ..models import UserRole, Store, Profile, ROLE_NAMES

UNSCOPED_ROLES = ("admin", "manager")


class RoleAssignmentError(Exception):
    """Raised when a role assignment request is invalid."""
    pass


def _role_name(role) -> str:
    return role["role"] if isinstance(role, dict) else role.role


def _role_store(role) -> str | None:
    return role["almacen_id"] if isinstance(role, dict) else role.almacen_id


def fetch_user_roles(user_id: str) -> list[dict]:
    rows = db.session.query(UserRole).filter_by(user_id=user_id).order_by(UserRole.created_at.asc()).all()
    return [row.to_dict() for row in rows]


def list_roles_with_store_names() -> list[dict]:
    """Role rows joined with profile and store names (user_roles_with_name)."""
    profiles = {p.id: p for p in db.session.query(Profile).all()}
    result = []
    for row in db.session.query(UserRole).order_by(UserRole.created_at.asc()).all():
        item = row.to_dict()
        profile = profiles.get(row.user_id)
        item["email"] = profile.email if profile else None
        item["full_name"] = profile.full_name if profile else None
        result.append(item)
    return result


def has_role(roles: Iterable, role: str, store_id: str | None = None) -> bool:
    """Admin implies every role; otherwise match the role and, if given, the store."""
    roles = list(roles)
    if any(_role_name(r) == "admin" for r in roles):
        return True
    for r in roles:
        if _role_name(r) != role:
            continue
        if store_id and _role_store(r) != store_id:
            continue
        return True
    return False


def user_store_ids(roles: Iterable) -> list[str] | None:
    """
    Stores a user is restricted to, or None when unrestricted.

    Admins and managers see every store; anyone else is limited to the stores
    of their sales roles (possibly none).
    """
    roles = list(roles)
    if any(_role_name(r) in UNSCOPED_ROLES for r in roles):
        return None
    return [sid for sid in (_role_store(r) for r in roles if _role_name(r) == "sales") if sid]


def _validate_role(role: str) -> None:
    if role not in ROLE_NAMES:
        raise RoleAssignmentError(f"Rol inválido: {role}")


def add_role(
    user_id: str,
    role: str,
    almacen_id: str | None = None,
    current_roles: Iterable | None = None,
    on_success: Callable[[], None] | None = None,
) -> bool:
    """Insert one role row unless the user already holds the same assignment."""
    try:
        if not user_id:
            raise RoleAssignmentError("ID de usuario inválido")
        _validate_role(role)
        if role == "sales" and not almacen_id:
            raise RoleAssignmentError("Debe seleccionar una sucursal para el rol de ventas")

        roles = list(current_roles) if current_roles is not None else fetch_user_roles(user_id)
        if role != "sales":
            if any(_role_name(r) == role for r in roles):
                raise RoleAssignmentError(f"El usuario ya tiene el rol de {role}")
        else:
            if any(_role_name(r) == "sales" and _role_store(r) == almacen_id for r in roles):
                store = db.session.query(Store).filter_by(id=almacen_id).first()
                store_name = store.nombre if store else "esta sucursal"
                raise RoleAssignmentError(f"El usuario ya es vendedor en {store_name}")

        db.session.add(UserRole(
            user_id=user_id,
            role=role,
            almacen_id=almacen_id if role == "sales" else None,
        ))
        db.session.commit()
    except RoleAssignmentError as exc:
        notifications.error("Error al asignar rol", exc)
        return False
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al asignar rol", exc)
        return False

    current_app.logger.info("Role %s added to user %s (store=%s)", role, user_id, almacen_id)
    notifications.success("Rol asignado", "El rol ha sido asignado correctamente")
    if on_success:
        on_success()
    return True


def replace_roles(
    user_id: str,
    role: str,
    almacen_ids: list[str] | None = None,
    on_success: Callable[[], None] | None = None,
) -> bool:
    """Delete every role of the user, then insert ``role`` (one row per store for sales)."""
    almacen_ids = [sid for sid in (almacen_ids or []) if sid]
    try:
        if not user_id:
            raise RoleAssignmentError("ID de usuario inválido")
        _validate_role(role)
        if role == "sales" and not almacen_ids:
            raise RoleAssignmentError("Debe seleccionar al menos una sucursal para el rol de ventas")

        db.session.query(UserRole).filter_by(user_id=user_id).delete()

        if role == "sales":
            new_rows = [UserRole(user_id=user_id, role=role, almacen_id=sid) for sid in almacen_ids]
        else:
            new_rows = [UserRole(user_id=user_id, role=role, almacen_id=None)]
        db.session.add_all(new_rows)
        db.session.commit()
    except RoleAssignmentError as exc:
        notifications.error("Error al asignar rol", exc)
        return False
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al asignar rol", exc)
        return False

    suffix = f" con {len(almacen_ids)} sucursal(es)" if role == "sales" else ""
    current_app.logger.info("Roles of user %s replaced with %s%s", user_id, role, suffix)
    notifications.success(f"Rol de {role} asignado correctamente{suffix}")
    if on_success:
        on_success()
    return True


def remove_role(role_id: str) -> bool:
    try:
        row = db.session.query(UserRole).filter_by(id=role_id).first()
        if not row:
            raise RoleAssignmentError("Rol no encontrado")
        db.session.delete(row)
        db.session.commit()
    except RoleAssignmentError as exc:
        notifications.error("Error al eliminar rol", exc)
        return False
    except SQLAlchemyError as exc:
        db.session.rollback()
        notifications.error("Error al eliminar rol", exc)
        return False

    current_app.logger.info("Role %s removed", role_id)
    notifications.success("Rol eliminado")
    return True
