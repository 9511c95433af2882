from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow

ROLE_NAMES = ("admin", "manager", "sales", "viewer")
DEFAULT_ROLE = "viewer"


def cast_to_user_role(role: str | None) -> str:
    """Unknown role strings read back from the backend degrade to viewer."""
    return role if role in ROLE_NAMES else DEFAULT_ROLE


class Profile(db.Model):
    """
    Application-side profile of a hosted auth user.

    The id is the auth user id; the auth account itself lives in the hosted
    auth service and is never stored here.
    """
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email or "",
            "full_name": self.full_name,
            "created_at": to_utc_z(self.created_at),
        }


class UserRole(db.Model):
    """
    Role assignment row (user_roles).

    A "sales" role is scoped to one store through almacen_id; one row exists
    per store. Other roles are stored with almacen_id NULL.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        db.Index("ix_user_roles_user_id", "user_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), nullable=False)
    role = db.Column(db.String(32), nullable=False, default=DEFAULT_ROLE)
    almacen_id = db.Column(db.String(36), db.ForeignKey("almacenes.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    store = db.relationship("Store", lazy="joined")

    def __repr__(self) -> str:
        return f"<UserRole user_id={self.user_id} role={self.role!r} almacen_id={self.almacen_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": cast_to_user_role(self.role),
            "almacen_id": self.almacen_id,
            "almacen_nombre": self.store.nombre if self.store else None,
            "created_at": to_utc_z(self.created_at),
        }
