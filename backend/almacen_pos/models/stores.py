from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow


class Store(db.Model):
    """Store or warehouse (almacén). Stock is tracked per store."""
    __tablename__ = "almacenes"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nombre = db.Column(db.String(120), nullable=False)
    direccion = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Store id={self.id} nombre={self.nombre!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "direccion": self.direccion,
            "created_at": to_utc_z(self.created_at),
        }
