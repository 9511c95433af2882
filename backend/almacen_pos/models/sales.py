from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Completed sale (ventas).

    total is computed from the detail lines before the row is written; it is
    never recomputed server-side.
    """
    __tablename__ = "ventas"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    almacen_id = db.Column(db.String(36), db.ForeignKey("almacenes.id"), nullable=True, index=True)
    user_id = db.Column(db.String(36), nullable=True)
    metodo_pago = db.Column(db.String(32), nullable=True)
    cliente = db.Column(db.String(255), nullable=True)
    estado = db.Column(db.String(32), nullable=True)
    total = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    store = db.relationship("Store")
    details = db.relationship("SaleDetail", back_populates="sale", lazy=True)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total={self.total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "almacen_id": self.almacen_id,
            "almacen_nombre": self.store.nombre if self.store else None,
            "user_id": self.user_id,
            "metodo_pago": self.metodo_pago,
            "cliente": self.cliente,
            "estado": self.estado,
            "total": float(self.total or 0),
            "created_at": to_utc_z(self.created_at),
        }


class SaleDetail(db.Model):
    """Line item of a sale (detalles_venta)."""
    __tablename__ = "detalles_venta"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    venta_id = db.Column(db.String(36), db.ForeignKey("ventas.id"), nullable=True, index=True)
    producto_id = db.Column(db.String(36), db.ForeignKey("productos.id"), nullable=True, index=True)
    cantidad = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    precio_unitario = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="details")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "venta_id": self.venta_id,
            "producto_id": self.producto_id,
            "producto_nombre": product.nombre if product else None,
            "unidad": product.unit.nombre if product and product.unit else None,
            "cantidad": float(self.cantidad),
            "precio_unitario": float(self.precio_unitario),
            "subtotal": float(self.subtotal),
        }
