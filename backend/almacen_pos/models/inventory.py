from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow

MOVEMENT_TYPES = ("entrada", "salida", "transferencia", "ajuste")


class Category(db.Model):
    __tablename__ = "categorias"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nombre = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "nombre": self.nombre}


class Unit(db.Model):
    __tablename__ = "unidades"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nombre = db.Column(db.String(64), nullable=False)
    abreviatura = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "nombre": self.nombre, "abreviatura": self.abreviatura}


class Product(db.Model):
    """
    Catalog entry. Stock is not stored here: it lives in InventoryLevel rows,
    one per (product, store).
    """
    __tablename__ = "productos"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    nombre = db.Column(db.String(255), nullable=False)
    descripcion = db.Column(db.Text, nullable=True)
    categoria_id = db.Column(db.String(36), db.ForeignKey("categorias.id"), nullable=True)
    unidad_id = db.Column(db.String(36), db.ForeignKey("unidades.id"), nullable=True)
    precio_compra = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    precio_venta = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    stock_minimo = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    stock_maximo = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    category = db.relationship("Category", lazy="joined")
    unit = db.relationship("Unit", lazy="joined")

    def __repr__(self) -> str:
        return f"<Product id={self.id} nombre={self.nombre!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "descripcion": self.descripcion,
            "categoria_id": self.categoria_id,
            "unidad_id": self.unidad_id,
            "precio_compra": float(self.precio_compra or 0),
            "precio_venta": float(self.precio_venta or 0),
            "stock_minimo": float(self.stock_minimo or 0),
            "stock_maximo": float(self.stock_maximo or 0),
            "created_at": to_utc_z(self.created_at),
        }


class InventoryLevel(db.Model):
    """Quantity on hand of one product in one store (inventario)."""
    __tablename__ = "inventario"
    __table_args__ = (
        db.UniqueConstraint("producto_id", "almacen_id", name="uq_inventario_producto_almacen"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    producto_id = db.Column(db.String(36), db.ForeignKey("productos.id"), nullable=True, index=True)
    almacen_id = db.Column(db.String(36), db.ForeignKey("almacenes.id"), nullable=True, index=True)
    cantidad = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    product = db.relationship("Product")
    store = db.relationship("Store")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "producto_id": self.producto_id,
            "almacen_id": self.almacen_id,
            "cantidad": float(self.cantidad or 0),
            "updated_at": to_utc_z(self.updated_at),
        }


class Movement(db.Model):
    """Stock movement log (movimientos): sales, transfers and adjustments."""
    __tablename__ = "movimientos"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tipo = db.Column(db.String(32), nullable=False)
    producto_id = db.Column(db.String(36), db.ForeignKey("productos.id"), nullable=True, index=True)
    almacen_origen_id = db.Column(db.String(36), db.ForeignKey("almacenes.id"), nullable=True)
    almacen_destino_id = db.Column(db.String(36), db.ForeignKey("almacenes.id"), nullable=True)
    cantidad = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    notas = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product")
    origin = db.relationship("Store", foreign_keys=[almacen_origen_id])
    destination = db.relationship("Store", foreign_keys=[almacen_destino_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tipo": self.tipo,
            "producto_id": self.producto_id,
            "almacen_origen_id": self.almacen_origen_id,
            "almacen_destino_id": self.almacen_destino_id,
            "cantidad": float(self.cantidad),
            "notas": self.notas,
            "created_at": to_utc_z(self.created_at),
        }
