"""
Sales Service - point-of-sale checkout

A sale is written in one pass: the ``ventas`` row, its ``detalles_venta``
lines, one inventory decrement and one "salida" movement per line. The
total is computed from the lines before anything is written.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleDetail, InventoryLevel, Product
from ..time_utils import utcnow, start_of_day
from .inventory_service import record_movement

COMPLETED = "completada"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class SaleLine:
    producto_id: str
    cantidad: float
    precio_unitario: float
    subtotal: float


@dataclass
class SaleRequest:
    almacen_id: str
    metodo_pago: str
    detalles: list[SaleLine] = field(default_factory=list)
    cliente: str | None = None
    user_id: str | None = None

    @property
    def total(self) -> float:
        return round(sum(line.subtotal for line in self.detalles), 2)


def build_sale(
    items: list[dict],
    store_id: str,
    payment_method: str,
    customer_name: str | None = None,
    user_id: str | None = None,
) -> SaleRequest:
    """
    Turn cart items (``id``, ``cantidad``, optional ``precio``) into a sale.

    Missing prices fall back to the product's sale price.
    """
    lines = []
    for item in items:
        product_id = item.get("id") or item.get("producto_id")
        try:
            quantity = float(item.get("cantidad"))
        except (TypeError, ValueError):
            raise SaleError("Cantidad inválida", details={"item": item})
        if quantity <= 0:
            raise SaleError("La cantidad debe ser mayor que cero", details={"item": item})

        price = item.get("precio", item.get("precio_unitario"))
        if price is None:
            product = db.session.query(Product).filter_by(id=product_id).first()
            if not product:
                raise SaleError(f"Producto no encontrado: {product_id}")
            price = product.precio_venta
        try:
            price = float(price)
        except (TypeError, ValueError):
            raise SaleError("Precio inválido", details={"item": item})
        if price < 0:
            raise SaleError("El precio no puede ser negativo", details={"item": item})

        lines.append(SaleLine(
            producto_id=product_id,
            cantidad=quantity,
            precio_unitario=price,
            subtotal=round(price * quantity, 2),
        ))

    return SaleRequest(
        almacen_id=store_id,
        metodo_pago=payment_method,
        detalles=lines,
        cliente=customer_name or None,
        user_id=user_id,
    )


def validate_sale(sale: SaleRequest) -> None:
    if not sale.almacen_id:
        raise SaleError("El ID de la sucursal es requerido")
    if not sale.metodo_pago:
        raise SaleError("El método de pago es requerido")
    if not sale.detalles:
        raise SaleError("Los detalles de la venta son requeridos")


def _decrement_stock(sale: SaleRequest, sale_id: str) -> None:
    for line in sale.detalles:
        level = (
            db.session.query(InventoryLevel)
            .filter_by(producto_id=line.producto_id, almacen_id=sale.almacen_id)
            .first()
        )
        if not level:
            raise SaleError(
                f"No existe registro de inventario para producto {line.producto_id} en esta sucursal"
            )

        new_quantity = float(level.cantidad) - line.cantidad
        if new_quantity < 0:
            raise SaleError(
                f"Stock insuficiente para el producto {line.producto_id}",
                details={"producto_id": line.producto_id, "disponible": float(level.cantidad)},
            )
        level.cantidad = new_quantity

        record_movement(
            "salida",
            line.producto_id,
            line.cantidad,
            origin_id=sale.almacen_id,
            notes=f"Venta #{sale_id}",
        )


def create_sale(sale: SaleRequest) -> Sale:
    """Persist a validated sale, its lines, the stock decrements and the movements."""
    validate_sale(sale)
    current_app.logger.info("Creating sale in store %s (%d lines)", sale.almacen_id, len(sale.detalles))

    try:
        record = Sale(
            almacen_id=sale.almacen_id,
            user_id=sale.user_id,
            metodo_pago=sale.metodo_pago,
            cliente=sale.cliente,
            estado=COMPLETED,
            total=sale.total,
        )
        db.session.add(record)
        db.session.flush()

        db.session.add_all([
            SaleDetail(
                venta_id=record.id,
                producto_id=line.producto_id,
                cantidad=line.cantidad,
                precio_unitario=line.precio_unitario,
                subtotal=line.subtotal,
            )
            for line in sale.detalles
        ])

        _decrement_stock(sale, record.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Sale %s completed (total=%s)", record.id, record.total)
    return record


def fetch_sales(limit: int = 10) -> list[dict]:
    sales = db.session.query(Sale).order_by(Sale.created_at.desc()).limit(limit).all()
    return [sale.to_dict() for sale in sales]


def fetch_sale(sale_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(id=sale_id).first()


def fetch_sale_details(sale_id: str) -> list[dict]:
    details = db.session.query(SaleDetail).filter_by(venta_id=sale_id).all()
    return [detail.to_dict() for detail in details]


def fetch_sales_today() -> list[dict]:
    start = start_of_day(utcnow())
    sales = (
        db.session.query(Sale)
        .filter(Sale.created_at >= start)
        .order_by(Sale.created_at.asc())
        .all()
    )
    return [{"id": s.id, "total": float(s.total or 0), "created_at": s.to_dict()["created_at"]} for s in sales]
