# Overview: Service-layer operations for inventory; stock aggregation, adjustments and transfers.

"""
Inventory Service

Stock is stored per (product, store) in ``inventario``; every total shown to
users is derived here by summing those rows. Movements (``movimientos``)
record why quantities changed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..extensions import db
from ..models import InventoryLevel, Movement, Product, Store
from ..time_utils import to_utc_z


class InventoryError(Exception):
    """Raised for inventory operation errors."""
    pass


@dataclass
class StockSummary:
    stock_total: float = 0
    stock_by_store: dict[str, float] = field(default_factory=dict)

    def add(self, store_id: str, quantity: float) -> None:
        self.stock_by_store[store_id] = self.stock_by_store.get(store_id, 0) + quantity
        self.stock_total += quantity


def _row_value(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def aggregate_stock(rows: Iterable[Any]) -> dict[str, StockSummary]:
    """
    Group inventory rows by product.

    Rows are mappings or objects with producto_id, almacen_id and cantidad.
    The total of each summary is always the sum of its per-store quantities.
    """
    summaries: dict[str, StockSummary] = {}
    for row in rows:
        product_id = _row_value(row, "producto_id")
        store_id = _row_value(row, "almacen_id")
        if product_id is None or store_id is None:
            continue
        quantity = float(_row_value(row, "cantidad") or 0)
        summaries.setdefault(product_id, StockSummary()).add(store_id, quantity)
    return summaries


def stock_for(summaries: dict[str, StockSummary], product_id: str) -> StockSummary:
    return summaries.get(product_id) or StockSummary()


def inventory_rows(store_id: str | None = None) -> list[InventoryLevel]:
    query = db.session.query(InventoryLevel)
    if store_id:
        query = query.filter(InventoryLevel.almacen_id == store_id)
    return query.all()


def get_quantity(product_id: str, store_id: str) -> float:
    level = db.session.query(InventoryLevel).filter_by(producto_id=product_id, almacen_id=store_id).first()
    return float(level.cantidad) if level else 0


def update_inventory(product_id: str, store_id: str, delta: float, *, commit: bool = True) -> InventoryLevel:
    """
    Add ``delta`` (may be negative) to the stock of a product in a store.

    Creates the row when missing. The resulting quantity may not be negative.
    """
    if not db.session.query(Product).filter_by(id=product_id).first():
        raise InventoryError("Product not found")
    if not db.session.query(Store).filter_by(id=store_id).first():
        raise InventoryError("Store not found")

    level = db.session.query(InventoryLevel).filter_by(producto_id=product_id, almacen_id=store_id).first()
    current = float(level.cantidad) if level else 0
    new_quantity = current + float(delta)
    if new_quantity < 0:
        raise InventoryError(f"Stock insuficiente para el producto {product_id}")

    if level is None:
        level = InventoryLevel(producto_id=product_id, almacen_id=store_id, cantidad=new_quantity)
        db.session.add(level)
    else:
        level.cantidad = new_quantity

    if commit:
        db.session.commit()
    return level


def record_movement(
    tipo: str,
    product_id: str,
    quantity: float,
    *,
    origin_id: str | None = None,
    destination_id: str | None = None,
    notes: str | None = None,
) -> Movement:
    movement = Movement(
        tipo=tipo,
        producto_id=product_id,
        almacen_origen_id=origin_id,
        almacen_destino_id=destination_id,
        cantidad=quantity,
        notas=notes,
    )
    db.session.add(movement)
    return movement


def transfer_inventory(
    product_id: str,
    source_store_id: str,
    target_store_id: str,
    quantity: float,
    notes: str | None = None,
) -> Movement:
    """Move stock between stores: decrement source, increment target, log a transfer."""
    if not product_id or not source_store_id or not target_store_id:
        raise InventoryError("product_id, source and target stores are required")
    if source_store_id == target_store_id:
        raise InventoryError("Source and target stores must differ")
    try:
        quantity = float(quantity)
    except (TypeError, ValueError):
        raise InventoryError("Quantity must be a number")
    if quantity <= 0:
        raise InventoryError("Quantity must be greater than zero")

    try:
        update_inventory(product_id, source_store_id, -quantity, commit=False)
        update_inventory(product_id, target_store_id, quantity, commit=False)
        movement = record_movement(
            "transferencia",
            product_id,
            quantity,
            origin_id=source_store_id,
            destination_id=target_store_id,
            notes=notes or None,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return movement


def transfer_history(limit: int = 10) -> list[dict]:
    movements = (
        db.session.query(Movement)
        .filter(Movement.tipo == "transferencia")
        .order_by(Movement.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": m.id,
            "fecha": to_utc_z(m.created_at),
            "origen": m.origin.nombre if m.origin else "N/A",
            "destino": m.destination.nombre if m.destination else "N/A",
            "producto": m.product.nombre if m.product else "N/A",
            "cantidad": float(m.cantidad),
            "notas": m.notas,
        }
        for m in movements
    ]


def product_movements(product_id: str, limit: int = 50) -> list[dict]:
    movements = (
        db.session.query(Movement)
        .filter(Movement.producto_id == product_id)
        .order_by(Movement.created_at.desc())
        .limit(limit)
        .all()
    )
    result = []
    for m in movements:
        item = m.to_dict()
        item["origen"] = m.origin.nombre if m.origin else None
        item["destino"] = m.destination.nombre if m.destination else None
        result.append(item)
    return result


def products_in_store(store_id: str) -> list[dict]:
    """Products with positive stock in one store, for transfer forms."""
    levels = (
        db.session.query(InventoryLevel)
        .filter(InventoryLevel.almacen_id == store_id, InventoryLevel.cantidad > 0)
        .all()
    )
    result = []
    for level in levels:
        product = level.product
        if product is None:
            continue
        unit = product.unit
        result.append({
            "id": product.id,
            "nombre": product.nombre,
            "unidad": (unit.abreviatura if unit and unit.abreviatura else "u"),
            "stock": float(level.cantidad),
        })
    result.sort(key=lambda item: item["nombre"])
    return result
