# backend/almacen_pos/services/products_service.py
"""
Products Service

Products are read as view models: the catalog row plus the category and
unit names and the stock aggregated from ``inventario`` (total and per
store). Writes go straight to ``productos``; initial stock and stock
adjustments go through the inventory service so they leave a movement.
"""
from __future__ import annotations

from typing import Any, Iterable

from ..extensions import db
from ..formatting import stock_status_color
from ..models import Product, InventoryLevel, Category, Unit
from . import inventory_service, store_service
from .inventory_service import aggregate_stock, stock_for

NO_LOCATION = "no-location"
DEFAULT_CATEGORY_NAME = "Sin categoría"
DEFAULT_UNIT_NAME = "u"

# Form field -> productos column
FORM_FIELDS = {
    "name": "nombre",
    "description": "descripcion",
    "category": "categoria_id",
    "unit": "unidad_id",
    "purchasePrice": "precio_compra",
    "salePrice": "precio_venta",
    "minStock": "stock_minimo",
    "maxStock": "stock_maximo",
}
PRODUCT_MUTABLE_FIELDS = set(FORM_FIELDS.values())


class ProductError(Exception):
    """Raised when product operations fail."""
    pass


def _number(value: Any, default: float = 0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def map_inventory_data(
    products: Iterable[Product],
    inventory: Iterable[Any],
    store_names: dict[str, str] | None = None,
) -> list[dict]:
    """Attach aggregated stock and display names to each product row."""
    summaries = aggregate_stock(inventory)
    store_names = store_names or {}
    result = []
    for product in products:
        summary = stock_for(summaries, product.id)
        category = product.category
        unit = product.unit
        view = {
            "id": product.id,
            "nombre": product.nombre or "",
            "descripcion": product.descripcion,
            "precio_venta": _number(product.precio_venta),
            "precio_compra": _number(product.precio_compra),
            "categoria": (category.nombre if category and category.nombre else DEFAULT_CATEGORY_NAME),
            "categoria_id": product.categoria_id,
            "unidad": (unit.nombre if unit and unit.nombre else DEFAULT_UNIT_NAME),
            "unidad_id": product.unidad_id,
            "stock_minimo": _number(product.stock_minimo),
            "stock_maximo": _number(product.stock_maximo),
            "stock_total": summary.stock_total,
            "stock_by_store": dict(summary.stock_by_store),
            "store_names": {sid: store_names.get(sid, "") for sid in summary.stock_by_store},
        }
        view["stock_status"] = stock_status_color(view)
        result.append(view)
    return result


def list_products(store_id: str | None = "all") -> list[dict]:
    """All products with stock; ``store_id`` other than "all" restricts stock to that store."""
    products = db.session.query(Product).order_by(Product.nombre.asc()).all()
    if not products:
        return []
    scope = None if store_id in (None, "", "all") else store_id
    rows = inventory_service.inventory_rows(scope)
    return map_inventory_data(products, rows, store_service.store_name_map())


def get_product(product_id: str) -> dict | None:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        return None
    rows = db.session.query(InventoryLevel).filter_by(producto_id=product_id).all()
    return map_inventory_data([product], rows, store_service.store_name_map())[0]


def filter_products(
    products: list[dict],
    *,
    search_term: str | None = None,
    category_id: str | None = None,
    store_id: str | None = None,
    user_store_ids: list[str] | None = None,
) -> list[dict]:
    """
    Client-side product filtering.

    A non-empty ``user_store_ids`` hides every product without a stock entry
    in one of those stores. ``store_id`` requires positive stock there.
    """
    term = (search_term or "").lower()
    result = []
    for product in products:
        by_store = product.get("stock_by_store") or {}
        if user_store_ids:
            if not any(sid in by_store for sid in user_store_ids):
                continue
        if term and term not in (product.get("nombre") or "").lower():
            continue
        if category_id and product.get("categoria_id") != category_id:
            continue
        if store_id and not (by_store.get(store_id) is not None and by_store[store_id] > 0):
            continue
        result.append(product)
    return result


def transform_product_form(data: dict, *, is_editing: bool) -> dict:
    """
    Convert the product form payload into column values.

    Extra keys: ``sucursal_id`` (None for "no-location"), ``stockAdjustment``
    when editing with a non-zero adjustment, ``initialStock`` when creating
    with a location and a positive initial stock.
    """
    location = data.get("location")
    store_id = None if not location or location == NO_LOCATION else location
    adjustment = data.get("stockAdjustment")

    if is_editing and adjustment not in (None, 0) and store_id is None:
        raise ProductError("Para ajustar el inventario, debes seleccionar una ubicación válida")

    values: dict[str, Any] = {}
    for form_key, column in FORM_FIELDS.items():
        if form_key in data:
            values[column] = data[form_key]
    if "descripcion" in values:
        values["descripcion"] = values["descripcion"] or None
    values["sucursal_id"] = store_id

    if is_editing and isinstance(adjustment, (int, float)) and adjustment != 0:
        values["stockAdjustment"] = adjustment

    initial = data.get("initialStock")
    if not is_editing and store_id and isinstance(initial, (int, float)) and initial > 0:
        values["initialStock"] = initial

    return values


def _validate_values(values: dict, *, creating: bool) -> None:
    if creating and not values.get("nombre"):
        raise ProductError("Product name is required")
    if "nombre" in values and not values["nombre"]:
        raise ProductError("Product name is required")
    if creating and values.get("precio_venta") is None:
        raise ProductError("Sale price is required")
    for key in ("precio_compra", "precio_venta", "stock_minimo", "stock_maximo"):
        value = values.get(key)
        if value is None:
            continue
        if _number(value, default=-1) < 0:
            raise ProductError(f"{key} must be a non-negative number")
    if values.get("categoria_id") and not db.session.query(Category).filter_by(id=values["categoria_id"]).first():
        raise ProductError("Category not found")
    if values.get("unidad_id") and not db.session.query(Unit).filter_by(id=values["unidad_id"]).first():
        raise ProductError("Unit not found")


def create_product(data: dict) -> Product:
    values = transform_product_form(data, is_editing=False)
    _validate_values(values, creating=True)

    product = Product(
        nombre=values["nombre"],
        descripcion=values.get("descripcion"),
        categoria_id=values.get("categoria_id") or None,
        unidad_id=values.get("unidad_id") or None,
        precio_compra=_number(values.get("precio_compra")),
        precio_venta=_number(values.get("precio_venta")),
        stock_minimo=_number(values.get("stock_minimo")),
        stock_maximo=_number(values.get("stock_maximo")),
    )
    db.session.add(product)
    db.session.flush()

    initial = values.get("initialStock")
    if initial:
        try:
            inventory_service.update_inventory(product.id, values["sucursal_id"], initial, commit=False)
            inventory_service.record_movement(
                "entrada", product.id, initial, destination_id=values["sucursal_id"], notes="Inventario inicial"
            )
        except inventory_service.InventoryError as exc:
            db.session.rollback()
            raise ProductError(str(exc))

    db.session.commit()
    return product


def update_product(product_id: str, data: dict) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise ProductError("Product not found")

    values = transform_product_form(data, is_editing=True)
    _validate_values(values, creating=False)

    for column, value in values.items():
        if column not in PRODUCT_MUTABLE_FIELDS:
            continue
        if column in ("precio_compra", "precio_venta", "stock_minimo", "stock_maximo"):
            value = _number(value)
        elif column in ("categoria_id", "unidad_id"):
            value = value or None
        setattr(product, column, value)

    adjustment = values.get("stockAdjustment")
    if adjustment:
        try:
            inventory_service.update_inventory(product.id, values["sucursal_id"], adjustment, commit=False)
            inventory_service.record_movement(
                "ajuste",
                product.id,
                abs(adjustment),
                origin_id=values["sucursal_id"] if adjustment < 0 else None,
                destination_id=values["sucursal_id"] if adjustment > 0 else None,
                notes=f"Ajuste de inventario ({adjustment:+g})",
            )
        except inventory_service.InventoryError as exc:
            db.session.rollback()
            raise ProductError(str(exc))

    db.session.commit()
    return product


def delete_product(product_id: str) -> None:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise ProductError("Product not found")

    db.session.query(InventoryLevel).filter_by(producto_id=product_id).delete()
    db.session.delete(product)
    db.session.commit()


def low_stock_products() -> list[dict]:
    """Products with a minimum set whose total stock is at or below it."""
    return [
        p for p in list_products("all")
        if p["stock_minimo"] and p["stock_total"] <= p["stock_minimo"]
    ]
