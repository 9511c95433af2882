# Overview: Service-layer operations for bulk product import from spreadsheet rows.

"""
Product import.

Rows follow the inventory template: a header row with the column titles in
FIELD_MAP (required ones end with ``*``; the plain field name is accepted as
well), then one product per row. Parsing never writes. ``import_products``
creates missing categories and units, the products and their initial stock
in a single transaction.
"""
from __future__ import annotations

import io
import zipfile
from typing import Any, Callable, Iterable

from flask import current_app
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Category, Product, Store, Unit
from . import inventory_service


class ProductImportError(ValueError):
    """Raised when an upload cannot be read as an import table."""
    pass


FIELD_MAP = {
    "Nombre*": "nombre",
    "Descripción": "descripcion",
    "Precio Compra*": "precio_compra",
    "Precio Venta*": "precio_venta",
    "Categoría*": "categoria",
    "Unidad*": "unidad",
    "Stock Mínimo*": "stock_minimo",
    "Stock Máximo": "stock_maximo",
    "Sucursal": "sucursal",
    "Stock Inicial*": "stock_inicial",
}
REQUIRED_FIELDS = [field for header, field in FIELD_MAP.items() if header.endswith("*")]
PRICE_FIELDS = ("precio_compra", "precio_venta")
STOCK_FIELDS = ("stock_minimo", "stock_maximo", "stock_inicial")

TEMPLATE_SHEET = "Plantilla"
INSTRUCTIONS_SHEET = "Instrucciones"
TEMPLATE_EXAMPLE = ["Producto Ejemplo", "Descripción opcional", 100, 150, "General", "Unidad", 5, 50, "", 10]
TEMPLATE_INSTRUCTIONS = [
    "Instrucciones para importar inventario",
    "",
    "Campos requeridos (marcados con *)",
    "- Nombre: Nombre del producto (texto)",
    "- Precio Compra: Precio de compra del producto (número)",
    "- Precio Venta: Precio de venta del producto (número)",
    "- Categoría: Nombre de la categoría (debe existir en el sistema o se creará)",
    "- Unidad: Nombre de la unidad (debe existir en el sistema o se creará)",
    "- Stock Mínimo: Cantidad mínima de stock (número entero)",
    "- Stock Inicial: Cantidad inicial a agregar al inventario (número entero)",
    "",
    "Campos opcionales",
    "- Descripción: Descripción del producto (texto)",
    "- Stock Máximo: Cantidad máxima de stock (número entero)",
    "- Sucursal: Nombre de la sucursal donde estará el producto (debe existir en el sistema)",
]

IMPORT_NOTE = "Importación de inventario"


# ============================================================================
# PARSING
# ============================================================================

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip().replace("$", "").replace(",", ""))


def _convert(field: str, value: Any) -> Any:
    """Typed cell value; unreadable numbers stay as text so validation reports them."""
    try:
        if field in PRICE_FIELDS:
            return _to_float(value)
        if field in STOCK_FIELDS:
            return int(_to_float(value))
    except (TypeError, ValueError, OverflowError):
        return str(value).strip()
    return str(value).strip()


def _number(product: dict, field: str) -> float | None:
    value = product.get(field)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


def validate_product(product: dict, row_number: int) -> list[str]:
    """Error messages for one parsed row; empty when the row can be imported."""
    errors = []
    for field in REQUIRED_FIELDS:
        if _is_blank(product.get(field)):
            errors.append(f"Fila {row_number}: Campo '{field}' es requerido")

    def _check(field: str, ok: Callable[[float], bool], message: str) -> None:
        if field not in product:
            return
        value = _number(product, field)
        if value is None or not ok(value):
            errors.append(f"Fila {row_number}: {message}")

    _check("precio_compra", lambda v: v >= 0, "Precio de compra debe ser un número válido mayor o igual a 0")
    _check("precio_venta", lambda v: v > 0, "Precio de venta debe ser un número válido mayor a 0")
    _check("stock_minimo", lambda v: v >= 0, "Stock mínimo debe ser un número entero mayor o igual a 0")
    _check("stock_maximo", lambda v: v > 0, "Stock máximo debe ser un número entero mayor a 0")
    _check("stock_inicial", lambda v: v >= 0, "Stock inicial debe ser un número entero mayor o igual a 0")

    minimum = _number(product, "stock_minimo")
    maximum = _number(product, "stock_maximo")
    if minimum is not None and maximum is not None and maximum < minimum:
        errors.append(f"Fila {row_number}: Stock máximo debe ser mayor que stock mínimo")
    return errors


def _header_index(headers: list[str], header: str, field: str) -> int | None:
    for index, title in enumerate(headers):
        if title == header or title.lower() == field:
            return index
    return None


def parse_table(rows: Iterable[Iterable[Any]]) -> dict:
    """
    Parse a header row plus data rows.

    Returns ``{"data": [...], "errors": [...]}``. Each product carries its
    spreadsheet row number in ``_row`` and ``_error: True`` when it failed
    validation. Missing required columns are reported once in ``errors``.
    """
    rows = [list(row or []) for row in rows or []]
    if not rows or all(_is_blank(cell) for cell in rows[0]):
        raise ProductImportError("No se encontraron encabezados en el archivo")

    headers = [str(cell).strip() if cell is not None else "" for cell in rows[0]]
    header_map = {}
    missing = []
    for header, field in FIELD_MAP.items():
        index = _header_index(headers, header, field)
        if index is not None:
            header_map[index] = field
        elif header.endswith("*"):
            missing.append(header)

    errors = []
    if missing:
        errors.append(f"Faltan columnas requeridas: {', '.join(missing)}")

    products = []
    for row_number, row in enumerate(rows[1:], start=2):
        product: dict[str, Any] = {"_row": row_number}
        has_data = False
        for index, field in header_map.items():
            if index >= len(row) or _is_blank(row[index]):
                continue
            has_data = True
            product[field] = _convert(field, row[index])
        if not has_data:
            continue

        row_errors = validate_product(product, row_number)
        if row_errors:
            errors.extend(row_errors)
            product["_error"] = True
        products.append(product)

    return {"data": products, "errors": errors}


def parse_records(records: list[dict]) -> dict:
    """Parse JSON-style rows (one dict per product) keyed by column title or field name."""
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ProductImportError("rows must be a list of objects")
    headers: list[str] = []
    for record in records:
        for key in record:
            if key not in headers:
                headers.append(key)
    return parse_table([headers] + [[record.get(h) for h in headers] for record in records])


def read_workbook(stream) -> list[tuple]:
    """Rows of the first sheet that is not the instructions sheet."""
    try:
        workbook = load_workbook(stream, data_only=True, read_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ProductImportError(f"No se pudo leer el archivo Excel: {exc}")
    try:
        names = workbook.sheetnames
        name = next((n for n in names if n != INSTRUCTIONS_SHEET), names[0])
        return [tuple(row) for row in workbook[name].iter_rows(values_only=True)]
    finally:
        workbook.close()


def build_template() -> bytes:
    """The downloadable .xlsx template: instructions sheet plus an empty product sheet."""
    workbook = Workbook()
    instructions = workbook.active
    instructions.title = INSTRUCTIONS_SHEET
    for line in TEMPLATE_INSTRUCTIONS:
        instructions.append([line])
    instructions.column_dimensions["A"].width = 80

    sheet = workbook.create_sheet(TEMPLATE_SHEET)
    sheet.append(list(FIELD_MAP))
    sheet.append(TEMPLATE_EXAMPLE)
    for index, width in enumerate((30, 40, 15, 15, 20, 15, 15, 15, 20, 15)):
        sheet.column_dimensions[chr(ord("A") + index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ============================================================================
# IMPORT
# ============================================================================

def _lookup(rows: Iterable[Any]) -> dict[str, Any]:
    return {row.nombre.lower(): row for row in rows if row.nombre}


def _category_for(categories: dict[str, Category], name: str) -> Category:
    category = categories.get(name.lower())
    if category is None:
        category = Category(nombre=name)
        db.session.add(category)
        db.session.flush()
        categories[name.lower()] = category
    return category


def _unit_for(units: dict[str, Unit], name: str) -> Unit:
    unit = units.get(name.lower())
    if unit is None:
        unit = Unit(nombre=name, abreviatura=name[0].lower() if name else "u")
        db.session.add(unit)
        db.session.flush()
        units[name.lower()] = unit
    return unit


def import_products(
    products: list[dict],
    on_progress: Callable[[float], None] | None = None,
) -> dict:
    """
    Create the parsed products that passed validation.

    Unknown categories and units are created. A row's initial stock goes to
    its named store, or to the first store by name when the row names none
    or an unknown one. Rows marked ``_error`` are skipped. Any database
    failure rolls the whole import back.
    """
    valid = [p for p in products or [] if not p.get("_error")]
    skipped = len(products or []) - len(valid)
    if not valid:
        return {"success": False, "imported": 0, "skipped": skipped, "error": "No hay productos para importar"}

    imported = 0
    try:
        categories = _lookup(db.session.query(Category).all())
        units = _lookup(db.session.query(Unit).all())
        stores = db.session.query(Store).order_by(Store.nombre.asc()).all()
        stores_by_name = _lookup(stores)
        default_store = stores[0] if stores else None

        for row in valid:
            category = _category_for(categories, row["categoria"])
            unit = _unit_for(units, row["unidad"])

            store = None
            if row.get("sucursal"):
                store = stores_by_name.get(row["sucursal"].lower())
                if store is None:
                    current_app.logger.warning(
                        "Import row %s: store %r not found, using the default store", row["_row"], row["sucursal"]
                    )

            product = Product(
                nombre=row["nombre"],
                descripcion=row.get("descripcion"),
                categoria_id=category.id,
                unidad_id=unit.id,
                precio_compra=row["precio_compra"],
                precio_venta=row["precio_venta"],
                stock_minimo=row["stock_minimo"],
                stock_maximo=row.get("stock_maximo"),
            )
            db.session.add(product)
            db.session.flush()

            initial = row.get("stock_inicial") or 0
            if initial > 0:
                target = store or default_store
                if target is None:
                    current_app.logger.error("Import row %s: no stores for the initial stock", row["_row"])
                else:
                    inventory_service.update_inventory(product.id, target.id, initial, commit=False)
                    inventory_service.record_movement(
                        "entrada", product.id, initial, destination_id=target.id, notes=IMPORT_NOTE
                    )

            imported += 1
            if on_progress:
                on_progress(imported / len(valid) * 100)

        db.session.commit()
    except (SQLAlchemyError, inventory_service.InventoryError) as exc:
        db.session.rollback()
        current_app.logger.exception("Product import failed after %s rows", imported)
        return {"success": False, "imported": 0, "skipped": skipped, "error": str(exc)}

    current_app.logger.info("Imported %s products (%s skipped)", imported, skipped)
    return {"success": True, "imported": imported, "skipped": skipped}
