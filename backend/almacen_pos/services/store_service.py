from __future__ import annotations

from ..extensions import db
from ..models import Store, InventoryLevel, Category, Unit


class StoreError(Exception):
    """Raised when store operations fail."""
    pass


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.nombre.asc()).all()


def list_store_dicts() -> list[dict]:
    return [{"id": store.id, "nombre": store.nombre} for store in list_stores()]


def get_store(store_id: str) -> Store | None:
    return db.session.query(Store).filter_by(id=store_id).first()


def get_stores_by_ids(store_ids: list[str]) -> list[Store]:
    if not store_ids:
        return []
    return db.session.query(Store).filter(Store.id.in_(store_ids)).all()


def store_name_map() -> dict[str, str]:
    return {store.id: store.nombre for store in db.session.query(Store).all()}


def create_store(nombre: str | None, direccion: str | None = None) -> Store:
    if not nombre or not nombre.strip():
        raise StoreError("Store name is required")

    store = Store(nombre=nombre.strip(), direccion=direccion)
    db.session.add(store)
    db.session.commit()
    return store


def update_store(store_id: str, *, nombre: str | None = None, direccion: str | None = None) -> Store:
    store = get_store(store_id)
    if not store:
        raise StoreError("Store not found")

    if nombre is not None:
        if not nombre.strip():
            raise StoreError("Store name is required")
        store.nombre = nombre.strip()
    if direccion is not None:
        store.direccion = direccion

    db.session.commit()
    return store


def delete_store(store_id: str) -> None:
    store = get_store(store_id)
    if not store:
        raise StoreError("Store not found")

    in_use = db.session.query(InventoryLevel).filter_by(almacen_id=store_id).count()
    if in_use:
        raise StoreError("Store still has inventory records")

    db.session.delete(store)
    db.session.commit()


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.nombre.asc()).all()


def create_category(nombre: str | None) -> Category:
    if not nombre or not nombre.strip():
        raise StoreError("Category name is required")
    category = Category(nombre=nombre.strip())
    db.session.add(category)
    db.session.commit()
    return category


def list_units() -> list[Unit]:
    return db.session.query(Unit).order_by(Unit.nombre.asc()).all()


def create_unit(nombre: str | None, abreviatura: str | None = None) -> Unit:
    if not nombre or not nombre.strip():
        raise StoreError("Unit name is required")
    unit = Unit(nombre=nombre.strip(), abreviatura=abreviatura)
    db.session.add(unit)
    db.session.commit()
    return unit
