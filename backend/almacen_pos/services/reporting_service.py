# Overview: Service-layer operations for reporting; dashboard counters and analytics series.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..formatting import percent_change
from ..models import Sale, SaleDetail, Movement, Product, Category, InventoryLevel
from .products_service import DEFAULT_CATEGORY_NAME
from .store_service import get_stores_by_ids
from ..time_utils import utcnow, start_of_day, shift_months, range_start

TIME_RANGES = ("week", "month", "year")

# Months shown by the monthly store chart
MONTHS_BY_RANGE = {"year": 12, "month": 3, "week": 1}

TOP_PRODUCTS_LIMIT = 10
NON_SELLING_LIMIT = 8
PROFITABILITY_LIMIT = 10

# Buckets in the sales trend and inventory level series
TREND_PERIODS = 12
UNKNOWN_PRODUCT = "Producto Desconocido"


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _validate_range(time_range: str | None, default: str) -> str:
    if time_range in (None, ""):
        return default
    if time_range not in TIME_RANGES:
        raise ReportError(f"time_range must be one of: {', '.join(TIME_RANGES)}")
    return time_range


def _previous_start(time_range: str, start: datetime) -> datetime:
    if time_range == "week":
        return start - timedelta(days=7)
    if time_range == "year":
        return shift_months(start, -12)
    return shift_months(start, -1)


def _sales_between(start: datetime | None = None, end: datetime | None = None):
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    return query


def _details_between(start: datetime, end: datetime | None = None, store_id: str | None = None):
    query = db.session.query(SaleDetail).join(Sale, SaleDetail.venta_id == Sale.id).filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    if store_id:
        query = query.filter(Sale.almacen_id == store_id)
    return query


def empty_dashboard_stats() -> dict:
    return {
        "ventasHoy": {"total": 0, "porcentaje": 0},
        "nuevosClientes": {"total": 0, "porcentaje": 0},
        "productosVendidos": {"total": 0, "porcentaje": 0},
        "transferencias": {"total": 0, "porcentaje": 0},
        "ventasTotales": {"total": 0},
    }


def dashboard_stats(now: datetime | None = None) -> dict:
    """
    Today's counters against yesterday's.

    Sales total, distinct named customers, units sold and transfers, each
    with a rounded percentage change, plus the all-time sales total.
    """
    now = now or utcnow()
    today = start_of_day(now)
    yesterday = today - timedelta(days=1)

    sales_today = sum(float(s.total or 0) for s in _sales_between(today).all())
    sales_yesterday = sum(float(s.total or 0) for s in _sales_between(yesterday, today).all())
    sales_all_time = db.session.query(func.coalesce(func.sum(Sale.total), 0)).scalar() or 0

    def _customers(start, end=None):
        rows = _sales_between(start, end).filter(Sale.cliente.isnot(None)).with_entities(Sale.cliente).all()
        return len({row[0] for row in rows})

    customers_today = _customers(today)
    customers_yesterday = _customers(yesterday, today)

    units_today = sum(float(d.cantidad or 0) for d in _details_between(today).all())
    units_yesterday = sum(float(d.cantidad or 0) for d in _details_between(yesterday, today).all())

    transfers = db.session.query(Movement).filter(Movement.tipo == "transferencia")
    transfers_today = transfers.filter(Movement.created_at >= today).count()
    transfers_yesterday = transfers.filter(Movement.created_at >= yesterday, Movement.created_at < today).count()

    return {
        "ventasHoy": {
            "total": round(sales_today),
            "porcentaje": percent_change(sales_today, sales_yesterday),
        },
        "nuevosClientes": {
            "total": customers_today,
            "porcentaje": percent_change(customers_today, customers_yesterday),
        },
        "productosVendidos": {
            "total": units_today,
            "porcentaje": percent_change(units_today, units_yesterday),
        },
        "transferencias": {
            "total": transfers_today,
            "porcentaje": percent_change(transfers_today, transfers_yesterday),
        },
        "ventasTotales": {"total": round(float(sales_all_time))},
    }


def total_sales_by_store(time_range: str | None, store_ids: Iterable[str], now: datetime | None = None) -> list[dict]:
    """Per-store sales total over the window, highest first; unknown ranges use a week."""
    store_ids = list(store_ids or [])
    if not store_ids:
        return []
    now = now or utcnow()
    start = range_start(time_range or "week", now, default="week")

    stores = get_stores_by_ids(store_ids)
    totals = dict(
        db.session.query(Sale.almacen_id, func.coalesce(func.sum(Sale.total), 0))
        .filter(Sale.almacen_id.in_(store_ids), Sale.created_at >= start, Sale.created_at <= now)
        .group_by(Sale.almacen_id)
        .all()
    )

    result = [
        {
            "store_id": store.id,
            "store_name": store.nombre,
            "total": round(float(totals.get(store.id) or 0), 1),
        }
        for store in stores
    ]
    result.sort(key=lambda row: row["total"], reverse=True)
    return result


def store_monthly_sales(time_range: str | None, store_ids: Iterable[str], now: datetime | None = None) -> list[dict]:
    """
    Monthly sales per store, oldest month first.

    Each entry is ``{"month": "YYYY-MM", <store name>: total, ...}``; stores
    with no sales in a month get 0.
    """
    store_ids = list(store_ids or [])
    if not store_ids:
        return []
    now = now or utcnow()
    months_back = MONTHS_BY_RANGE.get(time_range, 3)

    months = [shift_months(now, -i).strftime("%Y-%m") for i in range(months_back - 1, -1, -1)]
    start = start_of_day(shift_months(now, -months_back)).replace(day=1)

    names = {s.id: s.nombre for s in get_stores_by_ids(store_ids)}
    buckets: dict[str, dict[str, float]] = {month: {sid: 0.0 for sid in store_ids} for month in months}

    sales = (
        db.session.query(Sale)
        .filter(Sale.almacen_id.in_(store_ids), Sale.created_at >= start, Sale.created_at <= now)
        .all()
    )
    for sale in sales:
        month = sale.created_at.strftime("%Y-%m")
        if month in buckets:
            buckets[month][sale.almacen_id] += float(sale.total or 0)

    result = []
    for month in months:
        entry: dict = {"month": month}
        for sid in store_ids:
            label = names.get(sid) or f"Tienda {sid[:4]}"
            entry[label] = round(buckets[month][sid], 1)
        result.append(entry)
    return result


def sales_by_category(time_range: str | None = None, store_id: str | None = None, now: datetime | None = None) -> list[dict]:
    """
    Share of sales (rounded percent) per category over the window.

    Categories without products are left out; categories with products but
    no sales appear with 0.
    """
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()
    start = range_start(time_range, now)

    categories = (
        db.session.query(Category)
        .join(Product, Product.categoria_id == Category.id)
        .distinct()
        .order_by(Category.nombre.asc())
        .all()
    )
    if not categories:
        return []

    query = (
        db.session.query(Product.categoria_id, func.coalesce(func.sum(SaleDetail.subtotal), 0))
        .join(SaleDetail, SaleDetail.producto_id == Product.id)
        .join(Sale, SaleDetail.venta_id == Sale.id)
        .filter(Sale.created_at >= start)
    )
    if store_id and store_id != "all":
        query = query.filter(Sale.almacen_id == store_id)
    totals = {cid: float(total or 0) for cid, total in query.group_by(Product.categoria_id).all()}

    grand_total = sum(totals.values())
    return [
        {
            "name": category.nombre,
            "value": round(totals.get(category.id, 0) / grand_total * 100) if grand_total > 0 else 0,
        }
        for category in categories
    ]


def top_selling_products(
    time_range: str | None = None,
    store_id: str | None = None,
    limit: int = TOP_PRODUCTS_LIMIT,
    now: datetime | None = None,
) -> list[dict]:
    """Products ranked by units sold over the window."""
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()
    start = range_start(time_range, now)

    rows = (
        _details_between(start, store_id=store_id if store_id != "all" else None)
        .outerjoin(Product, SaleDetail.producto_id == Product.id)
        .with_entities(SaleDetail.producto_id, Product.nombre, func.sum(SaleDetail.cantidad))
        .group_by(SaleDetail.producto_id, Product.nombre)
        .all()
    )
    ranked = sorted(
        ({"name": name or UNKNOWN_PRODUCT, "value": float(qty or 0)} for _, name, qty in rows),
        key=lambda row: row["value"],
        reverse=True,
    )
    return ranked[:limit]


def non_selling_products(
    time_range: str | None = None,
    store_id: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Products whose units sold dropped against the previous window of the same length.

    Only products that sold in the previous window are considered; the worst
    drops come first.
    """
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()
    current_start = range_start(time_range, now)
    previous_start = _previous_start(time_range, current_start)
    scope = store_id if store_id != "all" else None

    def _units(start, end):
        rows = (
            _details_between(start, end, store_id=scope)
            .with_entities(SaleDetail.producto_id, func.sum(SaleDetail.cantidad))
            .group_by(SaleDetail.producto_id)
            .all()
        )
        return {pid: float(qty or 0) for pid, qty in rows}

    current = _units(current_start, None)
    previous = _units(previous_start, current_start)

    result = []
    for product in db.session.query(Product).filter(Product.id.in_(list(previous))).all():
        before = previous.get(product.id, 0)
        after = current.get(product.id, 0)
        if before <= 0:
            continue
        change = round((after - before) / before * 100, 1)
        if change >= 0:
            continue
        result.append({"name": product.nombre, "current": after, "previous": before, "change": change})

    result.sort(key=lambda row: row["change"])
    return result[:NON_SELLING_LIMIT]


# ============================================================================
# TREND SERIES
# ============================================================================

def _week_start(dt: datetime) -> datetime:
    return start_of_day(dt) - timedelta(days=dt.weekday())


def _week_key(dt: datetime) -> str:
    return _week_start(dt).strftime("%Y-%m-%d")


def _month_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m")


def _recent_weeks(now: datetime, count: int = TREND_PERIODS) -> list[datetime]:
    current = _week_start(now)
    return [current - timedelta(weeks=i) for i in range(count - 1, -1, -1)]


def _store_scope(store_id: str | None) -> str | None:
    return store_id if store_id and store_id != "all" else None


def sales_trend(time_range: str | None = None, store_id: str | None = None, now: datetime | None = None) -> list[dict]:
    """
    Revenue and gross profit per period, oldest first.

    "week" gives the last 12 weeks keyed by their Monday (``YYYY-MM-DD``);
    "month" and "year" give the last 12 months (``YYYY-MM``). Profit is the
    line subtotal minus units times the product's purchase price.
    """
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()

    if time_range == "week":
        weeks = _recent_weeks(now)
        keys = [week.strftime("%Y-%m-%d") for week in weeks]
        start = weeks[0]
        key_for = _week_key
    else:
        keys = [_month_key(shift_months(now, -i)) for i in range(TREND_PERIODS - 1, -1, -1)]
        start = start_of_day(shift_months(now, -(TREND_PERIODS - 1))).replace(day=1)
        key_for = _month_key

    buckets = {key: {"date": key, "revenue": 0.0, "profit": 0.0} for key in keys}
    rows = (
        _details_between(start, store_id=_store_scope(store_id))
        .filter(Sale.created_at <= now)
        .outerjoin(Product, SaleDetail.producto_id == Product.id)
        .with_entities(Sale.created_at, SaleDetail.cantidad, SaleDetail.subtotal, Product.precio_compra)
        .all()
    )
    for created_at, quantity, subtotal, cost in rows:
        bucket = buckets.get(key_for(created_at))
        if bucket is None:
            continue
        revenue = float(subtotal or 0)
        bucket["revenue"] += revenue
        bucket["profit"] += revenue - float(quantity or 0) * float(cost or 0)

    return [
        {"date": key, "revenue": round(buckets[key]["revenue"], 2), "profit": round(buckets[key]["profit"], 2)}
        for key in keys
    ]


def sales_hourly_distribution(
    time_range: str | None = None,
    store_id: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Transactions and amount sold per hour of day (0-23, UTC) over the window."""
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()
    start = range_start(time_range, now)

    hours = [{"hour": hour, "transactions": 0, "amount": 0.0} for hour in range(24)]
    query = _sales_between(start).filter(Sale.created_at <= now)
    scope = _store_scope(store_id)
    if scope:
        query = query.filter(Sale.almacen_id == scope)
    for sale in query.all():
        slot = hours[sale.created_at.hour]
        slot["transactions"] += 1
        slot["amount"] += float(sale.total or 0)

    for slot in hours:
        slot["amount"] = round(slot["amount"], 2)
    return hours


def item_sales_trend(
    time_range: str | None,
    store_id: str | None,
    product_ids: Iterable[str],
    now: datetime | None = None,
) -> list[dict]:
    """
    Units sold per day for the chosen products.

    Each entry is ``{"date": "YYYY-MM-DD", <product name>: units, ...}``;
    only days with sales of at least one chosen product appear.
    """
    product_ids = [pid for pid in (product_ids or []) if pid]
    if not product_ids:
        return []
    time_range = _validate_range(time_range, "week")
    now = now or utcnow()
    start = range_start(time_range, now)

    rows = (
        _details_between(start, store_id=_store_scope(store_id))
        .filter(Sale.created_at <= now, SaleDetail.producto_id.in_(product_ids))
        .with_entities(Sale.created_at, SaleDetail.producto_id, SaleDetail.cantidad)
        .all()
    )
    names = {
        product.id: product.nombre
        for product in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    by_day: dict[str, dict[str, float]] = {}
    for created_at, product_id, quantity in rows:
        day = by_day.setdefault(created_at.strftime("%Y-%m-%d"), {})
        day[product_id] = day.get(product_id, 0.0) + float(quantity or 0)

    result = []
    for date in sorted(by_day):
        entry: dict = {"date": date}
        for pid in product_ids:
            entry[names.get(pid) or f"Producto {pid[:4]}"] = by_day[date].get(pid, 0.0)
        result.append(entry)
    return result


def inventory_levels(store_id: str | None = None, now: datetime | None = None) -> list[dict]:
    """
    Stock touched per week over the last 12 weeks, with turnover.

    ``level`` sums the quantities of inventory rows last updated in the week;
    ``turnover`` is units sold that week divided by ``level`` (0 without stock).
    """
    now = now or utcnow()
    weeks = _recent_weeks(now)
    keys = [week.strftime("%Y-%m-%d") for week in weeks]
    levels = dict.fromkeys(keys, 0.0)
    sold = dict.fromkeys(keys, 0.0)
    scope = _store_scope(store_id)

    inventory = db.session.query(InventoryLevel).filter(InventoryLevel.updated_at >= weeks[0])
    if scope:
        inventory = inventory.filter(InventoryLevel.almacen_id == scope)
    for row in inventory.all():
        key = _week_key(row.updated_at)
        if key in levels:
            levels[key] += float(row.cantidad or 0)

    details = (
        _details_between(weeks[0], store_id=scope)
        .filter(Sale.created_at <= now)
        .with_entities(Sale.created_at, SaleDetail.cantidad)
        .all()
    )
    for created_at, quantity in details:
        key = _week_key(created_at)
        if key in sold:
            sold[key] += float(quantity or 0)

    return [
        {
            "date": key,
            "level": levels[key],
            "sold": sold[key],
            "turnover": round(sold[key] / levels[key], 2) if levels[key] > 0 else 0,
        }
        for key in keys
    ]


# ============================================================================
# PROFITABILITY
# ============================================================================

def _margin_percent(sale_price: float, cost_price: float) -> int:
    if cost_price > 0 and sale_price > cost_price:
        return round((sale_price - cost_price) / sale_price * 100)
    return 0


def product_profitability(limit: int = PROFITABILITY_LIMIT) -> list[dict]:
    """
    All-time units, revenue and list-price margin per product, highest revenue first.

    The margin is ``(sale - purchase) / sale`` as a rounded percent and is 0
    when the purchase price is unknown or not below the sale price.
    """
    totals = {
        pid: (float(units or 0), float(revenue or 0))
        for pid, units, revenue in (
            db.session.query(SaleDetail.producto_id, func.sum(SaleDetail.cantidad), func.sum(SaleDetail.subtotal))
            .group_by(SaleDetail.producto_id)
            .all()
        )
    }

    result = []
    for product in db.session.query(Product).all():
        units, revenue = totals.get(product.id, (0.0, 0.0))
        result.append({
            "name": product.nombre,
            "sales": units,
            "revenue": round(revenue, 2),
            "margin": _margin_percent(float(product.precio_venta or 0), float(product.precio_compra or 0)),
        })

    result.sort(key=lambda row: row["revenue"], reverse=True)
    return result[:limit]


def margin_by_category(
    time_range: str | None = None,
    store_id: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Sales, cost and realised margin per category over the window.

    Cost is units times the product's purchase price; products without a
    category are grouped under the default category name.
    """
    time_range = _validate_range(time_range, "month")
    now = now or utcnow()
    start = range_start(time_range, now)

    rows = (
        _details_between(start, store_id=_store_scope(store_id))
        .filter(Sale.created_at <= now)
        .outerjoin(Product, SaleDetail.producto_id == Product.id)
        .outerjoin(Category, Product.categoria_id == Category.id)
        .with_entities(Category.nombre, SaleDetail.cantidad, SaleDetail.subtotal, Product.precio_compra)
        .all()
    )

    groups: dict[str, dict] = {}
    for category_name, quantity, subtotal, cost in rows:
        name = category_name or DEFAULT_CATEGORY_NAME
        group = groups.setdefault(name, {"name": name, "sales": 0.0, "cost": 0.0})
        group["sales"] += float(subtotal or 0)
        group["cost"] += float(quantity or 0) * float(cost or 0)

    result = []
    for group in groups.values():
        sales = round(group["sales"], 2)
        cost = round(group["cost"], 2)
        margin = round((sales - cost) / sales * 100) if sales > 0 else 0
        result.append({"name": group["name"], "sales": sales, "cost": cost, "margin": margin})

    result.sort(key=lambda row: row["sales"], reverse=True)
    return result
