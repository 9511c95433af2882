"""
Dashboard and analytics reports.
"""

from datetime import datetime, timedelta

import pytest

from almacen_pos.models import InventoryLevel, Movement, Product, Sale, SaleDetail
from almacen_pos.services import reporting_service
from almacen_pos.services.reporting_service import ReportError

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def add_sale(db_session):
    def _add(store, when, lines, cliente=None):
        total = sum(qty * price for _, qty, price in lines)
        sale = Sale(almacen_id=store.id, metodo_pago="efectivo", cliente=cliente, estado="completada",
                    total=total, created_at=when)
        db_session.add(sale)
        db_session.flush()
        for product, qty, price in lines:
            db_session.add(SaleDetail(venta_id=sale.id, producto_id=product.id, cantidad=qty,
                                      precio_unitario=price, subtotal=qty * price, created_at=when))
        db_session.commit()
        return sale
    return _add


class TestDashboardStats:

    def test_today_against_yesterday(self, db_session, add_sale, stocked_product, store_a):
        add_sale(store_a, NOW - timedelta(hours=1), [(stocked_product, 2, 10)], cliente="Ana")
        add_sale(store_a, NOW - timedelta(hours=2), [(stocked_product, 1, 10)], cliente="Ana")
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)], cliente="Luis")
        add_sale(store_a, NOW - timedelta(days=30), [(stocked_product, 1, 5)])
        db_session.add(Movement(tipo="transferencia", producto_id=stocked_product.id, cantidad=1,
                                created_at=NOW - timedelta(hours=3)))
        db_session.commit()

        stats = reporting_service.dashboard_stats(now=NOW)

        assert stats["ventasHoy"] == {"total": 30, "porcentaje": 50}
        assert stats["nuevosClientes"] == {"total": 1, "porcentaje": 0}
        assert stats["productosVendidos"] == {"total": 3, "porcentaje": 50}
        # no transfers yesterday: divisor 1
        assert stats["transferencias"] == {"total": 1, "porcentaje": 0}
        assert stats["ventasTotales"] == {"total": 55}

    def test_empty(self, db_session):
        stats = reporting_service.dashboard_stats(now=NOW)
        assert stats["ventasHoy"] == {"total": 0, "porcentaje": -100}
        assert stats["ventasTotales"] == {"total": 0}
        assert set(stats) == set(reporting_service.empty_dashboard_stats())


class TestSalesByStore:

    def test_sorted_and_rounded(self, db_session, add_sale, stocked_product, store_a, store_b):
        add_sale(store_a, NOW - timedelta(days=2), [(stocked_product, 1, 10.04)])
        add_sale(store_b, NOW - timedelta(days=3), [(stocked_product, 2, 20)])
        add_sale(store_b, NOW - timedelta(days=20), [(stocked_product, 1, 99)])

        result = reporting_service.total_sales_by_store("week", [store_a.id, store_b.id], now=NOW)

        assert result == [
            {"store_id": store_b.id, "store_name": "Sucursal Norte", "total": 40.0},
            {"store_id": store_a.id, "store_name": "Sucursal Centro", "total": 10.0},
        ]

    def test_month_range_includes_older_sales(self, db_session, add_sale, stocked_product, store_b):
        add_sale(store_b, NOW - timedelta(days=20), [(stocked_product, 1, 99)])
        result = reporting_service.total_sales_by_store("month", [store_b.id], now=NOW)
        assert result[0]["total"] == 99.0

    def test_no_stores(self, db_session):
        assert reporting_service.total_sales_by_store("week", [], now=NOW) == []

    def test_monthly_series(self, db_session, add_sale, stocked_product, store_a, store_b):
        add_sale(store_a, datetime(2026, 3, 2), [(stocked_product, 1, 10)])
        add_sale(store_a, datetime(2026, 1, 20), [(stocked_product, 1, 5)])
        add_sale(store_b, datetime(2025, 11, 20), [(stocked_product, 1, 7)])

        result = reporting_service.store_monthly_sales("month", [store_a.id, store_b.id], now=NOW)

        assert [row["month"] for row in result] == ["2026-01", "2026-02", "2026-03"]
        assert result[0] == {"month": "2026-01", "Sucursal Centro": 5.0, "Sucursal Norte": 0.0}
        assert result[2]["Sucursal Centro"] == 10.0

    def test_monthly_year_range_has_twelve_months(self, db_session, store_a):
        result = reporting_service.store_monthly_sales("year", [store_a.id], now=NOW)
        assert len(result) == 12
        assert result[0]["month"] == "2025-04"
        assert result[-1]["month"] == "2026-03"


class TestProductReports:

    @pytest.fixture
    def second_product(self, db_session, catalog):
        product = Product(nombre="Lentejas", precio_venta=3, categoria_id=None)
        db_session.add(product)
        db_session.commit()
        return product

    def test_sales_by_category(self, db_session, add_sale, stocked_product, store_a):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)])
        assert reporting_service.sales_by_category("month", now=NOW) == [{"name": "Abarrotes", "value": 100}]

    def test_sales_by_category_without_sales(self, db_session, stocked_product):
        assert reporting_service.sales_by_category("month", now=NOW) == [{"name": "Abarrotes", "value": 0}]

    def test_top_selling(self, db_session, add_sale, stocked_product, second_product, store_a):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10), (second_product, 5, 3)])
        add_sale(store_a, NOW - timedelta(days=2), [(stocked_product, 1, 10)])

        result = reporting_service.top_selling_products("week", now=NOW)

        assert result == [{"name": "Lentejas", "value": 5.0}, {"name": "Arroz", "value": 3.0}]
        assert reporting_service.top_selling_products("week", limit=1, now=NOW) == result[:1]

    def test_non_selling(self, db_session, add_sale, stocked_product, second_product, store_a):
        # previous week: 10 and 2 units; current week: 4 and 3 units
        add_sale(store_a, NOW - timedelta(days=10), [(stocked_product, 10, 1), (second_product, 2, 1)])
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 4, 1), (second_product, 3, 1)])

        result = reporting_service.non_selling_products("week", now=NOW)

        assert result == [{"name": "Arroz", "current": 4.0, "previous": 10.0, "change": -60.0}]

    def test_item_sales_trend(self, db_session, add_sale, stocked_product, second_product, store_a):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10), (second_product, 5, 3)])
        add_sale(store_a, NOW - timedelta(days=2), [(stocked_product, 1, 10)])
        add_sale(store_a, NOW - timedelta(days=20), [(stocked_product, 9, 10)])

        result = reporting_service.item_sales_trend("week", None, [stocked_product.id, second_product.id], now=NOW)

        assert result == [
            {"date": "2026-03-13", "Arroz": 1.0, "Lentejas": 0.0},
            {"date": "2026-03-14", "Arroz": 2.0, "Lentejas": 5.0},
        ]

    def test_item_sales_trend_without_products(self, db_session):
        assert reporting_service.item_sales_trend("week", None, [], now=NOW) == []

    def test_product_profitability(self, db_session, add_sale, stocked_product, second_product, store_a):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10), (second_product, 5, 3)])
        add_sale(store_a, NOW - timedelta(days=40), [(stocked_product, 1, 10)])

        result = reporting_service.product_profitability()

        # Lentejas has no purchase price
        assert result == [
            {"name": "Arroz", "sales": 3.0, "revenue": 30.0, "margin": 40},
            {"name": "Lentejas", "sales": 5.0, "revenue": 15.0, "margin": 0},
        ]
        assert reporting_service.product_profitability(limit=1) == result[:1]

    def test_margin_by_category(self, db_session, add_sale, stocked_product, second_product, store_a):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10), (second_product, 5, 3)])
        add_sale(store_a, NOW - timedelta(days=2), [(stocked_product, 1, 10)])

        result = reporting_service.margin_by_category("month", now=NOW)

        assert result == [
            {"name": "Abarrotes", "sales": 30.0, "cost": 4.5, "margin": 85},
            {"name": "Sin categoría", "sales": 15.0, "cost": 0.0, "margin": 100},
        ]

    def test_margin_by_category_store_scope(self, db_session, add_sale, stocked_product, store_a, store_b):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)])
        assert reporting_service.margin_by_category("month", store_id=store_b.id, now=NOW) == []
        assert reporting_service.margin_by_category("month", store_id="all", now=NOW)[0]["sales"] == 20.0

    def test_invalid_range(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.top_selling_products("decade", now=NOW)


class TestTrendSeries:

    def test_weekly_sales_trend(self, db_session, add_sale, stocked_product, store_a):
        # NOW is a Sunday; its week starts on Monday 2026-03-09
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)])
        add_sale(store_a, NOW - timedelta(days=8), [(stocked_product, 1, 10)])

        result = reporting_service.sales_trend("week", now=NOW)

        assert len(result) == reporting_service.TREND_PERIODS
        assert result[-1] == {"date": "2026-03-09", "revenue": 20.0, "profit": 17.0}
        assert result[-2] == {"date": "2026-03-02", "revenue": 10.0, "profit": 8.5}
        assert result[0]["date"] == "2025-12-22"
        assert sum(row["revenue"] for row in result) == 30.0

    def test_monthly_sales_trend(self, db_session, add_sale, stocked_product, store_a, store_b):
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)])
        add_sale(store_b, NOW - timedelta(days=20), [(stocked_product, 1, 5)])
        add_sale(store_a, datetime(2025, 3, 20), [(stocked_product, 1, 99)])

        result = reporting_service.sales_trend("month", now=NOW)

        assert [row["date"] for row in result][0] == "2025-04"
        assert result[-1] == {"date": "2026-03", "revenue": 20.0, "profit": 17.0}
        assert result[-2] == {"date": "2026-02", "revenue": 5.0, "profit": 3.5}
        assert sum(row["revenue"] for row in result) == 25.0

        scoped = reporting_service.sales_trend("month", store_id=store_b.id, now=NOW)
        assert scoped[-1]["revenue"] == 0
        assert scoped[-2]["revenue"] == 5.0

    def test_hourly_distribution(self, db_session, add_sale, stocked_product, store_a, store_b):
        add_sale(store_a, NOW - timedelta(hours=1), [(stocked_product, 2, 10)])
        add_sale(store_a, NOW - timedelta(days=1, minutes=30), [(stocked_product, 1, 10)])
        add_sale(store_b, NOW - timedelta(hours=3), [(stocked_product, 1, 5)])

        result = reporting_service.sales_hourly_distribution("week", now=NOW)

        assert [slot["hour"] for slot in result] == list(range(24))
        assert result[11] == {"hour": 11, "transactions": 2, "amount": 30.0}
        assert result[9] == {"hour": 9, "transactions": 1, "amount": 5.0}
        assert sum(slot["transactions"] for slot in result) == 3

        scoped = reporting_service.sales_hourly_distribution("week", store_id=store_a.id, now=NOW)
        assert scoped[9]["transactions"] == 0

    def test_inventory_levels(self, db_session, add_sale, stocked_product, store_a, store_b):
        rows = {row.almacen_id: row for row in db_session.query(InventoryLevel).all()}
        rows[store_a.id].updated_at = NOW - timedelta(days=1)
        rows[store_b.id].updated_at = NOW - timedelta(days=8)
        db_session.commit()
        add_sale(store_a, NOW - timedelta(days=1), [(stocked_product, 2, 10)])

        result = reporting_service.inventory_levels(now=NOW)

        assert len(result) == reporting_service.TREND_PERIODS
        assert result[-1] == {"date": "2026-03-09", "level": 10.0, "sold": 2.0, "turnover": 0.2}
        assert result[-2] == {"date": "2026-03-02", "level": 3.0, "sold": 0.0, "turnover": 0}

        scoped = reporting_service.inventory_levels(store_id=store_b.id, now=NOW)
        assert scoped[-1] == {"date": "2026-03-09", "level": 0.0, "sold": 0.0, "turnover": 0}
        assert scoped[-2]["level"] == 3.0


class TestAnalyticsRoutes:

    def test_dashboard(self, client, viewer_headers):
        resp = client.get("/api/analytics/dashboard", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.get_json()["ventasTotales"] == {"total": 0}

    def test_sales_by_store_requires_manager(self, client, viewer_headers):
        resp = client.get("/api/analytics/sales-by-store", headers=viewer_headers)
        assert resp.status_code == 403

    def test_sales_by_store_ids(self, client, manager_headers, store_a, store_b):
        resp = client.get(
            f"/api/analytics/sales-by-store?time_range=week&store_ids={store_a.id},{store_b.id}",
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert {row["store_name"] for row in resp.get_json()} == {"Sucursal Centro", "Sucursal Norte"}

    def test_invalid_range_is_400(self, client, manager_headers):
        resp = client.get("/api/analytics/top-products?time_range=decade", headers=manager_headers)
        assert resp.status_code == 400

    def test_trend_routes_require_manager(self, client, viewer_headers):
        for path in ("sales-trend", "sales-by-hour", "inventory-levels", "product-profitability",
                     "margin-by-category", "item-sales-trend?product_ids=x"):
            resp = client.get(f"/api/analytics/{path}", headers=viewer_headers)
            assert resp.status_code == 403, path

    def test_sales_trend_route(self, client, manager_headers):
        resp = client.get("/api/analytics/sales-trend?time_range=week", headers=manager_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()) == reporting_service.TREND_PERIODS

    def test_sales_by_hour_route(self, client, manager_headers):
        resp = client.get("/api/analytics/sales-by-hour", headers=manager_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()) == 24

    def test_item_sales_trend_requires_products(self, client, manager_headers):
        resp = client.get("/api/analytics/item-sales-trend", headers=manager_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "product_ids is required"

    def test_item_sales_trend_route(self, client, manager_headers, stocked_product):
        resp = client.get(
            f"/api/analytics/item-sales-trend?product_ids={stocked_product.id}&time_range=week",
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_product_profitability_route(self, client, manager_headers, stocked_product):
        resp = client.get("/api/analytics/product-profitability?limit=5", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json() == [{"name": "Arroz", "sales": 0.0, "revenue": 0.0, "margin": 40}]

    def test_inventory_levels_route(self, client, manager_headers):
        resp = client.get("/api/analytics/inventory-levels?store_id=all", headers=manager_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()) == reporting_service.TREND_PERIODS

    def test_margin_by_category_invalid_range(self, client, manager_headers):
        resp = client.get("/api/analytics/margin-by-category?time_range=decade", headers=manager_headers)
        assert resp.status_code == 400
