"""
Sales checkout tests.
"""

import pytest

from almacen_pos.models import Movement, Sale, SaleDetail
from almacen_pos.services import inventory_service, sales_service
from almacen_pos.services.sales_service import SaleError, SaleLine, SaleRequest


class TestBuildSale:

    def test_price_falls_back_to_product(self, db_session, stocked_product, store_a):
        sale = sales_service.build_sale([{"id": stocked_product.id, "cantidad": 2}], store_a.id, "efectivo")
        assert sale.detalles[0].precio_unitario == 2.5
        assert sale.detalles[0].subtotal == 5.0
        assert sale.total == 5.0

    def test_explicit_price(self, db_session, stocked_product, store_a):
        sale = sales_service.build_sale(
            [{"id": stocked_product.id, "cantidad": 3, "precio": 1.1}], store_a.id, "tarjeta", customer_name="Ana"
        )
        assert sale.total == 3.3
        assert sale.cliente == "Ana"

    @pytest.mark.parametrize("quantity", [0, -2, None, "x"])
    def test_invalid_quantity(self, db_session, quantity):
        with pytest.raises(SaleError):
            sales_service.build_sale([{"id": "p", "cantidad": quantity, "precio": 1}], "s", "efectivo")

    @pytest.mark.parametrize("price,message", [("abc", "Precio inválido"), (-1, "negativo")])
    def test_invalid_price(self, db_session, price, message):
        with pytest.raises(SaleError, match=message):
            sales_service.build_sale([{"id": "p", "cantidad": 1, "precio": price}], "s", "efectivo")

    def test_unknown_product_without_price(self, db_session):
        with pytest.raises(SaleError, match="Producto no encontrado"):
            sales_service.build_sale([{"id": "missing", "cantidad": 1}], "s", "efectivo")


class TestCreateSale:

    def test_writes_sale_lines_stock_and_movements(self, db_session, stocked_product, store_a):
        sale = sales_service.build_sale([{"id": stocked_product.id, "cantidad": 4}], store_a.id, "efectivo")

        record = sales_service.create_sale(sale)

        assert record.estado == "completada"
        assert record.total == 10.0
        assert db_session.query(SaleDetail).filter_by(venta_id=record.id).count() == 1
        assert inventory_service.get_quantity(stocked_product.id, store_a.id) == 6
        movement = db_session.query(Movement).one()
        assert movement.tipo == "salida"
        assert movement.almacen_origen_id == store_a.id
        assert movement.notas == f"Venta #{record.id}"

    def test_insufficient_stock_rolls_back(self, db_session, stocked_product, store_b):
        sale = sales_service.build_sale([{"id": stocked_product.id, "cantidad": 4}], store_b.id, "efectivo")

        with pytest.raises(SaleError, match="Stock insuficiente") as excinfo:
            sales_service.create_sale(sale)

        assert excinfo.value.details["disponible"] == 3
        assert db_session.query(Sale).count() == 0
        assert inventory_service.get_quantity(stocked_product.id, store_b.id) == 3

    def test_missing_inventory_row(self, db_session, store_a):
        sale = SaleRequest(
            almacen_id=store_a.id,
            metodo_pago="efectivo",
            detalles=[SaleLine(producto_id="other", cantidad=1, precio_unitario=1, subtotal=1)],
        )
        with pytest.raises(SaleError, match="No existe registro de inventario"):
            sales_service.create_sale(sale)

    @pytest.mark.parametrize(
        "store,method,lines,message",
        [
            ("", "efectivo", [SaleLine("p", 1, 1, 1)], "sucursal"),
            ("s", "", [SaleLine("p", 1, 1, 1)], "método de pago"),
            ("s", "efectivo", [], "detalles"),
        ],
    )
    def test_validation(self, db_session, store, method, lines, message):
        with pytest.raises(SaleError, match=message):
            sales_service.create_sale(SaleRequest(almacen_id=store, metodo_pago=method, detalles=lines))


class TestSalesQueries:

    def test_fetch_sales_newest_first(self, db_session, stocked_product, store_a):
        for qty in (1, 2):
            sales_service.create_sale(
                sales_service.build_sale([{"id": stocked_product.id, "cantidad": qty}], store_a.id, "efectivo")
            )

        sales = sales_service.fetch_sales(limit=1)
        assert len(sales) == 1
        assert sales[0]["almacen_nombre"] == "Sucursal Centro"
        assert len(sales_service.fetch_sales_today()) == 2

    def test_details(self, db_session, stocked_product, store_a):
        record = sales_service.create_sale(
            sales_service.build_sale([{"id": stocked_product.id, "cantidad": 1}], store_a.id, "efectivo")
        )
        details = sales_service.fetch_sale_details(record.id)
        assert details[0]["producto_nombre"] == "Arroz"
        assert details[0]["unidad"] == "kg"


class TestSaleRoutes:

    def test_sales_user_sells_in_own_store(self, client, sales_headers, stocked_product, store_a):
        resp = client.post(
            "/api/sales",
            json={
                "almacen_id": store_a.id,
                "metodo_pago": "efectivo",
                "cliente": "Luis",
                "items": [{"id": stocked_product.id, "cantidad": 2}],
            },
            headers=sales_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["total"] == 5.0
        assert body["user_id"] == "sales-1"
        assert body["detalles"][0]["cantidad"] == 2
        assert body["notifications"][0]["title"] == "Venta registrada"
        assert body["notifications"][0]["description"] == "Total: $5.00"

    def test_insufficient_stock_returns_400(self, client, sales_headers, stocked_product, store_a):
        resp = client.post(
            "/api/sales",
            json={"almacen_id": store_a.id, "metodo_pago": "efectivo", "items": [{"id": stocked_product.id, "cantidad": 50}]},
            headers=sales_headers,
        )
        assert resp.status_code == 400
        body = resp.get_json()
        assert "Stock insuficiente" in body["error"]
        assert body["notifications"][0]["level"] == "error"

    def test_unreadable_price_returns_400(self, client, sales_headers, stocked_product, store_a):
        resp = client.post(
            "/api/sales",
            json={"almacen_id": store_a.id, "metodo_pago": "efectivo",
                  "items": [{"id": stocked_product.id, "cantidad": 1, "precio": "abc"}]},
            headers=sales_headers,
        )
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Precio inválido"
        assert body["notifications"][0]["level"] == "error"

    def test_get_sale(self, client, manager_headers, stocked_product, store_a):
        record = sales_service.create_sale(
            sales_service.build_sale([{"id": stocked_product.id, "cantidad": 1}], store_a.id, "efectivo")
        )
        resp = client.get(f"/api/sales/{record.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["detalles"]) == 1

        assert client.get("/api/sales/missing", headers=manager_headers).status_code == 404
