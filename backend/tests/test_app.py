"""
Application plumbing: health, CORS, notifications, data hooks and CLI.
"""

import logging

from sqlalchemy.exc import OperationalError

from almacen_pos import notifications
from almacen_pos.cli import list_stores, create_store_cli, assign_role, repair_user
from almacen_pos.hooks import Query, use_stores
from almacen_pos.models import Store, UserRole


class TestHealth:

    def test_healthy(self, client, db_session, store_a):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["stores"] == 1


class TestCors:

    def test_allowed_origin_echoed(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_unknown_origin_ignored(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestNotifications:

    def test_drain_empties_queue(self, db_session):
        notifications.success("Listo")
        notifications.info("Nota", "detalle")
        assert [n["level"] for n in notifications.drain()] == ["success", "info"]
        assert notifications.pending() == []

    def test_error_keeps_description(self, db_session):
        entry = notifications.error("Falló", ValueError("sin conexión"))
        assert entry == {"level": "error", "title": "Falló", "description": "sin conexión"}
        notifications.drain()


class TestHooks:

    def test_query_success(self, db_session, store_a):
        query = use_stores()
        assert query.ok
        assert query.loading is False
        assert query.data == [{"id": store_a.id, "nombre": "Sucursal Centro"}]

    def test_query_failure_keeps_last_data(self, db_session, caplog):
        calls = []

        def fetcher():
            calls.append(1)
            if len(calls) > 1:
                raise OperationalError("SELECT 1", {}, Exception("db down"))
            return ["ok"]

        query = Query(fetcher, error_title="Error al cargar", initial=[])
        assert query.data == ["ok"]

        with caplog.at_level(logging.WARNING):
            query.refetch()

        assert query.data == ["ok"]
        assert not query.ok
        assert query.as_dict()["error"] is not None
        assert notifications.drain()[-1]["title"] == "Error al cargar"
        logged = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert len(logged) == 1
        assert "Error al cargar" in logged[0].getMessage()

    def test_refetch_sees_new_rows(self, db_session, store_a):
        query = use_stores()
        db_session.add(Store(nombre="Almacén Sur"))
        db_session.commit()
        assert len(query.refetch().data) == 2


class TestCli:

    def test_create_and_list_stores(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(create_store_cli, ["Bodega Central", "--address", "Calle 5"])
        assert result.exit_code == 0
        assert "Store created: Bodega Central" in result.output

        result = runner.invoke(list_stores)
        assert "Bodega Central" in result.output

    def test_assign_role(self, app, db_session, viewer_headers, store_a):
        runner = app.test_cli_runner()

        result = runner.invoke(assign_role, ["viewer-1", "sales", "--store", store_a.id])

        assert result.exit_code == 0
        rows = db_session.query(UserRole).filter_by(user_id="viewer-1").all()
        assert [(r.role, r.almacen_id) for r in rows] == [("sales", store_a.id)]

    def test_assign_sales_without_store_fails(self, app, db_session, viewer_headers):
        result = app.test_cli_runner().invoke(assign_role, ["viewer-1", "sales"])
        assert result.exit_code != 0

    def test_repair(self, app, db_session):
        result = app.test_cli_runner().invoke(repair_user, ["cli-1", "--email", "cli@almacen.test"])
        assert result.exit_code == 0
        assert "Usuario reparado exitosamente" in result.output
