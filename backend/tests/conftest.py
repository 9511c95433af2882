"""
Pytest fixtures for almacen_pos backend tests.

Provides test database setup, a fake hosted auth service, users with
roles, and a test client.
"""

import httpx
import pytest

from almacen_pos import create_app
from almacen_pos.extensions import db, hosted_auth
from almacen_pos.models import Profile, UserRole, Store, Product, InventoryLevel, Category, Unit


class FakeAuthService:
    """In-memory stand-in for the hosted auth REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.deleted = []
        self.fail_admin = False

    def add_user(self, user_id, email, full_name=None, token=None):
        self.users[user_id] = {
            "id": user_id,
            "email": email,
            "user_metadata": {"full_name": full_name} if full_name else {},
        }
        if token:
            self.tokens[token] = user_id
        return self.users[user_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/auth/v1/user" and request.method == "GET":
            token = request.headers.get("Authorization", "").replace("Bearer ", "")
            user_id = self.tokens.get(token)
            if not user_id or user_id not in self.users:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json=self.users[user_id])

        if path.startswith("/auth/v1/admin/users"):
            if self.fail_admin:
                return httpx.Response(500, json={"msg": "admin API unavailable"})
            if request.method == "GET":
                return httpx.Response(200, json={"users": list(self.users.values())})
            if request.method == "DELETE":
                user_id = path.rsplit("/", 1)[-1]
                if user_id not in self.users:
                    return httpx.Response(404, json={"msg": "User not found"})
                del self.users[user_id]
                self.deleted.append(user_id)
                return httpx.Response(200, json={})

        return httpx.Response(404, json={"msg": "not found"})


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SUPABASE_URL': 'http://auth.test',
        'SUPABASE_ANON_KEY': 'anon-key',
        'SUPABASE_SERVICE_ROLE_KEY': 'service-key',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def auth_service(app):
    """Route hosted auth calls to an in-memory fake."""
    fake = FakeAuthService()
    hosted_auth.transport = httpx.MockTransport(fake.handler)
    yield fake
    hosted_auth.transport = None


@pytest.fixture(scope='function')
def store_a(db_session):
    store = Store(nombre="Sucursal Centro", direccion="Av. Principal 1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    store = Store(nombre="Sucursal Norte")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def make_user(db_session, auth_service):
    """
    Create an auth user, its profile and role rows; returns request headers.

    ``roles`` is a list of (role, store_id) pairs.
    """
    def _make(user_id, email, roles=(), full_name=None):
        token = f"token-{user_id}"
        auth_service.add_user(user_id, email, full_name=full_name, token=token)
        db_session.add(Profile(id=user_id, email=email, full_name=full_name))
        for role, store_id in roles:
            db_session.add(UserRole(user_id=user_id, role=role, almacen_id=store_id))
        db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture(scope='function')
def admin_headers(make_user):
    return make_user("admin-1", "admin@almacen.test", roles=[("admin", None)], full_name="Admin")


@pytest.fixture(scope='function')
def manager_headers(make_user):
    return make_user("manager-1", "manager@almacen.test", roles=[("manager", None)])


@pytest.fixture(scope='function')
def sales_headers(make_user, store_a):
    return make_user("sales-1", "ventas@almacen.test", roles=[("sales", store_a.id)])


@pytest.fixture(scope='function')
def viewer_headers(make_user):
    return make_user("viewer-1", "viewer@almacen.test", roles=[("viewer", None)])


@pytest.fixture(scope='function')
def catalog(db_session):
    """One category and two units."""
    category = Category(nombre="Abarrotes")
    kg = Unit(nombre="kg", abreviatura="kg")
    unit = Unit(nombre="u", abreviatura="u")
    db_session.add_all([category, kg, unit])
    db_session.commit()
    return {"category": category, "kg": kg, "unit": unit}


@pytest.fixture(scope='function')
def stocked_product(db_session, store_a, store_b, catalog):
    """Product with 10 units in store A and 3 in store B."""
    product = Product(
        nombre="Arroz",
        categoria_id=catalog["category"].id,
        unidad_id=catalog["kg"].id,
        precio_compra=1.5,
        precio_venta=2.5,
        stock_minimo=5,
        stock_maximo=100,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add_all([
        InventoryLevel(producto_id=product.id, almacen_id=store_a.id, cantidad=10),
        InventoryLevel(producto_id=product.id, almacen_id=store_b.id, cantidad=3),
    ])
    db_session.commit()
    return product
