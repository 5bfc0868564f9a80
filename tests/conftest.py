"""
Общие фикстуры тестов.

Переменные окружения выставляются до импорта приложения: in-memory SQLite
(одно соединение на весь процесс), временный каталог загрузок, без SMTP
и без ключа Stripe.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="babel-edit-tests-")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["STORAGE_TYPE"] = "local"
os.environ["STORAGE_PATH"] = os.path.join(_TMP_DIR, "uploads")
os.environ["BACKUP_DIR"] = os.path.join(_TMP_DIR, "backups")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["IMAGE_PROXY_ALLOWED_HOSTS"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from factories import make_product, make_user  # noqa: E402
from storefront.api.v1.endpoints import categories as categories_endpoint  # noqa: E402
from storefront.db.database import SessionLocal, engine  # noqa: E402
from storefront.db.models import Base, Role  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.services.payment_service import StubGateway, get_payment_gateway  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    categories_endpoint.invalidate_cache()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role=Role.ADMIN, first_name="Grace")


@pytest.fixture
def super_admin(db):
    return make_user(
        db, email="owner@example.com", role=Role.SUPER_ADMIN, first_name="Owner", is_primary=True
    )


@pytest.fixture
def product(db):
    return make_product(db, sizes=["S", "M"], colors=["Black"], tags=["silk"])
