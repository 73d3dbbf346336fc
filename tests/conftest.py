"""Pytest configuration for tests."""

import os

# Keep exporters, profiling and the default Postgres engine out of test runs
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("PROFILING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from database import get_db  # noqa: E402
from models import Base, Product  # noqa: E402
from routers import admin, cart, currency, products, auth as auth_router  # noqa: E402
from services.cart_service import CartService  # noqa: E402
from services.catalog_service import CatalogService  # noqa: E402
from services.currency_service import CurrencyService  # noqa: E402
from services.sequencing import MutationQueue  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = Session(bind=engine)
    yield session
    session.close()


@pytest.fixture
def add_product(db):
    """Insert a product row and return its id."""

    def _add(**overrides) -> str:
        data = {
            "id": str(uuid4()),
            "name": "Elegant Summer Dress",
            "description": "Beautiful floral pattern dress perfect for summer outings.",
            "price": Decimal("69.99"),
            "category": "clothing",
            "images": ["/placeholder.svg"],
            "sizes": ["S", "M", "L", "XL"],
            "colors": ["White", "Blue", "Pink"],
            "in_stock": True,
            "featured": False,
        }
        data.update(overrides)
        db.add(Product(**data))
        db.commit()
        return data["id"]

    return _add


@pytest.fixture
def catalog_service():
    return CatalogService()


@pytest.fixture
def cart_service(catalog_service):
    return CartService(
        redis_client=None,
        catalog_service=catalog_service,
        mutation_queue=MutationQueue(),
    )


@pytest.fixture
def currency_service():
    return CurrencyService()


@pytest.fixture
def app(db, currency_service):
    """App with every router, no middleware, and the test session injected."""
    app = FastAPI()
    app.include_router(auth_router.router)
    app.include_router(products.router)
    app.include_router(cart.router)
    app.include_router(currency.router)
    app.include_router(admin.router)

    app.state.redis_client = None
    app.state.currency_service = currency_service
    app.state.mutation_queue = MutationQueue()

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
