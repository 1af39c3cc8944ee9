"""Pytest configuration: in-memory SQLite, fake Redis, tmp upload dir."""

import os
import tempfile

# Settings are read at import time, so point them somewhere harmless first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = os.path.join(tempfile.gettempdir(), "catalog-test-uploads")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from models.cart import CartItem
from models.product import Product
from services.cart import CartService
from services.products import ProductService
from utils.cache import CacheStore, get_cache_store
from utils.storage import LocalBlobStore, get_blob_store

from fakes import FakeRedis, FixedClock, utc


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(utc(2025, 6, 15, 12, 0, 0))


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(now=lambda: clock().timestamp())


@pytest.fixture
def cache(fake_redis):
    return CacheStore(fake_redis)


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", "/uploads")


@pytest.fixture
def product_service(db, cache, blobs, clock):
    return ProductService(db, cache, blobs, clock=clock)


@pytest.fixture
def cart_service(db, cache, clock):
    return CartService(db, cache, clock=clock)


@pytest.fixture
def make_product(db):
    """Insert a product row directly, bypassing the service."""

    def _make(**overrides):
        data = {
            "name": "Test Product",
            "description": "Test Description",
            "price": Decimal("99.99"),
            "stock_quantity": 10,
        }
        data.update(overrides)
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def client(db, cache, blobs):
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_store] = lambda: cache
    app.dependency_overrides[get_blob_store] = lambda: blobs
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def cart_lines(db):
    def _lines():
        return db.query(CartItem).all()
    return _lines
