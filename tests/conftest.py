"""
Pytest configuration and shared fixtures.
"""
import os
import tempfile
from datetime import date

# Settings are read at import time; pin them before the app is imported
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="fieldops-test-")
os.environ.pop("AZURE_BLOB_CONNECTION", None)
os.environ.pop("MAPBOX_GEOCODING_TOKEN", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldops.db import Base, get_db
from fieldops.main import app
from fieldops.auth.security import create_access_token, get_password_hash
from fieldops.models.models import (
    Role,
    User,
    Customer,
    Job,
    Product,
    ProductItem,
    Vehicle,
    Consumable,
    StorageLocation,
)
from fieldops.storage.factory import get_storage
from fieldops.storage.local_provider import LocalStorageProvider


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    """One session shared by the test body and every request it makes."""
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    yield session
    session.close()


@pytest.fixture
def storage():
    return LocalStorageProvider()


@pytest.fixture
def client(db, storage):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username, roles=None, permissions=None, is_driver=False, customer_id=None, first_name=None):
    user = User(
        username=username,
        email=f"{username}@example.com",
        first_name=first_name,
        password_hash=get_password_hash("secret-password"),
        is_driver=is_driver,
        customer_id=customer_id,
        permissions_override=permissions,
    )
    for name in roles or []:
        role = db.query(Role).filter(Role.name == name).first()
        if role is None:
            role = Role(name=name, permissions={})
            db.add(role)
        user.roles.append(role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id), roles=[r.name for r in user.roles])}"}


@pytest.fixture
def admin(db):
    return make_user(db, "admin", roles=["admin"])


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def customer(db):
    row = Customer(name="Acme Events", email="ops@acme.test", phone="(555) 010-2000", billing_city="Springfield")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def driver(db):
    return make_user(db, "driver1", is_driver=True, first_name="Alex")


@pytest.fixture
def vehicle(db):
    row = Vehicle(license_plate="TRK-100", vehicle_type="pump_truck", status="active")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def product(db):
    row = Product(name="Standard Unit", stock_total=10)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_job(db, customer, scheduled_date=None, job_type="delivery", job_number=None, **kwargs):
    job = Job(
        job_number=job_number or f"DEL-{db.query(Job).count() + 1:03d}",
        customer_id=customer.id,
        job_type=job_type,
        status=kwargs.pop("status", "unassigned"),
        scheduled_date=scheduled_date or date(2026, 3, 10),
        **kwargs,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def make_units(db, product, codes, status="available"):
    items = []
    for code in codes:
        item = ProductItem(product_id=product.id, item_code=code, status=status)
        db.add(item)
        items.append(item)
    db.commit()
    for item in items:
        db.refresh(item)
    return items


def make_consumable(db, name="Toilet Paper", on_hand=50, unit_price=1.5, **kwargs):
    row = Consumable(name=name, on_hand_qty=on_hand, unit_price=unit_price, **kwargs)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_location(db, name="Main Yard", **kwargs):
    row = StorageLocation(name=name, **kwargs)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
