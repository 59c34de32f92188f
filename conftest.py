"""
Fixtures compartidas: base sqlite en memoria, usuarios, tienda y TestClient.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from fastapi.testclient import TestClient

from app.main import app
from app.database.database import Base, SessionLocal, engine, get_db
from app.modules.users.models import User
from app.modules.sales.models import Sale


class FakeClock:
    """Reloj controlable para los servicios"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store_id():
    return uuid4()


@pytest.fixture
def other_store_id():
    return uuid4()


def _make_user(db_session, full_name: str, email: str, role: str = "cashier", is_active: bool = True) -> User:
    user = User(full_name=full_name, email=email, role=role, is_active=is_active)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def cashier(db_session):
    return _make_user(db_session, "María Pérez", "maria@tienda.test")


@pytest.fixture
def other_cashier(db_session):
    return _make_user(db_session, "José Rodríguez", "jose@tienda.test")


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_sale(db_session):
    """Crea una venta con el pago y los totales indicados"""

    def _make_sale(store_id, cashier_id, sold_at, payment, total_bs="0", total_usd="0", with_totals=True):
        totals = {"total_bs": str(total_bs), "total_usd": str(total_usd)} if with_totals else None
        sale = Sale(
            store_id=store_id,
            sold_by_user_id=cashier_id,
            sold_at=sold_at,
            payment=payment,
            totals=totals
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return _make_sale


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
