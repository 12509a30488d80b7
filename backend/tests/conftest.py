"""
Pytest fixtures for Tillbook backend tests.

Provides an in-memory database, test client, stores, users per role and
helpers to seed the records a trading day is reconciled from.
"""

from datetime import date, datetime

import pytest
from tillbook import create_app
from tillbook.extensions import db
from tillbook.models import Store, User, SaleTransaction, CreditTransaction, SupplierPayment
from tillbook.services.auth_service import hash_password


PASSWORD = "Password123!"
BUSINESS_DATE = date(2024, 1, 15)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Main Store", code="MAIN")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Branch Store", code="BRANCH")
    db_session.add(store)
    db_session.commit()
    return store


def make_user(db_session, username: str, role: str, store_id: int | None) -> User:
    user = User(
        username=username,
        email=f"{username}@tillbook.test",
        password_hash=hash_password(PASSWORD),
        role=role,
        store_id=store_id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Org-level admin (not bound to a store)."""
    return make_user(db_session, "admin", "admin", None)


@pytest.fixture(scope='function')
def manager_user(db_session, store):
    return make_user(db_session, "manager", "manager", store.id)


@pytest.fixture(scope='function')
def cashier_user(db_session, store):
    return make_user(db_session, "cashier", "cashier", store.id)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))


def add_sale(db_session, store_id: int, total_cents: int, method: str, *, status: str = "completed",
             on: date = BUSINESS_DATE, number: str | None = None) -> SaleTransaction:
    count = db_session.query(SaleTransaction).count()
    sale = SaleTransaction(
        transaction_number=number or f"TXN-{store_id}-{count + 1:05d}",
        store_id=store_id,
        total_cents=total_cents,
        subtotal_cents=total_cents,
        payment_method=method,
        status=status,
        created_at=datetime(on.year, on.month, on.day, 10, 30),
    )
    db_session.add(sale)
    db_session.commit()
    return sale


def add_credit(db_session, store_id: int, kind: str, method: str, amount_cents: int,
               on: date = BUSINESS_DATE) -> CreditTransaction:
    credit = CreditTransaction(
        store_id=store_id,
        customer_ref="CUST-1",
        type=kind,
        payment_method=method,
        amount_cents=amount_cents,
        created_at=datetime(on.year, on.month, on.day, 12, 0),
    )
    db_session.add(credit)
    db_session.commit()
    return credit


def add_supplier_payment(db_session, store_id: int, amount_cents: int, method: str = "cash",
                         on: date = BUSINESS_DATE) -> SupplierPayment:
    payment = SupplierPayment(
        store_id=store_id,
        invoice_ref="INV-1",
        amount_cents=amount_cents,
        payment_method=method,
        payment_date=datetime(on.year, on.month, on.day, 15, 0),
    )
    db_session.add(payment)
    db_session.commit()
    return payment
