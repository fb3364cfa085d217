"""
Pytest fixtures for Stockline backend tests.

Provides test database setup, catalog fixtures (warehouse, client, users,
items), and a test client with identity headers.
"""

import pytest
from stockline import create_app
from stockline.extensions import db
from stockline.models import USER_ROLE_ADMIN, USER_ROLE_OPERATOR
from stockline.services import catalog_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF': 0.0,
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
def warehouse(db_session):
    return catalog_service.create_warehouse(code="WH-T1", name="Test Warehouse", capacity=1000)


@pytest.fixture(scope='function')
def customer(db_session):
    return catalog_service.create_client(code="CL-T1", name="Test Client", email="client@example.com")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return catalog_service.create_user(name="Admin", email="admin@example.com", role=USER_ROLE_ADMIN)


@pytest.fixture(scope='function')
def operator_user(db_session):
    return catalog_service.create_user(name="Operator", email="operator@example.com", role=USER_ROLE_OPERATOR)


@pytest.fixture(scope='function')
def make_item(db_session, warehouse, admin_user):
    """Factory: make_item("SKU", qty) registers an item with an opening balance."""
    def _make(sku: str, quantity: int = 0, name: str | None = None):
        return catalog_service.create_item(
            sku=sku,
            name=name or f"Item {sku}",
            warehouse_id=warehouse.id,
            opening_quantity=quantity,
            user_id=admin_user.id,
        )
    return _make


def user_headers(user) -> dict:
    """Helper to create identity headers for a user."""
    return {'X-User-Id': str(user.id)}
