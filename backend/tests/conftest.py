"""
Pytest fixtures for shoprelay backend tests.

Provides the app on an in-memory database, a fresh sync document per test,
and bearer-token helpers for calling the sync API as a device or an owner.
"""

import pytest

from shoprelay import create_app
from shoprelay.extensions import db
from shoprelay.services import store_service, token_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_TIMEZONE': 'UTC',
        'SYNC_RETRY_ATTEMPTS': 2,
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
def seed(db_session):
    """Write collections into the persisted document: seed(products=[...], shops=[...])."""
    def _seed(**collections):
        store = store_service.load_store()
        for name, rows in collections.items():
            store.document[name] = [dict(r) for r in rows]
        store_service.save_store(store)
    return _seed


@pytest.fixture(scope='function')
def read_store(db_session):
    """Reload the persisted document, discarding anything cached in the test session."""
    def _read():
        db_session.rollback()
        db_session.expire_all()
        return store_service.load_store()
    return _read


@pytest.fixture(scope='function')
def auth_headers(app):
    """Build Authorization headers for a shop id and role."""
    def _headers(shop_id='shop-a', role=token_service.ROLE_DEVICE, device_id='DEV-1'):
        token = token_service.issue_token(shop_id, role, device_id)
        return {'Authorization': f'Bearer {token}'}
    return _headers
