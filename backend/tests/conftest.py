"""
Pytest fixtures for field operations backend tests.

Provides an in-memory app, per-test table wipe, model factories and
auth headers.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from fieldops import create_app
from fieldops.extensions import db
from fieldops.models import Product, RouteSchedule, Store, User
from fieldops.models.auth import ROLE_ADMIN, ROLE_MERCHANDISER, ROLE_SALES_SUPERVISOR
from fieldops.services import session_service
from fieldops.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': '+02:00',
        'VISIT_WINDOW_DAYS': 7,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is slow by design; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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


@pytest.fixture
def make_user(db_session, password_hash):
    counter = {"n": 0}

    def _make(role=ROLE_MERCHANDISER, manager=None, username=None, full_name=None):
        counter["n"] += 1
        username = username or f"{role}_{counter['n']}"
        user = User(
            username=username,
            password_hash=password_hash,
            full_name=full_name or username.replace("_", " ").title(),
            role=role,
            manager_id=manager.id if manager else None,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_store(db_session):
    def _make(name, code=None):
        store = Store(name=name, code=code)
        db_session.add(store)
        db_session.commit()
        return store

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(name, unit="pcs"):
        product = Product(name=name, unit=unit)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_schedule(db_session):
    def _make(user, store, day_of_week, created_by, effective_from=None, effective_until=None):
        schedule = RouteSchedule(
            user_id=user.id,
            store_id=store.id,
            day_of_week=day_of_week,
            created_by=created_by.id,
            effective_from=effective_from,
            effective_until=effective_until,
        )
        db_session.add(schedule)
        db_session.commit()
        return schedule

    return _make


@pytest.fixture
def lose_insert_race(db_session, monkeypatch):
    """
    Make the next flush that inserts rows lose a unique-constraint race.

    Arm it with a `winner` callable: in place of that flush the pending rows
    are discarded, `winner` adds its competing rows and they are committed,
    then the flush fails with IntegrityError as the database would report it.
    Later flushes run normally.
    """
    session_cls = type(db_session())
    real_flush = session_cls.flush
    state = {"winner": None}

    def _flush(self, *args, **kwargs):
        winner = state["winner"]
        if winner is not None and self.new:
            state["winner"] = None
            self.rollback()
            winner()
            self.commit()
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        return real_flush(self, *args, **kwargs)

    monkeypatch.setattr(session_cls, "flush", _flush)

    def _arm(winner):
        state["winner"] = winner

    return _arm


@pytest.fixture
def admin(make_user):
    return make_user(ROLE_ADMIN, username="admin", full_name="Admin")


@pytest.fixture
def supervisor(make_user):
    return make_user(ROLE_SALES_SUPERVISOR, username="supervisor", full_name="Sara Supervisor")


@pytest.fixture
def merchandiser(make_user, supervisor):
    return make_user(ROLE_MERCHANDISER, manager=supervisor, username="merch", full_name="Mona Merch")


@pytest.fixture
def headers_for(db_session):
    """Authorization headers for a user, without going through bcrypt login."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return auth_headers(token)

    return _headers


def get_auth_token(client, username: str, password: str) -> str:
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
