"""
Shared fixtures: a fresh in-memory SQLite database per test, the FastAPI app
wired to it, two units, an admin and a unit-scoped operator.
"""

import os

# Settings refuse to load without a database; point the app at SQLite before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mfg_inventory.core.database import Base, enable_sqlite_foreign_keys
from mfg_inventory.core.dependencies import get_db
from mfg_inventory.core.security import create_access_token, get_password_hash
from mfg_inventory.main import app
from mfg_inventory.models import Unit, User, UserRole
from mfg_inventory.schemas.auth import Principal

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    """Session for arranging data and calling services directly."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def unit(db):
    row = Unit(name="Plant One", code="U1", location="Line A")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def other_unit(db):
    row = Unit(name="Plant Two", code="U2", location="Line B")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def admin(db):
    user = User(
        email="admin@example.com",
        password_hash=PASSWORD_HASH,
        name="Admin",
        role=UserRole.admin,
        permissions={"create": True, "read": True, "update": True, "delete": True},
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def operator(db, unit):
    """Unit-scoped user of `unit` allowed to create, update and delete."""
    user = User(
        email="operator@example.com",
        password_hash=PASSWORD_HASH,
        name="Operator",
        role=UserRole.user,
        unit_id=unit.id,
        permissions={"create": True, "read": True, "update": True, "delete": True},
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def viewer(db, unit):
    """Unit-scoped user with the default read-only permissions."""
    user = User(
        email="viewer@example.com",
        password_hash=PASSWORD_HASH,
        name="Viewer",
        role=UserRole.user,
        unit_id=unit.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def operator_headers(operator):
    return auth_headers(operator)


@pytest.fixture
def viewer_headers(viewer):
    return auth_headers(viewer)


@pytest.fixture
def admin_principal(admin):
    return Principal.from_user(admin)


@pytest.fixture
def operator_principal(operator):
    return Principal.from_user(operator)


def orphan_tier(db, tier):
    """
    Delete the cell template under `tier` with foreign keys switched off, the
    way a partially restored dump leaves a tier pointing at nothing.
    """
    cell_id = tier.cell_id
    # PRAGMA foreign_keys is ignored inside an open transaction
    db.commit()
    db.execute(text("PRAGMA foreign_keys=OFF"))
    db.execute(text("DELETE FROM cell_templates WHERE id = :id"), {"id": cell_id})
    db.commit()
    db.execute(text("PRAGMA foreign_keys=ON"))
    db.commit()
    db.expire_all()
