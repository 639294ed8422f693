import os
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.deps import get_notifier
from app.core.audit import DbAuditSink
from app.db.base import Base
from app.db.session import get_db
from app.services.context import OperationContext

from tests.helpers import RecordingNotifier, create_site, create_user

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

if TEST_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: let SQLAlchemy own BEGIN so SAVEPOINT works
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

else:
    engine = create_engine(TEST_DATABASE_URL, pool_pre_ping=True)

TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="session", autouse=True)
def create_test_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    """
    Uses:
      - one outer transaction per test
      - a SAVEPOINT for every session-level transaction inside it

    Helpers and application code can call session.commit() freely; the outer
    rollback still discards everything at the end of the test.
    """
    connection = engine.connect()
    outer_tx = connection.begin()

    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    try:
        yield session
    finally:
        session.close()
        outer_tx.rollback()
        connection.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture(autouse=True)
def override_dependencies(db_session, notifier):
    def _get_db_override():
        # mirrors get_db; each commit only releases the per-test SAVEPOINT
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def people(db_session):
    """The usual cast of one placement: student, site supervisor, faculty liaison, admin."""
    return SimpleNamespace(
        student=create_user(db_session, "student@local.test", "Sam Student", role="STUDENT"),
        supervisor=create_user(db_session, "supervisor@local.test", "Sue Supervisor", role="SUPERVISOR"),
        faculty=create_user(db_session, "faculty@local.test", "Fay Faculty", role="FACULTY"),
        admin=create_user(db_session, "admin@local.test", "Ada Admin", role="ADMIN"),
        site=create_site(db_session, "Riverside Clinic"),
    )


@pytest.fixture()
def make_ctx(db_session, notifier):
    """Service-level context for calling the domain services directly."""

    def _make(actor, notifier_override=None):
        return OperationContext(
            db=db_session,
            actor=actor,
            audit=DbAuditSink(db_session),
            notifier=notifier_override or notifier,
        )

    return _make
