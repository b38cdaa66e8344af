import os
from collections.abc import Generator

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-jwt-signing-only")
os.environ.setdefault("DOMAIN_CLIENT", "http://frontend.example.com")
os.environ.setdefault("TRAINEE_CLEANUP_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool, create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.core.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.organizations import TrainingOrganization  # noqa: E402
from app.models.users import User  # noqa: E402
from app.services import email_service  # noqa: E402
from app.tests.factories import (  # noqa: E402
    create_organization,
    create_test_user,
    login_as,
)


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest inside the test transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    connection = engine.connect()
    trans = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        future=True,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def client(db_session) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch) -> list[dict]:
    """Capture outgoing mail instead of talking to SMTP."""
    sent: list[dict] = []

    def _admin(to_email, raw_token, *, path="/admin-invite"):
        sent.append({"kind": "admin", "to": to_email, "token": raw_token, "path": path})

    def _org(to_email, raw_token, org_name, *, as_trainer=False):
        sent.append(
            {
                "kind": "trainer" if as_trainer else "org_admin",
                "to": to_email,
                "token": raw_token,
                "org": org_name,
            }
        )

    def _granted(to_email, role_label, scope=None):
        sent.append({"kind": "granted", "to": to_email, "role": role_label})

    monkeypatch.setattr(email_service, "send_admin_invitation", _admin)
    monkeypatch.setattr(email_service, "send_org_invitation", _org)
    monkeypatch.setattr(email_service, "send_role_granted", _granted)
    return sent


@pytest.fixture
def admin_user(db_session) -> User:
    return create_test_user(db_session, "admin@example.com", ["ADMIN"])


@pytest.fixture
def admin_client(client, admin_user) -> tuple[TestClient, User]:
    return login_as(client, admin_user), admin_user


@pytest.fixture
def org_admin_user(db_session) -> User:
    return create_test_user(db_session, "orgadmin@example.com", ["ORGADMIN"])


@pytest.fixture
def organization(db_session, org_admin_user) -> TrainingOrganization:
    return create_organization(db_session, administrators=[org_admin_user])


@pytest.fixture
def org_admin_client(client, org_admin_user, organization) -> tuple[TestClient, User]:
    return login_as(client, org_admin_user), org_admin_user
