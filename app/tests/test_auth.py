from datetime import UTC, datetime, timedelta

from app.models.users import UserSession
from app.tests.factories import (
    PASSWORD,
    create_organization,
    create_test_user,
    create_training,
    login_as,
)


def test_login_sets_cookie_and_creates_session(client, db_session):
    user = create_test_user(db_session, "someone@example.com")

    response = client.post(
        "/login", json={"email": "Someone@Example.com", "password": PASSWORD}
    )

    assert response.status_code == 200
    assert "access_token" in response.cookies
    sessions = db_session.query(UserSession).filter_by(user_id=user.id).all()
    assert len(sessions) == 1


def test_login_rejects_bad_password(client, db_session):
    create_test_user(db_session, "someone@example.com")

    response = client.post(
        "/login", json={"email": "someone@example.com", "password": "wrong-password"}
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials"}


def test_login_rejects_expired_trainee(client, db_session):
    create_test_user(
        db_session,
        "trainee-old@trainee.local",
        ["TRAINEE"],
        expires_at=datetime.now(UTC) - timedelta(hours=1),
    )

    response = client.post(
        "/login", json={"email": "trainee-old@trainee.local", "password": PASSWORD}
    )

    assert response.status_code == 401


def test_me_requires_authentication(client):
    response = client.get("/me")

    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


def test_me_returns_current_user(client, db_session):
    user = create_test_user(db_session, "someone@example.com", ["TRAINER"])
    login_as(client, user)

    response = client.get("/me")

    assert response.status_code == 200
    assert response.json()["roles"] == ["TRAINER"]


def test_bearer_header_is_accepted(client, db_session):
    from app.core.security import create_access

    user = create_test_user(db_session, "someone@example.com")
    token = create_access(str(user.id), list(user.roles))

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["email"] == "someone@example.com"


def test_session_endpoint_returns_login_session(client, db_session):
    org_admin = create_test_user(db_session, "boss@example.com", ["ORGADMIN"])
    client.post("/login", json={"email": "boss@example.com", "password": PASSWORD})

    response = client.get("/session")

    assert response.status_code == 200
    assert response.json()["user_id"] == org_admin.id


def test_session_endpoint_blocks_trainer_without_ongoing_training(client, db_session):
    trainer = create_test_user(db_session, "coach@example.com", ["TRAINER"])
    org = create_organization(db_session)
    now = datetime.now(UTC)
    create_training(
        db_session,
        org,
        start=now + timedelta(days=1),
        end=now + timedelta(days=2),
        trainers=[trainer],
    )
    client.post("/login", json={"email": "coach@example.com", "password": PASSWORD})

    response = client.get("/session")

    assert response.status_code == 403
    assert response.json() == {"detail": "no_ongoing_training"}


def test_validation_errors_are_reported_as_bad_request(client):
    response = client.post("/login", json={"email": "someone@example.com"})

    assert response.status_code == 400
    assert "password" in response.json()["detail"]


def test_health_reports_status(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
