from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.security import create_access, hash_password
from app.models.organizations import OrganizationMember, TrainingOrganization
from app.models.trainings import Trainee, Training
from app.models.users import User
from app.schemas.organizations import MemberList, MemberStatus

PASSWORD = "correct-horse-battery"


def create_test_user(
    db: Session,
    email: str = "user@example.com",
    roles: list[str] | None = None,
    *,
    expires_at: datetime | None = None,
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        roles=roles or ["USER"],
        email_verified=True,
        expires_at=expires_at,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login_as(client: TestClient, user: User) -> TestClient:
    token = create_access(str(user.id), list(user.roles))
    client.cookies.set("access_token", token, path="/")
    return client


def create_organization(
    db: Session,
    name: str = "Acme Training",
    administrators: list[User] | None = None,
    trainers: list[User] | None = None,
) -> TrainingOrganization:
    org = TrainingOrganization(name=name)
    db.add(org)
    db.flush()
    for member_list, users in (
        (MemberList.administrators, administrators or []),
        (MemberList.trainers, trainers or []),
    ):
        for user in users:
            org.members.append(
                OrganizationMember(
                    organization_id=org.id,
                    member_list=member_list,
                    email=user.email,
                    status=MemberStatus.active,
                    user_id=user.id,
                    activated_at=datetime.now(UTC),
                )
            )
    db.commit()
    db.refresh(org)
    return org


def create_training(
    db: Session,
    org: TrainingOrganization,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    trainers: list[User] | None = None,
    trainees: list[str] | None = None,
) -> Training:
    now = datetime.now(UTC)
    training = Training(
        name="Safety basics",
        timezone="UTC",
        start_date_time=start or now - timedelta(hours=1),
        end_date_time=end or now + timedelta(hours=1),
        training_organization_id=org.id,
        trainer_ids=[user.id for user in trainers or []],
    )
    db.add(training)
    db.flush()
    for position, username in enumerate(trainees or []):
        training.trainees.append(
            Trainee(
                training_id=training.id,
                position=position,
                username=username,
                password="generated-pass",
            )
        )
    training.participant_count = len(training.trainees)
    db.commit()
    db.refresh(training)
    return training
