import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import (
    ConflictError,
    NotFoundError,
    UnexpectedError,
    UserAlreadyExists,
    ValidationError,
)
from app.core.security import generate_password, hash_password, verify_password
from app.models.organizations import OrganizationMember
from app.models.trainings import Trainee, Training
from app.models.users import User, UserSession
from app.schemas.users import SystemRole

logger = logging.getLogger(__name__)

settings = get_settings()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(db: Session) -> list[User]:
    return list(db.scalars(select(User).order_by(User.id)))


def register_user(
    db: Session,
    *,
    email: str,
    password: str,
    confirm_password: str,
    name: str | None = None,
    username: str | None = None,
    email_verified: bool = False,
    roles: list[str] | None = None,
) -> User:
    """Create an account; the caller owns the commit."""
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    email = normalize_email(email)
    if get_user_by_email(db, email):
        raise UserAlreadyExists()

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        username=username,
        email_verified=email_verified,
    )
    if roles:
        user.roles = list(roles)
    db.add(user)
    db.flush()
    logger.info("Registered user %s", user.id)
    return user


def is_expired(user: User, now: datetime | None = None) -> bool:
    if user.expires_at is None:
        return False
    expires_at = user.expires_at
    if expires_at.tzinfo is None or expires_at.tzinfo.utcoffset(expires_at) is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at <= (now or datetime.now(UTC))


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if not user or not user.password_hash or is_expired(user):
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_session(db: Session, user: User) -> UserSession:
    session = UserSession(
        user_id=user.id,
        expires_at=(
            datetime.now(UTC) + timedelta(minutes=settings.access_min)
        ).replace(microsecond=0),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def trainee_expiry(end_date_time: datetime) -> datetime:
    return end_date_time + timedelta(hours=settings.trainee_account_grace_hours)


def _new_trainee_email(db: Session) -> str:
    while True:
        email = f"trainee-{secrets.token_hex(4)}@{settings.trainee_email_domain}"
        if not get_user_by_email(db, email):
            return email


def generate_trainee_users(
    db: Session, count: int, expires_at: datetime | None = None
) -> list[tuple[str, str]]:
    """
    Provision ``count`` TRAINEE accounts with random logins and passwords.

    Returns ``(email, password)`` pairs; the plaintext passwords are handed to the
    training roster and are not recoverable from the account itself.
    """
    created: list[tuple[str, str]] = []
    for _ in range(count):
        email = _new_trainee_email(db)
        password = generate_password()
        db.add(
            User(
                email=email,
                password_hash=hash_password(password),
                roles=[SystemRole.trainee.value],
                email_verified=True,
                expires_at=expires_at,
            )
        )
        created.append((email, password))
    db.flush()
    logger.info("Generated %s trainee accounts", count)
    return created


def ensure_trainee_account(
    db: Session,
    username: str,
    password: str | None,
    expires_at: datetime | None,
) -> str:
    """Back a listed trainee with a TRAINEE account and return its password."""
    password = password or generate_password()
    email = normalize_email(username)
    user = get_user_by_email(db, email)
    if user and not user.has_role(SystemRole.trainee):
        raise ConflictError("Username belongs to an existing non-trainee account")
    # A trainee account backs exactly one roster entry.
    rostered = db.scalar(
        select(Trainee.id).where(func.lower(Trainee.username) == email).limit(1)
    )
    if rostered is not None:
        raise ConflictError("Trainee is already enrolled in another training")

    if user:
        user.password_hash = hash_password(password)
        user.expires_at = expires_at
    else:
        db.add(
            User(
                email=email,
                password_hash=hash_password(password),
                roles=[SystemRole.trainee.value],
                email_verified=True,
                expires_at=expires_at,
            )
        )
    db.flush()
    return password


def set_trainee_expiry(db: Session, usernames: list[str], expires_at: datetime) -> None:
    for username in usernames:
        user = get_user_by_email(db, username)
        if user and user.has_role(SystemRole.trainee):
            user.expires_at = expires_at
    db.flush()


def _delete_user_rows(db: Session, user: User) -> None:
    db.execute(
        delete(OrganizationMember).where(OrganizationMember.user_id == user.id)
    )
    for training in db.scalars(select(Training)):
        if user.id in (training.trainer_ids or []):
            training.trainer_ids = [
                trainer_id
                for trainer_id in training.trainer_ids
                if trainer_id != user.id
            ]
    db.delete(user)
    db.flush()


def delete_user(db: Session, user_id: int) -> None:
    """
    Delete a user and everything that points at it, as one unit.

    Any failure rolls back the whole cascade and surfaces as UnexpectedError.
    """
    user = get_user(db, user_id)
    try:
        with db.begin_nested():
            _delete_user_rows(db, user)
    except SQLAlchemyError as exc:
        logger.exception("Failed to delete user %s", user_id)
        raise UnexpectedError("Failed to delete user") from exc
    logger.info("Deleted user %s", user_id)


def delete_trainee_account(db: Session, username: str) -> None:
    user = get_user_by_email(db, username)
    if not user:
        raise NotFoundError(f"Trainee account {username} not found")
    _delete_user_rows(db, user)


def remove_expired_trainee_accounts(db: Session, now: datetime | None = None) -> int:
    """Delete expired TRAINEE accounts and drop them from training rosters."""
    now = now or datetime.now(UTC)
    candidates = db.scalars(
        select(User).where(User.expires_at.is_not(None), User.expires_at <= now)
    ).all()
    expired = [user for user in candidates if user.has_role(SystemRole.trainee)]
    if not expired:
        return 0

    for user in expired:
        entries = db.scalars(
            select(Trainee).where(func.lower(Trainee.username) == user.email)
        ).all()
        for entry in entries:
            training = entry.training
            training.trainees.remove(entry)
            training.participant_count = len(training.trainees)
        _delete_user_rows(db, user)

    db.commit()
    logger.info("Removed %s expired trainee accounts", len(expired))
    return len(expired)
