import logging
from datetime import UTC, datetime, timedelta

from email_validator import EmailNotValidError, validate_email
from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import (
    InvalidEmail,
    InvalidOrExpiredToken,
    InvitationAlreadyPending,
    UserAlreadyExists,
)
from app.core.security import issue_token, verify_token
from app.models.invitations import AdminInvitation
from app.models.users import User
from app.schemas.users import RegistrationIn, SystemRole
from app.services import email_service, user_service

logger = logging.getLogger(__name__)

settings = get_settings()


def normalize_valid_email(email: str) -> str:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidEmail() from exc
    return email.strip().lower()


def create_admin_invitation(
    db: Session,
    email: str,
    invited_by: str | None = None,
) -> tuple[AdminInvitation, str]:
    raw_token, token_hash = issue_token()
    expires_at = datetime.now(UTC) + timedelta(days=settings.invite_ttl_days)
    invitation = AdminInvitation(
        email=email.strip().lower(),
        token_hash=token_hash,
        expires_at=expires_at.replace(microsecond=0),
        invited_by=invited_by,
    )
    db.add(invitation)
    db.flush()
    return invitation, raw_token


def _pending_stmt(now: datetime):
    return select(AdminInvitation).where(
        AdminInvitation.accepted_at.is_(None),
        AdminInvitation.expires_at > now,
    )


def find_pending_by_email(
    db: Session, email: str, now: datetime | None = None
) -> AdminInvitation | None:
    stmt = _pending_stmt(now or datetime.now(UTC)).where(
        AdminInvitation.email == email.strip().lower()
    )
    return db.scalars(stmt.order_by(AdminInvitation.id.desc())).first()


def list_pending(db: Session, now: datetime | None = None) -> list[AdminInvitation]:
    stmt = _pending_stmt(now or datetime.now(UTC)).order_by(AdminInvitation.id)
    return list(db.scalars(stmt))


def process_invite(
    db: Session,
    email: str,
    bg: BackgroundTasks,
    invited_by: str | None = None,
) -> AdminInvitation:
    """Validate, create and send an admin invitation; sending is best-effort."""
    email = normalize_valid_email(email)
    if user_service.get_user_by_email(db, email):
        raise UserAlreadyExists()
    if find_pending_by_email(db, email):
        raise InvitationAlreadyPending()

    invitation, raw_token = create_admin_invitation(db, email, invited_by)
    db.commit()
    logger.info("Admin invitation %s created", invitation.id)

    bg.add_task(email_service.send_admin_invitation, email, raw_token)
    return invitation


def delete_for_email(db: Session, email: str) -> int:
    """Drop every admin invitation for ``email``; the caller owns the commit."""
    invitations = db.scalars(
        select(AdminInvitation).where(AdminInvitation.email == email.strip().lower())
    ).all()
    for invitation in invitations:
        db.delete(invitation)
    db.flush()
    return len(invitations)


def accept(db: Session, payload: RegistrationIn) -> User:
    email = payload.email.strip().lower()
    raw_token = payload.token.get_secret_value()
    candidates = db.scalars(
        _pending_stmt(datetime.now(UTC)).where(AdminInvitation.email == email)
    ).all()
    invitation = next(
        (inv for inv in candidates if verify_token(raw_token, inv.token_hash)),
        None,
    )
    if invitation is None:
        raise InvalidOrExpiredToken()

    user = user_service.register_user(
        db,
        email=email,
        password=payload.password.get_secret_value(),
        confirm_password=payload.confirm_password.get_secret_value(),
        name=payload.name,
        username=payload.username,
        email_verified=True,
        roles=[SystemRole.admin.value],
    )
    delete_for_email(db, email)
    db.commit()
    db.refresh(user)
    logger.info("Admin invitation accepted by user %s", user.id)
    return user
