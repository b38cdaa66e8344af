import logging

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyAdmin,
    ConflictError,
    InvitationAlreadyPending,
    NotFoundError,
    RoleConflict,
)
from app.core.security import issue_token
from app.models.users import User
from app.schemas.users import SystemRole
from app.services import (
    admin_invitation_service,
    email_service,
    invitation_service,
    role_service,
    user_service,
)

logger = logging.getLogger(__name__)


def list_admin_users(db: Session) -> list[User]:
    return [
        user
        for user in user_service.list_users(db)
        if user.has_role(SystemRole.admin)
    ]


def process_grant_admin_access(
    db: Session, email: str, bg: BackgroundTasks
) -> tuple[str, bool]:
    """
    Make ``email`` a system admin.

    Existing users are promoted immediately. Anyone else gets a superAdmin grant on
    their multi-role invitation. Returns the message and whether an invitation was
    created.
    """
    email = admin_invitation_service.normalize_valid_email(email)
    user = user_service.get_user_by_email(db, email)
    if user:
        if user.has_role(SystemRole.trainee):
            raise RoleConflict()
        if user.has_role(SystemRole.admin):
            raise AlreadyAdmin()
        role_service.grant_role(user, SystemRole.admin)
        db.commit()
        bg.add_task(email_service.send_role_granted, email, "an administrator")
        return "Admin access granted", False

    invitation = invitation_service.find_by_email(db, email)
    pending_admin = admin_invitation_service.find_pending_by_email(db, email)
    if (invitation and invitation.super_admin) or pending_admin:
        raise InvitationAlreadyPending()

    raw_token, token_hash = issue_token()
    invitation_service.add_grant(db, email, token_hash=token_hash, super_admin=True)
    db.commit()
    logger.info("Admin access invitation recorded for a new user")
    bg.add_task(email_service.send_admin_invitation, email, raw_token, path="/invite")
    return "Invitation sent", True


def revoke_admin_access(db: Session, email: str) -> str:
    email = email.strip().lower()
    user = user_service.get_user_by_email(db, email)
    if user:
        if not role_service.strip_role(user, SystemRole.admin):
            raise ConflictError("User does not have admin role")
        db.commit()
        return "Admin access revoked"

    removed = admin_invitation_service.delete_for_email(db, email)
    if invitation_service.remove_super_admin_grant(db, email):
        removed += 1
    if not removed:
        raise NotFoundError("No admin user or pending invitation found for this email")
    db.commit()
    logger.info("Pending admin invitation revoked")
    return "Admin invitation revoked"
