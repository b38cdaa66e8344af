"""
Redemption of multi-role invitations.

One accepted token turns every pending grant for the email into roles on a fresh
account. Each organization grant is applied on its own: a failure for one
organization is logged and the remaining grants still go through.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidOrExpiredToken, ServiceError
from app.models.users import User
from app.schemas.organizations import MemberList
from app.schemas.users import RegistrationIn, SystemRole
from app.services import (
    invitation_service,
    organization_service,
    role_service,
    user_service,
)

logger = logging.getLogger(__name__)


def _apply_org_grants(
    db: Session,
    user: User,
    member_list: MemberList,
    organization_ids: list[int],
) -> bool:
    granted = False
    for organization_id in organization_ids:
        try:
            with db.begin_nested():
                organization_service.add_member(db, organization_id, member_list, user)
        except (ServiceError, SQLAlchemyError):
            logger.warning(
                "Skipping %s grant for organization %s during redemption",
                member_list.value,
                organization_id,
                exc_info=True,
            )
            continue
        granted = True
    return granted


def accept_invitation(db: Session, payload: RegistrationIn) -> User:
    email = payload.email.strip().lower()
    invitation = invitation_service.find_by_email(db, email)
    if invitation is None or not invitation_service.matches_token(
        invitation, payload.token.get_secret_value()
    ):
        raise InvalidOrExpiredToken()

    org_admin = invitation.org_admin
    org_trainer = invitation.org_trainer
    super_admin = invitation.super_admin

    user = user_service.register_user(
        db,
        email=email,
        password=payload.password.get_secret_value(),
        confirm_password=payload.confirm_password.get_secret_value(),
        name=payload.name,
        username=payload.username,
        email_verified=True,
    )

    granted: list[SystemRole] = []
    if _apply_org_grants(db, user, MemberList.administrators, org_admin):
        granted.append(SystemRole.org_admin)
    if _apply_org_grants(db, user, MemberList.trainers, org_trainer):
        granted.append(SystemRole.trainer)
    if super_admin:
        granted.append(SystemRole.admin)

    user.roles = role_service.fold_redemption_roles(granted)
    invitation_service.delete_invitation(db, invitation)
    db.commit()
    db.refresh(user)
    logger.info("Invitation redeemed by user %s with roles %s", user.id, user.roles)
    return user
