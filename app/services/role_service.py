import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.organizations import OrganizationMember
from app.models.users import User
from app.schemas.organizations import MemberList, MemberStatus
from app.schemas.users import SystemRole

logger = logging.getLogger(__name__)

ROLE_FOR_LIST = {
    MemberList.administrators: SystemRole.org_admin,
    MemberList.trainers: SystemRole.trainer,
}


def normalize_roles(roles: list[str]) -> list[str]:
    """Order-preserving dedupe; USER only stands in when nothing else is held."""
    seen: list[str] = []
    for role in roles:
        if role not in seen:
            seen.append(role)
    elevated = [role for role in seen if role != SystemRole.user.value]
    return elevated or [SystemRole.user.value]


def grant_role(user: User, role: SystemRole) -> bool:
    if user.has_role(role):
        return False
    # Reassign so the JSON column is flagged dirty.
    user.roles = normalize_roles([*(user.roles or []), role.value])
    logger.info("Granted %s to user %s", role.value, user.id)
    return True


def strip_role(user: User, role: SystemRole) -> bool:
    if not user.has_role(role):
        return False
    user.roles = normalize_roles([r for r in user.roles if r != role.value])
    logger.info("Stripped %s from user %s", role.value, user.id)
    return True


def fold_redemption_roles(
    granted: list[SystemRole], existing: list[str] | None = None
) -> list[str]:
    return normalize_roles([*(existing or []), *(role.value for role in granted)])


def still_member_elsewhere(db: Session, user_id: int, member_list: MemberList) -> bool:
    stmt = select(OrganizationMember.id).where(
        OrganizationMember.user_id == user_id,
        OrganizationMember.member_list == member_list,
        OrganizationMember.status == MemberStatus.active,
    )
    return db.execute(stmt.limit(1)).first() is not None


def reconcile_after_removal(db: Session, user_id: int, member_list: MemberList) -> bool:
    """Strip the list's role once the user is no longer active in any organization."""
    user = db.get(User, user_id)
    if not user:
        return False
    db.flush()
    if still_member_elsewhere(db, user_id, member_list):
        return False
    return strip_role(user, ROLE_FOR_LIST[member_list])
