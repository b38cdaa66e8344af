import logging
from datetime import UTC, datetime, timedelta

from fastapi import BackgroundTasks
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import ConflictError, NotFoundError, RoleConflict
from app.core.security import issue_token
from app.models.organizations import OrganizationMember, TrainingOrganization
from app.models.users import User
from app.schemas.organizations import MemberList, MemberStatus, OrganizationCreate
from app.schemas.users import SystemRole
from app.services import email_service, invitation_service, role_service, user_service

logger = logging.getLogger(__name__)

settings = get_settings()

LIST_LABEL = {
    MemberList.administrators: "Administrator",
    MemberList.trainers: "Trainer",
}


def get_organization(db: Session, organization_id: int) -> TrainingOrganization:
    org = db.get(TrainingOrganization, organization_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


def is_active_admin(org: TrainingOrganization, user_id: int) -> bool:
    return any(
        member.user_id == user_id and member.status == MemberStatus.active
        for member in org.administrators
    )


def list_organizations(db: Session, user: User) -> list[TrainingOrganization]:
    orgs = db.scalars(
        select(TrainingOrganization).order_by(TrainingOrganization.id)
    ).all()
    if user.has_role(SystemRole.admin):
        return list(orgs)
    return [org for org in orgs if is_active_admin(org, user.id)]


def find_member(
    org: TrainingOrganization, member_list: MemberList, email: str
) -> OrganizationMember | None:
    email = email.strip().lower()
    return next((m for m in org.members_of(member_list) if m.email == email), None)


def _insert_member(
    db: Session, org: TrainingOrganization, member: OrganizationMember
) -> OrganizationMember:
    """Insert relying on the (organization, list, email) unique key."""
    try:
        with db.begin_nested():
            org.members.append(member)
            db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"{LIST_LABEL[member.member_list]} already exists in this organization"
        ) from exc
    return member


def _add_email(
    db: Session,
    org: TrainingOrganization,
    member_list: MemberList,
    email: str,
    bg: BackgroundTasks,
) -> OrganizationMember:
    """
    Existing users become active members right away; anyone else is invited.

    Only the invited path mints a token. The same token hash is recorded on the
    member entry and on the email's multi-role invitation.
    """
    now = datetime.now(UTC)
    as_trainer = member_list == MemberList.trainers
    user = user_service.get_user_by_email(db, email)

    if user:
        member = _insert_member(
            db,
            org,
            OrganizationMember(
                organization_id=org.id,
                member_list=member_list,
                email=email,
                status=MemberStatus.active,
                user_id=user.id,
                activated_at=now,
            ),
        )
        role_service.grant_role(user, role_service.ROLE_FOR_LIST[member_list])
        label = "a trainer" if as_trainer else "an administrator"
        bg.add_task(email_service.send_role_granted, email, label, org.name)
        logger.info("User %s activated in organization %s", user.id, org.id)
        return member

    raw_token, token_hash = issue_token()
    member = _insert_member(
        db,
        org,
        OrganizationMember(
            organization_id=org.id,
            member_list=member_list,
            email=email,
            status=MemberStatus.invited,
            invitation_token=token_hash,
            invitation_expires=now + timedelta(days=settings.invite_ttl_days),
            invited_at=now,
        ),
    )
    invitation_service.add_grant(
        db,
        email,
        token_hash=token_hash,
        member_list=member_list,
        organization_id=org.id,
    )
    bg.add_task(
        email_service.send_org_invitation,
        email,
        raw_token,
        org.name,
        as_trainer=as_trainer,
    )
    logger.info("Invited a new %s to organization %s", member_list.value, org.id)
    return member


def process_members(
    db: Session,
    org: TrainingOrganization,
    member_list: MemberList,
    emails: list[str],
    bg: BackgroundTasks,
) -> list[OrganizationMember]:
    added: list[OrganizationMember] = []
    for email in dict.fromkeys(e.strip().lower() for e in emails):
        user = user_service.get_user_by_email(db, email)
        if user and user.has_role(SystemRole.trainee):
            logger.info("Skipping trainee account for organization %s", org.id)
            continue
        if find_member(org, member_list, email):
            continue
        added.append(_add_email(db, org, member_list, email, bg))
    return added


def process_administrators(
    db: Session, org: TrainingOrganization, emails: list[str], bg: BackgroundTasks
) -> list[OrganizationMember]:
    return process_members(db, org, MemberList.administrators, emails, bg)


def process_trainers(
    db: Session, org: TrainingOrganization, emails: list[str], bg: BackgroundTasks
) -> list[OrganizationMember]:
    return process_members(db, org, MemberList.trainers, emails, bg)


def create_organization(
    db: Session, payload: OrganizationCreate, bg: BackgroundTasks
) -> TrainingOrganization:
    org = TrainingOrganization(name=payload.name)
    db.add(org)
    db.flush()
    process_administrators(db, org, list(payload.administrators), bg)
    db.commit()
    db.refresh(org)
    logger.info("Organization %s created", org.id)
    return org


def delete_organization(db: Session, organization_id: int) -> None:
    org = get_organization(db, organization_id)
    affected = [
        (member.user_id, member.member_list)
        for member in org.members
        if member.user_id is not None
    ]
    db.delete(org)
    db.flush()
    for user_id, member_list in affected:
        role_service.reconcile_after_removal(db, user_id, member_list)
    db.commit()
    logger.info("Organization %s deleted", organization_id)


def add_member_by_email(
    db: Session,
    organization_id: int,
    member_list: MemberList,
    email: str,
    bg: BackgroundTasks,
) -> OrganizationMember:
    org = get_organization(db, organization_id)
    email = email.strip().lower()
    if find_member(org, member_list, email):
        raise ConflictError(
            f"{LIST_LABEL[member_list]} already exists in this organization"
        )
    user = user_service.get_user_by_email(db, email)
    if user and user.has_role(SystemRole.trainee):
        raise RoleConflict("Trainee user cannot join an organization")
    member = _add_email(db, org, member_list, email, bg)
    db.commit()
    db.refresh(member)
    return member


def add_member(
    db: Session, organization_id: int, member_list: MemberList, user: User
) -> OrganizationMember:
    """
    Materialize ``user`` as an active member during invitation redemption.

    An invited entry flips to active through a conditional update; a missing entry
    is inserted. Raises NotFoundError when the organization is gone.
    """
    org = get_organization(db, organization_id)
    now = datetime.now(UTC)
    existing = find_member(org, member_list, user.email)
    if existing is None:
        return _insert_member(
            db,
            org,
            OrganizationMember(
                organization_id=org.id,
                member_list=member_list,
                email=user.email,
                status=MemberStatus.active,
                user_id=user.id,
                activated_at=now,
            ),
        )

    db.execute(
        update(OrganizationMember)
        .where(
            OrganizationMember.id == existing.id,
            OrganizationMember.status == MemberStatus.invited,
        )
        .values(
            status=MemberStatus.active,
            user_id=user.id,
            activated_at=now,
            invitation_token=None,
            invitation_expires=None,
        )
        .execution_options(synchronize_session=False)
    )
    db.refresh(existing)
    logger.info("Member %s activated in organization %s", existing.id, org.id)
    return existing


def remove_member(
    db: Session, organization_id: int, member_list: MemberList, email: str
) -> str:
    org = get_organization(db, organization_id)
    email = email.strip().lower()
    member = find_member(org, member_list, email)
    label = LIST_LABEL[member_list]

    if member and member.status == MemberStatus.active:
        user_id = member.user_id
        org.members.remove(member)
        db.flush()
        if user_id is not None:
            role_service.reconcile_after_removal(db, user_id, member_list)
        db.commit()
        logger.info("%s removed from organization %s", label, org.id)
        return f"{label} removed"

    revoked = invitation_service.remove_org_grant(db, email, member_list, org.id)
    if member:
        org.members.remove(member)
        db.flush()
        revoked = True
    if not revoked:
        raise NotFoundError(f"{label} not found in this organization")
    db.commit()
    logger.info(
        "Pending %s invitation revoked for organization %s", label.lower(), org.id
    )
    return f"{label} invitation revoked"


def active_members(
    db: Session, organization_id: int
) -> dict[str, list[OrganizationMember]]:
    org = get_organization(db, organization_id)
    return {
        "administrators": [
            m for m in org.administrators if m.status == MemberStatus.active
        ],
        "trainers": [m for m in org.trainers if m.status == MemberStatus.active],
    }
