import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import verify_token
from app.models.invitations import Invitation, InvitationGrant, InvitationToken
from app.schemas.organizations import MemberList

logger = logging.getLogger(__name__)


def _normalize(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> Invitation | None:
    return db.query(Invitation).filter(Invitation.email == _normalize(email)).first()


def _get_or_create(db: Session, email: str) -> Invitation:
    invitation = find_by_email(db, email)
    if invitation:
        return invitation
    try:
        with db.begin_nested():
            invitation = Invitation(email=_normalize(email))
            db.add(invitation)
    except IntegrityError:
        # A concurrent request created the record first.
        invitation = find_by_email(db, email)
        if invitation is None:
            raise
    return invitation


def add_grant(
    db: Session,
    email: str,
    *,
    token_hash: str,
    super_admin: bool = False,
    member_list: MemberList | None = None,
    organization_id: int | None = None,
) -> Invitation:
    """
    Record one grant event for ``email``.

    The token hash is appended alongside the existing ones; every stored hash keeps
    redeeming the whole record until it is accepted.
    """
    invitation = _get_or_create(db, email)
    invitation.tokens.append(InvitationToken(token_hash=token_hash))
    if super_admin:
        invitation.super_admin = True
    if member_list is not None and organization_id is not None:
        if organization_id not in invitation.organization_ids(member_list):
            invitation.grants.append(
                InvitationGrant(
                    member_list=member_list, organization_id=organization_id
                )
            )
    db.flush()
    logger.info("Recorded invitation grant for invitation %s", invitation.id)
    return invitation


def matches_token(invitation: Invitation, raw_token: str) -> bool:
    return any(verify_token(raw_token, token.token_hash) for token in invitation.tokens)


def _delete_if_empty(db: Session, invitation: Invitation) -> None:
    if not invitation.has_grants:
        db.delete(invitation)
    db.flush()


def remove_super_admin_grant(db: Session, email: str) -> bool:
    invitation = find_by_email(db, email)
    if not invitation or not invitation.super_admin:
        return False
    invitation.super_admin = False
    _delete_if_empty(db, invitation)
    return True


def remove_org_grant(
    db: Session, email: str, member_list: MemberList, organization_id: int
) -> bool:
    invitation = find_by_email(db, email)
    if not invitation:
        return False
    grant = next(
        (
            g
            for g in invitation.grants
            if g.member_list == member_list and g.organization_id == organization_id
        ),
        None,
    )
    if grant is None:
        return False
    invitation.grants.remove(grant)
    _delete_if_empty(db, invitation)
    return True


def delete_invitation(db: Session, invitation: Invitation) -> None:
    db.delete(invitation)
    db.flush()


def list_admin_invitations(db: Session) -> list[Invitation]:
    stmt = (
        select(Invitation)
        .where(Invitation.super_admin.is_(True))
        .order_by(Invitation.id)
    )
    return list(db.scalars(stmt))


def list_org_invitations(
    db: Session, organization_id: int, member_list: MemberList
) -> list[Invitation]:
    stmt = (
        select(Invitation)
        .join(InvitationGrant)
        .where(
            InvitationGrant.organization_id == organization_id,
            InvitationGrant.member_list == member_list,
        )
        .order_by(Invitation.id)
    )
    return list(db.scalars(stmt).unique())
