from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import check_org_access, require_admin
from app.core.database import get_db
from app.schemas.organizations import MemberList, PendingInvitationOut
from app.schemas.users import MessageOut, RegistrationIn
from app.services import invitation_service, redemption_service

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("/accept", response_model=MessageOut)
def accept_invitation(payload: RegistrationIn, db: Session = Depends(get_db)):
    """Public redemption endpoint shared by every multi-role invitation."""
    redemption_service.accept_invitation(db, payload)
    return {"message": "Account created"}


@router.get("/admins", response_model=list[PendingInvitationOut])
def list_admin_invitations(
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return invitation_service.list_admin_invitations(db)


@router.get(
    "/organizations/{organization_id}/admins",
    response_model=list[PendingInvitationOut],
)
def list_org_admin_invitations(
    organization_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return invitation_service.list_org_invitations(
        db, organization_id, MemberList.administrators
    )


@router.get(
    "/organizations/{organization_id}/trainers",
    response_model=list[PendingInvitationOut],
)
def list_org_trainer_invitations(
    organization_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return invitation_service.list_org_invitations(
        db, organization_id, MemberList.trainers
    )
