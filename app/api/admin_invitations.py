from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.models.users import User
from app.schemas.organizations import AdminInvitationOut
from app.schemas.users import EmailIn, MessageOut, RegistrationIn
from app.services import admin_invitation_service

router = APIRouter(prefix="/admin-invitations", tags=["invitations"])


@router.post(
    "/invite", response_model=MessageOut, status_code=status.HTTP_201_CREATED
)
def invite_admin(
    payload: EmailIn,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: User = Depends(require_admin),
):
    admin_invitation_service.process_invite(
        db, payload.email, bg, invited_by=current_admin.email
    )
    return {"message": "Invitation sent"}


@router.get("/pending", response_model=list[AdminInvitationOut])
def list_pending_invitations(
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return admin_invitation_service.list_pending(db)


@router.post("/accept", response_model=MessageOut)
def accept_admin_invitation(payload: RegistrationIn, db: Session = Depends(get_db)):
    admin_invitation_service.accept(db, payload)
    return {"message": "Account created"}
