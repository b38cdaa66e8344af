from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.schemas.users import EmailIn, MessageOut, UserOut
from app.services import admin_service

router = APIRouter(prefix="/admins", tags=["admins"])


@router.get("", response_model=list[UserOut])
def list_admins(
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return admin_service.list_admin_users(db)


@router.post("/grant-access", response_model=MessageOut)
def grant_access(
    payload: EmailIn,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    message, invited = admin_service.process_grant_admin_access(db, payload.email, bg)
    return JSONResponse(
        {"message": message},
        status_code=status.HTTP_201_CREATED if invited else status.HTTP_200_OK,
        background=bg,
    )


@router.post("/revoke-access", response_model=MessageOut)
def revoke_access(
    payload: EmailIn,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return {"message": admin_service.revoke_admin_access(db, payload.email)}
