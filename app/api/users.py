from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.database import get_db
from app.schemas.users import (
    GenerateTraineesIn,
    GenerateTraineesOut,
    MessageOut,
    UserOut,
)
from app.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/all", response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return user_service.list_users(db)


@router.delete("/{user_id}", response_model=MessageOut)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    user_service.delete_user(db, user_id)
    db.commit()
    return {"message": "User deleted"}


@router.post(
    "/generate-trainees",
    response_model=GenerateTraineesOut,
    status_code=status.HTTP_201_CREATED,
)
def generate_trainees(
    payload: GenerateTraineesIn,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    pairs = user_service.generate_trainee_users(db, payload.count)
    db.commit()
    return {
        "message": f"Generated {len(pairs)} trainee accounts",
        "users": [{"email": email, "password": password} for email, password in pairs],
    }


@router.post("/remove-expired-trainees", response_model=MessageOut)
def remove_expired_trainees(
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    removed = user_service.remove_expired_trainee_accounts(db)
    return {"message": f"Removed {removed} expired trainee accounts"}
