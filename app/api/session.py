from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import check_training_access
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models.users import User, UserSession
from app.schemas.users import SessionOut

router = APIRouter(tags=["session"])


@router.get("/session", response_model=SessionOut)
def get_session(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(check_training_access),
):
    payload = getattr(request.state, "token_payload", {}) or {}
    session = db.get(UserSession, payload.get("sid") or 0)
    if session is None or session.user_id != user.id:
        raise NotFoundError("Session not found")
    return session
