import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.models.organizations import TrainingOrganization
from app.models.trainings import Training
from app.models.users import User
from app.schemas.users import SystemRole
from app.services import organization_service, training_service, user_service


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return param.strip()


def _authenticate_token(
    raw_token: str,
    db: Session,
    settings: Settings,
) -> tuple[User, dict]:
    try:
        payload = jwt.decode(
            raw_token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algo],
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if user_service.is_expired(user):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account expired",
        )
    return user, payload


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    last_error: HTTPException | None = None

    candidates = [_extract_bearer_token(request), request.cookies.get("access_token")]
    for raw_token in candidates:
        if not raw_token:
            continue
        try:
            user, payload = _authenticate_token(raw_token, db, settings)
        except HTTPException as exc:
            last_error = exc
            continue
        request.state.token_payload = payload
        return user

    if last_error:
        raise last_error

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.has_role(SystemRole.admin):
        raise ForbiddenError("The user is not an admin")
    return user


def _organization_id_from(request: Request) -> int:
    raw = request.path_params.get("organization_id")
    if raw is None or raw == "":
        raise ValidationError("Organization ID is required")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Organization ID is invalid")


def ensure_org_admin(
    db: Session, user: User, organization_id: int
) -> TrainingOrganization:
    org = db.get(TrainingOrganization, organization_id)
    if org is None:
        raise NotFoundError("Organization not found")
    if not organization_service.is_active_admin(org, user.id):
        raise ForbiddenError("Not an administrator of this organization")
    return org


def check_org_access(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> User:
    """
    Organization-admin gate for routes carrying ``organization_id``.

    ADMIN passes without a membership check; everyone else needs an active
    administrator entry in the organization.
    """
    if user.has_role(SystemRole.admin):
        return user
    ensure_org_admin(db, user, _organization_id_from(request))
    return user


def check_training_admin_access(
    training_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Training:
    """Org-admin gate resolved through the training's organization."""
    training = training_service.get_training(db, training_id)
    if not user.has_role(SystemRole.admin):
        ensure_org_admin(db, user, training.training_organization_id)
    return training


def check_training_access(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> User:
    """
    Training participation gate.

    ADMIN and ORGADMIN bypass. TRAINER and TRAINEE need an ongoing training; a
    matching trainee is flagged as logged in on the way through.
    """
    if user.has_any_role(SystemRole.admin, SystemRole.org_admin):
        return user
    if user.has_any_role(SystemRole.trainer, SystemRole.trainee):
        training_service.check_training_participation(db, user)
    return user
