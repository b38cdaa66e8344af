import logging
import sys

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import (
    admin_invitations,
    admins,
    invitations,
    organizations,
    session,
    trainees,
    trainings,
    users,
)
from app.api.deps import get_current_user
from app.core.config import get_settings, lifespan
from app.core.database import engine, get_db, ping_database
from app.core.errors import ServiceError
from app.core.security import create_access
from app.models import Base
from app.models.users import User
from app.schemas.users import LoginIn, UserOut
from app.services import user_service

root = logging.getLogger()
if not root.handlers:  # don't double-add in reloads
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(h)

root.setLevel(logging.INFO)

logger = logging.getLogger(__name__)

settings = get_settings()

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=f"{settings.app_title} Training API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.domain_client.rstrip("/")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admins.router)
app.include_router(admin_invitations.router)
app.include_router(invitations.router)
app.include_router(organizations.router)
app.include_router(trainings.router)
app.include_router(trainees.router)
app.include_router(session.router)
app.include_router(users.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{field}: {message}" if field else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail},
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = user_service.authenticate(
        db, payload.email, payload.password.get_secret_value()
    )
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user_session = user_service.create_session(db, user)
    access = create_access(str(user.id), list(user.roles), user_session.id)

    resp = JSONResponse({"message": "ok"})
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(
        key="access_token",
        value=access,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.access_min * 60,
        path="/",
    )
    return resp


@app.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)


@app.post("/logout")
def logout():
    resp = JSONResponse({"message": "ok"})
    resp.headers["Cache-Control"] = "no-store"

    resp.delete_cookie(
        key="access_token",
        path="/",
    )

    return resp


@app.get("/health", tags=["health"])
def health_check():
    """Report service status and confirm database connectivity."""
    database_status = "ok" if ping_database() else "error"
    return {
        "status": "ok",
        "database": database_status,
    }
