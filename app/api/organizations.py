from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import check_org_access, get_current_user, require_admin
from app.core.database import get_db
from app.models.users import User
from app.schemas.organizations import (
    ActiveMembersOut,
    MemberIn,
    MemberList,
    MemberOut,
    OrganizationCreate,
    OrganizationOut,
)
from app.schemas.users import MessageOut
from app.services import organization_service

router = APIRouter(prefix="/training-organizations", tags=["organizations"])


@router.post("", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    return organization_service.create_organization(db, payload, bg)


@router.get("", response_model=list[OrganizationOut])
def list_organizations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return organization_service.list_organizations(db, user)


@router.get("/{organization_id}", response_model=OrganizationOut)
def get_organization(
    organization_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return organization_service.get_organization(db, organization_id)


@router.delete("/{organization_id}", response_model=MessageOut)
def delete_organization(
    organization_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(require_admin),
):
    organization_service.delete_organization(db, organization_id)
    return {"message": "Organization deleted"}


@router.get("/{organization_id}/active-members", response_model=ActiveMembersOut)
def get_active_members(
    organization_id: int,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return organization_service.active_members(db, organization_id)


@router.post(
    "/{organization_id}/administrators",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
def add_administrator(
    organization_id: int,
    payload: MemberIn,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return organization_service.add_member_by_email(
        db, organization_id, MemberList.administrators, payload.email, bg
    )


@router.delete("/{organization_id}/administrators/{email}", response_model=MessageOut)
def remove_administrator(
    organization_id: int,
    email: str,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    message = organization_service.remove_member(
        db, organization_id, MemberList.administrators, email
    )
    return {"message": message}


@router.post(
    "/{organization_id}/trainers",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
def add_trainer(
    organization_id: int,
    payload: MemberIn,
    bg: BackgroundTasks,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    return organization_service.add_member_by_email(
        db, organization_id, MemberList.trainers, payload.email, bg
    )


@router.delete("/{organization_id}/trainers/{email}", response_model=MessageOut)
def remove_trainer(
    organization_id: int,
    email: str,
    db: Session = Depends(get_db),
    _: object = Depends(check_org_access),
):
    message = organization_service.remove_member(
        db, organization_id, MemberList.trainers, email
    )
    return {"message": message}
