from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class MemberList(StrEnum):
    administrators = "administrators"
    trainers = "trainers"


class MemberStatus(StrEnum):
    invited = "invited"
    active = "active"


class OrganizationCreate(BaseModel):
    name: str = Field(max_length=255)
    administrators: list[EmailStr] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name cannot be empty")
        return cleaned


class MemberIn(BaseModel):
    email: EmailStr


class MemberOut(BaseModel):
    email: str
    user_id: int | None
    status: MemberStatus
    invited_at: datetime | None
    activated_at: datetime | None
    invitation_expires: datetime | None

    model_config = ConfigDict(
        from_attributes=True,
    )


class OrganizationOut(BaseModel):
    id: int
    name: str
    administrators: list[MemberOut]
    trainers: list[MemberOut]
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class ActiveMembersOut(BaseModel):
    administrators: list[MemberOut]
    trainers: list[MemberOut]


class PendingInvitationOut(BaseModel):
    id: int
    email: str
    super_admin: bool
    org_admin: list[int]
    org_trainer: list[int]
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class AdminInvitationOut(BaseModel):
    id: int
    email: str
    invited_by: str | None
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )
