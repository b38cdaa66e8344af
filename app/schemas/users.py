from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr


class SystemRole(StrEnum):
    admin = "ADMIN"
    org_admin = "ORGADMIN"
    trainer = "TRAINER"
    trainee = "TRAINEE"
    user = "USER"


class EmailIn(BaseModel):
    email: EmailStr


class MessageOut(BaseModel):
    message: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str | None
    username: str | None
    roles: list[SystemRole]
    email_verified: bool
    expires_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class LoginIn(BaseModel):
    # Generated trainee logins use a reserved domain, so no EmailStr here.
    email: str = Field(min_length=3, max_length=320)
    password: SecretStr


class GenerateTraineesIn(BaseModel):
    count: int = Field(gt=0, le=500)


class GeneratedTrainee(BaseModel):
    email: str
    password: str


class GenerateTraineesOut(BaseModel):
    message: str
    users: list[GeneratedTrainee]


class SessionOut(BaseModel):
    id: int
    user_id: int
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class RegistrationIn(BaseModel):
    """Account details shared by every invitation redemption endpoint."""

    token: SecretStr
    email: EmailStr
    password: SecretStr
    confirm_password: SecretStr
    name: str = Field(min_length=1, max_length=200)
    username: str | None = Field(default=None, max_length=80)
