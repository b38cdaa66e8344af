from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class TrainingStatus(StrEnum):
    upcoming = "upcoming"
    in_progress = "in_progress"
    past = "past"


class TraineeIn(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str | None = Field(default=None, max_length=255)
    has_logged_in: bool = Field(default=False, alias="hasLoggedIn")

    model_config = ConfigDict(populate_by_name=True)


class TraineeOut(BaseModel):
    username: str
    password: str
    has_logged_in: bool = Field(serialization_alias="hasLoggedIn")

    model_config = ConfigDict(from_attributes=True)


class TraineeLoginUpdate(BaseModel):
    has_logged_in: bool = Field(alias="hasLoggedIn")

    model_config = ConfigDict(populate_by_name=True)


class TrainingCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    location: str | None = None
    timezone: str
    start_date_time: datetime = Field(alias="startDateTime")
    end_date_time: datetime = Field(alias="endDateTime")
    participant_count: int = Field(default=0, ge=0, alias="participantCount")
    trainers: list[EmailStr] = Field(default_factory=list)
    trainees: list[TraineeIn] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_window(self) -> "TrainingCreate":
        if not self.name.strip():
            raise ValueError("Name cannot be empty")
        if self.end_date_time < self.start_date_time:
            raise ValueError("End date and time must not precede the start")
        return self


class TrainingUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    location: str | None = None
    timezone: str | None = None
    start_date_time: datetime | None = Field(default=None, alias="startDateTime")
    end_date_time: datetime | None = Field(default=None, alias="endDateTime")
    participant_count: int | None = Field(default=None, ge=0, alias="participantCount")
    trainers: list[EmailStr] | None = None

    model_config = ConfigDict(populate_by_name=True)


class TrainingOut(BaseModel):
    id: int
    name: str
    description: str | None
    location: str | None
    timezone: str
    start_date_time: datetime = Field(serialization_alias="startDateTime")
    end_date_time: datetime = Field(serialization_alias="endDateTime")
    participant_count: int = Field(serialization_alias="participantCount")
    trainers: list[str]
    trainees: list[TraineeOut]
    training_organization_id: int = Field(serialization_alias="trainingOrganizationId")
    status: TrainingStatus


class ActiveTrainerOut(BaseModel):
    is_active_trainer: bool = Field(serialization_alias="isActiveTrainer")
