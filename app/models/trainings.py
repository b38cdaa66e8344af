import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Training(Base):
    __tablename__ = "trainings"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    name: Mapped[str]
    timezone: Mapped[str]
    start_date_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    end_date_time: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    # Soft reference: deleting an organization leaves its trainings in place.
    training_organization_id: Mapped[int] = mapped_column(index=True)
    description: Mapped[str | None] = mapped_column(default=None)
    location: Mapped[str | None] = mapped_column(default=None)
    participant_count: Mapped[int] = mapped_column(default=0)
    trainer_ids: Mapped[list[int]] = mapped_column(JSON, default_factory=list)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    trainees: Mapped[list["Trainee"]] = relationship(
        back_populates="training",
        cascade="all, delete-orphan",
        order_by=lambda: Trainee.position,
        init=False,
    )


class Trainee(Base):
    """A generated (or supplied) trainee credential, ordered by roster position."""

    __tablename__ = "training_trainees"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    training_id: Mapped[int] = mapped_column(
        ForeignKey("trainings.id", ondelete="CASCADE")
    )
    training: Mapped[Training] = relationship(back_populates="trainees", init=False)
    position: Mapped[int]
    username: Mapped[str] = mapped_column(index=True)
    password: Mapped[str] = mapped_column(repr=False)
    has_logged_in: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        Index("ix_training_trainees_training_position", "training_id", "position"),
    )
