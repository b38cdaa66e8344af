import logging
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.errors import (
    DuplicateTrainee,
    NoOngoingTraining,
    NotFoundError,
    ValidationError,
)
from app.models.trainings import Trainee, Training
from app.models.users import User
from app.schemas.trainings import (
    TraineeIn,
    TraineeOut,
    TrainingCreate,
    TrainingOut,
    TrainingStatus,
    TrainingUpdate,
)
from app.schemas.users import SystemRole
from app.services import organization_service, user_service

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def compute_training_status(
    now: datetime, start: datetime, end: datetime
) -> TrainingStatus:
    """Derive the status at ``now``; never stored, recomputed on every read."""
    now, start, end = as_utc(now), as_utc(start), as_utc(end)
    if now < start:
        return TrainingStatus.upcoming
    if now <= end:
        return TrainingStatus.in_progress
    return TrainingStatus.past


def training_status(training: Training, now: datetime | None = None) -> TrainingStatus:
    return compute_training_status(
        now or datetime.now(UTC), training.start_date_time, training.end_date_time
    )


def resolve_trainer_ids(db: Session, emails: list[str]) -> list[int]:
    ids: list[int] = []
    for email in dict.fromkeys(e.strip().lower() for e in emails):
        user = user_service.get_user_by_email(db, email)
        if user is None:
            logger.info("Dropping unknown trainer email from training")
            continue
        ids.append(user.id)
    return ids


def trainer_emails(db: Session, trainer_ids: list[int]) -> list[str]:
    if not trainer_ids:
        return []
    users = db.scalars(select(User).where(User.id.in_(trainer_ids))).all()
    by_id = {user.id: user.email for user in users}
    return [by_id[tid] for tid in trainer_ids if tid in by_id]


def to_out(db: Session, training: Training, now: datetime | None = None) -> TrainingOut:
    return TrainingOut(
        id=training.id,
        name=training.name,
        description=training.description,
        location=training.location,
        timezone=training.timezone,
        start_date_time=training.start_date_time,
        end_date_time=training.end_date_time,
        participant_count=training.participant_count,
        trainers=trainer_emails(db, training.trainer_ids or []),
        trainees=[TraineeOut.model_validate(t) for t in training.trainees],
        training_organization_id=training.training_organization_id,
        status=training_status(training, now),
    )


def find_trainee(training: Training, username: str) -> Trainee | None:
    wanted = username.strip().lower()
    return next(
        (t for t in training.trainees if t.username.lower() == wanted),
        None,
    )


def _append_trainee(
    training: Training, username: str, password: str, has_logged_in: bool = False
) -> Trainee:
    position = training.trainees[-1].position + 1 if training.trainees else 0
    trainee = Trainee(
        training_id=training.id,
        position=position,
        username=username,
        password=password,
        has_logged_in=has_logged_in,
    )
    training.trainees.append(trainee)
    return trainee


def _generate_trainees(db: Session, training: Training, count: int) -> None:
    expires_at = user_service.trainee_expiry(training.end_date_time)
    for email, password in user_service.generate_trainee_users(db, count, expires_at):
        _append_trainee(training, email, password)


def reconcile_capacity(db: Session, training: Training, new_count: int) -> None:
    """
    Grow or shrink the roster to ``new_count``.

    Growth generates the missing accounts at the end. Shrinking deletes the backing
    accounts of the trailing trainees and keeps the first ``new_count`` in order.
    """
    current = len(training.trainees)
    if new_count > current:
        _generate_trainees(db, training, new_count - current)
    elif new_count < current:
        trimmed = list(training.trainees[new_count:])
        for trainee in trimmed:
            user_service.delete_trainee_account(db, trainee.username)
        del training.trainees[new_count:]
        logger.info("Trimmed %s trainees from training %s", len(trimmed), training.id)
    training.participant_count = len(training.trainees)
    db.flush()


def create_training(
    db: Session, organization_id: int, payload: TrainingCreate
) -> Training:
    organization_service.get_organization(db, organization_id)
    training = Training(
        name=payload.name.strip(),
        timezone=payload.timezone,
        start_date_time=payload.start_date_time,
        end_date_time=payload.end_date_time,
        training_organization_id=organization_id,
        description=payload.description,
        location=payload.location,
        trainer_ids=resolve_trainer_ids(db, list(payload.trainers)),
    )
    db.add(training)
    db.flush()

    expires_at = user_service.trainee_expiry(payload.end_date_time)
    for entry in payload.trainees:
        if find_trainee(training, entry.username):
            raise DuplicateTrainee()
        password = user_service.ensure_trainee_account(
            db, entry.username, entry.password, expires_at
        )
        _append_trainee(
            training, entry.username.strip().lower(), password, entry.has_logged_in
        )

    if payload.participant_count > 0:
        _generate_trainees(db, training, payload.participant_count)

    training.participant_count = len(training.trainees)
    db.commit()
    db.refresh(training)
    logger.info(
        "Training %s created with %s trainees", training.id, training.participant_count
    )
    return training


def list_trainings_by_org(db: Session, organization_id: int) -> list[Training]:
    stmt = (
        select(Training)
        .where(Training.training_organization_id == organization_id)
        .order_by(Training.start_date_time, Training.id)
    )
    return list(db.scalars(stmt))


def get_training(
    db: Session, training_id: int, organization_id: int | None = None
) -> Training:
    training = db.get(Training, training_id)
    if not training or (
        organization_id is not None
        and training.training_organization_id != organization_id
    ):
        raise NotFoundError("Training not found")
    return training


def update_training(
    db: Session, organization_id: int, training_id: int, payload: TrainingUpdate
) -> Training:
    training = get_training(db, training_id, organization_id)
    changes = payload.model_dump(exclude_unset=True)

    for field in ("name", "description", "location", "timezone"):
        if field in changes and changes[field] is not None:
            setattr(training, field, changes[field])

    start = changes.get("start_date_time") or training.start_date_time
    end = changes.get("end_date_time") or training.end_date_time
    if as_utc(end) < as_utc(start):
        raise ValidationError("End date and time must not precede the start")
    end_changed = "end_date_time" in changes and changes["end_date_time"] is not None
    training.start_date_time = start
    training.end_date_time = end

    if changes.get("trainers") is not None:
        training.trainer_ids = resolve_trainer_ids(db, changes["trainers"])

    if end_changed:
        user_service.set_trainee_expiry(
            db,
            [t.username for t in training.trainees],
            user_service.trainee_expiry(end),
        )

    if changes.get("participant_count") is not None:
        reconcile_capacity(db, training, changes["participant_count"])

    db.commit()
    db.refresh(training)
    return training


def delete_training(db: Session, organization_id: int, training_id: int) -> None:
    """
    Delete every trainee account, then the training.

    A missing trainee account aborts the whole delete; nothing is removed.
    """
    training = get_training(db, training_id, organization_id)
    with db.begin_nested():
        for trainee in training.trainees:
            user_service.delete_trainee_account(db, trainee.username)
        db.delete(training)
    db.commit()
    logger.info("Training %s deleted", training_id)


def get_ongoing_trainings(db: Session, now: datetime | None = None) -> list[Training]:
    now = now or datetime.now(UTC)
    return [
        training
        for training in db.scalars(select(Training).order_by(Training.id))
        if training_status(training, now) == TrainingStatus.in_progress
    ]


def add_trainee(db: Session, training_id: int, payload: TraineeIn) -> Training:
    training = get_training(db, training_id)
    if find_trainee(training, payload.username):
        raise DuplicateTrainee()
    password = user_service.ensure_trainee_account(
        db,
        payload.username,
        payload.password,
        user_service.trainee_expiry(training.end_date_time),
    )
    _append_trainee(
        training, payload.username.strip().lower(), password, payload.has_logged_in
    )
    training.participant_count = len(training.trainees)
    db.commit()
    db.refresh(training)
    return training


def remove_trainee(db: Session, training_id: int, username: str) -> Training:
    training = get_training(db, training_id)
    trainee = find_trainee(training, username)
    if trainee is None:
        raise NotFoundError("Trainee not found")
    account = user_service.get_user_by_email(db, trainee.username)
    if account is not None and account.has_role(SystemRole.trainee):
        user_service.delete_trainee_account(db, trainee.username)
    training.trainees.remove(trainee)
    training.participant_count = len(training.trainees)
    db.commit()
    db.refresh(training)
    return training


def update_trainee(
    db: Session, training_id: int, username: str, has_logged_in: bool
) -> Training:
    training = get_training(db, training_id)
    trainee = find_trainee(training, username)
    if trainee is None:
        raise NotFoundError("Trainee not found")
    trainee.has_logged_in = has_logged_in
    db.commit()
    db.refresh(training)
    return training


def is_active_trainer(db: Session, user: User, now: datetime | None = None) -> bool:
    return any(
        user.id in (training.trainer_ids or [])
        for training in get_ongoing_trainings(db, now)
    )


def _trainee_identities(user: User) -> set[str]:
    return {value.lower() for value in (user.email, user.username) if value}


def mark_trainee_logged_in(
    db: Session, user: User, trainings: list[Training]
) -> list[int]:
    """
    Flag the caller as logged in on every listed training where they are rostered.

    Returns the matching training ids. Rows already flagged are not rewritten.
    """
    identities = _trainee_identities(user)
    matched = [
        training.id
        for training in trainings
        if any(t.username.lower() in identities for t in training.trainees)
    ]
    if not matched:
        return []

    db.execute(
        update(Trainee)
        .where(
            Trainee.training_id.in_(matched),
            func.lower(Trainee.username).in_(identities),
            Trainee.has_logged_in.is_(False),
        )
        .values(has_logged_in=True)
        .execution_options(synchronize_session="fetch")
    )
    db.commit()
    return matched


def check_training_participation(
    db: Session, user: User, now: datetime | None = None
) -> None:
    """
    Admit a TRAINER or TRAINEE only while they take part in an ongoing training.

    Trainees are flagged as logged in as part of the check.
    """
    ongoing = get_ongoing_trainings(db, now)
    if not ongoing:
        raise NoOngoingTraining()

    if user.has_role(SystemRole.trainer) and any(
        user.id in (training.trainer_ids or []) for training in ongoing
    ):
        return
    if user.has_role(SystemRole.trainee) and mark_trainee_logged_in(db, user, ongoing):
        return
    raise NoOngoingTraining()
