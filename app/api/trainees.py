from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import check_training_admin_access, get_current_user
from app.core.database import get_db
from app.models.trainings import Training
from app.models.users import User
from app.schemas.trainings import (
    ActiveTrainerOut,
    TraineeIn,
    TraineeLoginUpdate,
    TrainingOut,
)
from app.services import training_service

router = APIRouter(prefix="/trainings", tags=["trainings"])


@router.get("/is-active-trainer", response_model=ActiveTrainerOut)
def is_active_trainer(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"is_active_trainer": training_service.is_active_trainer(db, user)}


@router.post(
    "/{training_id}/trainees",
    response_model=TrainingOut,
    status_code=status.HTTP_201_CREATED,
)
def add_trainee(
    payload: TraineeIn,
    training: Training = Depends(check_training_admin_access),
    db: Session = Depends(get_db),
):
    training = training_service.add_trainee(db, training.id, payload)
    return training_service.to_out(db, training)


@router.delete("/{training_id}/trainees/{username}", response_model=TrainingOut)
def remove_trainee(
    username: str,
    training: Training = Depends(check_training_admin_access),
    db: Session = Depends(get_db),
):
    training = training_service.remove_trainee(db, training.id, username)
    return training_service.to_out(db, training)


@router.patch("/{training_id}/trainees/{username}", response_model=TrainingOut)
def update_trainee(
    username: str,
    payload: TraineeLoginUpdate,
    training: Training = Depends(check_training_admin_access),
    db: Session = Depends(get_db),
):
    training = training_service.update_trainee(
        db, training.id, username, payload.has_logged_in
    )
    return training_service.to_out(db, training)
