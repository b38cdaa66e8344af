from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import check_org_access
from app.core.database import get_db
from app.schemas.trainings import TrainingCreate, TrainingOut, TrainingUpdate
from app.schemas.users import MessageOut
from app.services import training_service

router = APIRouter(
    prefix="/training-organizations/{organization_id}/trainings",
    tags=["trainings"],
    dependencies=[Depends(check_org_access)],
)


@router.post("/create", response_model=TrainingOut, status_code=status.HTTP_201_CREATED)
def create_training(
    organization_id: int,
    payload: TrainingCreate,
    db: Session = Depends(get_db),
):
    training = training_service.create_training(db, organization_id, payload)
    return training_service.to_out(db, training)


@router.get("/getByOrg", response_model=list[TrainingOut])
def list_trainings(organization_id: int, db: Session = Depends(get_db)):
    return [
        training_service.to_out(db, training)
        for training in training_service.list_trainings_by_org(db, organization_id)
    ]


@router.get("/get/{training_id}", response_model=TrainingOut)
def get_training(organization_id: int, training_id: int, db: Session = Depends(get_db)):
    training = training_service.get_training(db, training_id, organization_id)
    return training_service.to_out(db, training)


@router.put("/update/{training_id}", response_model=TrainingOut)
def update_training(
    organization_id: int,
    training_id: int,
    payload: TrainingUpdate,
    db: Session = Depends(get_db),
):
    training = training_service.update_training(
        db, organization_id, training_id, payload
    )
    return training_service.to_out(db, training)


@router.delete("/delete/{training_id}", response_model=MessageOut)
def delete_training(
    organization_id: int,
    training_id: int,
    db: Session = Depends(get_db),
):
    training_service.delete_training(db, organization_id, training_id)
    return {"message": "Training deleted"}
