from app.core.database import Base
from app.models.invitations import (
    AdminInvitation,
    Invitation,
    InvitationGrant,
    InvitationToken,
)
from app.models.organizations import OrganizationMember, TrainingOrganization
from app.models.trainings import Trainee, Training
from app.models.users import User, UserSession

__all__ = [
    "AdminInvitation",
    "Base",
    "Invitation",
    "InvitationGrant",
    "InvitationToken",
    "OrganizationMember",
    "Trainee",
    "Training",
    "TrainingOrganization",
    "User",
    "UserSession",
]
