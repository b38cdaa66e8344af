from fastapi import HTTPException, status


class CryptoUnavailable(RuntimeError):
    """The platform cannot provide cryptographically secure randomness."""


class ServiceError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Something went wrong"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or type(self).default_detail,
        )


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Conflicting request"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class UnexpectedError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Something went wrong"


class InvalidEmail(ValidationError):
    default_detail = "Invalid email address"


class InvalidOrExpiredToken(NotFoundError):
    default_detail = "Invalid or expired invitation token"


class UserAlreadyExists(ConflictError):
    default_detail = "A user with this email already exists"


class InvitationAlreadyPending(ConflictError):
    default_detail = "An invitation has already been sent to this email"


class RoleConflict(ConflictError):
    default_detail = "Trainee user cannot have admin role"


class AlreadyAdmin(ConflictError):
    default_detail = "User already has admin role"


class DuplicateTrainee(ConflictError):
    default_detail = "Trainee already exists in this training"


class NoOngoingTraining(ForbiddenError):
    default_detail = "no_ongoing_training"
