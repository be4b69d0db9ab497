from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    EXCEEDS_ORDERED = ErrorDefinition(
        "EXCEEDS_ORDERED",
        "Received quantity would exceed ordered quantity",
        status.HTTP_409_CONFLICT,
    )
    NEGATIVE_RESULT = ErrorDefinition(
        "NEGATIVE_RESULT",
        "Received quantity cannot go below zero",
        status.HTTP_409_CONFLICT,
    )
    SLIP_IN_USE = ErrorDefinition(
        "SLIP_IN_USE",
        "Packing slip belongs to a completed reception; revert the reception instead",
        status.HTTP_409_CONFLICT,
    )
    NOT_RECEIVED = ErrorDefinition(
        "NOT_RECEIVED",
        "Request is not in Received status",
        status.HTTP_409_CONFLICT,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Status transition not allowed",
        status.HTTP_409_CONFLICT,
    )
    REQUEST_NOT_RECEIVABLE = ErrorDefinition(
        "REQUEST_NOT_RECEIVABLE",
        "Request cannot receive goods in its current status",
        status.HTTP_409_CONFLICT,
    )
    REQUEST_NOT_EDITABLE = ErrorDefinition(
        "REQUEST_NOT_EDITABLE",
        "Request fields cannot be edited in its current status",
        status.HTTP_409_CONFLICT,
    )
    PARTIAL_FAILURE = ErrorDefinition(
        "PARTIAL_FAILURE",
        "The operation could not be completed consistently; contact support",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    CONCURRENT_MODIFICATION = ErrorDefinition(
        "CONCURRENT_MODIFICATION",
        "The record changed while this operation ran; reload and retry",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code
