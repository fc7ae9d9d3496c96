from typing import Optional

from fastapi import HTTPException, status


class CompetitionError(HTTPException):
    """Base for domain failures; rendered by the global handler in server.py."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFoundError(CompetitionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class ValidationError(CompetitionError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class DeadlinePassedError(CompetitionError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Submission deadline has passed."


class TypeMismatchError(CompetitionError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Content category does not match competition category."


class DuplicateEvaluationError(CompetitionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have already rated this submission"


class DuplicateSubmissionError(CompetitionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Student has already submitted to this competition"


class StorageError(CompetitionError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "File storage request failed"


class WinnersAlreadyDeterminedError(CompetitionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Winners have already been determined for this competition"


class SubmissionConflictError(CompetitionError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Submission could not be saved because of a concurrent change, please try again"
