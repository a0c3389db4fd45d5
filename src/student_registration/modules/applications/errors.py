"""
Student Applications Errors

Business-rule failures raised by the session manager, the submission
service and the review service. Each carries a stable error code and the
HTTP status the router responds with.
"""

from uuid import UUID

from student_registration.modules.applications.models import DocumentType


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> dict:
        """Error body returned to the caller."""
        return {"error": self.error_code, "message": self.message}


class RequestValidationFailedError(ApplicationServiceError):
    """Raised when request fields are missing or malformed."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="VALIDATION_ERROR", status_code=400)


class StudentNotFoundError(ApplicationServiceError):
    """Raised when the authenticated student has no student record."""

    def __init__(self, student_id: int):
        super().__init__(
            message=f"Student {student_id} not found",
            error_code="STUDENT_NOT_FOUND",
            status_code=404,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found"
            if application_id
            else "No application found. Please save your application details first."
        )
        super().__init__(message=message, error_code="APPLICATION_NOT_FOUND", status_code=404)


class ActiveApplicationExistsError(ApplicationServiceError):
    """Raised when the student already has a submitted or decided application."""

    def __init__(self):
        super().__init__(
            message="You already have an active application",
            error_code="ACTIVE_APPLICATION_EXISTS",
            status_code=409,
        )


class ReapplyLimitReachedError(ApplicationServiceError):
    """Raised when a rejected student has used every reapplication."""

    def __init__(self, max_reapply_count: int):
        super().__init__(
            message=(
                f"Reapplication limit reached. You may reapply at most "
                f"{max_reapply_count} time(s) after a rejection."
            ),
            error_code="REAPPLY_LIMIT_REACHED",
            status_code=403,
        )


class InvalidApplicationStateError(ApplicationServiceError):
    """Raised when an application is not in the expected state for an operation."""

    def __init__(self, message: str, expected_state: str | None = None):
        detail = message
        if expected_state:
            detail = f"{message} Expected state: {expected_state}"
        super().__init__(message=detail, error_code="INVALID_APPLICATION_STATE", status_code=409)


class UploadSessionNotFoundError(ApplicationServiceError):
    """Raised when an upload session does not exist for the student."""

    def __init__(
        self,
        message: str = "Upload session not found. Please request new upload URLs.",
        error_code: str = "UPLOAD_SESSION_NOT_FOUND",
    ):
        super().__init__(message=message, error_code=error_code, status_code=404)


class UploadSessionExpiredError(UploadSessionNotFoundError):
    """Raised when an upload session exists but has expired."""

    def __init__(self):
        super().__init__(
            message="Upload session has expired. Please request new upload URLs.",
            error_code="UPLOAD_SESSION_EXPIRED",
        )


class IncompleteUploadError(ApplicationServiceError):
    """Raised when finalize is attempted before every document is uploaded."""

    def __init__(self, missing_documents: list[DocumentType]):
        self.missing_documents = missing_documents
        names = ", ".join(doc.value for doc in missing_documents)
        super().__init__(
            message=f"Missing required documents: {names}",
            error_code="INCOMPLETE_UPLOAD",
            status_code=400,
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["missing_documents"] = [doc.value for doc in self.missing_documents]
        return detail


class ReviewerPermissionError(ApplicationServiceError):
    """Raised when a reviewer's role does not allow the requested decision."""

    def __init__(self, message: str = "Final approval requires a platform administrator."):
        super().__init__(message=message, error_code="INSUFFICIENT_ROLE", status_code=403)
