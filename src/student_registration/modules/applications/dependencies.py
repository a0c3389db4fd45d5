"""
Student Applications Dependencies

Builds the submission service from the process settings and the shared
storage client. Routers receive it through FastAPI's Depends so tests can
override it.
"""

from datetime import timedelta

from fastapi import Depends

from student_registration.core.config import Settings, get_settings
from student_registration.core.storage import DocumentStorage, get_document_storage
from student_registration.modules.applications.service import SubmissionService
from student_registration.modules.applications.sessions import UploadSessionManager


def build_session_manager(settings: Settings) -> UploadSessionManager:
    """Session manager using the configured upload session TTL."""
    return UploadSessionManager(ttl=timedelta(minutes=settings.upload_session_ttl_minutes))


def get_submission_service(
    settings: Settings = Depends(get_settings),
    storage: DocumentStorage = Depends(get_document_storage),
) -> SubmissionService:
    """FastAPI dependency returning a submission service."""
    return SubmissionService(
        settings=settings,
        storage=storage,
        sessions=build_session_manager(settings),
    )
