"""
Student Applications Shared Helpers

Document keys and status groupings used by the submission service,
the review service and the status endpoint.
"""

from student_registration.modules.applications.models import ApplicationStatus, DocumentType

# Every application must carry exactly these documents
REQUIRED_DOCUMENTS: tuple[DocumentType, ...] = (
    DocumentType.IDENTITY_PROOF,
    DocumentType.COLLEGE_ID,
    DocumentType.PREVIOUS_MARKSHEET,
)

DOCUMENT_SLUGS: dict[DocumentType, str] = {
    DocumentType.IDENTITY_PROOF: "identity-proof",
    DocumentType.COLLEGE_ID: "college-id",
    DocumentType.PREVIOUS_MARKSHEET: "previous-marksheet",
}

# Statuses that occupy the student's one application slot and block save_details
ACTIVE_STATUSES = frozenset(
    {
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.UNDER_REVIEW,
        ApplicationStatus.APPROVED,
        ApplicationStatus.FINAL_APPROVED,
    }
)


def document_storage_key(college_code: str, usn: str, document_type: DocumentType) -> str:
    """
    Build the storage key for one of a student's documents.

    The key depends only on the college, the student and the document type,
    so re-issued upload URLs overwrite the same objects.

    Example: ("RVCE", "1rv21cs001", IDENTITY_PROOF) -> "RVCE/1RV21CS001/identity-proof"
    """
    return f"{college_code.strip().upper()}/{usn.strip().upper()}/{DOCUMENT_SLUGS[document_type]}"


def reapplies_remaining(reapply_count: int, max_reapply_count: int) -> int:
    """Number of reapplications still allowed after a rejection."""
    return max(0, max_reapply_count - reapply_count)
