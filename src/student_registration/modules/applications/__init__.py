"""
Student Applications Module

Handles the student application workflow:
1. Save application details (create, update, reapply after rejection)
2. Issue pre-signed upload URLs bound to a short-lived upload session
3. Finalize the submission once every required document is in storage
4. Reviewer decisions (start review, approve, final approve, reject)
5. Background purge of expired upload sessions

API Endpoints:
- POST /student/application - Action-multiplexed student endpoint
- GET /admin/applications - Review queue
- POST /admin/applications/{id}/{start-review,approve,final-approve,reject}

Security Features:
- SHA-256 session hashing (session ids never stored in plain text)
- Status-guarded updates so concurrent requests cannot double-transition
- Rate limiting per student and per reviewer
- No session ids in logs
"""

from .jobs import register_application_jobs
from .router import router

__all__ = ["router", "register_application_jobs"]
