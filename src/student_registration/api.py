from fastapi import APIRouter

from student_registration.modules.applications import router as student_applications_router
from student_registration.modules.applications.admin_router import (
    router as admin_applications_router,
)

api_router = APIRouter()

api_router.include_router(
    student_applications_router,
    prefix="/student/application",
    tags=["Student Applications"],
)

api_router.include_router(
    admin_applications_router,
    prefix="/admin/applications",
    tags=["Admin - Applications"],
)
