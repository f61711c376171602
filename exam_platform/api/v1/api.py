from fastapi import APIRouter
from exam_platform.api.v1.endpoints import admin, attempts, exams, payments

api_router = APIRouter()

# register each endpoint group
api_router.include_router(exams.router, prefix="/exams", tags=["exams"])
api_router.include_router(attempts.router, tags=["attempts"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
