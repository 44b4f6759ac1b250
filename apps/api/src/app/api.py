from fastapi import APIRouter

from app.modules.installment_statuses import router as installment_statuses_router

api_router = APIRouter()

api_router.include_router(installment_statuses_router, prefix="/jobs", tags=["Jobs"])
