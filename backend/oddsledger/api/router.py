from fastapi import APIRouter

from oddsledger.api.jobs import router as jobs_router
from oddsledger.api.snapshots import router as snapshots_router

api_router = APIRouter()
api_router.include_router(jobs_router)
api_router.include_router(snapshots_router)
