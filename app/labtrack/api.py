from fastapi import APIRouter

from app.labtrack.core.config import settings
from app.labtrack.routers.health import router as health_router
from app.labtrack.routers.inventory import router as inventory_router
from app.labtrack.routers.metrics import router as metrics_router
from app.labtrack.routers.receiving import router as receiving_router
from app.labtrack.routers.requests import router as requests_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(requests_router, tags=["requests"])
api_router.include_router(receiving_router, tags=["receiving"])
api_router.include_router(inventory_router, tags=["inventory"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
