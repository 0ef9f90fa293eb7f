from fastapi import APIRouter

from app.api.routes.health import router as health_router
from app.api.routes.meetings import router as meetings_router
from app.api.routes.recall_webhook import router as recall_webhook_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(meetings_router)
api_router.include_router(recall_webhook_router)
