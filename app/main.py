import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.core.config import Settings, get_settings
from app.core.errors import ServiceError, request_validation_error_handler, service_error_handler
from app.services.auth_service import warn_if_shared_secret_missing


logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    _log_startup(get_settings())
    yield


def create_application() -> FastAPI:
    _configure_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    return app


def _log_startup(settings: Settings) -> None:
    logger.info(
        "Starting %s env=%s meetings_store=%s",
        settings.app_name,
        settings.app_env,
        settings.meetings_store,
    )
    warn_if_shared_secret_missing(settings)
    if not settings.recall_api_key:
        logger.warning("RECALL_API_KEY is not set; joinMeeting and getTranscript will fail")
    if not settings.n8n_bot_status_webhook_url:
        logger.warning("N8N_BOT_STATUS_WEBHOOK_URL is not set; bot status changes will not be forwarded")


app = create_application()
