import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from missionapi import containers
from missionapi.config import settings
from missionapi.core.exception_handlers import register_exception_handlers
from missionapi.core.logging_middleware import LoggingMiddleware
from missionapi.logging_config import setup_logging
from missionapi.routers import (
    admin_router,
    advertiser_router,
    cron_router,
    health_router,
    member_router,
    payment_router,
)

load_dotenv("missionapi/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, sql_echo=settings.DEBUG)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    @app.get("/")
    def hello() -> dict:
        return {"message": "Hello World!"}

    app.include_router(health_router.router)
    app.include_router(advertiser_router.router, prefix=settings.API_V1_STR)
    app.include_router(payment_router.router, prefix=settings.API_V1_STR)
    app.include_router(member_router.router, prefix=settings.API_V1_STR)
    app.include_router(admin_router.router, prefix=settings.API_V1_STR)
    app.include_router(cron_router.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
