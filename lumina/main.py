import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lumina.core.config import Settings, settings
from lumina.core.logging import setup_logging
from lumina.api.endpoints import router as api_router
from lumina.db.postgres import init_db, close_db

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.DEBUG)
    logger.info("Starting Lumina backend...")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down Lumina backend...")
    await close_db()


def create_app(config: Settings = settings) -> FastAPI:
    app = FastAPI(title=config.PROJECT_NAME, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
