from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from loguru import logger

from core.config import settings
from model.database import create_db_and_tables, engine
from model.repository import ImageRepository
from service.background_trigger import register_background_uploads
from service.upload_orchestrator import build_upload_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")

    create_db_and_tables()
    logger.info(f"Database ready ({settings.DATABASE_URL})")

    # 저장소 / HTTP 클라이언트 / 오케스트레이터는 여기서 한 번 만들어 주입한다
    http_client = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
    repository = ImageRepository(engine)
    orchestrator = build_upload_orchestrator(repository, http_client, settings)
    trigger, scheduler = register_background_uploads(orchestrator, settings)

    app.state.settings = settings
    app.state.repository = repository
    app.state.orchestrator = orchestrator
    app.state.background_trigger = trigger

    if settings.BACKGROUND_ENABLED:
        scheduler.start()
    else:
        logger.info("Background uploads disabled")

    yield

    # === 종료 ===
    scheduler.stop(timeout=5)
    http_client.close()
    logger.info("Shutting down")
