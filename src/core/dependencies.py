from fastapi import Request

from core.config import Settings, settings
from model.repository import ImageRepository
from service.background_trigger import BackgroundTrigger
from service.upload_orchestrator import UploadOrchestrator

# lifespan에서 app.state에 올려둔 객체를 요청마다 꺼내 준다.
# 테스트에서는 app.dependency_overrides로 바꿔 끼운다.


def get_settings() -> Settings:
    return settings


def get_repository(request: Request) -> ImageRepository:
    return request.app.state.repository


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator


def get_background_trigger(request: Request) -> BackgroundTrigger:
    return request.app.state.background_trigger
