"""pytest 공용 fixture.

모든 테스트는 in-memory SQLite DB를 사용하여 격리된다.
외부 HTTP(조정 서비스, 오브젝트 스토리지)는 httpx.MockTransport로 가짜를 끼운다.
- repository: 테스트마다 새 DB를 쓰는 ImageRepository
- remote: 가짜 조정 서비스 + 스토리지 (요청 기록, 실패 주입)
- orchestrator: 가짜 원격에 연결된 UploadOrchestrator
- client: 의존성을 테스트용으로 오버라이드한 TestClient
"""

import os
import sys
from pathlib import Path

# 앱 설정은 import 시점에 읽히므로 먼저 환경을 맞춘다
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BACKGROUND_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

import model.image  # noqa: F401 — 테이블 등록
from core.config import Settings
from model.repository import ImageRepository
from service.presigned_url_client import PresignedUrlClient
from service.upload_orchestrator import build_upload_orchestrator

COORDINATION_URL = "http://coordination.test/presigned-url"
STORAGE_HOST = "storage.test"


class FakeRemote:
    """조정 서비스 + 오브젝트 스토리지 흉내.

    fail_url_for / fail_transfer_for에 조각 파일명 일부를 넣으면
    해당 조각의 요청이 항상 실패한다.
    """

    def __init__(self):
        self.url_requests: list[str] = []
        self.puts: list[httpx.Request] = []
        self.fail_url_for: set[str] = set()
        self.fail_transfer_for: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/presigned-url":
            fragment_path = request.url.params["fragmentPath"]
            self.url_requests.append(fragment_path)
            if any(key in fragment_path for key in self.fail_url_for):
                return httpx.Response(500)
            name = os.path.basename(fragment_path)
            return httpx.Response(200, json={"url": f"http://{STORAGE_HOST}/bucket/{name}?sig=abc"})

        if request.method == "PUT" and request.url.host == STORAGE_HOST:
            self.puts.append(request)
            name = request.url.path.rsplit("/", 1)[-1]
            if any(key in name for key in self.fail_transfer_for):
                return httpx.Response(503)
            return httpx.Response(200)

        return httpx.Response(404)

    def puts_for(self, key: str) -> list[httpx.Request]:
        return [r for r in self.puts if key in r.url.path]


@pytest.fixture()
def engine():
    """테스트마다 새 in-memory SQLite DB를 생성한다.

    StaticPool을 사용해야 모든 커넥션이 같은 in-memory DB를 공유한다.
    (기본값은 커넥션마다 별도 DB가 생성되어 테이블이 안 보임)
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repository(engine):
    return ImageRepository(engine)


@pytest.fixture()
def remote():
    return FakeRemote()


@pytest.fixture()
def http_client(remote):
    with httpx.Client(transport=httpx.MockTransport(remote.handler)) as c:
        yield c


@pytest.fixture()
def url_client(http_client):
    return PresignedUrlClient(COORDINATION_URL, http_client)


@pytest.fixture()
def config(tmp_path):
    return Settings(
        UPLOAD_DIR=str(tmp_path / "uploads"),
        FRAGMENT_DIR=str(tmp_path / "fragments"),
        PRESIGNED_URL_ENDPOINT=COORDINATION_URL,
        MAX_UPLOAD_ATTEMPTS=3,
        RETRY_BACKOFF_BASE=0.0,
        BACKGROUND_ENABLED=False,
    )


@pytest.fixture()
def orchestrator(repository, http_client, config):
    return build_upload_orchestrator(repository, http_client, config)


@pytest.fixture()
def make_image(repository, tmp_path):
    """조각 파일을 디스크에 만들고 Image + Fragment 레코드를 저장한다."""

    def _make(image_id: str, count: int = 4) -> list[str]:
        fragment_dir = tmp_path / "fragments"
        fragment_dir.mkdir(exist_ok=True)
        paths = []
        for index in range(count):
            path = fragment_dir / f"{image_id}_fragment_{index}.jpg"
            path.write_bytes(f"{image_id}-{index}".encode())
            paths.append(str(path))
        repository.create_image_with_fragments(image_id, str(tmp_path / f"{image_id}.jpg"), paths)
        return paths

    return _make


@pytest.fixture()
def client(repository, orchestrator, config):
    """저장소/오케스트레이터/설정을 테스트용으로 오버라이드한 TestClient."""
    from fastapi.testclient import TestClient

    from core.dependencies import (
        get_background_trigger,
        get_orchestrator,
        get_repository,
        get_settings,
    )
    from main import app
    from service.background_trigger import BackgroundTrigger

    trigger = BackgroundTrigger(orchestrator)
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_settings] = lambda: config
    app.dependency_overrides[get_background_trigger] = lambda: trigger
    with TestClient(app) as c:
        c.trigger = trigger
        yield c
    app.dependency_overrides.clear()
