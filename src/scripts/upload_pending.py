"""
pending 조각을 한 번만 업로드하는 헤드리스 실행 스크립트.
서버 없이 OS 스케줄러(cron, systemd timer 등)에서 주기 실행할 때 쓴다.

사용법 (컨테이너 내부):
    cd /app/src && uv run python -m scripts.upload_pending
"""

import httpx
from loguru import logger

from core.config import settings
from model.database import create_db_and_tables, engine
from model.repository import ImageRepository
from service.background_trigger import BackgroundTrigger, TaskHandle
from service.upload_orchestrator import build_upload_orchestrator
from utility.logger import setup_logger


def main() -> int:
    setup_logger(settings.LOG_LEVEL)
    create_db_and_tables()

    with httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        repository = ImageRepository(engine)
        trigger = BackgroundTrigger(build_upload_orchestrator(repository, client, settings))
        task = TaskHandle()
        trigger.on_activation(task)

    report = trigger.last_report
    if report.error:
        logger.error(f"Headless run failed: {report.error}")
        return 1

    summary = report.summary
    print(f"uploaded={summary.uploaded} failed={summary.failed} errors={summary.errors} total={summary.total}")
    print(f"completed images: {len(summary.completed_images)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
