"""주기적 백그라운드 업로드.

앱이 업로드 도중 종료돼도 다음 실행 때 시스템 전체의 pending 조각을 이어서 올린다.
상태는 DB에 있으므로 재시작/재부팅 후에도 그대로 재개된다.

- TaskHandle: 스케줄러가 넘겨주는 작업 핸들. 끝나면 반드시 finish()를 호출해야 한다.
- BackgroundTrigger: 활성화될 때마다 upload_all_pending()을 실행한다.
- PeriodicScheduler: 데몬 스레드에서 interval마다 콜백을 호출한다. 실행은 겹치지 않는다.
"""

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger

from core.config import Settings
from service.upload_orchestrator import UploadOrchestrator, UploadSummary


@dataclass
class TaskHandle:
    task_id: str = field(default_factory=lambda: f"task_{uuid.uuid4().hex[:8]}")
    finished: bool = False

    def finish(self) -> None:
        self.finished = True


@dataclass
class BackgroundRunReport:
    task_id: str
    started_at: datetime
    finished_at: datetime | None = None
    summary: UploadSummary | None = None
    error: str | None = None


class BackgroundTrigger:
    def __init__(self, orchestrator: UploadOrchestrator):
        self.orchestrator = orchestrator
        self.last_report: BackgroundRunReport | None = None

    def on_activation(self, task: TaskHandle) -> None:
        """pending 조각을 모두 올리고, 성공/실패와 무관하게 task를 종료 처리한다."""
        logger.info(f"[background] Task started: {task.task_id}")
        report = BackgroundRunReport(task_id=task.task_id, started_at=datetime.now(UTC))
        try:
            report.summary = self.orchestrator.upload_all_pending()
        except Exception as e:
            logger.exception(f"[background] Task {task.task_id} failed")
            report.error = str(e)
        finally:
            report.finished_at = datetime.now(UTC)
            self.last_report = report
            task.finish()
        logger.info(f"[background] Task finished: {task.task_id}")


class PeriodicScheduler:
    def __init__(
        self,
        callback: Callable[[TaskHandle], None],
        interval_seconds: float,
        run_on_start: bool = True,
    ):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="background-uploads", daemon=True
        )
        self._thread.start()
        logger.info(f"Background uploads scheduled every {self.interval_seconds:.0f}s")

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        if self.run_on_start:
            self._activate()
        while not self._stop_event.wait(self.interval_seconds):
            self._activate()

    def _activate(self) -> None:
        task = TaskHandle()
        try:
            self.callback(task)
        except Exception:
            logger.exception(f"Background callback raised for {task.task_id}")
        if not task.finished:
            logger.warning(f"Background task {task.task_id} was not finished, releasing")
            task.finish()


def register_background_uploads(
    orchestrator: UploadOrchestrator, config: Settings
) -> tuple[BackgroundTrigger, PeriodicScheduler]:
    trigger = BackgroundTrigger(orchestrator)
    scheduler = PeriodicScheduler(
        trigger.on_activation,
        interval_seconds=config.background_interval_seconds,
        run_on_start=config.BACKGROUND_RUN_ON_START,
    )
    return trigger, scheduler
