from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.dependencies import get_background_trigger, get_orchestrator, get_repository
from model.repository import ImageRepository
from service.background_trigger import BackgroundRunReport, BackgroundTrigger
from service.upload_orchestrator import UploadOrchestrator, UploadSummary

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


# --- 응답 스키마 ---

class UploadSummaryResponse(BaseModel):
    total: int
    uploaded: int
    failed: int
    errors: int
    completed_images: list[str]

    @classmethod
    def from_summary(cls, summary: UploadSummary) -> "UploadSummaryResponse":
        return cls(
            total=summary.total,
            uploaded=summary.uploaded,
            failed=summary.failed,
            errors=summary.errors,
            completed_images=summary.completed_images,
        )


class BackgroundRunResponse(BaseModel):
    task_id: str
    started_at: datetime
    finished_at: datetime | None
    summary: UploadSummaryResponse | None
    error: str | None

    @classmethod
    def from_report(cls, report: BackgroundRunReport) -> "BackgroundRunResponse":
        return cls(
            task_id=report.task_id,
            started_at=report.started_at,
            finished_at=report.finished_at,
            summary=UploadSummaryResponse.from_summary(report.summary) if report.summary else None,
            error=report.error,
        )


class UploadStatusResponse(BaseModel):
    images: dict[str, int]
    fragments: dict[str, int]
    last_background_run: BackgroundRunResponse | None


# --- 엔드포인트 ---

@router.post("/run", response_model=UploadSummaryResponse)
def run_pending_uploads(orchestrator: UploadOrchestrator = Depends(get_orchestrator)):
    """전체 pending 조각 업로드를 지금 바로 실행한다 (백그라운드 작업과 같은 경로)."""
    return UploadSummaryResponse.from_summary(orchestrator.upload_all_pending())


@router.get("/status", response_model=UploadStatusResponse)
def upload_status(
    repository: ImageRepository = Depends(get_repository),
    trigger: BackgroundTrigger = Depends(get_background_trigger),
):
    """상태별 개수 + 마지막 백그라운드 실행 결과. 실패가 조용히 묻히지 않게 조회용으로 둔다."""
    counts = repository.status_counts()
    report = trigger.last_report
    return UploadStatusResponse(
        images=counts["images"],
        fragments=counts["fragments"],
        last_background_run=BackgroundRunResponse.from_report(report) if report else None,
    )
