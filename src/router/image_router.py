from datetime import datetime

from fastapi import APIRouter, Depends, UploadFile
from pydantic import BaseModel

from core.config import Settings
from core.dependencies import get_orchestrator, get_repository, get_settings
from model.image import FragmentRecord, FragmentStatus, ImageRecord
from model.repository import ImageRepository
from router.upload_router import UploadSummaryResponse
from service import image_service
from service.upload_orchestrator import UploadOrchestrator

router = APIRouter(prefix="/api/images", tags=["images"])


# --- 응답 스키마 ---

class FragmentResponse(BaseModel):
    id: str
    path: str
    position: int
    status: str

    @classmethod
    def from_record(cls, record: FragmentRecord) -> "FragmentResponse":
        return cls(id=record.id, path=record.path, position=record.position, status=record.status)


class ImageResponse(BaseModel):
    id: str
    path: str
    status: str
    created_at: datetime
    failed_fragments: int
    fragments: list[FragmentResponse]

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageResponse":
        return cls(
            id=record.id,
            path=record.path,
            status=record.status,
            created_at=record.created_at,
            failed_fragments=sum(1 for f in record.fragments if f.status == FragmentStatus.FAILED),
            fragments=[FragmentResponse.from_record(f) for f in record.fragments],
        )


class ProcessResponse(BaseModel):
    image: ImageResponse
    upload: UploadSummaryResponse


# --- 엔드포인트 ---

@router.post("/upload", response_model=ProcessResponse)
def upload_image(
    file: UploadFile,
    repository: ImageRepository = Depends(get_repository),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
    config: Settings = Depends(get_settings),
):
    """원본 저장 → 4조각 분할 → 이 이미지의 조각 업로드."""
    source_path = image_service.save_upload(file, config.UPLOAD_DIR)
    record, summary = image_service.process_and_upload(
        source_path, repository, orchestrator, config.FRAGMENT_DIR
    )
    return ProcessResponse(
        image=ImageResponse.from_record(record),
        upload=UploadSummaryResponse.from_summary(summary),
    )


@router.get("/", response_model=list[ImageResponse])
def list_images(repository: ImageRepository = Depends(get_repository)):
    return [ImageResponse.from_record(r) for r in repository.list_images()]


@router.get("/{image_id}", response_model=ImageResponse)
def get_image(image_id: str, repository: ImageRepository = Depends(get_repository)):
    return ImageResponse.from_record(image_service.get_image_or_raise(image_id, repository))


@router.post("/{image_id}/upload", response_model=ProcessResponse)
def resume_image_upload(
    image_id: str,
    repository: ImageRepository = Depends(get_repository),
    orchestrator: UploadOrchestrator = Depends(get_orchestrator),
):
    """이 이미지에 남은 pending 조각만 다시 업로드한다."""
    image_service.get_image_or_raise(image_id, repository)
    summary = orchestrator.upload_pending_for_image(image_id)
    return ProcessResponse(
        image=ImageResponse.from_record(image_service.get_image_or_raise(image_id, repository)),
        upload=UploadSummaryResponse.from_summary(summary),
    )


@router.delete("/{image_id}")
def delete_image(image_id: str, repository: ImageRepository = Depends(get_repository)):
    image_service.delete_image(image_id, repository)
    return {"detail": "Deleted"}
