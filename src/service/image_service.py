import os
import uuid

from fastapi import UploadFile
from loguru import logger

from core.exceptions import ImageNotFound
from model.image import ImageRecord
from model.repository import ImageRepository
from processor.splitter import delete_fragments
from service.image_processor import process_image
from service.upload_orchestrator import UploadOrchestrator, UploadSummary


def save_upload(file: UploadFile, upload_dir: str) -> str:
    """업로드된 원본 파일을 디스크에 저장하고 경로를 반환한다."""
    os.makedirs(upload_dir, exist_ok=True)

    ext = os.path.splitext(file.filename or "image.jpg")[1] or ".jpg"
    saved_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}{ext}")

    with open(saved_path, "wb") as f:
        f.write(file.file.read())
    return saved_path


def process_and_upload(
    source_path: str,
    repository: ImageRepository,
    orchestrator: UploadOrchestrator,
    fragment_dir: str,
) -> tuple[ImageRecord, UploadSummary]:
    """대화형 경로: 분할 → 저장 → 이 이미지의 조각만 바로 업로드.

    분할/저장이 실패하면 이미 저장한 원본 파일도 지운다.
    """
    try:
        image_id = process_image(source_path, repository, fragment_dir)
    except Exception:
        delete_fragments([source_path])
        raise
    summary = orchestrator.upload_pending_for_image(image_id)
    return get_image_or_raise(image_id, repository), summary


def get_image_or_raise(image_id: str, repository: ImageRepository) -> ImageRecord:
    record = repository.get_image(image_id)
    if not record:
        raise ImageNotFound
    return record


def delete_image(image_id: str, repository: ImageRepository) -> None:
    """이미지/조각 레코드와 디스크 파일을 함께 삭제한다."""
    record = repository.delete_image(image_id)
    if not record:
        raise ImageNotFound

    delete_fragments([f.path for f in record.fragments] + [record.path])
    logger.info(f"Image {image_id} deleted")
