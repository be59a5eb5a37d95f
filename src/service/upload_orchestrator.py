"""업로드 오케스트레이터.

대기 중인 조각을 선점(pending → uploading)한 뒤 하나씩 순차 업로드하고,
조각이 모두 종료 상태(uploaded/failed)가 된 이미지를 completed로 올린다.

- upload_pending_for_image: 대화형 경로. 이미지 하나로 범위를 좁힌다.
- upload_all_pending: 백그라운드 경로. 시스템 전체의 pending 조각.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from loguru import logger

from core.config import Settings
from model.image import FragmentRecord, FragmentStatus
from model.repository import ImageRepository
from service.fragment_uploader import FragmentUploader, RetryPolicy
from service.presigned_url_client import PresignedUrlClient
from utility.timer import timer

UploaderFactory = Callable[[FragmentRecord], FragmentUploader]


@dataclass
class UploadSummary:
    total: int = 0
    uploaded: int = 0
    failed: int = 0
    errors: int = 0  # 업로더 자체가 예상 밖 예외로 끝난 경우
    completed_images: list[str] = field(default_factory=list)


class UploadOrchestrator:
    def __init__(
        self,
        repository: ImageRepository,
        uploader_factory: UploaderFactory,
        claim_lease_seconds: float = 600,
    ):
        self.repository = repository
        self.uploader_factory = uploader_factory
        self.claim_lease_seconds = claim_lease_seconds

    def upload_pending_for_image(self, image_id: str) -> UploadSummary:
        fragments = self.repository.claim_pending_fragments(image_id=image_id)
        logger.info(f"Uploading {len(fragments)} pending fragments of image {image_id}")

        with timer(f"upload image {image_id}"):
            summary = self._upload(fragments)

        # 다른 경로가 선점 중인 조각이 있으면 그쪽이 올린다. completed 전이는 한 번뿐이다
        if self.repository.all_fragments_terminal(image_id) and self.repository.complete_image(image_id):
            summary.completed_images.append(image_id)
            logger.info(f"Image {image_id} completed")
        return summary

    def upload_all_pending(self) -> UploadSummary:
        self.repository.release_expired_claims(self.claim_lease_seconds)
        fragments = self.repository.claim_pending_fragments()
        logger.info(f"Uploading {len(fragments)} pending fragments (all images)")

        with timer("upload all pending"):
            summary = self._upload(fragments)

        summary.completed_images = self.repository.promote_finished_images()
        if summary.completed_images:
            logger.info(f"Images completed: {', '.join(summary.completed_images)}")
        return summary

    def _upload(self, fragments: list[FragmentRecord]) -> UploadSummary:
        summary = UploadSummary(total=len(fragments))
        for fragment in fragments:
            try:
                result = self.uploader_factory(fragment).upload()
            except Exception:
                # 조각은 uploading으로 남고, lease가 지나면 회수된다
                logger.exception(f"Uploader crashed for fragment {fragment.id}")
                summary.errors += 1
                continue

            if result is FragmentStatus.UPLOADED:
                summary.uploaded += 1
            else:
                summary.failed += 1

        if summary.total:
            logger.info(
                f"Upload run: {summary.uploaded} uploaded, {summary.failed} failed, "
                f"{summary.errors} errors of {summary.total}"
            )
        return summary


def build_upload_orchestrator(
    repository: ImageRepository, http_client: httpx.Client, config: Settings
) -> UploadOrchestrator:
    """설정값으로 URL 클라이언트 / 재시도 정책 / 업로더 팩토리를 조립한다."""
    url_client = PresignedUrlClient(config.PRESIGNED_URL_ENDPOINT, http_client)
    policy = RetryPolicy(
        max_attempts=config.MAX_UPLOAD_ATTEMPTS,
        backoff_base=config.RETRY_BACKOFF_BASE,
        backoff_max=config.RETRY_BACKOFF_MAX,
    )

    def uploader_factory(fragment: FragmentRecord) -> FragmentUploader:
        return FragmentUploader(fragment, repository, url_client, http_client, policy)

    return UploadOrchestrator(
        repository, uploader_factory, claim_lease_seconds=config.CLAIM_LEASE_SECONDS
    )
