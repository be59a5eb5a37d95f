"""조각 1개 업로드 (presigned URL → 파일 읽기 → PUT) + 재시도.

재시도는 재귀가 아니라 시도 횟수를 세는 루프다.
어떤 예외든 한 번의 시도 실패로 세고, 전체 단계를 처음부터 다시 한다.
max_attempts를 모두 쓰면 조각을 failed로 기록하고 끝낸다 (예외를 올리지 않음).
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
from loguru import logger

from core.exceptions import FragmentReadError, TransferError
from model.image import FragmentRecord, FragmentStatus
from model.repository import ImageRepository
from service.presigned_url_client import PresignedUrlClient

CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class RetryPolicy:
    """최대 시도 횟수와 지수 백오프.

    backoff_base가 0이면 즉시 재시도한다.
    n번째 시도가 실패한 뒤 기다리는 시간: min(base * 2^(n-1), max)
    """

    max_attempts: int = 3
    backoff_base: float = 0.0
    backoff_max: float = 30.0

    def delay_after(self, attempt: int) -> float:
        if self.backoff_base <= 0:
            return 0.0
        return min(self.backoff_base * 2 ** (attempt - 1), self.backoff_max)


class FragmentUploader:
    """조각 하나의 업로드를 책임진다. 인스턴스는 한 번만 쓴다."""

    def __init__(
        self,
        fragment: FragmentRecord,
        repository: ImageRepository,
        url_client: PresignedUrlClient,
        http_client: httpx.Client,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fragment = fragment
        self.repository = repository
        self.url_client = url_client
        self.http_client = http_client
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.attempts = 0
        self._used = False

    def upload(self) -> FragmentStatus:
        if self._used:
            raise RuntimeError(f"FragmentUploader는 재사용할 수 없습니다: {self.fragment.id}")
        self._used = True

        last_error: Exception | None = None
        while self.attempts < self.policy.max_attempts:
            self.attempts += 1
            try:
                self._attempt()
            except Exception as e:
                last_error = e
                if self.attempts < self.policy.max_attempts:
                    logger.warning(
                        f"Retrying fragment {self.fragment.path} "
                        f"(attempt {self.attempts}/{self.policy.max_attempts}): {e}"
                    )
                    delay = self.policy.delay_after(self.attempts)
                    if delay > 0:
                        self.sleep(delay)
                continue

            self.repository.set_fragment_status(self.fragment.id, FragmentStatus.UPLOADED)
            logger.info(f"Fragment {self.fragment.id} uploaded (attempt {self.attempts})")
            return FragmentStatus.UPLOADED

        logger.error(
            f"Fragment {self.fragment.id} failed after {self.policy.max_attempts} attempts: {last_error}"
        )
        self.repository.set_fragment_status(self.fragment.id, FragmentStatus.FAILED)
        return FragmentStatus.FAILED

    def _attempt(self) -> None:
        url = self.url_client.get_upload_url(self.fragment.path)
        data = self._read_bytes()
        self._transfer(url, data)

    def _read_bytes(self) -> bytes:
        try:
            with open(self.fragment.path, "rb") as f:
                return f.read()
        except OSError as e:
            raise FragmentReadError(f"조각 파일을 읽지 못했습니다: {self.fragment.path}") from e

    def _transfer(self, url: str, data: bytes) -> None:
        try:
            response = self.http_client.put(url, content=data, headers={"Content-Type": CONTENT_TYPE})
        except httpx.HTTPError as e:
            raise TransferError(f"스토리지 전송 실패: {e}") from e

        if response.is_error:
            raise TransferError(f"스토리지 응답 오류: HTTP {response.status_code}")
