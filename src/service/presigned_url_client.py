import httpx
from loguru import logger

from core.exceptions import UrlFetchError


class PresignedUrlClient:
    """조정 서비스에서 조각 업로드용 presigned URL을 받아온다.

    GET {endpoint}?fragmentPath=<path> → {"url": "..."}
    재시도는 하지 않는다. 실패는 UrlFetchError로 올려서 업로더가 재시도한다.
    """

    def __init__(self, endpoint: str, client: httpx.Client):
        self.endpoint = endpoint
        self.client = client

    def get_upload_url(self, fragment_path: str) -> str:
        try:
            response = self.client.get(self.endpoint, params={"fragmentPath": fragment_path})
        except httpx.HTTPError as e:
            raise UrlFetchError(f"조정 서비스 요청 실패: {e}") from e

        if response.is_error:
            raise UrlFetchError(f"조정 서비스 응답 오류: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise UrlFetchError("조정 서비스 응답이 JSON이 아닙니다") from e

        url = body.get("url") if isinstance(body, dict) else None
        if not isinstance(url, str) or not url:
            raise UrlFetchError(f"응답에 url 필드가 없습니다: {body!r}")

        logger.debug(f"Presigned URL fetched for {fragment_path}")
        return url
