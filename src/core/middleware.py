from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from utility.timer import timer

# 대화형 업로드 요청은 조각 4개를 순차 전송하므로 기준을 넉넉히 둔다
SLOW_THRESHOLD_MS = 5000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """모든 HTTP 요청을 로깅하는 미들웨어.

    기록 항목: 메서드, 경로, 상태코드, 처리시간(ms)
    처리시간이 기준을 넘으면 WARNING 레벨로 기록.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        with timer() as t:
            response = await call_next(request)

        elapsed_ms = t.elapsed * 1000
        line = f"{request.method} {request.url.path} | {response.status_code} | {elapsed_ms:.0f}ms"
        if elapsed_ms > SLOW_THRESHOLD_MS:
            logger.warning(f"{line} (slow)")
        else:
            logger.info(line)

        return response
