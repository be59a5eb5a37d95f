"""처리 시간 측정 유틸리티."""

import time
from contextlib import contextmanager

from loguru import logger


@contextmanager
def timer(label: str = ""):
    """컨텍스트 매니저: 블록 실행 시간을 측정한다.

    사용법:
        with timer("upload all pending") as t:
            ...
        print(t.elapsed)

    블록에서 예외가 나도 경과 시간은 기록된다.
    """
    t = _TimerResult()
    start = time.perf_counter()
    try:
        yield t
    finally:
        t.elapsed = time.perf_counter() - start
        if label:
            logger.debug(f"[{label}] {t.elapsed * 1000:.0f}ms")


class _TimerResult:
    elapsed: float = 0.0
