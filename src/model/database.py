from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from core.config import settings


def build_engine(url: str) -> Engine:
    """DB URL로 엔진을 만든다.

    SQLite는 백그라운드 스레드와 요청 스레드가 같은 DB를 쓰므로
    check_same_thread를 끈다.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=settings.DEBUG, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(target: Engine | None = None) -> None:
    import model.image  # noqa: F401 — 테이블 등록

    SQLModel.metadata.create_all(target or engine)
