"""Image / Fragment 영속 저장소.

모든 변경은 트랜잭션 범위(`transaction()`) 안에서 실행된다.
성공하면 커밋, 예외가 나면 롤백 후 세션이 반드시 반환된다.
엔진은 생성자로 주입받는다 (전역 싱글톤 없음).
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import exists, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from core.exceptions import DuplicateImage
from model.image import (
    TERMINAL_FRAGMENT_STATUSES,
    FragmentRecord,
    FragmentStatus,
    ImageRecord,
    ImageStatus,
    fragment_id,
)

UNFINISHED_FRAGMENT_STATUSES = (FragmentStatus.PENDING, FragmentStatus.UPLOADING)


class ImageRepository:
    def __init__(self, engine: Engine):
        self._engine = engine

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with Session(self._engine, expire_on_commit=False) as session:
            with session.begin():
                yield session

    # --- 생성 ---

    def create_image_with_fragments(
        self, image_id: str, path: str, fragment_paths: list[str]
    ) -> ImageRecord:
        """이미지 1개 + 조각 N개를 한 트랜잭션으로 생성한다 (전부 아니면 전무)."""
        if not fragment_paths:
            raise ValueError("조각 경로가 비어 있습니다")

        image = ImageRecord(
            id=image_id,
            path=path,
            fragments=[
                FragmentRecord(
                    id=fragment_id(image_id, index),
                    path=fragment_path,
                    position=index,
                    image_id=image_id,
                )
                for index, fragment_path in enumerate(fragment_paths)
            ],
        )
        try:
            with self.transaction() as session:
                session.add(image)
        except IntegrityError as e:
            raise DuplicateImage(f"이미 등록된 이미지 ID입니다: {image_id}") from e

        logger.debug(f"Image {image_id} stored with {len(fragment_paths)} fragments")
        return image

    # --- 조회 ---

    def query_pending_fragments(self) -> list[FragmentRecord]:
        return self._pending_fragments()

    def query_pending_fragments_for_image(self, image_id: str) -> list[FragmentRecord]:
        return self._pending_fragments(image_id)

    def _pending_fragments(self, image_id: str | None = None) -> list[FragmentRecord]:
        statement = select(FragmentRecord).where(
            FragmentRecord.status == FragmentStatus.PENDING
        )
        if image_id is not None:
            statement = statement.where(FragmentRecord.image_id == image_id)
        statement = statement.order_by(FragmentRecord.image_id, FragmentRecord.position)

        with self.transaction() as session:
            return list(session.exec(statement).all())

    def get_image(self, image_id: str) -> ImageRecord | None:
        statement = (
            select(ImageRecord)
            .where(ImageRecord.id == image_id)
            .options(selectinload(ImageRecord.fragments))
        )
        with self.transaction() as session:
            return session.exec(statement).first()

    def list_images(self) -> list[ImageRecord]:
        statement = (
            select(ImageRecord)
            .options(selectinload(ImageRecord.fragments))
            .order_by(col(ImageRecord.created_at).desc())
        )
        with self.transaction() as session:
            return list(session.exec(statement).all())

    def all_fragments_terminal(self, image_id: str) -> bool:
        """이미지의 모든 조각이 uploaded/failed 상태인지 확인한다."""
        statement = select(FragmentRecord.status).where(FragmentRecord.image_id == image_id)
        with self.transaction() as session:
            statuses = session.exec(statement).all()
        return bool(statuses) and all(s in TERMINAL_FRAGMENT_STATUSES for s in statuses)

    def status_counts(self) -> dict[str, dict[str, int]]:
        """상태별 이미지/조각 개수. 헬스 체크에서 사용한다."""
        with self.transaction() as session:
            image_rows = session.exec(
                select(ImageRecord.status, func.count()).group_by(ImageRecord.status)
            ).all()
            fragment_rows = session.exec(
                select(FragmentRecord.status, func.count()).group_by(FragmentRecord.status)
            ).all()

        images = {s.value: 0 for s in ImageStatus}
        images.update({status: count for status, count in image_rows})
        fragments = {s.value: 0 for s in FragmentStatus}
        fragments.update({status: count for status, count in fragment_rows})
        return {"images": images, "fragments": fragments}

    # --- 상태 변경 ---

    def set_fragment_status(self, fragment_id: str, status: FragmentStatus | str) -> None:
        """조각 상태를 바꾼다. 없는 ID면 아무것도 하지 않는다."""
        status = FragmentStatus(status)
        with self.transaction() as session:
            fragment = session.get(FragmentRecord, fragment_id)
            if fragment is None:
                logger.debug(f"Fragment {fragment_id} not found, status update ignored")
                return
            fragment.status = status.value
            fragment.claimed_at = (
                datetime.now(UTC) if status is FragmentStatus.UPLOADING else None
            )

    def set_image_status(self, image_id: str, status: ImageStatus | str) -> None:
        """이미지 상태를 바꾼다. 없는 ID면 아무것도 하지 않는다."""
        status = ImageStatus(status)
        with self.transaction() as session:
            image = session.get(ImageRecord, image_id)
            if image is None:
                logger.debug(f"Image {image_id} not found, status update ignored")
                return
            image.status = status.value

    def complete_image(self, image_id: str) -> bool:
        """pending 이미지만 completed로 올린다. 이번 호출이 올렸으면 True."""
        with self.transaction() as session:
            result = session.execute(
                update(ImageRecord)
                .where(
                    ImageRecord.id == image_id,
                    ImageRecord.status == ImageStatus.PENDING,
                )
                .values(status=ImageStatus.COMPLETED.value)
            )
            return result.rowcount == 1

    def claim_pending_fragments(self, image_id: str | None = None) -> list[FragmentRecord]:
        """pending 조각을 uploading으로 선점하고, 선점에 성공한 조각만 반환한다.

        행 단위 compare-and-set(status == pending 조건부 UPDATE)이라
        대화형 경로와 백그라운드 경로가 겹쳐도 한 조각은 한 쪽만 가져간다.
        """
        candidates = select(FragmentRecord.id).where(
            FragmentRecord.status == FragmentStatus.PENDING
        )
        if image_id is not None:
            candidates = candidates.where(FragmentRecord.image_id == image_id)

        now = datetime.now(UTC)
        with self.transaction() as session:
            claimed: list[str] = []
            for candidate_id in session.exec(candidates).all():
                result = session.execute(
                    update(FragmentRecord)
                    .where(
                        FragmentRecord.id == candidate_id,
                        FragmentRecord.status == FragmentStatus.PENDING,
                    )
                    .values(status=FragmentStatus.UPLOADING.value, claimed_at=now)
                )
                if result.rowcount == 1:
                    claimed.append(candidate_id)

            if not claimed:
                return []
            statement = (
                select(FragmentRecord)
                .where(col(FragmentRecord.id).in_(claimed))
                .order_by(FragmentRecord.image_id, FragmentRecord.position)
            )
            return list(session.exec(statement).all())

    def release_expired_claims(self, lease_seconds: float) -> int:
        """선점 후 lease 시간이 지난 조각을 pending으로 되돌린다 (죽은 업로더 회수)."""
        cutoff = datetime.now(UTC) - timedelta(seconds=lease_seconds)
        with self.transaction() as session:
            result = session.execute(
                update(FragmentRecord)
                .where(
                    FragmentRecord.status == FragmentStatus.UPLOADING,
                    col(FragmentRecord.claimed_at) <= cutoff,
                )
                .values(status=FragmentStatus.PENDING.value, claimed_at=None)
            )
            released = result.rowcount

        if released:
            logger.warning(f"Released {released} stale fragment claims")
        return released

    def promote_finished_images(self) -> list[str]:
        """조각이 모두 종료 상태인 pending 이미지를 completed로 올린다."""
        has_fragments = exists().where(FragmentRecord.image_id == ImageRecord.id)
        has_unfinished = exists().where(
            FragmentRecord.image_id == ImageRecord.id,
            col(FragmentRecord.status).in_(UNFINISHED_FRAGMENT_STATUSES),
        )
        statement = select(ImageRecord.id).where(
            ImageRecord.status == ImageStatus.PENDING,
            has_fragments,
            ~has_unfinished,
        )

        with self.transaction() as session:
            image_ids = list(session.exec(statement).all())
            if image_ids:
                session.execute(
                    update(ImageRecord)
                    .where(col(ImageRecord.id).in_(image_ids))
                    .values(status=ImageStatus.COMPLETED.value)
                )
        return image_ids

    # --- 삭제 ---

    def delete_image(self, image_id: str) -> ImageRecord | None:
        """이미지와 소속 조각 레코드를 함께 삭제한다. 삭제된 레코드를 반환."""
        statement = (
            select(ImageRecord)
            .where(ImageRecord.id == image_id)
            .options(selectinload(ImageRecord.fragments))
        )
        with self.transaction() as session:
            image = session.exec(statement).first()
            if image is None:
                return None
            session.delete(image)
        return image
