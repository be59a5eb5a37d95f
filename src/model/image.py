from datetime import UTC, datetime
from enum import StrEnum

from sqlmodel import Field, Relationship, SQLModel


class ImageStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class FragmentStatus(StrEnum):
    PENDING = "pending"
    UPLOADING = "uploading"  # 업로더가 선점한 상태
    UPLOADED = "uploaded"
    FAILED = "failed"


TERMINAL_FRAGMENT_STATUSES = (FragmentStatus.UPLOADED, FragmentStatus.FAILED)


def fragment_id(image_id: str, index: int) -> str:
    """부모 이미지 ID + 위치로 조각 ID를 만든다. 재시도해도 바뀌지 않는다."""
    return f"{image_id}_fragment_{index}"


class ImageRecord(SQLModel, table=True):
    __tablename__ = "image"

    id: str = Field(primary_key=True)
    path: str
    status: str = Field(default=ImageStatus.PENDING.value, index=True)  # pending, completed
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    fragments: list["FragmentRecord"] = Relationship(
        back_populates="parent_image",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "FragmentRecord.position",
        },
    )


class FragmentRecord(SQLModel, table=True):
    __tablename__ = "fragment"

    id: str = Field(primary_key=True)
    path: str
    position: int
    status: str = Field(default=FragmentStatus.PENDING.value, index=True)  # pending, uploading, uploaded, failed
    image_id: str = Field(foreign_key="image.id", index=True)
    claimed_at: datetime | None = None

    parent_image: ImageRecord | None = Relationship(back_populates="fragments")
