"""process_image: 분할 + Image/Fragment 레코드 생성 테스트."""

import os

import pytest
from PIL import Image

from core.exceptions import SplitError
from model.image import FragmentStatus, ImageStatus
from service.image_processor import process_image


def _make_source(tmp_path) -> str:
    path = tmp_path / "source.jpg"
    Image.new("RGB", (64, 48), color="blue").save(path, format="JPEG")
    return str(path)


def test_process_creates_image_and_four_fragments(repository, tmp_path):
    """조각 레코드 4개, ID는 {imageId}_fragment_{0..3}, 모두 pending."""
    source = _make_source(tmp_path)

    image_id = process_image(source, repository, str(tmp_path / "fragments"))

    image = repository.get_image(image_id)
    assert image_id.startswith("image_")
    assert image.path == source
    assert image.status == ImageStatus.PENDING
    assert [f.id for f in image.fragments] == [f"{image_id}_fragment_{i}" for i in range(4)]
    assert all(f.status == FragmentStatus.PENDING for f in image.fragments)
    assert all(os.path.exists(f.path) for f in image.fragments)


def test_reprocessing_creates_disjoint_records(repository, tmp_path):
    """같은 원본을 다시 처리하면 새 ID로 별도 레코드가 생긴다."""
    source = _make_source(tmp_path)

    first = process_image(source, repository, str(tmp_path / "fragments"))
    second = process_image(source, repository, str(tmp_path / "fragments"))

    assert first != second
    assert len(repository.list_images()) == 2
    assert len(repository.query_pending_fragments()) == 8


def test_split_failure_raises_without_records(repository, tmp_path):
    """분할 실패 → SplitError, 레코드 없음."""
    bogus = tmp_path / "bogus.jpg"
    bogus.write_bytes(b"definitely not a jpeg")

    with pytest.raises(SplitError):
        process_image(str(bogus), repository, str(tmp_path / "fragments"))

    assert repository.list_images() == []
    assert repository.query_pending_fragments() == []


def test_store_failure_removes_fragment_files(repository, tmp_path, monkeypatch):
    """저장 실패 시 이미 만들어진 조각 파일을 지우고 예외를 올린다."""
    source = _make_source(tmp_path)
    fragment_dir = tmp_path / "fragments"

    def _boom(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(repository, "create_image_with_fragments", _boom)

    with pytest.raises(RuntimeError):
        process_image(source, repository, str(fragment_dir))

    assert list(fragment_dir.iterdir()) == []
