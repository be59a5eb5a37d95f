"""사분면 분할 함수 단위 테스트."""

import os

import pytest
from PIL import Image

from core.exceptions import SplitError
from processor.splitter import delete_fragments, quadrant_boxes, split_into_quadrants


def _make_image(path, width: int = 100, height: int = 80) -> str:
    """테스트용 JPEG 이미지를 디스크에 생성한다."""
    Image.new("RGB", (width, height), color="green").save(path, format="JPEG")
    return str(path)


def test_quadrant_boxes_cover_image():
    """홀수 크기여도 4개 박스가 전체 영역을 빈틈없이 덮는다."""
    boxes = quadrant_boxes(101, 81)

    assert boxes == [(0, 0, 50, 40), (50, 0, 101, 40), (0, 40, 50, 81), (50, 40, 101, 81)]
    area = sum((r - l) * (b - t) for l, t, r, b in boxes)
    assert area == 101 * 81


def test_split_writes_four_jpegs(tmp_path):
    source = _make_image(tmp_path / "source.jpg", 100, 80)

    fragments = split_into_quadrants(source, str(tmp_path / "out"), "image_abc")

    assert len(fragments) == 4
    for index, fragment in enumerate(fragments):
        assert os.path.basename(fragment.path) == f"image_abc_fragment_{index}.jpg"
        assert (fragment.width, fragment.height) == (50, 40)
        with Image.open(fragment.path) as img:
            assert img.format == "JPEG"
            assert img.size == (50, 40)


def test_split_rgba_source(tmp_path):
    """투명 채널이 있는 PNG도 RGB JPEG로 저장된다."""
    source = tmp_path / "source.png"
    Image.new("RGBA", (40, 40), color=(255, 0, 0, 128)).save(source, format="PNG")

    fragments = split_into_quadrants(str(source), str(tmp_path / "out"), "image_png")

    assert len(fragments) == 4
    with Image.open(fragments[0].path) as img:
        assert img.mode == "RGB"


def test_missing_source_raises(tmp_path):
    with pytest.raises(SplitError):
        split_into_quadrants(str(tmp_path / "nope.jpg"), str(tmp_path / "out"), "image_x")


def test_not_an_image_raises(tmp_path):
    bogus = tmp_path / "bogus.jpg"
    bogus.write_bytes(b"not an image")

    with pytest.raises(SplitError):
        split_into_quadrants(str(bogus), str(tmp_path / "out"), "image_x")


def test_decompression_bomb_raises(tmp_path, monkeypatch):
    """픽셀 수 제한을 넘는 이미지도 SplitError로 바뀐다."""
    source = _make_image(tmp_path / "huge.jpg", 100, 80)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(SplitError):
        split_into_quadrants(source, str(tmp_path / "out"), "image_x")


def test_too_small_raises(tmp_path):
    source = _make_image(tmp_path / "tiny.jpg", 1, 1)

    with pytest.raises(SplitError):
        split_into_quadrants(source, str(tmp_path / "out"), "image_x")


def test_delete_fragments_skips_missing(tmp_path):
    existing = tmp_path / "a.jpg"
    existing.write_bytes(b"x")

    delete_fragments([str(existing), str(tmp_path / "missing.jpg")])

    assert not existing.exists()
