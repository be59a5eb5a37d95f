"""
이미지를 4개의 사분면 조각으로 나누는 함수.
조각은 JPEG로 디스크에 저장되고, 경로와 픽셀 크기를 반환한다.
"""

import os
from dataclasses import dataclass

from loguru import logger
from PIL import Image

from core.exceptions import SplitError
from model.image import fragment_id

FRAGMENT_COUNT = 4


@dataclass(frozen=True)
class FragmentInfo:
    path: str
    width: int  # 참고용. 업로드 단계에서는 쓰지 않는다.
    height: int


def quadrant_boxes(width: int, height: int) -> list[tuple[int, int, int, int]]:
    """좌상, 우상, 좌하, 우하 순서의 crop 박스."""
    half_w, half_h = width // 2, height // 2
    return [
        (0, 0, half_w, half_h),
        (half_w, 0, width, half_h),
        (0, half_h, half_w, height),
        (half_w, half_h, width, height),
    ]


def split_into_quadrants(image_path: str, output_dir: str, image_id: str) -> list[FragmentInfo]:
    """원본 이미지를 4조각으로 잘라 output_dir에 저장한다.

    파일명은 조각 ID와 같다: {image_id}_fragment_{index}.jpg
    열 수 없거나 너무 작은 이미지는 SplitError.
    """
    try:
        with Image.open(image_path) as source:
            img = source.convert("RGB")
    except (OSError, Image.DecompressionBombError) as e:
        raise SplitError(f"이미지를 열 수 없습니다: {image_path} ({e})") from e

    width, height = img.size
    logger.debug(f"Splitting {image_path} ({width}x{height})")
    if width < 2 or height < 2:
        raise SplitError(f"분할하기에 너무 작은 이미지입니다: {width}x{height}")

    os.makedirs(output_dir, exist_ok=True)

    fragments: list[FragmentInfo] = []
    try:
        for index, box in enumerate(quadrant_boxes(width, height)):
            crop = img.crop(box)
            path = os.path.join(output_dir, f"{fragment_id(image_id, index)}.jpg")
            crop.save(path, "JPEG", quality=90)
            fragments.append(FragmentInfo(path=path, width=crop.width, height=crop.height))
    except OSError as e:
        delete_fragments([f.path for f in fragments])
        raise SplitError(f"조각을 저장하지 못했습니다: {e}") from e

    return fragments


def delete_fragments(paths: list[str]) -> None:
    """조각 파일들을 지운다. 이미 없는 파일은 건너뛴다."""
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
