import uuid

from loguru import logger

from core.exceptions import SplitError
from model.repository import ImageRepository
from processor.splitter import FRAGMENT_COUNT, delete_fragments, split_into_quadrants


def new_image_id() -> str:
    return f"image_{uuid.uuid4().hex}"


def process_image(source_path: str, repository: ImageRepository, output_dir: str) -> str:
    """원본 이미지를 4조각으로 나누고 Image + Fragment 레코드를 만든다.

    1. 새 이미지 ID 발급
    2. 사분면 분할 → 조각 파일 4개
    3. 이미지 + 조각 4개를 한 트랜잭션으로 저장
    4. 분할 실패 시 레코드 없이 SplitError를 그대로 올린다
       (ID만 돌려주면 호출자가 성공/실패를 구분할 수 없다)
    """
    image_id = new_image_id()

    try:
        fragments = split_into_quadrants(source_path, output_dir, image_id)
    except SplitError:
        logger.error(f"Split failed for {source_path} (image {image_id})")
        raise

    if len(fragments) != FRAGMENT_COUNT:
        delete_fragments([f.path for f in fragments])
        raise SplitError(f"조각 개수가 {FRAGMENT_COUNT}개가 아닙니다: {len(fragments)}")

    paths = [f.path for f in fragments]
    try:
        repository.create_image_with_fragments(image_id, source_path, paths)
    except Exception:
        delete_fragments(paths)
        raise

    logger.info(f"Image processed: {image_id} ({len(paths)} fragments)")
    return image_id
