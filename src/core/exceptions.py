"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


# --- 이미지 관련 ---


class ImageNotFound(AppException):
    status_code = 404
    error_code = "IMAGE_NOT_FOUND"
    message = "이미지를 찾을 수 없습니다"


class DuplicateImage(AppException):
    status_code = 409
    error_code = "DUPLICATE_IMAGE"
    message = "이미 등록된 이미지 ID입니다"


class SplitError(AppException):
    status_code = 422
    error_code = "SPLIT_FAILED"
    message = "이미지를 조각으로 분할하지 못했습니다"


# --- 업로드 관련 ---
# 업로더가 잡아서 재시도로 바꾸는 예외들. 오케스트레이터까지 올라가지 않는다.


class UploadStepError(AppException):
    status_code = 502
    error_code = "UPLOAD_STEP_FAILED"
    message = "조각 업로드 단계가 실패했습니다"


class UrlFetchError(UploadStepError):
    error_code = "URL_FETCH_FAILED"
    message = "presigned URL을 가져오지 못했습니다"


class FragmentReadError(UploadStepError):
    status_code = 500
    error_code = "FRAGMENT_READ_FAILED"
    message = "조각 파일을 읽지 못했습니다"


class TransferError(UploadStepError):
    error_code = "TRANSFER_FAILED"
    message = "스토리지로 조각을 전송하지 못했습니다"
