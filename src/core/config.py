from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "fragment-uploader"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "DEBUG"

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # DB 설정 (재시작 후에도 업로드 상태가 남아 있어야 하므로 파일 DB)
    DATABASE_URL: str = "sqlite:///./fragment_uploader.db"

    # 파일 저장 경로
    UPLOAD_DIR: str = "/app/uploads"
    FRAGMENT_DIR: str = "/app/uploads/fragments"

    # 업로드 설정
    PRESIGNED_URL_ENDPOINT: str = "http://localhost:4000/presigned-url"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    MAX_UPLOAD_ATTEMPTS: int = 3
    RETRY_BACKOFF_BASE: float = 0.0  # 0이면 즉시 재시도
    RETRY_BACKOFF_MAX: float = 30.0
    CLAIM_LEASE_SECONDS: int = 600

    # 백그라운드 업로드 설정
    BACKGROUND_ENABLED: bool = True
    BACKGROUND_INTERVAL_MINUTES: int = 15
    BACKGROUND_RUN_ON_START: bool = True

    @property
    def background_interval_seconds(self) -> float:
        return self.BACKGROUND_INTERVAL_MINUTES * 60.0

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
