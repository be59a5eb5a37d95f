import uvicorn
from fastapi import Depends, FastAPI

from core.config import settings
from core.dependencies import get_repository
from core.error_handlers import app_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from model.repository import ImageRepository
from router.image_router import router as image_router
from router.upload_router import router as upload_router
from utility.logger import setup_logger

setup_logger(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="사진을 4조각으로 나눠 presigned URL로 업로드하고, 실패/중단된 업로드를 재개한다",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AppException, app_exception_handler)

app.include_router(image_router)
app.include_router(upload_router)


@app.get("/health")
def health(repository: ImageRepository = Depends(get_repository)):
    counts = repository.status_counts()
    return {
        "status": "ok",
        "pending_fragments": counts["fragments"]["pending"],
        "failed_fragments": counts["fragments"]["failed"],
        "pending_images": counts["images"]["pending"],
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        access_log=False,
    )
