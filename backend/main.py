from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from database import engine, Base
from routers import tours, stats, bookmarks
from core.error_handling import register_exception_handlers
from config import settings

# 로깅 설정
logging.basicConfig(
    level=logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 앱 시작 시 users / bookmarks 테이블 생성
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/updated")

    if not settings.tour_api_key:
        logger.warning("⚠️ TOUR_API_KEY가 설정되지 않았습니다. 관광 정보 API 호출이 실패합니다.")

    yield


app = FastAPI(
    title="MyTrip API",
    description="한국관광공사 관광지 검색/북마크/통계 API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# 요청 로깅 미들웨어
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


# 라우터 등록
app.include_router(tours.router, prefix=f"{settings.API_V1_STR}/tours", tags=["tours"])
app.include_router(stats.router, prefix=f"{settings.API_V1_STR}/stats", tags=["stats"])
app.include_router(bookmarks.router, prefix=f"{settings.API_V1_STR}/bookmarks", tags=["bookmarks"])


@app.get("/")
async def root():
    return {"message": "MyTrip API is running!"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "tour_api_configured": bool(settings.tour_api_key)}
