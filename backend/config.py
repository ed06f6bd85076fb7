from typing import List, Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()


class Settings(BaseSettings):
    # 데이터베이스 설정
    DATABASE_URL: str = "sqlite:///./mytrip.db"

    # 캐시 설정 (memory | redis)
    CACHE_BACKEND: str = "memory"
    REDIS_URL: str = "redis://localhost:6379"
    STATS_CACHE_TTL: int = 3600  # 1시간

    # 한국관광공사 API 설정
    TOUR_API_KEY: Optional[str] = None
    NEXT_PUBLIC_TOUR_API_KEY: Optional[str] = None
    TOUR_API_BASE_URL: str = "https://apis.data.go.kr/B551011/KorService2"
    TOUR_API_MOBILE_APP: str = "MyTrip"
    TOUR_API_TIMEOUT: int = 10

    # 인증 제공자 토큰 검증 설정
    AUTH_JWT_KEY: Optional[str] = None
    AUTH_JWT_ALGORITHM: str = "RS256"

    # 환경 설정
    ENVIRONMENT: str = "development"

    # API 설정
    API_V1_STR: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def tour_api_key(self) -> Optional[str]:
        """공개 키를 우선 사용하고, 없으면 서버 키를 사용"""
        return self.NEXT_PUBLIC_TOUR_API_KEY or self.TOUR_API_KEY


settings = Settings()
