from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from config import settings


def _engine_options(database_url: str) -> dict:
    """SQLite(로컬 기본값)와 서버형 DB의 엔진 옵션 분리"""
    if database_url.startswith("sqlite"):
        # FastAPI 스레드풀에서 같은 연결을 쓸 수 있어야 함
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,  # 끊어진 연결 자동 재연결
        "pool_recycle": 3600,
    }


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# users / bookmarks 테이블의 Base
Base = declarative_base()


def get_db():
    """요청마다 세션을 열고 응답 후 닫는 FastAPI 의존성"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
