import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cache_utils import MemoryCache, set_cache
from config import settings
from database import Base, get_db
from main import app
from services.tour_api import TourApiClient, get_tour_api_client


def make_response(status_code: int = 200, body: Any = None, text: Optional[str] = None, reason: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason or {200: "OK", 404: "Not Found", 429: "Too Many Requests"}.get(status_code, "Error")
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(body, ensure_ascii=False).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


def envelope(items: Any = None, total_count: int = 0, num_of_rows: int = 10, page_no: int = 1,
             result_code: str = "0000", result_msg: str = "OK") -> Dict[str, Any]:
    """KorService2 응답 envelope (items가 None이면 빈 문자열, API 실제 동작과 동일)"""
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": result_msg},
            "body": {
                "items": {"item": items} if items is not None else "",
                "numOfRows": num_of_rows,
                "pageNo": page_no,
                "totalCount": total_count,
            },
        }
    }


def tour_item(content_id: str = "126508", title: str = "경복궁", **overrides) -> Dict[str, Any]:
    item = {
        "contentid": content_id,
        "contenttypeid": "12",
        "title": title,
        "addr1": "서울특별시 종로구 사직로 161",
        "addr2": "",
        "areacode": "1",
        "mapx": "126.9769930325",
        "mapy": "37.5788222356",
        "firstimage": "http://tong.visitkorea.or.kr/cms/resource/33/2678633_image2_1.jpg",
        "firstimage2": "",
        "tel": "02-3700-3900",
        "cat1": "A02",
        "cat2": "A0201",
        "cat3": "A02010100",
        "modifiedtime": "20240101120000",
    }
    item.update(overrides)
    return item


class FakeSession:
    """requests.Session 대용: 등록한 응답(또는 예외)을 순서대로 돌려준다"""

    def __init__(self, responses: Optional[List[Any]] = None, routes: Optional[Dict[str, Any]] = None):
        self.responses = list(responses or [])
        self.routes = routes or {}
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        endpoint = url.rsplit("/", 1)[-1]
        if endpoint in self.routes:
            result = self.routes[endpoint]
            if callable(result):
                result = result(params or {})
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def tour_client(fake_session, sleeps):
    return TourApiClient(api_key="test-key", session=fake_session, sleep=sleeps.append)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def memory_cache():
    cache = MemoryCache()
    set_cache(cache)
    yield cache
    set_cache(None)


@pytest.fixture
def jwt_settings(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_JWT_KEY", "test-secret")
    monkeypatch.setattr(settings, "AUTH_JWT_ALGORITHM", "HS256")


@pytest.fixture
def api_client(tour_client, db_session, memory_cache):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_tour_api_client] = lambda: tour_client
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
