import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import redis
from cachetools import LRUCache

from config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """
    캐시 백엔드 추상 클래스

    set의 expire는 초 단위. None이면 만료 없음, 0 이하이면 저장하지 않고
    기존 값도 지운다 (두 백엔드 동일).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """값 조회 (없거나 만료되면 None)"""

    @abstractmethod
    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """값 저장 (저장했으면 True)"""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """값 삭제"""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """키 존재 여부"""

    @abstractmethod
    def clear(self) -> bool:
        """전체 삭제"""


class MemoryCache(CacheBackend):
    """
    프로세스 메모리 캐시

    LRUCache에 값과 만료 시각을 함께 저장한다.
    """

    def __init__(self, max_size: int = 1000, timer=time.monotonic):
        self._timer = timer
        self._cache = LRUCache(maxsize=max_size)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._timer() >= expires_at:
                del self._cache[key]
                return None
            return value

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        if expire is not None and expire <= 0:
            self.delete(key)
            return False
        expires_at = self._timer() + expire if expire is not None else None
        with self._lock:
            self._cache[key] = (value, expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> bool:
        with self._lock:
            self._cache.clear()
        return True


class RedisCache(CacheBackend):
    """Redis 캐시 (값은 JSON 문자열로 저장)"""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client or redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """
        캐시에 데이터 저장

        Args:
            key: 캐시 키
            value: JSON으로 직렬화 가능한 값 (model_dump(mode="json") 결과)
            expire: 만료 시간 (초 단위, None이면 만료 없음, 0 이하이면 저장하지 않음)

        Returns:
            bool: 저장 성공 여부
        """
        if expire is not None and expire <= 0:
            self.delete(key)
            return False
        try:
            return bool(self.redis.set(key, json.dumps(value, ensure_ascii=False), ex=expire))
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"Redis set error: {e}")
            return False

    def get(self, key: str) -> Optional[Any]:
        """
        캐시에서 데이터 조회

        Redis 연결 오류와 JSON이 아닌 값은 캐시 미스로 취급한다.
        """
        try:
            value = self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Redis get error: {e}")
            return None
        if value is None:
            return None

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Redis 캐시 값 파싱 실패: {key}")
            return None

    def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(key))
        except redis.RedisError as e:
            logger.error(f"Redis delete error: {e}")
            return False

    def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except redis.RedisError as e:
            logger.error(f"Redis exists error: {e}")
            return False

    def clear(self) -> bool:
        try:
            return bool(self.redis.flushdb())
        except redis.RedisError as e:
            logger.error(f"Redis flushdb error: {e}")
            return False


_cache: Optional[CacheBackend] = None


def create_cache(backend: str) -> CacheBackend:
    if backend == "redis":
        return RedisCache()
    if backend == "memory":
        return MemoryCache()
    raise ValueError(f"지원하지 않는 캐시 백엔드입니다: {backend}")


def get_cache() -> CacheBackend:
    """전역 캐시 인스턴스 조회 (CACHE_BACKEND 설정에 따라 생성)"""
    global _cache
    if _cache is None:
        _cache = create_cache(settings.CACHE_BACKEND)
        logger.info(f"Cache backend initialized: {settings.CACHE_BACKEND}")
    return _cache


def set_cache(cache: Optional[CacheBackend]):
    """전역 캐시 인스턴스 교체 (테스트용)"""
    global _cache
    _cache = cache
