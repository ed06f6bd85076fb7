"""
통계 대시보드 데이터 수집

지역/타입마다 목록 API를 numOfRows=1로 호출해 totalCount만 모은다.
개별 호출 실패는 0건으로 처리하고, 지역 목록 자체를 못 가져오면 전체가 실패한다.
결과는 주입된 캐시에 TTL 동안 보관한다.
"""
import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from cache_utils import CacheBackend
from config import settings
from schemas import RegionStats, StatsSummary, TypeStats
from services.tour_api import CONTENT_TYPE, TourApiClient, get_content_type_name

logger = logging.getLogger(__name__)

REGION_STATS_KEY = "stats:region"
TYPE_STATS_KEY = "stats:type"
SUMMARY_KEY = "stats:summary"


class StatsError(Exception):
    """통계 집계 실패 (지역/타입 목록 조회 자체가 실패한 경우)"""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


def calculate_percentage(count: int, total: int) -> float:
    """소수점 1자리 백분율 (JavaScript Math.round와 같은 반올림)"""
    if total <= 0:
        return 0.0
    return math.floor(count / total * 1000 + 0.5) / 10


def sort_by_count(stats: List[Any]) -> List[Any]:
    return sorted(stats, key=lambda stat: stat.count, reverse=True)


class StatsAggregator:
    """지역별/타입별 관광지 통계 집계기"""

    def __init__(self, client: TourApiClient, cache: CacheBackend, ttl: Optional[int] = None):
        self.client = client
        self.cache = cache
        self.ttl = ttl if ttl is not None else settings.STATS_CACHE_TTL

    async def _cached(self, key: str, compute: Callable[[], Awaitable[Any]], load: Callable[[Any], Any], dump: Callable[[Any], Any]):
        cached_result = self.cache.get(key)
        if cached_result is not None:
            logger.info(f"Cache hit for {key}")
            return load(cached_result)

        logger.info(f"Cache miss for {key}")
        result = await compute()
        self.cache.set(key, dump(result), expire=self.ttl)
        return result

    async def _count(self, **filters) -> int:
        result = await asyncio.to_thread(
            self.client.get_area_based_list, num_of_rows=1, page_no=1, **filters
        )
        return result.total_count

    async def _count_partitions(self, partitions: List[Tuple[str, str]], filter_name: str) -> List[Tuple[str, str, int]]:
        """파티션마다 totalCount 조회 (병렬, 실패한 파티션은 0건)"""
        tasks = [self._count(**{filter_name: code}) for code, _ in partitions]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        counts = []
        for (code, name), result in zip(partitions, results):
            if isinstance(result, Exception):
                logger.warning(f"{name}({code}) 통계 조회 실패: {result}")
                counts.append((code, name, 0))
            else:
                counts.append((code, name, result))
        return counts

    async def _compute_region_stats(self) -> List[RegionStats]:
        try:
            area_codes = await asyncio.to_thread(self.client.get_area_code)
        except Exception as e:
            logger.error(f"지역별 통계 조회 실패: {e}")
            raise StatsError(f"지역별 통계 조회 실패: {e}", original_exception=e) from e

        counts = await self._count_partitions([(area.code, area.name) for area in area_codes], "area_code")
        stats = [
            RegionStats(area_code=code, area_name=name, count=count)
            for code, name, count in counts
            if count > 0
        ]
        return sort_by_count(stats)

    async def _compute_type_stats(self) -> List[TypeStats]:
        partitions = [(type_id, get_content_type_name(type_id)) for type_id in CONTENT_TYPE.values()]
        counts = [
            (code, name, count)
            for code, name, count in await self._count_partitions(partitions, "content_type_id")
            if count > 0
        ]

        total_count = sum(count for _, _, count in counts)
        stats = [
            TypeStats(
                content_type_id=code,
                content_type_name=name,
                count=count,
                percentage=calculate_percentage(count, total_count),
            )
            for code, name, count in counts
        ]
        return sort_by_count(stats)

    async def _compute_summary(self) -> StatsSummary:
        region_stats, type_stats = await asyncio.gather(self.get_region_stats(), self.get_type_stats())
        return StatsSummary(
            total_count=sum(stat.count for stat in type_stats),
            top_regions=region_stats[:3],
            top_types=type_stats[:3],
            last_updated=datetime.now(timezone.utc),
        )

    async def get_region_stats(self) -> List[RegionStats]:
        """지역별 관광지 개수 (개수 내림차순, 0건 지역 제외)"""
        return await self._cached(
            REGION_STATS_KEY,
            self._compute_region_stats,
            load=lambda data: [RegionStats.model_validate(item) for item in data],
            dump=lambda stats: [stat.model_dump(mode="json") for stat in stats],
        )

    async def get_type_stats(self) -> List[TypeStats]:
        """타입별 관광지 개수와 비율 (개수 내림차순, 0건 타입 제외)"""
        return await self._cached(
            TYPE_STATS_KEY,
            self._compute_type_stats,
            load=lambda data: [TypeStats.model_validate(item) for item in data],
            dump=lambda stats: [stat.model_dump(mode="json") for stat in stats],
        )

    async def get_stats_summary(self) -> StatsSummary:
        """전체 관광지 수, Top 3 지역/타입"""
        return await self._cached(
            SUMMARY_KEY,
            self._compute_summary,
            load=StatsSummary.model_validate,
            dump=lambda summary: summary.model_dump(mode="json"),
        )

    def invalidate(self):
        for key in (REGION_STATS_KEY, TYPE_STATS_KEY, SUMMARY_KEY):
            self.cache.delete(key)
        logger.info("Stats cache invalidated")

    async def refresh(self) -> StatsSummary:
        self.invalidate()
        return await self.get_stats_summary()
