from typing import List
from fastapi import APIRouter, Depends

from cache_utils import get_cache
from schemas import RegionStats, StatsSummary, TypeStats
from services.stats_api import StatsAggregator
from services.tour_api import TourApiClient, get_tour_api_client

router = APIRouter(tags=["stats"])


def get_stats_aggregator(client: TourApiClient = Depends(get_tour_api_client)) -> StatsAggregator:
    return StatsAggregator(client, get_cache())


@router.get("/regions", response_model=List[RegionStats])
async def get_region_stats(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    """지역별 관광지 개수"""
    return await aggregator.get_region_stats()


@router.get("/types", response_model=List[TypeStats])
async def get_type_stats(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    """타입별 관광지 개수와 비율"""
    return await aggregator.get_type_stats()


@router.get("/summary", response_model=StatsSummary)
async def get_stats_summary(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    return await aggregator.get_stats_summary()


@router.post("/refresh", response_model=StatsSummary)
async def refresh_stats(aggregator: StatsAggregator = Depends(get_stats_aggregator)):
    """캐시를 비우고 통계를 다시 집계"""
    return await aggregator.refresh()
