import asyncio
import logging
import math
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from schemas import (
    AreaCode,
    Coordinate,
    MapMarker,
    TourCard,
    TourDetailResponse,
    TourItem,
    TourListResponse,
    TourListResult,
    TourMapResponse,
)
from services.tour_api import (
    TourApiClient,
    get_content_type_name,
    get_intro_display_fields,
    get_tour_api_client,
)
from utils.coordinate import convert_coordinates, get_bounds, get_center_point

router = APIRouter(tags=["tours"])

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
MAP_PAGE_SIZE = 100


class TourSort(str, Enum):
    latest = "latest"
    name = "name"


def to_card(item: TourItem) -> TourCard:
    return TourCard(
        item=item,
        content_type_name=get_content_type_name(item.content_type_id),
        coordinate=convert_coordinates(item.mapx, item.mapy),
    )


def sort_tours(items: List[TourItem], sort: TourSort) -> List[TourItem]:
    """이름순(가나다) 또는 최신 수정순 정렬"""
    if sort == TourSort.name:
        return sorted(items, key=lambda item: item.title)
    return sorted(items, key=lambda item: item.modified_time or "", reverse=True)


async def fetch_tours(
    client: TourApiClient,
    keyword: Optional[str],
    area_code: Optional[str],
    content_type_id: Optional[str],
    page: int,
    num_of_rows: int,
) -> TourListResult:
    """키워드가 있으면 검색 API, 없으면 지역 기반 목록 API"""
    if keyword and keyword.strip():
        return await asyncio.to_thread(
            client.search_keyword,
            keyword.strip(),
            area_code=area_code or None,
            content_type_id=content_type_id or None,
            num_of_rows=num_of_rows,
            page_no=page,
        )
    return await asyncio.to_thread(
        client.get_area_based_list,
        area_code=area_code or None,
        content_type_id=content_type_id or None,
        num_of_rows=num_of_rows,
        page_no=page,
    )


@router.get("/areas", response_model=List[AreaCode])
async def list_areas(client: TourApiClient = Depends(get_tour_api_client)):
    """지역 필터용 지역코드 목록"""
    return await asyncio.to_thread(client.get_area_code)


@router.get("/", response_model=TourListResponse)
async def list_tours(
    keyword: Optional[str] = Query(None, description="검색 키워드"),
    area_code: Optional[str] = Query(None, description="지역코드"),
    content_type_id: Optional[str] = Query(None, description="관광 타입 ID"),
    sort: TourSort = Query(TourSort.latest),
    page: int = Query(1, ge=1),
    client: TourApiClient = Depends(get_tour_api_client),
):
    """관광지 목록 (검색/필터/정렬/페이지네이션)"""
    result = await fetch_tours(client, keyword, area_code, content_type_id, page, PAGE_SIZE)
    items = sort_tours(result.items, sort)

    return TourListResponse(
        items=[to_card(item) for item in items],
        total_count=result.total_count,
        page_no=result.page_no,
        num_of_rows=PAGE_SIZE,
        total_pages=math.ceil(result.total_count / PAGE_SIZE) if result.total_count else 0,
    )


@router.get("/map", response_model=TourMapResponse)
async def get_tour_map(
    keyword: Optional[str] = Query(None),
    area_code: Optional[str] = Query(None),
    content_type_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    num_of_rows: int = Query(PAGE_SIZE, ge=1, le=MAP_PAGE_SIZE),
    client: TourApiClient = Depends(get_tour_api_client),
):
    """지도 마커용 좌표 (신뢰할 수 없는 좌표는 마커에서 제외)"""
    result = await fetch_tours(client, keyword, area_code, content_type_id, page, num_of_rows)

    markers = []
    for item in result.items:
        coordinate = convert_coordinates(item.mapx, item.mapy)
        if not coordinate.is_reliable:
            continue
        markers.append(MapMarker(
            content_id=item.content_id,
            title=item.title,
            content_type_id=item.content_type_id,
            lng=coordinate.lng,
            lat=coordinate.lat,
        ))

    points = [Coordinate(lng=marker.lng, lat=marker.lat) for marker in markers]
    return TourMapResponse(
        markers=markers,
        center=get_center_point(points),
        bounds=get_bounds(points),
        skipped=len(result.items) - len(markers),
    )


@router.get("/{content_id}", response_model=TourDetailResponse)
async def get_tour_detail(content_id: str, client: TourApiClient = Depends(get_tour_api_client)):
    """
    관광지 상세

    기본 정보가 없으면 404. 운영 정보/이미지/반려동물 정보는 병렬로 가져오고
    각각 실패해도 해당 섹션만 비운다.
    """
    detail = await asyncio.to_thread(client.get_detail_common, content_id)

    intro, images, pet_info = await asyncio.gather(
        asyncio.to_thread(client.get_detail_intro, content_id, detail.content_type_id),
        asyncio.to_thread(client.get_detail_image, content_id),
        asyncio.to_thread(client.get_detail_pet_tour, content_id),
        return_exceptions=True,
    )

    if isinstance(intro, Exception):
        logger.warning(f"운영 정보 조회 실패 ({content_id}): {intro}")
        intro = None
    if isinstance(images, Exception):
        logger.warning(f"이미지 목록 조회 실패 ({content_id}): {images}")
        images = []
    if isinstance(pet_info, Exception):
        logger.warning(f"반려동물 정보 조회 실패 ({content_id}): {pet_info}")
        pet_info = None

    return TourDetailResponse(
        detail=detail,
        content_type_name=get_content_type_name(detail.content_type_id),
        coordinate=convert_coordinates(detail.mapx, detail.mapy),
        intro=intro,
        intro_fields=get_intro_display_fields(intro) if intro else [],
        images=images,
        pet_info=pet_info,
    )
