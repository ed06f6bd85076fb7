"""
좌표 변환 유틸리티

한국관광공사 API의 mapx/mapy 값은 이미 WGS84(경도/위도)인 경우와
10^7 배 정수로 인코딩된 경우가 섞여 있다. 한국 영역 범위로 어느 쪽인지 추정한다.
"""
import logging
from typing import Iterable, Optional, Tuple, Union

from schemas import Bounds, Coordinate, CoordinateResult, CoordinateStatus

logger = logging.getLogger(__name__)

KATEC_SCALE = 10_000_000

# 한국 영역 (경도 124-132, 위도 33-43)
KOREA_LNG_RANGE = (124.0, 132.0)
KOREA_LAT_RANGE = (33.0, 43.0)

# 서울 시청
DEFAULT_CENTER = Coordinate(lng=126.978, lat=37.5665)
DEFAULT_BOUNDS_MARGIN = 0.1

Number = Union[str, int, float, None]


def _to_float(value: Number) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_in_korea(lng: float, lat: float) -> bool:
    return (
        KOREA_LNG_RANGE[0] <= lng <= KOREA_LNG_RANGE[1]
        and KOREA_LAT_RANGE[0] <= lat <= KOREA_LAT_RANGE[1]
    )


def katec_to_wgs84(mapx: Number, mapy: Number) -> Tuple[float, float]:
    """10^7 배 정수 좌표를 (경도, 위도)로 변환"""
    return float(mapx) / KATEC_SCALE, float(mapy) / KATEC_SCALE


def convert_coordinates(mapx: Number, mapy: Number) -> CoordinateResult:
    """
    API 원본 좌표를 경도/위도로 변환

    1. 원본 값이 한국 범위 안이면 그대로 사용 (wgs84)
    2. 10^7로 나눈 값이 범위 안이면 변환 값 사용 (scaled)
    3. 둘 다 아니면 원본 값을 그대로 돌려주고 경고를 남긴다 (fallback)

    경계 근처의 정상 좌표와 스케일이 잘못된 좌표를 확실히 구분할 방법이 없으므로
    fallback 결과는 is_reliable이 False다. 지도 마커 표시 여부는 호출하는 쪽이 정한다.
    """
    x = _to_float(mapx)
    y = _to_float(mapy)
    if x is None or y is None:
        return CoordinateResult(status=CoordinateStatus.missing)

    if is_in_korea(x, y):
        return CoordinateResult(lng=x, lat=y, status=CoordinateStatus.wgs84)

    lng, lat = x / KATEC_SCALE, y / KATEC_SCALE
    if is_in_korea(lng, lat):
        return CoordinateResult(lng=lng, lat=lat, status=CoordinateStatus.scaled)

    logger.warning(f"좌표가 한국 범위를 벗어남, 원본 값 사용: mapx={mapx}, mapy={mapy}")
    return CoordinateResult(lng=x, lat=y, status=CoordinateStatus.fallback)


def get_center_point(coordinates: Iterable[Coordinate]) -> Coordinate:
    """여러 좌표의 중심점 (산술 평균). 비어 있으면 서울 중심"""
    coordinates = list(coordinates)
    if not coordinates:
        return DEFAULT_CENTER
    if len(coordinates) == 1:
        return coordinates[0]

    lng = sum(c.lng for c in coordinates) / len(coordinates)
    lat = sum(c.lat for c in coordinates) / len(coordinates)
    return Coordinate(lng=lng, lat=lat)


def get_bounds(coordinates: Iterable[Coordinate]) -> Bounds:
    """좌표 범위 계산 (지도 줌 레벨 조정용)"""
    coordinates = list(coordinates)
    if not coordinates:
        return Bounds(
            min_lng=DEFAULT_CENTER.lng - DEFAULT_BOUNDS_MARGIN,
            max_lng=DEFAULT_CENTER.lng + DEFAULT_BOUNDS_MARGIN,
            min_lat=DEFAULT_CENTER.lat - DEFAULT_BOUNDS_MARGIN,
            max_lat=DEFAULT_CENTER.lat + DEFAULT_BOUNDS_MARGIN,
        )

    lngs = [c.lng for c in coordinates]
    lats = [c.lat for c in coordinates]
    return Bounds(min_lng=min(lngs), max_lng=max(lngs), min_lat=min(lats), max_lat=max(lats))
