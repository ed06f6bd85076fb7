from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class RemoteModel(BaseModel):
    """한국관광공사 API 응답 레코드 공통 설정"""

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True
        extra = "ignore"


# Tour schemas
class AreaCode(RemoteModel):
    code: str
    name: str
    rnum: Optional[int] = None


class TourItem(RemoteModel):
    content_id: str = Field(alias="contentid")
    content_type_id: str = Field(alias="contenttypeid")
    title: str
    addr1: Optional[str] = None
    addr2: Optional[str] = None
    area_code: Optional[str] = Field(default=None, alias="areacode")
    mapx: Optional[str] = None  # 경도 원본 값
    mapy: Optional[str] = None  # 위도 원본 값
    first_image: Optional[str] = Field(default=None, alias="firstimage")
    first_image2: Optional[str] = Field(default=None, alias="firstimage2")
    tel: Optional[str] = None
    cat1: Optional[str] = None
    cat2: Optional[str] = None
    cat3: Optional[str] = None
    modified_time: Optional[str] = Field(default=None, alias="modifiedtime")  # YYYYMMDDHHMMSS


class TourDetail(TourItem):
    zipcode: Optional[str] = None
    homepage: Optional[str] = None  # HTML 태그가 포함될 수 있음
    overview: Optional[str] = None


class TourImage(RemoteModel):
    content_id: str = Field(alias="contentid")
    origin_img_url: str = Field(alias="originimgurl")
    serial_num: Optional[str] = Field(default=None, alias="serialnum")
    small_image_url: Optional[str] = Field(default=None, alias="smallimageurl")


class PetTourInfo(RemoteModel):
    content_id: str = Field(alias="contentid")
    content_type_id: Optional[str] = Field(default=None, alias="contenttypeid")
    chkpetleash: Optional[str] = None  # 동반 조건
    chkpetsize: Optional[str] = None  # 크기 제한
    chkpetplace: Optional[str] = None  # 입장 가능 장소
    chkpetfee: Optional[str] = None  # 추가 요금
    petinfo: Optional[str] = None
    parking: Optional[str] = None


class IntroField(BaseModel):
    key: str
    label: str
    value: str


class TourIntro(BaseModel):
    """
    운영 정보 (detailIntro2)

    콘텐츠 타입마다 필드 구성이 달라서 고정 구조 대신 문자열 매핑으로 보관한다.
    필드 이름과 표시 라벨은 services.tour_api.INTRO_FIELD_LABELS 참고.
    """
    content_id: str
    content_type_id: str
    data: Dict[str, str] = {}

    @classmethod
    def from_remote(cls, raw: Dict[str, Any]) -> "TourIntro":
        data = {
            key: str(value)
            for key, value in raw.items()
            if key not in ("contentid", "contenttypeid") and value is not None
        }
        return cls(
            content_id=str(raw.get("contentid", "")),
            content_type_id=str(raw.get("contenttypeid", "")),
            data=data,
        )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.data.get(key, default)


class TourListResult(BaseModel):
    items: List[TourItem]
    total_count: int
    num_of_rows: int
    page_no: int


# Coordinate schemas
class CoordinateStatus(str, Enum):
    wgs84 = "wgs84"
    scaled = "scaled"
    fallback = "fallback"
    missing = "missing"


class Coordinate(BaseModel):
    lng: float
    lat: float


class CoordinateResult(BaseModel):
    lng: Optional[float] = None
    lat: Optional[float] = None
    status: CoordinateStatus

    @property
    def is_reliable(self) -> bool:
        """지도에 마커를 찍어도 되는 좌표인지 여부"""
        return self.status in (CoordinateStatus.wgs84, CoordinateStatus.scaled)


class Bounds(BaseModel):
    min_lng: float
    max_lng: float
    min_lat: float
    max_lat: float


# Page response schemas
class TourCard(BaseModel):
    item: TourItem
    content_type_name: str
    coordinate: CoordinateResult


class TourListResponse(BaseModel):
    items: List[TourCard]
    total_count: int
    page_no: int
    num_of_rows: int
    total_pages: int


class MapMarker(BaseModel):
    content_id: str
    title: str
    content_type_id: str
    lng: float
    lat: float


class TourMapResponse(BaseModel):
    markers: List[MapMarker]
    center: Coordinate
    bounds: Bounds
    skipped: int  # 좌표를 신뢰할 수 없어 제외된 항목 수


class TourDetailResponse(BaseModel):
    detail: TourDetail
    content_type_name: str
    coordinate: CoordinateResult
    intro: Optional[TourIntro] = None
    intro_fields: List[IntroField] = []
    images: List[TourImage] = []
    pet_info: Optional[PetTourInfo] = None


# Stats schemas
class RegionStats(BaseModel):
    area_code: str
    area_name: str
    count: int


class TypeStats(BaseModel):
    content_type_id: str
    content_type_name: str
    count: int
    percentage: float


class StatsSummary(BaseModel):
    total_count: int
    top_regions: List[RegionStats]
    top_types: List[TypeStats]
    last_updated: datetime


# Bookmark schemas
class BookmarkStatusResponse(BaseModel):
    content_id: str
    is_bookmarked: bool


class BookmarkActionResponse(BaseModel):
    content_id: str
    success: bool


class BookmarkListResponse(BaseModel):
    content_ids: List[str]
    items: List[TourCard]
    total: int


class UserSyncRequest(BaseModel):
    name: Optional[str] = None


class UserSyncResponse(BaseModel):
    user_id: str
    clerk_id: str
