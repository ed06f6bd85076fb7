"""
한국관광공사 공공 API(KorService2) 클라이언트

- 지역코드 조회 (areaCode2)
- 지역 기반 관광지 목록 조회 (areaBasedList2)
- 키워드 검색 (searchKeyword2)
- 상세 기본 정보 / 운영 정보 / 이미지 / 반려동물 정보 조회

공통 파라미터(serviceKey, MobileOS, MobileApp, _type)는 자동으로 붙는다.
네트워크 오류와 5xx는 고정 지연표(1초, 2초, 4초)에 따라 최대 3회 재시도하고,
4xx와 응답 헤더의 실패 코드는 재시도 없이 바로 예외로 올린다.
"""
import logging
import time
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from config import settings
from schemas import (
    AreaCode,
    IntroField,
    PetTourInfo,
    TourDetail,
    TourImage,
    TourIntro,
    TourItem,
    TourListResult,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAYS = (1.0, 2.0, 4.0)  # 초 단위
SUCCESS_CODE = "0000"

# Content Type ID (관광 타입)
CONTENT_TYPE = {
    "TOURIST_SPOT": "12",
    "CULTURAL_FACILITY": "14",
    "FESTIVAL": "15",
    "TOUR_COURSE": "25",
    "LEISURE_SPORTS": "28",
    "ACCOMMODATION": "32",
    "SHOPPING": "38",
    "RESTAURANT": "39",
}

CONTENT_TYPE_NAME = {
    "12": "관광지",
    "14": "문화시설",
    "15": "축제/행사",
    "25": "여행코스",
    "28": "레포츠",
    "32": "숙박",
    "38": "쇼핑",
    "39": "음식점",
}

# 운영 정보 필드 → 표시 라벨 (순서가 곧 표시 우선순위)
INTRO_FIELD_LABELS = {
    "usetime": "이용시간",
    "usetimeculture": "이용시간",
    "usetimefestival": "이용시간",
    "usetimeleports": "이용시간",
    "usetimeaccommodation": "체크인/체크아웃",
    "usetimeshopping": "영업시간",
    "usetimefood": "영업시간",
    "restdate": "휴무일",
    "restdateculture": "휴무일",
    "restdatefestival": "휴무일",
    "restdateleports": "휴무일",
    "restdateaccommodation": "휴무일",
    "restdateshopping": "휴무일",
    "restdatefood": "휴무일",
    "usefee": "이용요금",
    "usefeeleports": "이용요금",
    "usefeeculture": "입장료",
    "parking": "주차",
    "parkingculture": "주차",
    "parkingleports": "주차",
    "parkingaccommodation": "주차",
    "parkingshopping": "주차",
    "parkingfood": "주차",
    "accomcountculture": "수용인원",
    "accomcountleports": "수용인원",
    "accomcountaccommodation": "객실 수",
    "expguide": "체험 안내",
    "expguideculture": "체험 안내",
    "expguideleports": "체험 안내",
    "chkbabycarriage": "유모차 대여",
    "chkbabycarriageculture": "유모차 대여",
    "chkbabycarriageleports": "유모차 대여",
    "chkpet": "반려동물 동반",
    "chkpetculture": "반려동물 동반",
    "chkpetleports": "반려동물 동반",
    "infocenter": "문의처",
    "infocenterculture": "문의처",
    "infocenterfestival": "문의처",
    "infocenterleports": "문의처",
    "infocenteraccommodation": "문의처",
    "infocentershopping": "문의처",
    "infocenterfood": "문의처",
}


def get_content_type_name(content_type_id: Optional[str]) -> str:
    return CONTENT_TYPE_NAME.get(content_type_id or "", "알 수 없음")


def get_intro_display_fields(intro: TourIntro) -> List[IntroField]:
    """운영 정보에서 표시할 필드를 우선순위대로 추출 (빈 값 제외, 같은 라벨은 한 번만)"""
    fields: List[IntroField] = []
    seen_labels = set()
    for key, label in INTRO_FIELD_LABELS.items():
        value = intro.get(key)
        if not value or not value.strip():
            continue
        if label in seen_labels:
            continue
        seen_labels.add(label)
        fields.append(IntroField(key=key, label=label, value=value.strip()))
    return fields


# =====================================================
# 에러 클래스
# =====================================================

class TourApiError(Exception):
    """한국관광공사 API 에러 기본 클래스"""

    default_message = "한국관광공사 API 호출 중 오류가 발생했습니다."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        response: Any = None,
        original_exception: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status_code = status_code
        self.response = response
        self.original_exception = original_exception


class TourApiConfigError(TourApiError):
    default_message = "API 키가 설정되지 않았습니다. TOUR_API_KEY 또는 NEXT_PUBLIC_TOUR_API_KEY 환경변수를 설정해주세요."


class TourApiValidationError(TourApiError):
    default_message = "요청 값이 올바르지 않습니다."


class TourApiRateLimitError(TourApiError):
    default_message = "API 호출 제한을 초과했습니다."

    def __init__(self, message: Optional[str] = None, **kwargs):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)


class TourApiNotFoundError(TourApiError):
    default_message = "요청한 리소스를 찾을 수 없습니다."

    def __init__(self, message: Optional[str] = None, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(message, **kwargs)


class TourApiNetworkError(TourApiError):
    default_message = "한국관광공사 API 서버에 연결할 수 없습니다."


class TourApiUnexpectedError(TourApiError):
    default_message = "예상치 못한 에러가 발생했습니다."


@contextmanager
def _translate_errors(action: str):
    """TourApiError가 아닌 예외를 TourApiUnexpectedError로 감싼다"""
    try:
        yield
    except TourApiError:
        raise
    except Exception as e:
        raise TourApiUnexpectedError(f"{action} 실패: {e}", original_exception=e) from e


def _require(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise TourApiValidationError(message)
    return str(value).strip()


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_items(body: Any) -> List[Dict[str, Any]]:
    """
    body.items.item을 항상 리스트로 반환

    결과가 1건이면 API가 배열 대신 객체를 주고, 0건이면 items 자체가
    빈 문자열로 오기도 한다.
    """
    if not isinstance(body, dict):
        return []
    items = body.get("items")
    if not isinstance(items, dict):
        return []
    item = items.get("item")
    if not item:
        return []
    return item if isinstance(item, list) else [item]


class TourApiClient:
    """한국관광공사 API 클라이언트"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        mobile_app: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        max_retries: int = MAX_RETRIES,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self.base_url = (base_url or settings.TOUR_API_BASE_URL).rstrip("/")
        self.mobile_app = mobile_app or settings.TOUR_API_MOBILE_APP
        self.timeout = timeout or settings.TOUR_API_TIMEOUT
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.retry_delays = tuple(retry_delays)
        self._sleep = sleep

    # -------------------------------------------------
    # 요청 처리
    # -------------------------------------------------

    def _get_api_key(self) -> str:
        api_key = self._api_key or settings.tour_api_key
        if not api_key:
            raise TourApiConfigError()
        return api_key

    def _common_params(self) -> Dict[str, str]:
        return {
            "serviceKey": self._get_api_key(),
            "MobileOS": "ETC",
            "MobileApp": self.mobile_app,
            "_type": "json",
        }

    def _retry_delay(self, retry_count: int) -> float:
        if retry_count < len(self.retry_delays):
            return self.retry_delays[retry_count]
        return self.retry_delays[-1]

    def _get_with_retry(self, url: str, params: Dict[str, Any]) -> requests.Response:
        retry_count = 0
        while True:
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                if retry_count < self.max_retries:
                    delay = self._retry_delay(retry_count)
                    retry_count += 1
                    logger.info(f"네트워크 에러 재시도 {retry_count}/{self.max_retries} ({delay}s 후): {e}")
                    self._sleep(delay)
                    continue
                raise TourApiNetworkError(f"네트워크 오류: {e}", original_exception=e) from e

            status_code = response.status_code
            if 200 <= status_code < 300:
                return response

            # 4xx 에러는 재시도하지 않음
            if 400 <= status_code < 500:
                if status_code == 404:
                    raise TourApiNotFoundError(response=response)
                if status_code == 429:
                    raise TourApiRateLimitError(response=response)
                raise TourApiError(
                    f"API 요청 실패: {status_code} {response.reason}",
                    status_code=status_code,
                    response=response,
                )

            # 5xx 에러는 재시도
            if status_code >= 500 and retry_count < self.max_retries:
                delay = self._retry_delay(retry_count)
                retry_count += 1
                logger.info(f"API 재시도 {retry_count}/{self.max_retries} ({delay}s 후): {status_code} {response.reason}")
                self._sleep(delay)
                continue

            raise TourApiError(
                f"API 요청 실패: {status_code} {response.reason}",
                status_code=status_code,
                response=response,
            )

    def _parse_response(self, response: requests.Response) -> Dict[str, Any]:
        """응답 envelope 검증 후 body 반환"""
        try:
            data = response.json()
        except ValueError as e:
            raise TourApiError(
                "API 응답 형식이 올바르지 않습니다.",
                status_code=response.status_code,
                response=response.text[:500],
                original_exception=e,
            ) from e

        envelope = data.get("response") if isinstance(data, dict) else None
        if not isinstance(envelope, dict):
            raise TourApiError("API 응답 형식이 올바르지 않습니다.", status_code=response.status_code, response=data)

        header = envelope.get("header") or {}
        if header.get("resultCode") != SUCCESS_CODE:
            error_msg = header.get("resultMsg") or "알 수 없는 에러가 발생했습니다."
            raise TourApiError(f"API 에러: {error_msg}", status_code=response.status_code, response=data)

        return envelope.get("body") or {}

    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = self._common_params()
        for key, value in (params or {}).items():
            if value is not None and value != "":
                query[key] = str(value)

        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"Tour API request: {endpoint} {({k: v for k, v in query.items() if k != 'serviceKey'})}")
        response = self._get_with_retry(url, query)
        return self._parse_response(response)

    def _list_request(self, endpoint: str, params: Dict[str, Any]) -> TourListResult:
        body = self._request(endpoint, params)
        items = [TourItem.model_validate(item) for item in normalize_items(body)]
        return TourListResult(
            items=items,
            total_count=_to_int(body.get("totalCount"), 0),
            num_of_rows=_to_int(body.get("numOfRows"), 0),
            page_no=_to_int(body.get("pageNo"), 1),
        )

    # -------------------------------------------------
    # API 함수들
    # -------------------------------------------------

    def get_area_code(self, area_code: Optional[str] = None) -> List[AreaCode]:
        """지역코드 조회 (area_code를 주면 해당 지역의 시군구 코드)"""
        with _translate_errors("지역코드 조회"):
            body = self._request("areaCode2", {"areaCode": area_code, "numOfRows": 100})
            return [AreaCode.model_validate(item) for item in normalize_items(body)]

    def get_area_based_list(
        self,
        area_code: Optional[str] = None,
        content_type_id: Optional[str] = None,
        num_of_rows: int = 10,
        page_no: int = 1,
    ) -> TourListResult:
        """지역 기반 관광지 목록 조회"""
        with _translate_errors("관광지 목록 조회"):
            return self._list_request("areaBasedList2", {
                "numOfRows": num_of_rows or 10,
                "pageNo": page_no or 1,
                "areaCode": area_code,
                "contentTypeId": content_type_id,
            })

    def search_keyword(
        self,
        keyword: str,
        area_code: Optional[str] = None,
        content_type_id: Optional[str] = None,
        num_of_rows: int = 10,
        page_no: int = 1,
    ) -> TourListResult:
        """키워드 검색"""
        keyword = _require(keyword, "검색 키워드를 입력해주세요.")
        with _translate_errors("키워드 검색"):
            return self._list_request("searchKeyword2", {
                "keyword": keyword,
                "numOfRows": num_of_rows or 10,
                "pageNo": page_no or 1,
                "areaCode": area_code,
                "contentTypeId": content_type_id,
            })

    def get_detail_common(self, content_id: str) -> TourDetail:
        """상세페이지 기본 정보 조회 (결과가 없으면 TourApiNotFoundError)"""
        content_id = _require(content_id, "콘텐츠 ID를 입력해주세요.")
        with _translate_errors("상세 정보 조회"):
            items = normalize_items(self._request("detailCommon2", {"contentId": content_id}))
            if not items:
                raise TourApiNotFoundError(f"콘텐츠 ID {content_id}에 해당하는 정보를 찾을 수 없습니다.")
            return TourDetail.model_validate(items[0])

    def get_detail_intro(self, content_id: str, content_type_id: str) -> TourIntro:
        """상세페이지 운영 정보 조회"""
        content_id = _require(content_id, "콘텐츠 ID를 입력해주세요.")
        content_type_id = _require(content_type_id, "콘텐츠 타입 ID를 입력해주세요.")
        with _translate_errors("운영 정보 조회"):
            items = normalize_items(self._request("detailIntro2", {
                "contentId": content_id,
                "contentTypeId": content_type_id,
            }))
            if not items:
                raise TourApiNotFoundError(f"콘텐츠 ID {content_id}에 해당하는 운영 정보를 찾을 수 없습니다.")
            return TourIntro.from_remote(items[0])

    def get_detail_image(self, content_id: str) -> List[TourImage]:
        """이미지 목록 조회"""
        content_id = _require(content_id, "콘텐츠 ID를 입력해주세요.")
        with _translate_errors("이미지 목록 조회"):
            items = normalize_items(self._request("detailImage2", {"contentId": content_id}))
            return [TourImage.model_validate(item) for item in items]

    def get_detail_pet_tour(self, content_id: str) -> Optional[PetTourInfo]:
        """반려동물 정보 조회 (정보가 없으면 에러가 아니라 None)"""
        content_id = _require(content_id, "콘텐츠 ID를 입력해주세요.")
        try:
            with _translate_errors("반려동물 정보 조회"):
                items = normalize_items(self._request("detailPetTour2", {"contentId": content_id}))
                if not items:
                    return None
                return PetTourInfo.model_validate(items[0])
        except TourApiNotFoundError:
            return None


@lru_cache()
def get_tour_api_client() -> TourApiClient:
    """FastAPI 의존성: 공유 클라이언트 (세션 재사용)"""
    return TourApiClient()
