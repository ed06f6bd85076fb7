import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth_utils import get_current_identity, get_current_identity_optional
from database import get_db
from routers.tours import to_card
from schemas import (
    BookmarkActionResponse,
    BookmarkListResponse,
    BookmarkStatusResponse,
    UserSyncRequest,
    UserSyncResponse,
)
from services.bookmark_store import BookmarkOperationError, BookmarkStore
from services.tour_api import TourApiClient, get_tour_api_client

# 로깅 설정
logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookmarks"])


def get_bookmark_store(db: Session = Depends(get_db)) -> BookmarkStore:
    return BookmarkStore(db)


@router.get("/", response_model=BookmarkListResponse)
async def get_bookmarks(
    external_id: str = Depends(get_current_identity),
    store: BookmarkStore = Depends(get_bookmark_store),
    client: TourApiClient = Depends(get_tour_api_client),
):
    """현재 사용자의 북마크 목록 (관광지 정보 포함, 조회 실패한 항목은 제외)"""
    content_ids = store.list_bookmarks(external_id)

    details = await asyncio.gather(
        *[asyncio.to_thread(client.get_detail_common, content_id) for content_id in content_ids],
        return_exceptions=True,
    )

    items = []
    for content_id, detail in zip(content_ids, details):
        if isinstance(detail, Exception):
            logger.warning(f"북마크 관광지 조회 실패 ({content_id}): {detail}")
            continue
        items.append(to_card(detail))

    return BookmarkListResponse(content_ids=content_ids, items=items, total=len(content_ids))


@router.post("/sync-user", response_model=UserSyncResponse)
async def sync_user(
    payload: UserSyncRequest,
    external_id: str = Depends(get_current_identity),
    store: BookmarkStore = Depends(get_bookmark_store),
):
    """로그인한 사용자를 users 테이블에 등록"""
    user_id = store.sync_user(external_id, payload.name)
    return UserSyncResponse(user_id=user_id, clerk_id=external_id)


@router.get("/{content_id}", response_model=BookmarkStatusResponse)
async def check_bookmark(
    content_id: str,
    external_id: Optional[str] = Depends(get_current_identity_optional),
    store: BookmarkStore = Depends(get_bookmark_store),
):
    """북마크 여부 (비로그인이면 false)"""
    return BookmarkStatusResponse(content_id=content_id, is_bookmarked=store.is_bookmarked(external_id, content_id))


@router.post("/{content_id}", response_model=BookmarkActionResponse)
async def add_bookmark(
    content_id: str,
    external_id: Optional[str] = Depends(get_current_identity_optional),
    store: BookmarkStore = Depends(get_bookmark_store),
):
    if not store.add_bookmark(external_id, content_id):
        raise BookmarkOperationError("북마크 추가 중 오류가 발생했습니다.")
    return BookmarkActionResponse(content_id=content_id, success=True)


@router.delete("/{content_id}", response_model=BookmarkActionResponse)
async def remove_bookmark(
    content_id: str,
    external_id: Optional[str] = Depends(get_current_identity_optional),
    store: BookmarkStore = Depends(get_bookmark_store),
):
    if not store.remove_bookmark(external_id, content_id):
        raise BookmarkOperationError("북마크 제거 중 오류가 발생했습니다.")
    return BookmarkActionResponse(content_id=content_id, success=True)
