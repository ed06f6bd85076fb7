"""
북마크 저장소

인증 제공자의 사용자 ID(external id)와 DB의 users.id는 서로 다른 체계라서
모든 작업은 resolve_user_id로 로컬 ID를 먼저 찾은 뒤 수행한다.
"""
import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import Bookmark, User

logger = logging.getLogger(__name__)


class BookmarkError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequiredError(BookmarkError):
    def __init__(self, message: str = "로그인이 필요합니다"):
        super().__init__(message)


class BookmarkOperationError(BookmarkError):
    """북마크 추가/제거가 실패한 경우 (라우터에서 사용)"""

    def __init__(self, message: str = "북마크 처리 중 오류가 발생했습니다."):
        super().__init__(message)


class BookmarkStore:
    def __init__(self, db: Session):
        self.db = db

    def resolve_user_id(self, external_id: Optional[str]) -> Optional[str]:
        """인증 제공자 사용자 ID → users.id (없거나 조회 실패 시 None)"""
        if not external_id:
            return None
        try:
            user = self.db.query(User).filter(User.clerk_id == external_id).first()
        except SQLAlchemyError as e:
            logger.error(f"사용자 조회 실패: {e}")
            return None
        if user is None:
            logger.warning(f"매핑된 사용자 없음: {external_id}")
            return None
        return user.id

    def _require_user_id(self, external_id: Optional[str]) -> Optional[str]:
        """쓰기 작업용: 로그인하지 않았으면 예외, 매핑된 사용자가 없으면 None"""
        if not external_id:
            raise AuthenticationRequiredError()
        user_id = self.resolve_user_id(external_id)
        if user_id is None:
            logger.error(f"사용자 정보를 찾을 수 없습니다: {external_id}")
        return user_id

    def sync_user(self, external_id: str, name: Optional[str] = None) -> str:
        """인증 제공자 사용자를 users 테이블에 등록하고 로컬 ID 반환 (이미 있으면 이름만 갱신)"""
        if not external_id:
            raise AuthenticationRequiredError()

        user = self.db.query(User).filter(User.clerk_id == external_id).first()
        if user is not None:
            if name and user.name != name:
                user.name = name
                self.db.commit()
            return user.id

        user = User(clerk_id=external_id, name=name)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # 동시에 다른 요청이 먼저 만든 경우
            self.db.rollback()
            user = self.db.query(User).filter(User.clerk_id == external_id).one()
            return user.id
        self.db.refresh(user)
        logger.info(f"사용자 동기화: {external_id} -> {user.id}")
        return user.id

    def is_bookmarked(self, external_id: Optional[str], content_id: str) -> bool:
        user_id = self.resolve_user_id(external_id)
        if user_id is None:
            return False
        try:
            bookmark = (
                self.db.query(Bookmark.id)
                .filter(Bookmark.user_id == user_id, Bookmark.content_id == content_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"북마크 조회 실패: {e}")
            return False
        return bookmark is not None

    def add_bookmark(self, external_id: Optional[str], content_id: str) -> bool:
        """북마크 추가 (이미 있으면 성공으로 처리)"""
        user_id = self._require_user_id(external_id)
        if user_id is None:
            return False
        self.db.add(Bookmark(user_id=user_id, content_id=content_id))
        try:
            self.db.commit()
        except IntegrityError:
            # 중복 키 (이미 북마크된 경우)
            self.db.rollback()
            logger.info(f"이미 북마크됨: {content_id} for user {user_id}")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"북마크 추가 실패: {e}")
            return False

        logger.info(f"북마크 추가: {content_id} for user {user_id}")
        return True

    def remove_bookmark(self, external_id: Optional[str], content_id: str) -> bool:
        """북마크 제거 (원래 없던 북마크도 성공)"""
        user_id = self._require_user_id(external_id)
        if user_id is None:
            return False
        try:
            deleted = (
                self.db.query(Bookmark)
                .filter(Bookmark.user_id == user_id, Bookmark.content_id == content_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"북마크 제거 실패: {e}")
            return False

        logger.info(f"북마크 제거: {content_id} for user {user_id} (deleted={deleted})")
        return True

    def list_bookmarks(self, external_id: Optional[str]) -> List[str]:
        """북마크한 콘텐츠 ID 목록 (최신순)"""
        user_id = self.resolve_user_id(external_id)
        if user_id is None:
            return []
        try:
            rows = (
                self.db.query(Bookmark.content_id)
                .filter(Bookmark.user_id == user_id)
                .order_by(desc(Bookmark.created_at), desc(Bookmark.id))
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"북마크 목록 조회 실패: {e}")
            return []
        return [row.content_id for row in rows]
