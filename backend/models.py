import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """인증 제공자 사용자 ID와 로컬 사용자 ID 매핑"""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, default=_new_user_id)
    clerk_id = Column(String, unique=True, index=True, nullable=False)  # 인증 제공자의 사용자 ID
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    bookmarks = relationship("Bookmark", back_populates="user", cascade="all, delete-orphan")


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content_id = Column(String, nullable=False)  # 한국관광공사 콘텐츠 ID
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # 같은 사용자가 같은 관광지를 두 번 저장할 수 없음
    __table_args__ = (
        UniqueConstraint("user_id", "content_id", name="uq_bookmarks_user_content"),
    )

    user = relationship("User", back_populates="bookmarks")
