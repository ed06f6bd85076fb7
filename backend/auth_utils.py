import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import settings

logger = logging.getLogger(__name__)

# 토큰이 없어도 401을 바로 내지 않음 (비로그인 조회 허용)
bearer_scheme = HTTPBearer(auto_error=False)


def decode_identity_token(token: str) -> Optional[str]:
    """
    인증 제공자가 발급한 세션 토큰에서 사용자 ID(sub) 추출

    토큰 발급/갱신은 인증 제공자가 담당하고, 여기서는 서명 검증 후 sub만 읽는다.
    """
    if not settings.AUTH_JWT_KEY:
        logger.error("AUTH_JWT_KEY가 설정되지 않아 토큰을 검증할 수 없습니다")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_KEY,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"JWT 검증 실패: {e}")
        return None

    external_id = payload.get("sub")
    if not external_id:
        logger.warning("JWT payload에서 sub를 찾을 수 없음")
        return None
    return external_id


async def get_current_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """로그인 사용자면 인증 제공자 사용자 ID, 아니면 None"""
    if credentials is None or not credentials.credentials:
        return None
    return decode_identity_token(credentials.credentials)


async def get_current_identity(
    external_id: Optional[str] = Depends(get_current_identity_optional),
) -> str:
    if external_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="로그인이 필요합니다",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return external_id
