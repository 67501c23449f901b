import hmac

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from core.config import settings
from core.exceptions import Unauthorized
from core.logger import get_logger

logger = get_logger("api_key")

# auto_error=False: 누락 시 403 대신 우리 에러 포맷(401)으로 응답하기 위함
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def mask_key(key: str) -> str:
    """로그용 마스킹: 앞 8자만 노출"""
    if len(key) <= 8:
        return "****"
    return f"{key[:8]}****"


def is_valid_key(key: str, allowed: list[str]) -> bool:
    """상수 시간 비교: 목록 전체를 항상 순회"""
    candidate = key.strip().encode("utf-8")
    matched = False
    for allowed_key in allowed:
        if hmac.compare_digest(candidate, allowed_key.strip().encode("utf-8")):
            matched = True
    return matched


async def require_api_key(request: Request, api_key: str | None = Depends(api_key_header)) -> str:
    """서비스 간 호출용 정적 API 키 검증 (X-API-Key)"""
    allowed = settings.api_keys
    if not allowed:
        logger.warning("API 키가 설정되지 않아 요청을 거부합니다.", extra={"extra_data": {"path": request.url.path}})
        raise Unauthorized("API 키 인증이 구성되지 않았습니다.")

    if not api_key or not api_key.strip():
        raise Unauthorized("API key missing")

    if not is_valid_key(api_key, allowed):
        logger.warning(
            "유효하지 않은 API 키",
            extra={"extra_data": {"api_key": mask_key(api_key), "client_ip": request.client.host if request.client else None}},
        )
        raise Unauthorized("유효하지 않은 API 키입니다.")

    return api_key.strip()
