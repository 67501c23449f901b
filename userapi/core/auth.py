"""
인증/인가 정책: 라우터에 Depends()로 거는 요청 필터

    @router.get("/me", dependencies=[Depends(require_auth())])
    @router.get("/", dependencies=[Depends(require_auth()), Depends(require_admin())])

검증된 신원은 request.state에 저장되고, 핸들러는 get_user_id() 등 접근자로 읽는다.
"""
import logging

from fastapi import Depends, Request

from core.dependencies import get_token_service
from core.exceptions import AppError, Forbidden, TokenInvalid, TokenMalformed, TokenNotFound, Unauthorized
from core.logger import get_logger
from core.security import TokenClaims, TokenService
from models.users import Role

BEARER_PREFIX = "Bearer "


class AuthPolicy:
    """Authorization 헤더 해석 + 토큰 검증 + request.state 기록"""

    def __init__(self, tokens: TokenService, logger: logging.Logger | None = None):
        self.tokens = tokens
        self._log = logger or get_logger("auth")

    def extract_token(self, request: Request) -> str:
        header = request.headers.get("Authorization")
        if not header:
            raise TokenNotFound()
        if header.rstrip() == BEARER_PREFIX.rstrip():
            # "Bearer" 뒤에 토큰이 없음
            raise TokenNotFound()
        if not header.startswith(BEARER_PREFIX):
            raise TokenMalformed(detail="Authorization 헤더는 'Bearer <token>' 형식이어야 합니다.")
        token = header[len(BEARER_PREFIX):].strip()
        if not token:
            raise TokenNotFound()
        return token

    def authenticate(self, request: Request) -> TokenClaims:
        """액세스 토큰만 통과: 리프레시 토큰으로 일반 API 호출 불가"""
        try:
            token = self.extract_token(request)
            claims = self.tokens.validate(token)
            if not claims.is_access_token():
                raise TokenInvalid(detail="액세스 토큰이 아닙니다.")
        except AppError as exc:
            self._log.debug(f"인증 실패: {exc}", extra={"extra_data": {"path": request.url.path}})
            raise
        attach_identity(request, claims)
        return claims


def attach_identity(request: Request, claims: TokenClaims) -> None:
    request.state.user_id = claims.user_id
    request.state.username = claims.username
    request.state.user_role = claims.role
    request.state.user_email = claims.email
    request.state.claims = claims


def get_auth_policy(tokens: TokenService = Depends(get_token_service)) -> AuthPolicy:
    return AuthPolicy(tokens)


# === 필터 팩토리 ===
# 같은 함수 객체를 돌려줘야 FastAPI가 한 요청 안에서 중복 실행하지 않음

async def _require_auth(request: Request, policy: AuthPolicy = Depends(get_auth_policy)) -> TokenClaims:
    return policy.authenticate(request)


async def _optional_auth(request: Request, policy: AuthPolicy = Depends(get_auth_policy)) -> TokenClaims | None:
    try:
        return policy.authenticate(request)
    except AppError:
        return None


def require_auth():
    """인증 필수: 실패 시 401"""
    return _require_auth


def optional_auth():
    """인증 선택: 실패해도 신원 없이 계속 진행"""
    return _optional_auth


def require_role(*roles: str | Role):
    """require_auth 뒤에 걸어야 함. 역할 없음 401, 허용 목록 밖 403"""
    allowed = {r.value if isinstance(r, Role) else r for r in roles}

    async def _check_role(request: Request) -> None:
        role = get_user_role(request)
        if not role:
            raise Unauthorized()
        if role not in allowed:
            raise Forbidden(detail=f"필요 권한: {', '.join(sorted(allowed))}")

    return _check_role


def require_admin():
    return require_role(Role.ADMIN)


# === 접근자 ===

def get_user_id(request: Request) -> str | None:
    return getattr(request.state, "user_id", None)


def get_username(request: Request) -> str | None:
    return getattr(request.state, "username", None)


def get_user_role(request: Request) -> str | None:
    return getattr(request.state, "user_role", None)


def get_user_email(request: Request) -> str | None:
    return getattr(request.state, "user_email", None)


def get_claims(request: Request) -> TokenClaims | None:
    return getattr(request.state, "claims", None)


def is_authenticated(request: Request) -> bool:
    return get_user_id(request) is not None


def is_admin(request: Request) -> bool:
    return get_user_role(request) == Role.ADMIN.value
