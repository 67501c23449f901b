"""
자격 증명 처리: 비밀번호 해싱(bcrypt)과 JWT 발급/검증(python-jose)

두 클래스 모두 설정값을 생성자로만 받고 내부 상태를 바꾸지 않으므로
요청 간에 하나의 인스턴스를 공유해도 안전하다.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Protocol

import bcrypt
from jose import jws, jwt
from jose.exceptions import JWSError, JWTClaimsError, JWTError
from pydantic import BaseModel, ValidationError

from core.exceptions import (
    InternalError,
    TokenExpired,
    TokenInvalid,
    TokenInvalidSignature,
    TokenMalformed,
    ValidationFailed,
)
from core.logger import get_logger

# bcrypt는 72바이트를 넘는 입력을 처리하지 못함
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """bcrypt 기반 비밀번호 해싱/검증"""

    def __init__(self, cost: int = 10):
        self._cost = cost
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        """평문 비밀번호를 솔트가 포함된 bcrypt 해시로 변환"""
        raw = password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            raise ValidationFailed("비밀번호는 72바이트를 넘을 수 없습니다.")
        try:
            hashed = bcrypt.hashpw(raw, bcrypt.gensalt(rounds=self._cost))
        except (ValueError, OSError) as exc:
            raise InternalError() from exc
        return hashed.decode("utf-8")

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        입력받은 평문과 저장된 해시가 일치하는지 검증
        - 불일치: False
        - 저장된 해시 자체가 깨진 경우: InternalError
        """
        raw = password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            # 저장 가능한 비밀번호는 72바이트 이하이므로 일치할 수 없음
            return False
        try:
            return bcrypt.checkpw(raw, hashed_password.encode("utf-8"))
        except ValueError as exc:
            raise InternalError(detail="저장된 비밀번호 해시 형식이 올바르지 않습니다.") from exc

    def dummy_verify(self, password: str) -> None:
        """존재하지 않는 계정에도 같은 시간만큼 bcrypt 연산을 수행 (타이밍 차이 제거)"""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy-password-for-timing", bcrypt.gensalt(rounds=self._cost))
        raw = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        bcrypt.checkpw(raw, self._dummy_hash)


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenClaims(BaseModel):
    """JWT 클레임: 표준 클레임(sub/iat/nbf/exp/iss) + 도메인 클레임"""
    user_id: str
    username: str
    email: str
    role: str
    token_type: TokenType
    sub: str
    iat: int
    nbf: int
    exp: int
    iss: str | None = None

    def is_access_token(self) -> bool:
        return self.token_type == TokenType.ACCESS

    def is_refresh_token(self) -> bool:
        return self.token_type == TokenType.REFRESH

    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class TokenSubject(Protocol):
    """토큰을 발급받을 수 있는 계정의 최소 속성"""
    id: str
    username: str
    email: str
    role: Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """
    액세스/리프레시 토큰 발급 및 검증

    - 서명: HMAC 계열 대칭키 (HS256 기본)
    - 유효 구간: nbf <= now < exp (유예 시간 없음)
    - 헤더의 alg가 설정값과 다르면 서명 검증 전에 거부 (알고리즘 치환 공격 방지)
    """

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ):
        self._secret = secret
        self._issuer = issuer
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._algorithm = algorithm
        self._clock = clock
        self._log = logger or get_logger("token")

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self._refresh_ttl

    def issue_access_token(self, user: TokenSubject) -> str:
        return self._issue(user, TokenType.ACCESS, self._access_ttl)

    def issue_refresh_token(self, user: TokenSubject) -> str:
        return self._issue(user, TokenType.REFRESH, self._refresh_ttl)

    def issue_token_pair(self, user: TokenSubject) -> tuple[str, str]:
        """액세스 + 리프레시 토큰 동시 발급: 하나라도 실패하면 전체 실패"""
        access_token = self.issue_access_token(user)
        refresh_token = self.issue_refresh_token(user)
        return access_token, refresh_token

    def _issue(self, user: TokenSubject, token_type: TokenType, ttl: timedelta) -> str:
        now = self._clock()
        issued_at = int(now.timestamp())
        role = user.role.value if isinstance(user.role, Enum) else user.role
        payload = {
            "user_id": user.id,
            "username": user.username,
            "email": user.email,
            "role": role,
            "token_type": token_type.value,
            "iss": self._issuer,
            "sub": user.id,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (JWTError, JWSError) as exc:
            self._log.error(f"토큰 서명 실패: {exc}")
            raise InternalError() from exc

    def validate(self, token: str) -> TokenClaims:
        """서명/알고리즘/유효기간을 검증하고 클레임 반환. 실패 시 분류된 토큰 에러"""
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed() from exc

        if header.get("alg") != self._algorithm:
            raise TokenMalformed(detail="허용되지 않은 서명 알고리즘입니다.")

        # 구조와 알고리즘은 위에서 확인했으므로 여기서의 실패는 서명 불일치
        try:
            jws.verify(token, self._secret, algorithms=[self._algorithm])
        except JWSError as exc:
            raise TokenInvalidSignature() from exc

        # 시간 검증은 아래에서 직접 수행 (경계 조건을 정확히 맞추기 위해)
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_aud": False,
                },
            )
        except JWTClaimsError as exc:
            raise TokenInvalid() from exc
        except JWTError as exc:
            raise TokenMalformed() from exc

        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise TokenMalformed(detail="토큰 클레임을 해석할 수 없습니다.") from exc

        now = int(self._clock().timestamp())
        if now >= claims.exp:
            raise TokenExpired()
        if now < claims.nbf:
            raise TokenInvalid(detail="토큰이 아직 유효하지 않습니다.")

        return claims
