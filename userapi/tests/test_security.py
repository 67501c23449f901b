"""
비밀번호 해싱 / JWT 발급·검증 단위 테스트
"""
import base64
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from jose import jwt

from core.exceptions import (
    InternalError,
    TokenExpired,
    TokenInvalid,
    TokenInvalidSignature,
    TokenMalformed,
    ValidationFailed,
)
from core.security import PasswordHasher, TokenService, TokenType

SECRET = "unit-test-secret"
NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

account = SimpleNamespace(id="u-1", username="alice", email="alice@x.com", role="user")


def make_tokens(now: datetime = NOW, secret: str = SECRET, algorithm: str = "HS256") -> TokenService:
    return TokenService(
        secret,
        issuer="user-api",
        access_ttl=timedelta(hours=1),
        refresh_ttl=timedelta(days=7),
        algorithm=algorithm,
        clock=lambda: now,
    )


def _b64(data: dict) -> str:
    raw = json.dumps(data).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


# ===== 비밀번호 =====

hasher = PasswordHasher(cost=4)


def test_비밀번호_해싱_성공():
    password = "MyPassword123!"
    hashed = hasher.hash(password)
    assert hashed != password
    assert hashed.startswith("$2")


def test_비밀번호_검증_성공():
    hashed = hasher.hash("MyPassword123!")
    assert hasher.verify("MyPassword123!", hashed) is True


def test_비밀번호_검증_실패():
    hashed = hasher.hash("correct")
    assert hasher.verify("wrong", hashed) is False


def test_같은_비밀번호도_해시는_매번_다름():
    first = hasher.hash("pw123456")
    second = hasher.hash("pw123456")
    assert first != second
    assert hasher.verify("pw123456", first)
    assert hasher.verify("pw123456", second)


def test_72바이트_초과_비밀번호_해싱_거부():
    with pytest.raises(ValidationFailed):
        hasher.hash("가" * 25)  # 75 bytes


def test_72바이트_초과_비밀번호_검증은_불일치():
    hashed = hasher.hash("a" * 72)
    assert hasher.verify("a" * 73, hashed) is False


def test_깨진_해시_검증은_내부_에러():
    with pytest.raises(InternalError):
        hasher.verify("anything", "not-a-bcrypt-hash")


def test_더미_검증은_예외_없이_수행():
    hasher.dummy_verify("whatever")


# ===== 토큰 발급/검증 =====

def test_액세스_토큰_왕복():
    tokens = make_tokens()
    claims = tokens.validate(tokens.issue_access_token(account))

    assert claims.sub == account.id
    assert claims.user_id == account.id
    assert claims.username == account.username
    assert claims.email == account.email
    assert claims.role == account.role
    assert claims.token_type == TokenType.ACCESS
    assert claims.iss == "user-api"
    assert claims.iat == claims.nbf == int(NOW.timestamp())
    assert claims.exp == int((NOW + timedelta(hours=1)).timestamp())


def test_토큰_쌍_발급():
    tokens = make_tokens()
    access, refresh = tokens.issue_token_pair(account)

    assert tokens.validate(access).is_access_token()
    refresh_claims = tokens.validate(refresh)
    assert refresh_claims.is_refresh_token()
    assert refresh_claims.exp == int((NOW + timedelta(days=7)).timestamp())


def test_만료_경계_정확히_만료시각이면_만료():
    token = make_tokens(NOW).issue_access_token(account)
    with pytest.raises(TokenExpired):
        make_tokens(NOW + timedelta(hours=1)).validate(token)


def test_만료_1초_지난_토큰_거부():
    token = make_tokens(NOW).issue_access_token(account)
    with pytest.raises(TokenExpired):
        make_tokens(NOW + timedelta(hours=1, seconds=1)).validate(token)


def test_만료_1초_전_토큰은_유효():
    token = make_tokens(NOW).issue_access_token(account)
    claims = make_tokens(NOW + timedelta(hours=1) - timedelta(seconds=1)).validate(token)
    assert claims.username == "alice"


def test_nbf_이전_토큰은_무효():
    token = make_tokens(NOW).issue_access_token(account)
    with pytest.raises(TokenInvalid):
        make_tokens(NOW - timedelta(seconds=1)).validate(token)


def test_다른_시크릿으로_서명된_토큰은_서명_에러():
    token = make_tokens(secret="another-secret").issue_access_token(account)
    with pytest.raises(TokenInvalidSignature):
        make_tokens().validate(token)


def test_다른_알고리즘_토큰_거부():
    token = make_tokens(algorithm="HS512").issue_access_token(account)
    with pytest.raises(TokenMalformed):
        make_tokens().validate(token)


def test_서명없는_none_토큰_거부():
    issued = jwt.get_unverified_claims(make_tokens().issue_access_token(account))
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(issued)}."
    with pytest.raises(TokenMalformed):
        make_tokens().validate(token)


def test_형식이_깨진_토큰_거부():
    with pytest.raises(TokenMalformed):
        make_tokens().validate("not-a-jwt")


def test_필수_클레임_누락_토큰_거부():
    now = int(NOW.timestamp())
    token = jwt.encode({"sub": "u-1", "iat": now, "nbf": now, "exp": now + 60}, SECRET, algorithm="HS256")
    with pytest.raises(TokenMalformed):
        make_tokens().validate(token)


def test_역할이_Enum이어도_문자열로_발급():
    from models.users import Role

    admin = SimpleNamespace(id="u-2", username="root", email="root@x.com", role=Role.ADMIN)
    tokens = make_tokens()
    assert tokens.validate(tokens.issue_access_token(admin)).role == "admin"


def test_서명_부분이_변조된_토큰은_서명_에러():
    header, payload, signature = make_tokens().issue_access_token(account).split(".")
    forged = ("A" if signature[0] != "A" else "B") + signature[1:]
    with pytest.raises(TokenInvalidSignature):
        make_tokens().validate(f"{header}.{payload}.{forged}")


def test_페이로드가_변조된_토큰은_서명_에러():
    header, _, signature = make_tokens().issue_access_token(account).split(".")
    issued = jwt.get_unverified_claims(make_tokens().issue_access_token(account))
    tampered = _b64({**issued, "role": "admin"})
    with pytest.raises(TokenInvalidSignature):
        make_tokens().validate(f"{header}.{tampered}.{signature}")


def test_페이로드가_JSON이_아닌_토큰은_형식_에러():
    header, _, signature = make_tokens().issue_access_token(account).split(".")
    garbage = base64.urlsafe_b64encode(b"not json").rstrip(b"=").decode()
    with pytest.raises(TokenMalformed):
        make_tokens().validate(f"{header}.{garbage}.{signature}")
