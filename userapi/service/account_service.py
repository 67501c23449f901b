"""
계정 비즈니스 로직: 회원가입/로그인/토큰 갱신/비밀번호 변경/프로필 관리

저장소는 AccountStore 프로토콜만 만족하면 어떤 구현이든 주입 가능
(운영: repository.user_repo.UserRepository, 테스트: 메모리 저장소)
"""
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from core.exceptions import (
    EmailAlreadyUsed,
    InvalidCredential,
    InvalidPassword,
    StorageFailure,
    TokenInvalid,
    UserDisabled,
    UserNotFound,
    UsernameExists,
)
from core.logger import get_logger
from core.security import PasswordHasher, TokenService
from models.users import Role, User, UserStatus

PROFILE_FIELDS = ("nickname", "avatar", "phone", "bio", "gender", "birthday")
ADMIN_FIELDS = PROFILE_FIELDS + ("status", "role")


@dataclass
class UserListOptions:
    """관리자 목록 조회 조건"""
    page: int = 1
    page_size: int = 20
    username: str | None = None
    email: str | None = None
    status: int | None = None
    role: str | None = None
    sort_by: str | None = None
    sort_order: str = "desc"


class AccountStore(Protocol):
    """계정 서비스가 사용하는 사용자 저장소 기능"""

    async def get_by_id(self, user_id: str) -> User | None: ...
    async def get_by_username(self, username: str) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def get_by_username_or_email(self, username_or_email: str) -> User | None: ...
    async def exists_by_username(self, username: str) -> bool: ...
    async def exists_by_email(self, email: str) -> bool: ...
    async def count(self) -> int: ...
    async def create(self, user: User) -> User: ...
    async def update_fields(self, user_id: str, fields: dict[str, Any]) -> None: ...
    async def update_password(self, user_id: str, hashed_password: str) -> None: ...
    async def update_last_login(self, user_id: str, ip: str) -> None: ...
    async def soft_delete(self, user_id: str) -> None: ...
    async def list(self, opts: UserListOptions) -> tuple[list[User], int]: ...


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User
    token_type: str = "Bearer"


@dataclass
class RefreshResult:
    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class AccountService:
    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        logger: logging.Logger | None = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self._log = logger or get_logger("service.account")
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @property
    def access_expires_in(self) -> int:
        return int(self.tokens.access_ttl.total_seconds())

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        nickname: str | None = None,
    ) -> User:
        """회원가입: 아이디/이메일 중복은 서로 다른 에러로 구분"""
        self._log.debug(f"회원가입 시도: {username}")

        if await self.store.exists_by_username(username):
            raise UsernameExists()
        if await self.store.exists_by_email(email):
            raise EmailAlreadyUsed()

        user = User(
            username=username,
            email=email,
            hashed_password=self.hasher.hash(password),
            nickname=nickname or username,
            status=UserStatus.ACTIVE.value,
            role=Role.USER.value,
        )
        user = await self.store.create(user)

        self._log.info(
            "회원가입 성공",
            extra={"extra_data": {"user_id": user.id, "username": user.username}},
        )
        return user

    async def login(self, username_or_email: str, password: str, client_ip: str) -> LoginResult:
        """
        로그인
        - 계정 없음/비밀번호 불일치는 같은 InvalidCredential (계정 존재 여부 노출 방지)
        - 비활성화 계정은 비밀번호와 무관하게 UserDisabled
        """
        user = await self.store.get_by_username_or_email(username_or_email)
        if user is None:
            self.hasher.dummy_verify(password)
            raise InvalidCredential()

        if user.is_disabled():
            self._log.warning(
                "비활성화된 계정 로그인 시도",
                extra={"extra_data": {"user_id": user.id, "client_ip": client_ip}},
            )
            raise UserDisabled()

        if not self.hasher.verify(password, user.hashed_password):
            self._log.debug(f"비밀번호 불일치: user_id={user.id}")
            raise InvalidCredential()

        access_token, refresh_token = self.tokens.issue_token_pair(user)

        # 마지막 로그인 기록은 실패해도 로그인 자체는 성공 처리
        try:
            await self.store.update_last_login(user.id, client_ip)
        except StorageFailure as exc:
            self._log.warning(f"로그인 정보 갱신 실패: {exc}", extra={"extra_data": {"user_id": user.id}})

        # 응답에는 last_login_at이 반영된 최신 행을 사용
        user = await self.store.get_by_id(user.id) or user

        self._log.info(
            "로그인 성공",
            extra={"extra_data": {"user_id": user.id, "username": user.username, "client_ip": client_ip}},
        )
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_expires_in,
            user=user,
        )

    async def refresh_token(self, refresh_token: str) -> RefreshResult:
        """리프레시 토큰으로 새 액세스 토큰 발급 (리프레시 토큰은 재발급하지 않음)"""
        claims = self.tokens.validate(refresh_token)
        if not claims.is_refresh_token():
            raise TokenInvalid(detail="리프레시 토큰이 아닙니다.")

        # 발급 이후 역할/상태 변경을 반영하기 위해 다시 조회
        user = await self.store.get_by_id(claims.user_id)
        if user is None:
            raise TokenInvalid(detail="더 이상 존재하지 않는 계정입니다.")
        if user.is_disabled():
            raise UserDisabled()

        access_token = self.tokens.issue_access_token(user)
        self._log.info("액세스 토큰 갱신", extra={"extra_data": {"user_id": user.id}})
        return RefreshResult(access_token=access_token, expires_in=self.access_expires_in)

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        """비밀번호 변경: 기존 비밀번호 재확인 필수"""
        user = await self.get_by_id(user_id)

        if not self.hasher.verify(old_password, user.hashed_password):
            raise InvalidPassword()

        await self.store.update_password(user_id, self.hasher.hash(new_password))
        self._log.info("비밀번호 변경 성공", extra={"extra_data": {"user_id": user_id}})

    async def get_by_id(self, user_id: str) -> User:
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> User:
        """본인 프로필 수정: 전달된 필드만 변경"""
        return await self._update(user_id, fields, PROFILE_FIELDS)

    async def admin_update(self, user_id: str, fields: dict[str, Any]) -> User:
        """관리자 수정: 프로필 + 상태/역할"""
        user = await self._update(user_id, fields, ADMIN_FIELDS)
        if "status" in fields or "role" in fields:
            self._log.info(
                "관리자가 계정 상태/역할 변경",
                extra={"extra_data": {"user_id": user_id, "status": user.status, "role": user.role}},
            )
        return user

    async def _update(self, user_id: str, fields: dict[str, Any], allowed: tuple[str, ...]) -> User:
        user = await self.get_by_id(user_id)
        updates = {k: _plain(v) for k, v in fields.items() if k in allowed}
        if not updates:
            return user
        await self.store.update_fields(user_id, updates)
        return await self.get_by_id(user_id)

    async def delete(self, user_id: str) -> None:
        """소프트 삭제"""
        await self.get_by_id(user_id)
        await self.store.soft_delete(user_id)
        self._log.info("사용자 삭제", extra={"extra_data": {"user_id": user_id}})

    async def list_users(self, opts: UserListOptions) -> tuple[list[User], int]:
        """관리자 목록 조회: opts의 페이지 값은 보정된 값으로 바뀜"""
        opts.page = max(opts.page, 1)
        if opts.page_size <= 0:
            opts.page_size = self.default_page_size
        opts.page_size = min(opts.page_size, self.max_page_size)
        return await self.store.list(opts)

    async def create_admin(self, username: str, email: str, password: str) -> User | None:
        """최초 관리자 생성: 사용자가 한 명이라도 있으면 건너뜀"""
        if await self.store.count() > 0:
            self._log.info("이미 사용자가 존재하여 관리자 생성을 건너뜁니다.")
            return None

        admin = User(
            username=username,
            email=email,
            hashed_password=self.hasher.hash(password),
            nickname="Administrator",
            status=UserStatus.ACTIVE.value,
            role=Role.ADMIN.value,
        )
        admin = await self.store.create(admin)
        self._log.info("관리자 계정 생성", extra={"extra_data": {"user_id": admin.id}})
        return admin


def _plain(value: Any) -> Any:
    """Enum 값을 DB에 넣기 전에 기본 타입으로 변환"""
    return getattr(value, "value", value)
