import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.exceptions import EmailAlreadyUsed, StorageFailure, UsernameExists, Conflict
from core.logger import get_logger
from models.users import User
from service.account_service import UserListOptions

# 정렬 허용 컬럼: 사용자 입력을 그대로 ORDER BY에 넣지 않기 위한 화이트리스트
SORTABLE_FIELDS = {
    "created_at": User.created_at,
    "updated_at": User.updated_at,
    "username": User.username,
    "email": User.email,
}

# 유니크 위반 분류용 식별자: PostgreSQL은 인덱스 이름, SQLite는 "테이블.컬럼"으로 보고
USERNAME_KEYS = ("ix_users_username", "users.username")
EMAIL_KEYS = ("ix_users_email", "users.email")


def violated_unique_key(exc: IntegrityError) -> str | None:
    """위반된 유니크 키(username/email). 드라이버 메시지의 첫 줄만 본다 (DETAIL의 값은 무시)"""
    lines = str(exc.orig).strip().splitlines()
    summary = lines[0].lower() if lines else ""
    if any(key in summary for key in USERNAME_KEYS):
        return "username"
    if any(key in summary for key in EMAIL_KEYS):
        return "email"
    return None


class UserRepository:
    """
    사용자 저장소 (SQLAlchemy)

    - 모든 조회는 소프트 삭제된 행을 제외
    - 조회 실패는 None, DB 오류는 StorageFailure로 감싸서 던짐
    - 변경 작업 하나 = 커밋 하나
    """

    def __init__(self, db: AsyncSession, logger: logging.Logger | None = None):
        self.db = db
        self._log = logger or get_logger("repository.user")

    @asynccontextmanager
    async def _storage(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            await self.db.rollback()
            self._log.error(f"{action} 실패", exc_info=exc)
            raise StorageFailure() from exc

    def _active(self):
        return select(User).where(User.deleted_at.is_(None)).execution_options(populate_existing=True)

    async def _first(self, stmt, action: str) -> User | None:
        async with self._storage(action):
            result = await self.db.execute(stmt)
            return result.scalars().first()

    async def get_by_id(self, user_id: str) -> User | None:
        return await self._first(self._active().where(User.id == user_id), "ID로 사용자 조회")

    async def get_by_username(self, username: str) -> User | None:
        return await self._first(self._active().where(User.username == username), "아이디로 사용자 조회")

    async def get_by_email(self, email: str) -> User | None:
        return await self._first(self._active().where(User.email == email), "이메일로 사용자 조회")

    async def get_by_username_or_email(self, username_or_email: str) -> User | None:
        """로그인 시 아이디/이메일 모두 지원"""
        stmt = self._active().where(
            or_(User.username == username_or_email, User.email == username_or_email)
        )
        return await self._first(stmt, "아이디/이메일로 사용자 조회")

    async def exists_by_username(self, username: str) -> bool:
        return await self._exists(User.username == username, "아이디 중복 확인")

    async def exists_by_email(self, email: str) -> bool:
        return await self._exists(User.email == email, "이메일 중복 확인")

    async def _exists(self, condition, action: str) -> bool:
        stmt = select(func.count(User.id)).where(condition, User.deleted_at.is_(None))
        async with self._storage(action):
            count = await self.db.scalar(stmt)
        return bool(count)

    async def count(self) -> int:
        async with self._storage("사용자 수 조회"):
            return await self.db.scalar(select(func.count(User.id)).where(User.deleted_at.is_(None))) or 0

    async def create(self, user: User) -> User:
        """유저 저장: 유니크 제약 위반은 아이디/이메일 중복으로 분류"""
        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)  # DB에서 생성된 created_at 등을 가져옴
            return user
        except IntegrityError as exc:
            await self.db.rollback()
            key = violated_unique_key(exc)
            if key == "username":
                raise UsernameExists() from exc
            if key == "email":
                raise EmailAlreadyUsed() from exc
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            self._log.error("사용자 생성 실패", exc_info=exc)
            raise StorageFailure() from exc

    async def update_fields(self, user_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        stmt = (
            update(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .values(**fields)
            # 세션에 올라온 객체는 갱신/만료하지 않음
            .execution_options(synchronize_session=False)
        )
        async with self._storage("사용자 정보 수정"):
            await self.db.execute(stmt)
            await self.db.commit()

    async def update_password(self, user_id: str, hashed_password: str) -> None:
        await self.update_fields(user_id, {"hashed_password": hashed_password})

    async def update_last_login(self, user_id: str, ip: str) -> None:
        await self.update_fields(user_id, {"last_login_at": datetime.now(timezone.utc), "last_login_ip": ip})

    async def soft_delete(self, user_id: str) -> None:
        await self.update_fields(user_id, {"deleted_at": datetime.now(timezone.utc)})

    async def list(self, opts: UserListOptions) -> tuple[list[User], int]:
        """관리자용 사용자 목록: 필터/정렬/페이지네이션"""
        conditions = [User.deleted_at.is_(None)]
        if opts.username:
            conditions.append(User.username.contains(opts.username, autoescape=True))
        if opts.email:
            conditions.append(User.email.contains(opts.email, autoescape=True))
        if opts.status is not None:
            conditions.append(User.status == opts.status)
        if opts.role:
            conditions.append(User.role == opts.role)

        column = SORTABLE_FIELDS.get(opts.sort_by or "created_at", User.created_at)
        order = column.asc() if opts.sort_order == "asc" else column.desc()

        stmt = (
            select(User)
            .where(*conditions)
            .order_by(order, User.id)
            .offset((opts.page - 1) * opts.page_size)
            .limit(opts.page_size)
        )
        async with self._storage("사용자 목록 조회"):
            total = await self.db.scalar(select(func.count(User.id)).where(*conditions)) or 0
            result = await self.db.execute(stmt)
            return list(result.scalars().all()), total
