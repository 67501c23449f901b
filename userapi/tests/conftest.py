"""
pytest 공통 설정
"""
import sys
import os
import asyncio
import tempfile
import uuid
from datetime import datetime, timezone

# 설정 객체가 import 시점에 만들어지므로 환경 변수를 먼저 지정
_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="userapi-test-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["DATABASE_AUTO_MIGRATE"] = "false"
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest"
os.environ["BCRYPT_COST"] = "4"
os.environ["RISK_REPORT_API_KEYS"] = "test-key-123, other-key-456"
os.environ["LOG_LEVEL"] = "warning"
os.environ.pop("ADMIN_USERNAME", None)

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from starlette.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from fastapi import FastAPI
from core.database import Base, get_db
from core.config import settings
from core.exception_handlers import setup_exception_handlers
from core.exceptions import StorageFailure
from models.users import User, Role
import models.risk_report_usage  # noqa: F401
from router import auth, user, risk_report

# ===== NullPool 엔진: 매 요청마다 새 커넥션 (테스트 전용) =====
test_engine = create_async_engine(settings.database_url, poolclass=NullPool)
test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

async def override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()

# ===== 테스트 전용 앱 (미들웨어 없이) =====
test_app = FastAPI()
setup_exception_handlers(test_app)
test_app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
test_app.include_router(user.router, prefix="/api/v1/users", tags=["User"])
test_app.include_router(risk_report.router, prefix="/api/v1/risk-report/usage", tags=["RiskReport"])

# 핵심: get_db를 NullPool 버전으로 교체
test_app.dependency_overrides[get_db] = override_get_db

API_KEY_HEADERS = {"X-API-Key": "test-key-123"}


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """테스트 세션 시작 시 임시 SQLite에 테이블 생성"""
    async def _create():
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield
    asyncio.run(test_engine.dispose())


def run_db(stmt):
    """테스트에서 직접 DB를 조작할 때 사용"""
    async def _run():
        async with test_session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    asyncio.run(_run())


def unique_user() -> dict:
    unique = uuid.uuid4().hex[:8]
    return {
        "username": f"user{unique}",
        "email": f"user{unique}@example.com",
        "password": "Test1234!",
        "confirm_password": "Test1234!",
    }


def register_and_login(client, payload: dict | None = None) -> tuple[dict, dict]:
    """회원가입 + 로그인 → (가입 응답, 로그인 응답)"""
    payload = payload or unique_user()
    registered = client.post("/api/v1/auth/register", json=payload).json()
    login = client.post("/api/v1/auth/login", json={
        "username": payload["username"],
        "password": payload["password"],
    }).json()
    return registered, login


@pytest.fixture
def client():
    """동기식 테스트 클라이언트"""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def user_account(client):
    """일반 사용자: 가입 정보 + 토큰"""
    payload = unique_user()
    registered, login = register_and_login(client, payload)
    return {
        "id": registered["id"],
        "payload": payload,
        "headers": {"Authorization": f"Bearer {login['access_token']}"},
        "refresh_token": login["refresh_token"],
    }


@pytest.fixture
def auth_headers(user_account):
    """인증된 헤더"""
    return user_account["headers"]


@pytest.fixture
def admin_account(client):
    """관리자: DB에서 역할을 올린 뒤 다시 로그인해서 admin 토큰 발급"""
    payload = unique_user()
    registered = client.post("/api/v1/auth/register", json=payload).json()
    run_db(update(User).where(User.id == registered["id"]).values(role=Role.ADMIN.value))

    login = client.post("/api/v1/auth/login", json={
        "username": payload["username"],
        "password": payload["password"],
    }).json()
    return {
        "id": registered["id"],
        "headers": {"Authorization": f"Bearer {login['access_token']}"},
    }


@pytest.fixture
def admin_headers(admin_account):
    return admin_account["headers"]


# ===== 서비스 단위 테스트용 메모리 저장소 =====

class FakeAccountStore:
    """AccountStore 프로토콜을 만족하는 인메모리 구현"""

    def __init__(self):
        self.users: dict[str, User] = {}
        self.fail_last_login = False

    def _alive(self):
        return [u for u in self.users.values() if u.deleted_at is None]

    async def get_by_id(self, user_id):
        return next((u for u in self._alive() if u.id == user_id), None)

    async def get_by_username(self, username):
        return next((u for u in self._alive() if u.username == username), None)

    async def get_by_email(self, email):
        return next((u for u in self._alive() if u.email == email), None)

    async def get_by_username_or_email(self, username_or_email):
        return next(
            (u for u in self._alive() if username_or_email in (u.username, u.email)),
            None,
        )

    async def exists_by_username(self, username):
        return await self.get_by_username(username) is not None

    async def exists_by_email(self, email):
        return await self.get_by_email(email) is not None

    async def count(self):
        return len(self._alive())

    async def create(self, user):
        if user.id is None:
            user.id = str(uuid.uuid4())
        if user.gender is None:
            user.gender = 0
        self.users[user.id] = user
        return user

    async def update_fields(self, user_id, fields):
        user = self.users[user_id]
        for key, value in fields.items():
            setattr(user, key, value)

    async def update_password(self, user_id, hashed_password):
        await self.update_fields(user_id, {"hashed_password": hashed_password})

    async def update_last_login(self, user_id, ip):
        if self.fail_last_login:
            raise StorageFailure()
        await self.update_fields(user_id, {"last_login_at": datetime.now(timezone.utc), "last_login_ip": ip})

    async def soft_delete(self, user_id):
        await self.update_fields(user_id, {"deleted_at": datetime.now(timezone.utc)})

    async def list(self, opts):
        users = self._alive()
        start = (opts.page - 1) * opts.page_size
        return users[start:start + opts.page_size], len(users)


@pytest.fixture
def fake_store():
    return FakeAccountStore()
