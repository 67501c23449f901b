from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from core.config import settings


def _engine_options(url: str) -> dict:
    """커넥션 풀 옵션: SQLite는 풀 크기 설정을 받지 않음"""
    options = {"echo": settings.database_echo}
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = True
    return options


# 1. Async 엔진 생성
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))


# 2. 세션 팩토리
#    - expire_on_commit=False: commit 후에도 객체 속성에 접근 가능
#      (True면 commit 후 속성 접근 시 LazyLoad → async에서 에러 발생)
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# 3. Base 클래스: 모든 모델이 상속받는 부모
class Base(DeclarativeBase):
    pass


# 4. DB 세션 DI (Dependency Injection)
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables() -> None:
    """auto_migrate 설정 시 시작 시점에 테이블 생성 (운영 환경은 alembic 사용)"""
    # 모델을 import해야 Base.metadata에 등록됨
    import models.users  # noqa: F401
    import models.risk_report_usage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
