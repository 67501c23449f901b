from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from core.config import settings
from core.database import async_session, create_tables, engine
from core.dependencies import get_password_hasher, get_token_service
from core.exception_handlers import setup_exception_handlers
from core.logger import configure_logging, get_logger
from core.middleware import RequestContextMiddleware, SecureHeadersMiddleware
from repository.user_repo import UserRepository
from router import auth, risk_report, user
from schemas.common import HealthResponse, ReadyResponse
from service.account_service import AccountService

logger = get_logger("main")


async def bootstrap_admin() -> None:
    """ADMIN_* 설정이 있으면 최초 관리자 생성 (사용자 테이블이 비어 있을 때만)"""
    if not (settings.admin_username and settings.admin_email and settings.admin_password):
        return
    async with async_session() as session:
        service = AccountService(UserRepository(session), get_password_hasher(), get_token_service())
        await service.create_admin(settings.admin_username, settings.admin_email, settings.admin_password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_format)
    logger.info(f"{settings.app_name} {settings.app_version} 시작 (env={settings.app_env})")
    try:
        if settings.database_auto_migrate:
            await create_tables()
        await bootstrap_admin()
        yield
    finally:
        # DB 연결 풀 정리
        await engine.dispose()
        logger.info("서버 종료")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="JWT 기반 사용자 인증/관리 API",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # 미들웨어 등록: 나중에 추가한 것이 바깥쪽에서 먼저 실행
    app.add_middleware(SecureHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)

    setup_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
    app.include_router(user.router, prefix="/api/v1/users", tags=["User"])
    app.include_router(risk_report.router, prefix="/api/v1/risk-report/usage", tags=["RiskReport"])

    @app.get("/health", response_model=HealthResponse, tags=["Monitoring"])
    async def health():
        return HealthResponse(
            status="ok",
            version=settings.app_version,
            timestamp=datetime.now(timezone.utc),
        )

    @app.get("/ready", response_model=ReadyResponse, tags=["Monitoring"])
    async def ready():
        """DB 연결까지 확인: 실패 시 503"""
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error(f"DB 연결 확인 실패: {exc}")
            return JSONResponse(status_code=503, content={"status": "unavailable", "database": "down"})
        return ReadyResponse(status="ready", database="up")

    return app


app = create_app()
