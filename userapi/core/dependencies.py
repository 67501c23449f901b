from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_db
from core.security import PasswordHasher, TokenService
from repository.risk_report_repo import RiskReportRepository
from repository.user_repo import UserRepository
from service.account_service import AccountService
from service.risk_report_service import RiskReportService

# === 설정에서 한 번만 만드는 무상태 컴포넌트 ===

@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(cost=settings.bcrypt_cost)


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(
        settings.jwt_secret,
        issuer=settings.jwt_issuer,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        algorithm=settings.jwt_algorithm,
    )


# === 요청 단위 서비스 (DB 세션에 묶임): FastAPI Depends()용 ===

async def get_account_service(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(
        UserRepository(db),
        hasher,
        tokens,
        default_page_size=settings.pagination_default_page_size,
        max_page_size=settings.pagination_max_page_size,
    )


async def get_risk_report_service(db: AsyncSession = Depends(get_db)) -> RiskReportService:
    return RiskReportService(RiskReportRepository(db))
