from datetime import datetime
from fastapi import APIRouter, Depends, Query, status

from core.api_key import require_api_key
from core.config import settings
from core.dependencies import get_risk_report_service
from repository.risk_report_repo import UsageFilters
from schemas.common import PageResponse, Pagination
from schemas.risk_report import (
    RiskReportUsageBatchCreate,
    RiskReportUsageBatchResponse,
    RiskReportUsageCreate,
    RiskReportUsageResponse,
    RiskReportUsageStats,
)
from service.risk_report_service import RiskReportService

# 외부 리포트 서비스 전용: 사용자 JWT가 아닌 정적 API 키로 보호
router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("", response_model=RiskReportUsageResponse, status_code=status.HTTP_201_CREATED)
async def create_usage(
    body: RiskReportUsageCreate,
    service: RiskReportService = Depends(get_risk_report_service),
):
    """리포트 사용 기록 1건을 적재합니다."""
    return await service.create(body)


@router.post("/batch", response_model=RiskReportUsageBatchResponse, status_code=status.HTTP_201_CREATED)
async def batch_create_usage(
    body: RiskReportUsageBatchCreate,
    service: RiskReportService = Depends(get_risk_report_service),
):
    """최대 100건을 한 번에 적재합니다. 검증 실패 레코드는 건너뛰고 사유를 돌려줍니다."""
    return await service.batch_create(body.records)


@router.get("", response_model=PageResponse[RiskReportUsageResponse])
async def list_usage(
    user_id: str | None = None,
    ticker: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.pagination_default_page_size, ge=1, le=100),
    service: RiskReportService = Depends(get_risk_report_service),
):
    """사용 기록 목록 (최신 요청 순)"""
    filters = UsageFilters(user_id=user_id, ticker=ticker, start_time=start_time, end_time=end_time)
    usages, total = await service.list(filters, page, page_size)
    return PageResponse[RiskReportUsageResponse](
        list=[RiskReportUsageResponse.model_validate(u) for u in usages],
        pagination=Pagination.of(page, page_size, total),
    )


@router.get("/stats/{user_id}", response_model=RiskReportUsageStats)
async def user_stats(
    user_id: str,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    service: RiskReportService = Depends(get_risk_report_service),
):
    """사용자별 토큰 사용량/평균 응답 시간 집계"""
    stats = await service.user_stats(user_id, start_time, end_time)
    return RiskReportUsageStats(user_id=user_id, **stats)


@router.get("/{usage_id}", response_model=RiskReportUsageResponse)
async def get_usage(usage_id: str, service: RiskReportService = Depends(get_risk_report_service)):
    return await service.get_by_id(usage_id)
