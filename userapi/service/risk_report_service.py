"""
리스크 리포트 사용 기록: 외부 리포트 서비스의 토큰 사용량 적재/조회
"""
import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from core.exceptions import ResourceNotFound, ValidationFailed
from core.logger import get_logger
from core.security import utcnow
from models.risk_report_usage import MARKET_STATES, RiskReportUsage
from repository.risk_report_repo import RiskReportRepository, UsageFilters
from schemas.risk_report import RiskReportUsageCreate

TICKER_PATTERN = re.compile(r"^[A-Z0-9.]{1,10}$")

# 호출 측 시계 오차 허용 범위
MAX_CLOCK_SKEW = timedelta(minutes=5)


def to_utc(value: datetime | None) -> datetime | None:
    """타임존 없는 값은 UTC로 간주"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RiskReportService:
    def __init__(
        self,
        repo: RiskReportRepository,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
    ):
        self.repo = repo
        self._clock = clock
        self._log = logger or get_logger("service.risk_report")

    def validate(self, record: RiskReportUsageCreate) -> None:
        if not TICKER_PATTERN.match(record.ticker):
            raise ValidationFailed("ticker 형식이 올바르지 않습니다. (대문자/숫자/점 1~10자)")

        request_time = to_utc(record.request_time)
        response_time = to_utc(record.response_time)
        if request_time > response_time:
            raise ValidationFailed("request_time은 response_time보다 늦을 수 없습니다.")
        if response_time > self._clock() + MAX_CLOCK_SKEW:
            raise ValidationFailed("response_time이 미래 시각입니다.")

        if record.prompt_tokens < 0 or record.completion_tokens < 0 or record.total_tokens < 0:
            raise ValidationFailed("토큰 수는 음수일 수 없습니다.")
        if record.total_tokens != record.prompt_tokens + record.completion_tokens:
            raise ValidationFailed("total_tokens는 prompt_tokens + completion_tokens와 같아야 합니다.")

        if record.market_state and record.market_state not in MARKET_STATES:
            raise ValidationFailed(f"market_state는 {', '.join(MARKET_STATES)} 중 하나여야 합니다.")

    @staticmethod
    def _to_model(record: RiskReportUsageCreate) -> RiskReportUsage:
        data = record.model_dump()
        data["request_time"] = to_utc(record.request_time)
        data["response_time"] = to_utc(record.response_time)
        return RiskReportUsage(**data)

    async def create(self, record: RiskReportUsageCreate) -> RiskReportUsage:
        self.validate(record)
        usage = await self.repo.create(self._to_model(record))
        self._log.info(
            "사용 기록 생성",
            extra={"extra_data": {"id": usage.id, "user_id": usage.user_id, "ticker": usage.ticker}},
        )
        return usage

    async def batch_create(self, records: list[RiskReportUsageCreate]) -> dict:
        """레코드별로 검증하고 통과한 것만 한 번에 저장"""
        errors = []
        valid = []
        for i, record in enumerate(records, start=1):
            try:
                self.validate(record)
            except ValidationFailed as exc:
                errors.append(f"record {i}: {exc.message}")
                continue
            valid.append(self._to_model(record))

        saved = await self.repo.batch_create(valid)

        self._log.info(
            "사용 기록 일괄 생성",
            extra={"extra_data": {"success": len(saved), "failure": len(errors)}},
        )
        return {
            "success_count": len(saved),
            "failure_count": len(errors),
            "record_ids": [usage.id for usage in saved],
            "errors": errors,
        }

    async def get_by_id(self, usage_id: str) -> RiskReportUsage:
        usage = await self.repo.get_by_id(usage_id)
        if usage is None:
            raise ResourceNotFound("사용 기록을 찾을 수 없습니다.")
        return usage

    async def list(
        self,
        filters: UsageFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[RiskReportUsage], int]:
        filters.start_time = to_utc(filters.start_time)
        filters.end_time = to_utc(filters.end_time)
        return await self.repo.list(filters, max(page, 1), page_size if page_size > 0 else 20)

    async def user_stats(
        self,
        user_id: str,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> dict:
        return await self.repo.stats_by_user(user_id, to_utc(start_time), to_utc(end_time))
