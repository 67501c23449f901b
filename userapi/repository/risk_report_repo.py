import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.exceptions import StorageFailure
from core.logger import get_logger
from models.risk_report_usage import RiskReportUsage


@dataclass
class UsageFilters:
    user_id: str | None = None
    ticker: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class RiskReportRepository:
    """리스크 리포트 사용 기록 저장소"""

    def __init__(self, db: AsyncSession, logger: logging.Logger | None = None):
        self.db = db
        self._log = logger or get_logger("repository.risk_report")

    @asynccontextmanager
    async def _storage(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            await self.db.rollback()
            self._log.error(f"{action} 실패", exc_info=exc)
            raise StorageFailure() from exc

    async def create(self, usage: RiskReportUsage) -> RiskReportUsage:
        async with self._storage("사용 기록 생성"):
            self.db.add(usage)
            await self.db.commit()
            await self.db.refresh(usage)
        return usage

    async def batch_create(self, usages: list[RiskReportUsage]) -> list[RiskReportUsage]:
        """한 트랜잭션으로 일괄 저장: 하나라도 실패하면 전부 롤백"""
        if not usages:
            return []
        async with self._storage("사용 기록 일괄 생성"):
            self.db.add_all(usages)
            await self.db.commit()
        return usages

    async def get_by_id(self, usage_id: str) -> RiskReportUsage | None:
        async with self._storage("사용 기록 조회"):
            result = await self.db.execute(select(RiskReportUsage).where(RiskReportUsage.id == usage_id))
            return result.scalars().first()

    @staticmethod
    def _apply_filters(stmt, filters: UsageFilters):
        if filters.user_id:
            stmt = stmt.where(RiskReportUsage.user_id == filters.user_id)
        if filters.ticker:
            stmt = stmt.where(RiskReportUsage.ticker == filters.ticker)
        if filters.start_time is not None:
            stmt = stmt.where(RiskReportUsage.request_time >= filters.start_time)
        if filters.end_time is not None:
            stmt = stmt.where(RiskReportUsage.request_time <= filters.end_time)
        return stmt

    async def list(self, filters: UsageFilters, page: int, page_size: int) -> tuple[list[RiskReportUsage], int]:
        """최신 요청 순 페이지 조회 + 전체 건수"""
        count_stmt = self._apply_filters(select(func.count()).select_from(RiskReportUsage), filters)
        stmt = (
            self._apply_filters(select(RiskReportUsage), filters)
            .order_by(RiskReportUsage.request_time.desc(), RiskReportUsage.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        async with self._storage("사용 기록 목록 조회"):
            total = (await self.db.execute(count_stmt)).scalar_one()
            result = await self.db.execute(stmt)
            return list(result.scalars().all()), total

    async def stats_by_user(
        self,
        user_id: str,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> dict:
        stmt = select(
            func.count(RiskReportUsage.id),
            func.coalesce(func.sum(RiskReportUsage.total_tokens), 0),
            func.coalesce(func.sum(RiskReportUsage.prompt_tokens), 0),
            func.coalesce(func.sum(RiskReportUsage.completion_tokens), 0),
            func.avg(RiskReportUsage.response_duration_ms),
        )
        stmt = self._apply_filters(stmt, UsageFilters(user_id=user_id, start_time=start_time, end_time=end_time))

        async with self._storage("사용자 통계 조회"):
            row = (await self.db.execute(stmt)).one()

        total_queries, total_tokens, prompt_tokens, completion_tokens, avg_ms = row
        return {
            "total_queries": int(total_queries),
            "total_tokens": int(total_tokens),
            "total_prompt_tokens": int(prompt_tokens),
            "total_completion_tokens": int(completion_tokens),
            "avg_response_time_ms": int(avg_ms or 0),
        }
