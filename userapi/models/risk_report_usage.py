import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Text, Numeric, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from models.base import TimestampMixin
from core.database import Base

MARKET_STATES = ("PRE", "REGULAR", "POST", "CLOSED")


class RiskReportUsage(TimestampMixin, Base):
    """
    리스크 리포트 사용 기록
    - 외부 리포트 서비스가 API 키로 적재하는 토큰 사용량/응답 메타데이터
    """
    __tablename__ = "risk_report_usage"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    ticker: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    request_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    response_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # 토큰 사용량
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False)

    ai_response: Mapped[str] = mapped_column(Text, nullable=False)

    # 선택 필드 (리포트 메타데이터)
    stock_price: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    market_state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    news_sentiment_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    news_sentiment_label: Mapped[str | None] = mapped_column(String(20), nullable=True)
    peak_signals_triggered: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action_suggestion: Mapped[str | None] = mapped_column(String(50), nullable=True)
    rate_limit_remaining: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
