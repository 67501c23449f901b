from datetime import datetime
from pydantic import BaseModel, Field


class RiskReportUsageCreate(BaseModel):
    """사용 기록 적재 요청: 값의 업무 규칙 검증은 서비스에서 레코드 단위로 수행"""
    user_id: str = Field(..., min_length=1, max_length=50)
    ticker: str = Field(..., min_length=1)
    request_time: datetime
    response_time: datetime
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    ai_response: str

    stock_price: float | None = None
    market_state: str | None = None
    news_sentiment_score: int | None = None
    news_sentiment_label: str | None = Field(None, max_length=20)
    peak_signals_triggered: int | None = None
    action_suggestion: str | None = Field(None, max_length=50)
    rate_limit_remaining: int | None = None
    error_message: str | None = None
    response_duration_ms: int | None = None


class RiskReportUsageBatchCreate(BaseModel):
    records: list[RiskReportUsageCreate] = Field(..., min_length=1, max_length=100)


class RiskReportUsageBatchResponse(BaseModel):
    success_count: int
    failure_count: int
    record_ids: list[str]
    errors: list[str] = []


class RiskReportUsageResponse(BaseModel):
    id: str
    user_id: str
    ticker: str
    request_time: datetime
    response_time: datetime
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    ai_response: str
    stock_price: float | None = None
    market_state: str | None = None
    news_sentiment_score: int | None = None
    news_sentiment_label: str | None = None
    peak_signals_triggered: int | None = None
    action_suggestion: str | None = None
    rate_limit_remaining: int | None = None
    error_message: str | None = None
    response_duration_ms: int | None = None
    created_at: datetime | None = None

    model_config = {
        "from_attributes": True
    }


class RiskReportUsageStats(BaseModel):
    user_id: str
    total_queries: int
    total_tokens: int
    total_prompt_tokens: int
    total_completion_tokens: int
    avg_response_time_ms: int
