from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    """
    모든 모델에 공통 적용할 생성/수정 시간

    사용법:
        class User(TimestampMixin, Base):
            __tablename__ = "users"
            ...

    실무 포인트:
    - server_default=func.now(): DB 서버 시간 기준 (앱 서버 시간 X)
    - onupdate=func.now(): UPDATE 쿼리 시 자동으로 갱신
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """
    소프트 삭제: 실제로 지우지 않고 삭제 시각만 기록
    deleted_at이 채워진 행은 모든 일반 조회에서 제외된다.
    """

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
