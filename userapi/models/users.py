import uuid
from datetime import date, datetime
from enum import Enum, IntEnum
from sqlalchemy import String, SmallInteger, Date, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from models.base import TimestampMixin, SoftDeleteMixin
from core.database import Base


class UserStatus(IntEnum):
    DISABLED = 0
    ACTIVE = 1
    INACTIVE = 2   # 가입 후 미인증


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Gender(IntEnum):
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2


class User(TimestampMixin, SoftDeleteMixin, Base):
    """
    사용자 모델

    - id: UUID v4 사용 (auto-increment 대비 보안 우수: 예측 불가)
    - hashed_password: 평문 비밀번호를 절대 저장하지 않음, 응답 스키마에도 없음
    - status: 관리자만 변경 (본인이 직접 바꿀 수 없음)
    - deleted_at: 소프트 삭제
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # 사용자 식별 정보
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,          # 로그인 시 빈번하게 조회 → 인덱스 필수
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )

    # bcrypt 해시값 저장 (보통 60자, 여유있게 255)
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # 프로필
    nickname: Mapped[str | None] = mapped_column(String(50), default="")
    avatar: Mapped[str | None] = mapped_column(String(255), default="")
    phone: Mapped[str | None] = mapped_column(String(20), default="", index=True)
    bio: Mapped[str | None] = mapped_column(String(500), default="")
    gender: Mapped[int] = mapped_column(SmallInteger, default=Gender.UNKNOWN.value, server_default="0")
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)

    # 상태/역할
    status: Mapped[int] = mapped_column(
        SmallInteger,
        default=UserStatus.ACTIVE.value,
        server_default="1",
        index=True,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        default=Role.USER.value,
        server_default="user",
    )

    # 마지막 로그인 정보
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_ip: Mapped[str | None] = mapped_column(String(45), default="")

    def is_disabled(self) -> bool:
        return self.status == UserStatus.DISABLED

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
