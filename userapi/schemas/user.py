from datetime import date, datetime
from pydantic import BaseModel, Field

from models.users import Gender, Role, UserStatus


class UserResponse(BaseModel):
    """사용자 조회 결과 (비밀번호 해시 제외!)"""
    id: str
    username: str
    email: str
    nickname: str | None = None
    avatar: str | None = None
    phone: str | None = None
    bio: str | None = None
    gender: int | None = None
    birthday: date | None = None
    status: int
    role: str
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {
        "from_attributes": True  # SQLAlchemy 모델 객체를 Pydantic 모델로 자동 변환
    }


class UpdateUserRequest(BaseModel):
    """본인 프로필 수정: 보낸 필드만 반영"""
    nickname: str | None = Field(None, max_length=50)
    avatar: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=20)
    bio: str | None = Field(None, max_length=500)
    gender: Gender | None = None
    birthday: date | None = None


class AdminUpdateUserRequest(UpdateUserRequest):
    """관리자 수정: 상태/역할까지"""
    status: UserStatus | None = None
    role: Role | None = None

