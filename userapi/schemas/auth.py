from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from schemas.user import UserResponse

# bcrypt 입력 한계
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError("비밀번호는 UTF-8 기준 72바이트를 넘을 수 없습니다.")
    return v


class RegisterRequest(BaseModel):
    """회원가입 요청 시 받을 데이터"""
    username: str = Field(..., min_length=3, max_length=30, description="사용자 아이디 (영문/숫자)")
    email: EmailStr = Field(..., max_length=100, description="사용자 이메일")
    password: str = Field(..., min_length=6, max_length=50, description="비밀번호 (6~50자)")
    confirm_password: str = Field(..., description="비밀번호 확인")
    nickname: str | None = Field(None, max_length=50)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.isascii() or not v.isalnum():
            raise ValueError("아이디는 영문자와 숫자만 사용할 수 있습니다.")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_bytes(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("비밀번호 확인이 일치하지 않습니다.")
        return self


class LoginRequest(BaseModel):
    """아이디 또는 이메일 + 비밀번호"""
    username: str = Field(..., min_length=1, max_length=100, description="아이디 또는 이메일")
    password: str = Field(..., min_length=6, max_length=50)


class LoginResponse(BaseModel):
    """로그인 성공 시 돌려줄 JWT 토큰 + 사용자 정보"""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="액세스 토큰 유효 시간(초)")
    user: UserResponse

    model_config = {
        "from_attributes": True
    }


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class RefreshTokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int

    model_config = {
        "from_attributes": True
    }


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=50)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password_bytes(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("새 비밀번호 확인이 일치하지 않습니다.")
        return self
