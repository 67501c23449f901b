from datetime import timedelta
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 앱 정보
    app_name: str = "user-api"
    app_version: str = "0.1.0"
    app_env: str = "development"

    # Database
    database_url: str = "sqlite+aiosqlite:///./app.db"
    database_echo: bool = False
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_auto_migrate: bool = True

    # JWT 설정 (만료 시간은 시간 단위)
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "user-api"
    jwt_access_expire_hours: int = 24
    jwt_refresh_expire_hours: int = 168

    # bcrypt 작업 비용: 높을수록 안전하지만 로그인이 느려짐
    bcrypt_cost: int = 10

    # 로그
    log_level: str = "info"
    log_format: str = "json"

    # CORS (쉼표 구분)
    cors_allowed_origins: str = "*"
    cors_allow_credentials: bool = True

    # 페이지네이션
    pagination_default_page_size: int = 20
    pagination_max_page_size: int = 100

    # 리스크 리포트 사용 기록 수집용 정적 API 키 (쉼표 구분)
    risk_report_api_keys: str = ""

    # 최초 관리자 계정: 사용자 테이블이 비어 있을 때만 생성
    admin_username: str | None = None
    admin_email: str | None = None
    admin_password: str | None = None

    model_config = SettingsConfigDict(
        # config.py -> core -> userapi -> 루트 아래의 .env 찾기
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("JWT 시크릿은 8자 이상이어야 합니다.")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        # 대칭키(HMAC) 계열만 허용
        if v not in ("HS256", "HS384", "HS512"):
            raise ValueError(f"지원하지 않는 JWT 알고리즘입니다: {v}")
        return v

    @field_validator("bcrypt_cost")
    @classmethod
    def validate_bcrypt_cost(cls, v: int) -> int:
        if not 4 <= v <= 31:
            raise ValueError("bcrypt_cost는 4~31 사이여야 합니다.")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.lower()
        if v not in ("debug", "info", "warning", "error"):
            raise ValueError(f"잘못된 로그 레벨입니다: {v}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("json", "console"):
            raise ValueError(f"잘못된 로그 포맷입니다: {v}")
        return v

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(hours=self.jwt_access_expire_hours)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(hours=self.jwt_refresh_expire_hours)

    @property
    def api_keys(self) -> list[str]:
        return [k.strip() for k in self.risk_report_api_keys.split(",") if k.strip()]

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


# 싱글톤 인스턴스: 시작 시점에만 읽고, 각 컴포넌트에는 생성자로 전달
settings = Settings()
