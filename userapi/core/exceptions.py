"""
애플리케이션 에러 분류 체계

모든 서비스/미들웨어는 여기 정의된 AppError 하위 클래스만 밖으로 던진다.
전송 계층(exception_handlers)은 status_code/code만 보고 응답을 만든다.
"""
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    # 공통
    BAD_REQUEST = 10001
    UNAUTHORIZED = 10002
    FORBIDDEN = 10003
    NOT_FOUND = 10004
    CONFLICT = 10005
    INTERNAL_ERROR = 10006
    VALIDATION = 10007

    # 인증
    INVALID_TOKEN = 11001
    TOKEN_EXPIRED = 11002
    INVALID_PASSWORD = 11003
    INVALID_CREDENTIAL = 11004
    TOKEN_MALFORMED = 11005
    TOKEN_NOT_FOUND = 11006
    TOKEN_INVALID_SIGNATURE = 11007

    # 사용자
    USER_NOT_FOUND = 20001
    USER_DISABLED = 20003
    EMAIL_ALREADY_USED = 20004
    USERNAME_EXISTS = 20005

    # 리소스
    RESOURCE_NOT_FOUND = 40001

    # 저장소
    DATABASE_ERROR = 50001


class AppError(Exception):
    """분류된 애플리케이션 예외의 기반 클래스"""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    message: str = "서버 내부 오류가 발생했습니다."

    def __init__(self, message: str | None = None, detail: Any = None) -> None:
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail:
            return f"[{int(self.code)}] {self.message}: {self.detail}"
        return f"[{int(self.code)}] {self.message}"


# ===== 공통 =====

class BadRequest(AppError):
    code = ErrorCode.BAD_REQUEST
    status_code = 400
    message = "잘못된 요청입니다."


class ValidationFailed(AppError):
    code = ErrorCode.VALIDATION
    status_code = 400
    message = "데이터 검증에 실패했습니다."


class Unauthorized(AppError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    message = "인증이 필요합니다."


class Forbidden(AppError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    message = "접근 권한이 없습니다."


class NotFound(AppError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    message = "요청한 리소스가 존재하지 않습니다."


class Conflict(AppError):
    code = ErrorCode.CONFLICT
    status_code = 409
    message = "리소스가 충돌합니다."


class InternalError(AppError):
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
    message = "서버 내부 오류가 발생했습니다."


class StorageFailure(AppError):
    """DB 드라이버 상세는 detail에도 담지 않는다 (로그에만 기록)"""
    code = ErrorCode.DATABASE_ERROR
    status_code = 500
    message = "서버 내부 오류가 발생했습니다."


# ===== 토큰 =====

class TokenNotFound(AppError):
    code = ErrorCode.TOKEN_NOT_FOUND
    status_code = 401
    message = "접근 토큰을 제공해 주세요."


class TokenMalformed(AppError):
    code = ErrorCode.TOKEN_MALFORMED
    status_code = 401
    message = "토큰 형식이 올바르지 않습니다."


class TokenInvalid(AppError):
    code = ErrorCode.INVALID_TOKEN
    status_code = 401
    message = "유효하지 않은 토큰입니다."


class TokenInvalidSignature(TokenInvalid):
    code = ErrorCode.TOKEN_INVALID_SIGNATURE
    message = "토큰 서명이 유효하지 않습니다."


class TokenExpired(AppError):
    code = ErrorCode.TOKEN_EXPIRED
    status_code = 401
    message = "토큰이 만료되었습니다."


# ===== 계정 =====

class InvalidCredential(AppError):
    """계정 없음/비밀번호 불일치를 구분하지 않는 로그인 실패"""
    code = ErrorCode.INVALID_CREDENTIAL
    status_code = 401
    message = "아이디 또는 비밀번호가 올바르지 않습니다."


class InvalidPassword(AppError):
    code = ErrorCode.INVALID_PASSWORD
    status_code = 401
    message = "비밀번호가 올바르지 않습니다."


class UserNotFound(AppError):
    code = ErrorCode.USER_NOT_FOUND
    status_code = 404
    message = "사용자를 찾을 수 없습니다."


class UserDisabled(AppError):
    code = ErrorCode.USER_DISABLED
    status_code = 403
    message = "비활성화된 계정입니다."


class UsernameExists(AppError):
    code = ErrorCode.USERNAME_EXISTS
    status_code = 409
    message = "이미 존재하는 아이디입니다."


class EmailAlreadyUsed(AppError):
    code = ErrorCode.EMAIL_ALREADY_USED
    status_code = 409
    message = "이미 사용 중인 이메일입니다."


# ===== 리소스 =====

class ResourceNotFound(AppError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    status_code = 404
    message = "리소스를 찾을 수 없습니다."
