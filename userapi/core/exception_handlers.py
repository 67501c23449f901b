from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import AppError, ErrorCode
from core.logger import get_logger

logger = get_logger("errors")


def error_body(code: int, message: str, detail=None) -> dict:
    """에러 응답 공통 포맷"""
    return {"code": int(code), "message": message, "data": None, "detail": detail}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """분류된 애플리케이션 예외 → 상태 코드 매핑"""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None

    if exc.status_code >= 500:
        # 원인 예외(__cause__)까지 서버 로그에만 남기고 응답에는 노출하지 않음
        logger.error(
            f"{request.method} {request.url.path} 처리 실패: {exc}",
            exc_info=exc.__cause__ or exc,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.detail),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """요청 검증 실패 → 400 + 필드별 에러 목록"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"][1:]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=400,
        content=error_body(ErrorCode.VALIDATION, "요청 파라미터 검증에 실패했습니다.", {"errors": errors}),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """라우팅 단계의 404/405 등을 같은 포맷으로 변환"""
    code_map = {
        400: ErrorCode.BAD_REQUEST,
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
    }
    code = code_map.get(exc.status_code, ErrorCode.BAD_REQUEST)
    if exc.status_code >= 500:
        code = ErrorCode.INTERNAL_ERROR

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    최상위 복구 경계: 처리되지 않은 모든 예외를 500으로 변환
    스택 트레이스는 서버 로그에만 기록
    """
    logger.error(
        f"{request.method} {request.url.path} 처리 중 예기치 못한 예외",
        exc_info=exc,
        extra={"extra_data": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=500,
        content=error_body(ErrorCode.INTERNAL_ERROR, "서버 내부 오류가 발생했습니다."),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """전역 예외 처리기 등록"""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
