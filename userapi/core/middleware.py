import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.exception_handlers import unhandled_error_handler
from core.logger import get_logger, generate_request_id, request_id_var

logger = get_logger("access")

REQUEST_ID_HEADER = "X-Request-ID"

SECURE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'",
}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    모든 HTTP 요청에 추적 ID를 부여하고 접근 로그를 남기는 미들웨어

    1. X-Request-ID 헤더가 있으면 그대로, 없으면 새로 생성
    2. 응답 시간 측정
    3. 상태 코드에 따라 info/warning/error 레벨로 JSON 로그 출력
    4. 처리되지 않은 예외도 여기서 500 응답으로 바꿔 접근 로그와 X-Request-ID를 남김
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        token = request_id_var.set(req_id)

        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                response = await unhandled_error_handler(request, exc)
            duration_ms = (time.perf_counter() - start) * 1000

            status = response.status_code
            log = logger.info
            if status >= 500:
                log = logger.error
            elif status >= 400:
                log = logger.warning

            log(
                f"{request.method} {request.url.path} {status} {duration_ms:.0f}ms",
                extra={"extra_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": round(duration_ms, 1),
                    "client_ip": request.client.host if request.client else None,
                    # 인증 필터가 request.state에 기록한 값
                    "user_id": getattr(request.state, "user_id", None),
                }}
            )

            # 응답 헤더에 request_id 포함 (디버깅용)
            response.headers[REQUEST_ID_HEADER] = req_id
            return response
        finally:
            request_id_var.reset(token)


class SecureHeadersMiddleware(BaseHTTPMiddleware):
    """기본 보안 응답 헤더 추가"""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in SECURE_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
