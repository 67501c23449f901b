import logging
import json
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

# 요청별 고유 ID를 저장하는 Context Variable
# (같은 요청 내에서는 어디서든 동일한 request_id에 접근 가능)
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# 모든 애플리케이션 로거의 부모 네임스페이스
ROOT_LOGGER_NAME = "userapi"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """
    로그를 JSON 형식으로 출력하는 포매터

    Before: INFO: 172.19.0.5 - "POST /api/v1/auth/login" 200 OK
    After:  {"timestamp": "...", "level": "INFO", "message": "...", "request_id": "abc-123"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get("-"),
        }

        # 추가 필드가 있으면 병합 (예: user_id, duration_ms 등)
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """로컬 개발용 한 줄 포매터"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = request_id_var.get("-")
        message = super().format(record)
        if hasattr(record, "extra_data"):
            fields = " ".join(f"{k}={v}" for k, v in record.extra_data.items())
            message = f"{message} {fields}"
        return message


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """애플리케이션 루트 로거에 핸들러를 한 번만 설치 (main.py 시작 시 호출)"""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(_LEVELS.get(level, logging.INFO))

    formatter = JsonFormatter() if fmt == "json" else ConsoleFormatter()
    if root.handlers:
        for handler in root.handlers:
            handler.setFormatter(formatter)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """구조화된 로거 생성: 핸들러는 부모(userapi) 로거가 담당"""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def generate_request_id() -> str:
    """요청별 고유 추적 ID 생성"""
    return str(uuid.uuid4())[:8]  # 짧게 8자만 사용
