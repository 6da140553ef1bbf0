import logging
import logging.handlers
import contextvars
from pathlib import Path
from typing import Optional

from core.config import settings
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


def _ensure_log_dir(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)


def map_log_level(level_name: str) -> int:
    level = getattr(logging, (level_name or "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


subject_var = contextvars.ContextVar("subject", default="-")
api_var = contextvars.ContextVar("api", default="-")


def bind_subject(email: Optional[str] = None, phone: Optional[str] = None) -> None:
    """Tag log lines of the current request with the OTP subject."""
    subject = "/".join(part for part in (email, phone) if part)
    subject_var.set(subject or "-")


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Inject per-request context variables
        record.subject = subject_var.get()
        record.api = api_var.get()
        return True


def _build_rotating_file_handler(filename: str, level: int, formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        interval=1,
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def _build_handlers(level: int, log_dir: Optional[Path]) -> dict[str, logging.Handler]:
    formatter = logging.Formatter(
        fmt="%(levelname)s - %(asctime)s - %(subject)s - %(api)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    handlers = {"console": console_handler}
    if log_dir is not None:
        handlers["app"] = _build_rotating_file_handler("app.log", level, formatter, log_dir)
        handlers["access"] = _build_rotating_file_handler("access.log", level, formatter, log_dir)
        handlers["error"] = _build_rotating_file_handler("error.log", logging.WARNING, formatter, log_dir)
    return handlers


def _reset_handlers(target_logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    for h in list(target_logger.handlers):
        target_logger.removeHandler(h)
    for h in handlers:
        target_logger.addHandler(h)
    target_logger.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Configure logging with daily rotation and TTL-based retention.

    - Rotates at midnight; keeps last LOG_TTL_DAYS files
    - File handlers are skipped when LOG_TO_FILE is false (console only)
    - Applies handlers to root, app, and Uvicorn loggers
    """
    log_dir = None
    if settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)
        _ensure_log_dir(log_dir)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)

    def pick(*names: str) -> list[logging.Handler]:
        return [handlers[n] for n in names if n in handlers]

    # Root logger -> app + error + console
    root_logger = logging.getLogger()
    _reset_handlers(root_logger, pick("app", "error", "console"), level)

    # App logger -> app + error + console
    app_name = app_logger_name or "otp_service"
    app_logger = logging.getLogger(app_name)
    app_logger.propagate = False
    _reset_handlers(app_logger, pick("app", "error", "console"), level)

    for name in ("uvicorn", "uvicorn.error", "fastapi"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _reset_handlers(lgr, pick("app", "error", "console"), level)
    # uvicorn.access -> access + console
    access_logger = logging.getLogger("uvicorn.access")
    access_logger.propagate = False
    _reset_handlers(access_logger, pick("access", "console"), level)

    return app_logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        context_token_subject = subject_var.set("-")
        context_token_api = api_var.set(f"{request.method} {request.url.path}")
        try:
            return await call_next(request)
        finally:
            subject_var.reset(context_token_subject)
            api_var.reset(context_token_api)
