import logging
import logging.handlers
import contextvars
import uuid
from pathlib import Path
from typing import Optional

from core.config import settings
from core.exceptions import InvalidToken
from core.security import session_manager
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

SECURITY_LOGGER = "harvex.security"
REQUEST_ID_HEADER = "X-Request-ID"

LOG_FORMAT = "%(levelname)s - %(asctime)s - %(request_id)s - %(user_id)s - %(api)s - %(message)s"

# file name -> minimum level (None: configured level)
LOG_FILES = {
    "app": ("app.log", None),
    "access": ("access.log", None),
    "error": ("error.log", logging.WARNING),
    "security": ("security.log", None),
}

# logger name -> handler keys; names not listed fall through to the root logger
LOGGER_ROUTES = {
    "uvicorn": ("app", "error", "console"),
    "uvicorn.error": ("app", "error", "console"),
    "fastapi": ("app", "error", "console"),
    "uvicorn.access": ("access", "console"),
    SECURITY_LOGGER: ("security", "error", "console"),
}

request_id_var = contextvars.ContextVar("request_id", default="-")
user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")


def map_log_level(level_name: str) -> int:
    level = logging.getLevelName((level_name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _prepare(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(ContextFilter())
    return handler


def _daily_file(path: Path) -> logging.Handler:
    """Rotates at UTC midnight and keeps LOG_TTL_DAYS old files."""
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def _build_handlers(level: int, log_dir: Optional[Path]) -> dict:
    handlers = {"console": _prepare(logging.StreamHandler(), level)}
    if log_dir is None:
        return handlers
    for key, (filename, min_level) in LOG_FILES.items():
        handlers[key] = _prepare(_daily_file(log_dir / filename), min_level or level)
    return handlers


def _attach(logger: logging.Logger, handlers: list, level: int, propagate: bool) -> None:
    for h in list(logger.handlers):
        logger.removeHandler(h)
    for h in handlers:
        logger.addHandler(h)
    logger.setLevel(level)
    logger.propagate = propagate


def configure_logging(app_logger_name: Optional[str] = None, to_files: bool = True) -> logging.Logger:
    """Route application, access and security logs to console and daily files.

    Session security events (refresh token reuse, revocations) go to their
    own ``security.log`` as well as ``error.log`` when at WARNING or above.
    ``to_files=False`` logs to the console only.
    """
    log_dir = None
    if to_files:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)

    def pick(keys):
        return [handlers[k] for k in keys if k in handlers]

    default_keys = ("app", "error", "console")
    _attach(logging.getLogger(), pick(default_keys), level, propagate=True)

    app_logger = logging.getLogger(app_logger_name or "harvex")
    _attach(app_logger, pick(default_keys), level, propagate=False)

    for name, keys in LOGGER_ROUTES.items():
        _attach(logging.getLogger(name), pick(keys), level, propagate=False)

    return app_logger


def _user_id_from_header(auth_header: Optional[str]) -> str:
    if not auth_header or not auth_header.startswith("Bearer "):
        return "-"
    try:
        return session_manager.verify_access_token(auth_header.split(" ", 1)[1])["userId"]
    except InvalidToken:
        return "-"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log line of a request with its id, caller and route."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        tokens = (
            (request_id_var, request_id_var.set(request_id)),
            (user_id_var, user_id_var.set(_user_id_from_header(request.headers.get("authorization")))),
            (api_var, api_var.set(f"{request.method} {request.url.path}")),
        )
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            for var, token in reversed(tokens):
                var.reset(token)
