# posagent/core/logging_config.py

import sys
import logging
import uuid
import contextvars
import time
from typing import Iterable, Mapping, Dict

from loguru import logger

# Trace id of the request being served, "unset" outside a request
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="unset")

# Every record carries these, so the sink format never hits a missing key
logger.configure(extra={"trace_id": "unset", "service": "app"})

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}Z</green> | "
    "<level>{level: <8}</level> | "
    "<blue>{extra[service]: <14.14}</blue> | "
    "<magenta>TID:{extra[trace_id]: >12.12}</magenta> | "
    "<cyan>{name}:{line}</cyan> - "
    "<level>{message}</level>"
)

# Outbound libraries whose own request logs duplicate the per-attempt traces
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

# Header values that grant access or prove possession of the app secret
SENSITIVE_HEADERS = frozenset({"sunmi-sign", "x-goog-api-key", "authorization"})


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of `headers` safe to log: secrets keep only their last 4 characters."""
    return {
        name: f"***{value[-4:]}" if name.lower() in SENSITIVE_HEADERS and value else value
        for name, value in headers.items()
    }


class InterceptHandler(logging.Handler):
    """Routes stdlib logging records (uvicorn, httpx) into Loguru."""

    def emit(self, record: logging.LogRecord):
        try: level = logger.level(record.levelname).name
        except ValueError: level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        if frame is None: depth = 0

        logger.opt(depth=depth, exception=record.exc_info).bind(
            trace_id=trace_id_var.get(), service=record.name.split(".")[0],
        ).log(level, record.getMessage())


def setup_logging(log_level: str = "INFO", quiet_loggers: Iterable[str] = QUIET_LOGGERS):
    """Makes Loguru the only handler; stdlib loggers are forwarded into it."""
    logger.remove()

    log_level = log_level.upper()
    logger.add(
        sys.stderr,
        level=log_level,
        format=LOG_FORMAT,
        enqueue=True,
        backtrace=True,
        diagnose=log_level == "DEBUG",
        colorize=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.bind(service="logging").success(f"Loguru configured. Console log level: {log_level}")


async def add_trace_id_middleware(request, call_next):
    """Binds a trace id to the request (X-Request-ID if given) and returns it as X-Trace-ID."""
    trace_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:12]}"
    token = trace_id_var.set(trace_id)
    request.state.trace_id = trace_id
    label = f"{request.method} {request.url.path}"
    started = time.perf_counter()

    with logger.contextualize(trace_id=trace_id, service="http"):
        client_host = request.client.host if request.client else "unknown_host"
        logger.info(f"Request START: {label} from {client_host}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled exception during {label} after {(time.perf_counter() - started) * 1000:.2f}ms")
            raise
        finally:
            trace_id_var.reset(token)

        response.headers["X-Trace-ID"] = trace_id
        logger.info(f"Request END: {label} Status: {response.status_code} Duration: {(time.perf_counter() - started) * 1000:.2f}ms")
        return response
