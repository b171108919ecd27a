import logging
import time
import uuid

from aws_lambda_powertools.logging.formatter import LambdaPowertoolsFormatter
from fastapi import Request

from .config import LOG_LEVEL, SERVICE_NAME, is_production

logger = logging.getLogger("wanderlust.access")

REQUEST_ID_HEADER = "X-Request-ID"


def json_formatter() -> LambdaPowertoolsFormatter:
    """Powertools JSON lines; ``extra`` access fields become top-level keys."""
    return LambdaPowertoolsFormatter(service=SERVICE_NAME, utc=True, json_default=str)


def setup_logging(level: str = LOG_LEVEL, json_output: bool = None):
    if json_output is None:
        json_output = is_production()
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(json_formatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


async def log_requests(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 1)
    response.headers[REQUEST_ID_HEADER] = request_id
    user_id = getattr(request.state, "user_id", None)

    if response.status_code >= 500:
        level = logging.ERROR
    elif response.status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        "%s %s %s %sms %s user=%s",
        request.method, request.url.path, response.status_code, duration_ms, client_ip(request), user_id or "-",
        extra={
            "requestId": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "durationMs": duration_ms,
            "ip": client_ip(request),
            "userAgent": request.headers.get("user-agent"),
            "userId": user_id,
        },
    )
    return response
