import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("missionapi.http")


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 한 줄 로그 - 상태 코드에 따라 레벨을 나눈다"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        client = request.client.host if request.client else "-"
        target = f"{request.method} {request.url.path}"
        if request.url.query:
            target = f"{target}?{request.url.query}"

        logger.debug(f"--> {target} from {client}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"<-- {target} from {client} raised")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = response.status_code
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, f"<-- {target} from {client} {status_code} {elapsed_ms:.1f}ms")
        return response
