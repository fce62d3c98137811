"""Request logging middleware with context and tracing."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from hostpanel.utils.context import clear_context, set_context
from hostpanel.utils.logger import get_logger
from hostpanel.utils.telemetry import get_tracer, add_span_attributes

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log each request and tag it with a request id.

    The id is taken from ``X-Request-ID`` when the client sends one and is
    echoed back on the response together with ``X-Process-Time``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_context(request_id=request_id, action="http.request")

        client_ip = request.client.host if request.client else None
        tracer = get_tracer()

        with tracer.start_as_current_span(f"{request.method} {request.url.path}") as span:
            add_span_attributes(
                **{
                    "http.method": request.method,
                    "http.path": request.url.path,
                    "http.client_ip": client_ip,
                    "http.request_id": request_id,
                }
            )

            logger.info(
                "Request started",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": str(request.query_params) or None,
                    "client_ip": client_ip,
                },
            )

            start_time = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                span.record_exception(e)
                logger.error(
                    "Request failed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise
            else:
                duration_ms = (time.perf_counter() - start_time) * 1000
                add_span_attributes(
                    **{
                        "http.status_code": response.status_code,
                        "http.duration_ms": round(duration_ms, 2),
                    }
                )
                response.headers[REQUEST_ID_HEADER] = request_id
                response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"

                logger.info(
                    "Request completed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                    },
                )
                return response
            finally:
                clear_context()
