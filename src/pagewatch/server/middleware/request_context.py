import uuid

from starlette.middleware.base import BaseHTTPMiddleware

from pagewatch.main.request_context import clear_request_context, set_request_context

CORRELATION_HEADER = "X-Correlation-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log record of a request with a correlation id."""

    async def dispatch(self, request, call_next):
        correlation_id = (
            request.headers.get(CORRELATION_HEADER)
            or request.headers.get("Upstash-Message-Id")
            or uuid.uuid4().hex
        )
        set_request_context(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
