from __future__ import annotations

import uuid
from dataclasses import dataclass

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.context import reset_actor_id, reset_correlation_id, set_actor_id, set_correlation_id


@dataclass
class RequestContext:
    correlation_id: str
    user_id: str | None = None
    client_host: str | None = None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        request.state.context = RequestContext(
            correlation_id=correlation_id,
            client_host=request.client.host if request.client else None,
        )
        token = set_correlation_id(correlation_id)
        actor_token = set_actor_id(None)
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_actor_id(actor_token)
            reset_correlation_id(token)

        response.headers["x-correlation-id"] = correlation_id
        return response
