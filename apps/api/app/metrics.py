from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request
from starlette.routing import Match


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

desk_status_transitions_total = Counter(
    "desk_status_transitions_total",
    "Status transitions applied to service desk records",
    ["entity_type", "to_status"],
)

desk_transition_rejections_total = Counter(
    "desk_transition_rejections_total",
    "Status transitions rejected by the state machine or the capability policy",
    ["entity_type", "reason"],
)

pricing_quotes_total = Counter(
    "pricing_quotes_total",
    "Prices computed by pipeline",
    ["pipeline"],
)

notification_deliveries_total = Counter(
    "notification_deliveries_total",
    "Outbox deliveries by outcome",
    ["intent_type", "outcome"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    return _INT_RE.sub("/{id}", _UUID_RE.sub("{id}", path))


def _matched_route(request: Request):  # type: ignore[no-untyped-def]
    route = request.scope.get("route")
    if route is not None:
        return route
    # scope["route"] is not always visible to outer middleware.
    router = getattr(request.scope.get("app"), "router", None)
    for candidate in getattr(router, "routes", ()):
        match, _ = candidate.matches(request.scope)
        if match is Match.FULL:
            return candidate
    return None


def resolve_http_path_label(request: Request) -> str:
    route = _matched_route(request)
    if route is not None:
        for attribute in ("path_format", "path"):
            template = getattr(route, attribute, None)
            if isinstance(template, str) and template:
                return _PATH_PARAM_RE.sub("{id}", template)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_status_transition(entity_type: str, to_status: str) -> None:
    desk_status_transitions_total.labels(entity_type=entity_type, to_status=to_status).inc()


def observe_transition_rejection(entity_type: str, reason: str) -> None:
    desk_transition_rejections_total.labels(entity_type=entity_type, reason=reason).inc()


def observe_pricing_quote(pipeline: str, count: int = 1) -> None:
    if count > 0:
        pricing_quotes_total.labels(pipeline=pipeline).inc(count)


def observe_notification_delivery(intent_type: str, outcome: str) -> None:
    notification_deliveries_total.labels(intent_type=intent_type, outcome=outcome).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
