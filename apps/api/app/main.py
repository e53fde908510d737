from contextlib import asynccontextmanager, contextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.routes import router as api_router
from app.business.pricing.seed import pricing_seed_helper
from app.core.config import get_settings
from app.core.database import SessionLocal, get_db
from app.core.events import InternalEvent, event_bus
from app.logging import configure_logging
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.notifications.service import notification_dispatcher
from app.otel import setup_otel
from app.platform.security.policies import InMemoryPolicyBackend, set_policy_backend
from app.users.service import user_service


configure_logging()
logger = logging.getLogger("app.lifecycle")
_subscriptions_registered = False

_notification_event_types = [
    "desk.created",
    "desk.status_changed",
    "desk.assigned",
]


@contextmanager
def _dispatch_session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def _on_desk_event(event: InternalEvent) -> None:
    if not get_settings().notifications_auto_dispatch:
        return
    try:
        with _dispatch_session_scope() as session:
            notification_dispatcher.dispatch_pending(session)
    except Exception as exc:
        logger.exception("notification_auto_dispatch_failed", extra={"event_type": event.name, "error": str(exc)[:500]})


def _bootstrap() -> None:
    settings = get_settings()
    if not settings.bootstrap_admin_email and not settings.seed_default_categories:
        return
    with _dispatch_session_scope() as session:
        if settings.bootstrap_admin_email and settings.bootstrap_admin_password:
            user_service.ensure_bootstrap_admin(session, settings.bootstrap_admin_email, settings.bootstrap_admin_password)
        if settings.seed_default_categories:
            created = pricing_seed_helper.ensure_default_categories(session)
            logger.info("pricing.categories_seeded", extra={"count": created})


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        for event_name in _notification_event_types:
            event_bus.subscribe(event_name, _on_desk_event)
        _subscriptions_registered = True
    _bootstrap()
    yield


app = FastAPI(title="BizDesk API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

set_policy_backend(InMemoryPolicyBackend())

settings = get_settings()
if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app)
