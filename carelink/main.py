from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carelink.core.config import get_settings
from carelink.core.events import event_bus
from carelink.core.logging_config import setup_logging
from carelink.api.v1.router import api_router
from carelink.services.audit_service import register_audit_log
from carelink.services.change_feed import change_feed
from carelink.services.consultation_notifier import register_consultation_notifier

settings = get_settings()
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    subscriptions = [
        register_consultation_notifier(event_bus),
        *change_feed.attach(event_bus),
        *register_audit_log(event_bus),
    ]
    try:
        yield
    finally:
        for subscription in subscriptions:
            subscription.unsubscribe()
        change_feed.close_all()


app = FastAPI(
    title="Afaya Care Link Backend",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
