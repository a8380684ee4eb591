from logging_config import setup_logging

# Initialize logging BEFORE anything else
setup_logging()

from contextlib import asynccontextmanager
from logging_config import get_logger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from middleware import RequestLifecycleMiddleware
from routes import notifications as notifications_router, push as push_router
from notifications import build_notification_stack
from database import ensure_indexes
from utils.background import run_best_effort
from config import config

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Checkers and their scheduler live for exactly one app lifetime
    scheduler = AsyncIOScheduler(timezone="UTC")
    stack = build_notification_stack(scheduler)
    app.state.notifications = stack

    if config.ENV != "testing":
        await run_best_effort(ensure_indexes(), label="ensure-indexes")

    if config.SCHEDULERS_ENABLED:
        scheduler.start()
        stack.start_checkers()
    else:
        logger.info("Periodic notification checkers disabled")

    yield

    # In-flight scans finish before the scheduler goes away
    await stack.stop_checkers()
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await stack.background.drain(timeout=5)
    logger.info("Notification service stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="WorkHub Notifications API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL] if config.ENV == "production" else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request lifecycle middleware (request ID, context vars, duration logging)
    app.add_middleware(RequestLifecycleMiddleware)

    app.include_router(notifications_router.router)
    app.include_router(push_router.router)

    @app.get("/")
    async def root():
        return {"status": "online", "message": "WorkHub notifications are running"}

    logger.info("All routers registered, WorkHub notifications ready")
    return app


app = create_app()
