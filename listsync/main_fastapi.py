# listsync/main_fastapi.py
# Record store service: zones, records, shares and subscriptions over HTTP

from fastapi import FastAPI

from listsync.routers.health import router as health_router
from listsync.routers.records import router as records_router
from listsync.routers.shares import router as shares_router
from listsync.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from listsync.utils.telemetry import init_otel
from listsync import config


def create_app(telemetry: bool = None) -> FastAPI:
    app = FastAPI(
        title="listsync record store",
        description="Zone-scoped record store backing shared shopping lists",
        version="1.0.0",
    )

    # Error handler should be outermost to catch all errors
    app.add_middleware(ErrorHandlerMiddleware, debug=config.DEBUG)
    setup_exception_handlers(app)

    app.include_router(health_router)  # Health checks at root level
    app.include_router(records_router, prefix="/api")
    app.include_router(shares_router, prefix="/api")

    if telemetry is None:
        telemetry = config.settings.TELEMETRY_ENABLED
    if telemetry:
        from listsync.db.base import async_engine
        init_otel(app=app, engine=async_engine)

    return app


app = create_app()


def get_app() -> FastAPI:
    return app
