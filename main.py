"""
FastAPI应用主入口

Serves the order engine under /api/v1. The payment gateway is created once
per process and shared through ``app.state``.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.routes import orders as orders_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import error_response, success_response
from core.settings import payment_settings
from core.logging_config import get_logger, configure_logging
from infrastructure.database import create_tables, engine
from infrastructure.external.payments import get_payment_gateway
from shared.codes import BusinessCode


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # schema is only auto-created in DEBUG; deployed databases are provisioned
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized")

    app.state.payment_gateway = get_payment_gateway()
    logger.info(
        "application_started",
        payment_provider=app.state.payment_gateway.provider,
        auto_refund=payment_settings.auto_refund,
    )

    yield

    await app.state.payment_gateway.aclose()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Order placement, payment and fulfilment engine",
)

# add_middleware wraps: the last one added runs first.
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[RequestIDMiddleware.HEADER_NAME],
)

register_exception_handlers(app)

app.include_router(orders_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a round trip to the database."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("health_check_failed", error=str(exc))
        body = error_response(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message="Database unavailable",
            error_type="SERVICE_UNAVAILABLE",
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return success_response(data={"status": "healthy", "database": "ok"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
