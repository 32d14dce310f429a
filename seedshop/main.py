"""
Seed shop order service
Places, replaces and cancels orders while keeping product stock consistent
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import subprocess

from seedshop.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from seedshop.core_settings import Settings, get_settings
from seedshop.domain.errors import ErrorKind, OrderServiceError, StoreError
from seedshop.infrastructure.db import Database
from seedshop.api.routes import router as orders_router
from seedshop.api.responses import error_response

SERVICE_DESCRIPTION = "Order placement and inventory reservation for the seed shop"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = get_logger(__name__)

# Status code per error kind; store errors are refined by their transient flag
ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_STOCK: 500,
    ErrorKind.PRODUCT_NOT_FOUND: 500,
    ErrorKind.CONFLICT: 409,
    ErrorKind.LOCKED: 400,
    ErrorKind.STORE: 500,
}

ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Validation failed",
    ErrorKind.NOT_FOUND: "Order not found",
    ErrorKind.INSUFFICIENT_STOCK: "Insufficient stock",
    ErrorKind.PRODUCT_NOT_FOUND: "Product not found",
    ErrorKind.CONFLICT: "Duplicate entry error",
    ErrorKind.LOCKED: "Cannot delete shipped or delivered orders",
    ErrorKind.STORE: "Database error",
}

def run_migrations() -> None:
    logger.info("Running database migrations")
    result = subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        check=False
    )
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")

    owns_db = app.state.db is None
    if owns_db:
        app.state.db = Database.from_settings(settings)
    db: Database = app.state.db

    db.wait_until_ready(settings.DB_CONNECT_ATTEMPTS, settings.DB_CONNECT_DELAY)
    if settings.RUN_MIGRATIONS:
        try:
            run_migrations()
        except OSError as e:
            logger.error(f"Migration error: {e}")
    db.init_models()
    logger.info("Database models initialized")

    logger.info(f"{settings.SERVICE_NAME} started successfully")
    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME}")
    if owns_db:
        db.dispose()
        app.state.db = None

def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    def internal(detail):
        return detail if settings.expose_errors else None

    @app.exception_handler(OrderServiceError)
    async def order_error_handler(request: Request, exc: OrderServiceError):
        status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
        if isinstance(exc, StoreError) and exc.transient:
            status_code = 503

        if exc.kind == ErrorKind.VALIDATION:
            error = exc.details
        elif status_code >= 500:
            error = internal(exc.message)
        else:
            error = exc.message

        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"{request.method} {request.url.path} failed: {exc.message}",
            extra={'extra_fields': {'kind': exc.kind.value, 'status_code': status_code}}
        )
        return error_response(ERROR_MESSAGES[exc.kind], error, status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        ]
        logger.warning(f"Rejected request {request.method} {request.url.path}: {messages}")
        return error_response("Validation failed", messages, 400)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), None, exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return error_response("Internal Server Error", internal(str(exc)), 500)

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application. ``database`` injects a store client owned by the caller."""
    settings = settings or get_settings()
    setup_logging(
        service_name=settings.SERVICE_NAME,
        level=settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        version=settings.SERVICE_VERSION,
    )

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = settings
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app, settings)

    health_service = ServiceHealth(settings.SERVICE_NAME, settings.SERVICE_VERSION)
    app.include_router(health_service.create_health_router())
    app.include_router(orders_router)

    @app.get("/")
    async def root():
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    @app.get("/info")
    async def info():
        return {
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "description": SERVICE_DESCRIPTION,
            "environment": settings.ENVIRONMENT,
            "endpoints": {
                "orders": "/orders",
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
                "metrics": "/metrics",
                "docs": "/api/docs"
            }
        }

    return app

app = create_app()
