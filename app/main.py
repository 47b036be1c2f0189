import logging
import re
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.endpoints.admin import router as admin_router
from app.api.v1.endpoints.auth import router as auth_router
from app.api.v1.endpoints.users import router as users_router
from app.core.config import Settings, get_settings
from app.core.database import DatabaseSessionManager
from app.core.exceptions import AppError, ValidationFailed
from app.core.ratelimit import build_limiter
from app.services.EmailService import EmailService
from app.services.S3Service import S3Service
from app.services.SmsService import SmsService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# path segments that carry a live credential
SECRET_PATH = re.compile(r"(/verify-email/)[^/]+")


def loggable_path(request: Request) -> str:
    return SECRET_PATH.sub(r"\1***", request.url.path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""
    session_manager: DatabaseSessionManager = app.state.db
    try:
        logger.info("🚀 Starting Samadhan API...")
        logger.info("🔌 Initializing database connection pool...")
        await session_manager.init()
        logger.info("📊 Creating database tables...")
        await session_manager.create_all()
    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise

    try:
        logger.info("🏁 Samadhan API startup complete")
        yield
    finally:
        logger.info("🔌 Closing database connections...")
        await session_manager.close()
        logger.info("👋 Application shutdown complete")


def _error_body(request: Request, message: str, code: str, exc: Optional[Exception] = None) -> dict:
    content = {"success": False, "message": message, "code": code}
    settings: Settings = request.app.state.settings
    if exc is not None and not settings.is_production:
        content["error"] = str(exc)
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return content


def _field_errors(exc: RequestValidationError) -> list:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc) or "body", "message": message})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        content = {"success": False, "message": exc.message, "code": exc.code}
        if isinstance(exc.details, list):
            content["errors"] = exc.details
        elif exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.info(f"Validation Error on {loggable_path(request)}: {errors}")
        return JSONResponse(
            status_code=ValidationFailed.status_code,
            content={
                "success": False,
                "message": ValidationFailed.message,
                "code": ValidationFailed.code,
                "errors": errors,
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"❌ Database error on {request.method} {loggable_path(request)}")
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "Internal server error", "DATABASE_ERROR", exc),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"❌ Unhandled error on {request.method} {loggable_path(request)}")
        return JSONResponse(
            status_code=500,
            content=_error_body(request, "Internal server error", AppError.code, exc),
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Samadhan API",
        description="Citizen identity and session API for the Samadhan civic-issue platform",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = DatabaseSessionManager(settings)
    app.state.limiter = build_limiter(settings)
    app.state.email_sender = EmailService(settings)
    app.state.sms_sender = SmsService(settings)
    app.state.image_host = S3Service(settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Request: {request.method} {loggable_path(request)}")
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code}")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/", tags=["Health Check"])
    async def health_check(request: Request):
        try:
            await request.app.state.db.ping()
            return {"status": "healthy", "service": "Samadhan API", "database": "connected"}
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "service": "Samadhan API",
                    "database": "disconnected",
                },
            )

    app.include_router(auth_router, prefix="/api/v1", tags=["Authentication"])
    app.include_router(users_router, prefix="/api/v1", tags=["Users"])
    app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])

    logger.info(f"✅ Loaded {len(app.routes)} routes")
    return app


app = create_app()
