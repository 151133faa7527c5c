import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

# Load environment variables as early as possible
load_dotenv()

from .core.config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import (
    UserNotFoundError,
    UserOperationError,
    ValidationFailedError,
    request_validation_handler,
    user_not_found_handler,
    user_operation_handler,
    validation_failed_handler,
)
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, RateLimitMiddleware, SecurityMiddleware
from .application.ports.cache import Cache
from .application.ports.notifier import Notifier
from .application.ports.rate_limiter import RateLimiter
from .application.services.passwords import BcryptPasswordHasher
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.cache.memory_cache import InMemoryCache
from .infrastructure.cache.redis_cache import RedisCache
from .infrastructure.notifications.log_notifier import LogNotifier
from .infrastructure.notifications.smtp_mailer import SmtpWelcomeMailer
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from .infrastructure.storage.local_storage import LocalAvatarStorage
from .routers import users_router

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )


def build_cache(settings: Settings) -> Optional[Cache]:
    if not settings.CACHE_ENABLED:
        return None
    if settings.REDIS_URL:
        return RedisCache(settings.REDIS_URL, prefix=settings.CACHE_PREFIX)
    return InMemoryCache(maxsize=settings.CACHE_MAX_ENTRIES)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.REDIS_URL:
        return RedisRateLimiter(settings.REDIS_URL)
    return InMemoryRateLimiter()


def build_notifier(settings: Settings) -> Notifier:
    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST not configured; welcome emails will only be logged")
        return LogNotifier()
    return SmtpWelcomeMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME or None,
        password=settings.SMTP_PASSWORD or None,
        use_tls=settings.SMTP_USE_TLS,
        sender=settings.MAIL_FROM,
        app_name=settings.APP_NAME,
        timeout=settings.SMTP_TIMEOUT,
    )


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[Cache] = None,
    notifier: Optional[Notifier] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the application with every collaborator constructed explicitly."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}...")
        create_db_and_tables(app.state.engine)
        yield
        logger.info(f"Shutting down {settings.APP_NAME}...")
        app.state.engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
    )

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.cache = cache if cache is not None else build_cache(settings)
    app.state.notifier = notifier or build_notifier(settings)
    app.state.password_hasher = BcryptPasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.audit_logger = StdAuditLogger()
    app.state.avatar_storage = LocalAvatarStorage(
        upload_dir=settings.UPLOAD_DIR,
        subdir=settings.AVATAR_SUBDIR,
        max_bytes=settings.avatar_max_bytes,
        allowed_types=settings.ALLOWED_AVATAR_TYPES,
        base_url=settings.BASE_URL,
    )

    app.add_exception_handler(UserNotFoundError, user_not_found_handler)
    app.add_exception_handler(UserOperationError, user_operation_handler)
    app.add_exception_handler(ValidationFailedError, validation_failed_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=rate_limiter or build_rate_limiter(settings),
        max_requests=settings.RATE_LIMIT_PER_MINUTE,
        window_seconds=60,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Stored avatars are served from the upload directory
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

    app.include_router(users_router.router)

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "cache": "redis" if settings.REDIS_URL and app.state.cache is not None else ("memory" if app.state.cache is not None else "disabled"),
            "mail": "smtp" if settings.SMTP_HOST else "log",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "user_admin.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
