from fastapi import Depends, FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import uuid
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from devicewatch.core.logging_config import setup_logging
from devicewatch.core.settings import settings
from devicewatch.config import init_firebase
from devicewatch.routes import account, admin, health
from devicewatch.exceptions import UnauthorizedException, ForbiddenException
from devicewatch.services.auth import watch_new_device, watch_new_device_outside_admin

# Set up logging first
logger = setup_logging()

_docs_enabled = settings.is_development or os.getenv("SHOW_DOCS", "").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    logger.info("=" * 50)
    logger.info(f"DeviceWatch API starting up site={settings.site_name}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"SQL Debug: {'enabled' if settings.sql_debug else 'disabled'}")

    from devicewatch.services.cache import get_cache
    from devicewatch.services.email import get_sendgrid_client
    email_status = "configured" if get_sendgrid_client() else "not configured (logging only)"
    logger.info(f"SendGrid Email: {email_status}")
    logger.info(f"Dedup cache: {get_cache().BACKEND_NAME}")
    logger.info(f"Device watch scope: {'/admin only' if settings.run_only_in_admin else 'all authenticated routes'}")
    logger.info("=" * 50)

    # Record first activation so the grace window starts at deploy time
    try:
        from devicewatch.db import SessionLocal
        from devicewatch.services.options import provision_installed_time
        from devicewatch.utils.datetime import epoch_now

        session = SessionLocal()
        try:
            installed = provision_installed_time(session, epoch_now())
            logger.info(f"Device watch installed_time={installed}")
        finally:
            session.close()
    except Exception as seed_err:
        logger.error(f"Failed provisioning installed_time: {seed_err}")

    yield
    # Shutdown logic
    logger.info("DeviceWatch API shutting down gracefully")

app = FastAPI(
    title="DeviceWatch API",
    description="New device login detection and security notifications",
    version="1.0.0",
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


# Initialize Firebase (skip in test environment)
if os.getenv("ENV") != "test":
    init_firebase()

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    account.router,
    prefix="/account",
    tags=["Account"],
    dependencies=[Depends(watch_new_device_outside_admin)],
)
app.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(watch_new_device)],
)

# Exception handlers
@app.exception_handler(UnauthorizedException)
async def unauthorized_exception_handler(request: Request, exc: UnauthorizedException):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.warning(f"[{correlation_id}] Unauthorized access attempt on {request.url.path}")
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "correlation_id": correlation_id}
    )

@app.exception_handler(ForbiddenException)
async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.warning(f"[{correlation_id}] Forbidden access attempt on {request.url.path}")
    return JSONResponse(
        status_code=403,
        content={"detail": exc.detail, "correlation_id": correlation_id}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.error(f"[{correlation_id}] Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)

    content = {"detail": "Internal server error", "correlation_id": correlation_id}
    if settings.is_development:
        content.update({"error": str(exc), "type": type(exc).__name__})
    return JSONResponse(status_code=500, content=content)

# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "DeviceWatch API",
        "version": "1.0.0",
        "environment": settings.environment,
        "docs_url": "/docs" if _docs_enabled else None,
        "health_check": "/health",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info" if settings.is_development else "warning"
    )
