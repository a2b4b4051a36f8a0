"""FastAPI application for the blog's authentication service"""

from datetime import datetime
from pathlib import Path
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from blogauth.config import settings
from blogauth.core.database import SessionLocal, init_db
from blogauth.core.metrics import REQUEST_COUNT, REQUEST_LATENCY
from blogauth.api.errors import register_exception_handlers
from blogauth.api.v1 import admin, auth, users
from blogauth.schemas.response import HealthResponse

# Log to stdout and to the configured file
Path(settings.get_log_file()).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.get_log_file()),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# The captcha cookie only travels cross-origin with credentials enabled
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[auth.CAPTCHA_HEADER, "X-Request-ID", "Retry-After"],
)

register_exception_handlers(app)


@app.middleware("http")
async def security_headers_and_metrics(request: Request, call_next):
    """Tag the request, harden the response and record timing"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers.update({
        "X-Request-ID": request_id,
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
    })
    if request.url.path.startswith("/api/v1/auth"):
        # Tokens and captcha images must never be cached by intermediaries
        response.headers.setdefault("Cache-Control", "no-store")

    # Route templates keep path parameters out of label values
    route = getattr(request.scope.get("route"), "path", "unmatched")
    REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, route).observe(elapsed)

    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning(f"Slow {request.method} {route}: {elapsed:.2f}s (request {request_id})")
    return response


def ensure_admin_account() -> None:
    """Create the configured administrator on first start."""
    from blogauth.services.user_service import user_service
    from blogauth.schemas.user import UserRole

    db = SessionLocal()
    try:
        if user_service.get_user_by_username(db, settings.ADMIN_USERNAME) is None:
            user_service.create_user(
                db, settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD, UserRole.ADMIN
            )
            logger.info(f"Bootstrapped administrator '{settings.ADMIN_USERNAME}'")
    finally:
        db.close()


@app.on_event("startup")
async def on_startup():
    settings.validate_security_settings()
    logger.info(
        f"{settings.APP_NAME} v{settings.APP_VERSION} starting "
        f"(environment={settings.ENVIRONMENT}, access ttl={settings.ACCESS_TOKEN_EXPIRE_MINUTES}m, "
        f"refresh ttl={settings.REFRESH_TOKEN_EXPIRE_DAYS}d)"
    )

    init_db()
    try:
        ensure_admin_account()
    except SQLAlchemyError as e:
        logger.error(f"Could not bootstrap administrator: {e}")


@app.on_event("shutdown")
async def on_shutdown():
    logger.info(f"{settings.APP_NAME} stopped")


@app.get("/health", response_model=HealthResponse)
def health_check():
    """Liveness plus a database round trip"""
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db_error = str(exc)
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_error is None else "degraded",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        readiness={"database": {"ok": db_error is None, "error": db_error}},
    )


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    return {"name": settings.APP_NAME, "version": settings.APP_VERSION, "health": "/health"}


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "blogauth.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS
    )
