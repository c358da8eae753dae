import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401
from .cache import get_redis_client
from .config import ALLOWED_ORIGINS, APP_NAME, APP_VERSION, SKIP_ENV_VALIDATION
from .database import Base, SessionLocal, engine
from .document_store import DocumentStore
from .domain.accounts import router as accounts_router
from .domain.appointments import router as appointments_router
from .domain.billing import router as subscriptions_router
from .domain.billing import webhooks_router
from .domain.billing.paypal_service import PayPalAPIError
from .domain.invoices import router as invoices_router
from .domain.metrics import router as metrics_router
from .domain.patients import router as patients_router
from .domain.plans import router as plans_router
from .domain.plans.store import plans_store
from .domain.users import router as users_router
from .env_validator import EnvironmentValidator
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")

    result = EnvironmentValidator.validate_and_report()
    if not result.is_valid:
        if SKIP_ENV_VALIDATION:
            logger.warning("⚠️ Environment is invalid but SKIP_ENV_VALIDATION=true, continuing")
        else:
            raise RuntimeError("Invalid environment configuration: " + "; ".join(result.errors))

    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Another worker may have created them first
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    db = SessionLocal()
    try:
        if not plans_store.load(DocumentStore(db)):
            logger.info("No persisted plans store, using the built-in catalogue")
    except Exception as e:
        logger.error(f"❌ Failed to load persisted plans store: {e}")
    finally:
        db.close()

    try:
        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - PayPal plan caching disabled: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Validator errors carry the raised exception in ctx, which is not JSON serialisable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


@app.exception_handler(PayPalAPIError)
async def paypal_exception_handler(request: Request, exc: PayPalAPIError):
    """PayPal 404s stay 404; every other PayPal failure is a bad gateway"""
    logger.error(f"❌ PayPal error on {request.method} {request.url.path}: {exc}")
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"detail": "Resource not found in PayPal"})
    return JSONResponse(
        status_code=502,
        content={"detail": "PayPal request failed", "paypal_status": exc.status_code},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(accounts_router)
app.include_router(patients_router)
app.include_router(users_router)
app.include_router(appointments_router)
app.include_router(invoices_router)
app.include_router(metrics_router)
app.include_router(plans_router)
app.include_router(subscriptions_router)
app.include_router(webhooks_router)


@app.get("/")
def root():
    return {"message": f"{APP_NAME} API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity for monitoring"""
    try:
        redis_client = get_redis_client()

        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000

        info = redis_client.info()

        return {
            "status": "healthy",
            "redis": {
                "connected": True,
                "response_time_ms": round(response_time, 2),
                "version": info.get("redis_version", "unknown"),
                "used_memory_human": info.get("used_memory_human", "unknown"),
            },
        }
    except Exception as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}
