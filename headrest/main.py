"""
Headrest Billing - FastAPI Application
Checkout, Stripe webhooks and account provisioning for Headrest signups
"""
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from datetime import datetime, timezone
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from headrest.database import init_db
from headrest.config import settings
from headrest.api.routes import billing, health

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Headrest Billing API...")

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")

    missing = settings.missing_settings()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))
    logger.info(f"API running on {settings.app_env} environment")
    yield
    logger.info("Shutting down Headrest Billing API...")


app = FastAPI(
    title=settings.app_name,
    description="Checkout and account provisioning API for Headrest",
    version="1.0.0",
    lifespan=lifespan,
)

# Respect proxy forwarded proto/host so Stripe redirect URLs keep https.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# The /api/stripe endpoints answer malformed bodies with 400 {error, details}.
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if not request.url.path.startswith("/api/stripe/"):
        return await request_validation_exception_handler(request, exc)
    errors = exc.errors()
    logger.warning(
        "Request validation failed path=%s errors=%s",
        request.url.path,
        [(e.get("loc"), e.get("msg")) for e in errors],
    )
    details = "; ".join(
        f"{'.'.join(str(part) for part in e.get('loc', ()) if part != 'body')}: {e.get('msg')}"
        for e in errors
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})


@app.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(billing.router, prefix="/api/stripe", tags=["Stripe"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("headrest.main:app", host="0.0.0.0", port=8000, reload=settings.app_debug)
