"""Sales viewing booking – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from salesbooking.config import get_settings
from salesbooking.database import Base, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from salesbooking.models import (  # noqa: F401
    Property, Applicant, ApplicantIdentityChange, Viewing, ViewingToken, SalesInquiry, AuditEvent,
)
from salesbooking.errors import ApiError
from salesbooking.responses import error
from salesbooking.routers import booking, finance

log = logging.getLogger("uvicorn.error")

settings = get_settings()
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Remaining", "X-RateLimit-Reset-Ms", "Retry-After"],
)

app.include_router(booking.router)
app.include_router(finance.router)


def _rate_limit_headers(request: Request) -> dict[str, str]:
    result = getattr(request.state, "rate_limit", None)
    return result.headers() if result is not None else {}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return error(exc.status_code, exc.reason, {**_rate_limit_headers(request), **exc.headers})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    reason = {404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "http_error")
    return error(exc.status_code, reason, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error(400, "invalid_input", _rate_limit_headers(request))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Details stay in the server log
    log.exception("[API] unhandled error on %s %s", request.method, request.url.path)
    return error(500, "internal_error")


@app.on_event("startup")
def startup():
    if not settings.finance_link_secret:
        log.warning("[Config] FINANCE_LINK_SECRET not set - finance tokens will be rejected with 500")
    if not (settings.mailgun_api_key and settings.mailgun_domain) and not settings.sendgrid_api_key:
        log.warning("[Config] No email provider configured - booking confirmations will be skipped")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        log.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
