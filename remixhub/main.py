"""RemixHub API: copies GitHub repositories over each other for credits."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from remix.errors import (
    InsufficientCreditsError,
    InternalError,
    PaymentProviderError,
    QuotaExceededError,
    RemixError,
    UpstreamError,
    ValidationError,
)
from remixhub.config import settings
from remixhub.database import close_db, init_db
from remixhub.routes import history, payments, profile, remix

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title="RemixHub",
    description="Replaces a GitHub repository's content with another repository's tree",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = [
    (QuotaExceededError, 429),
    (InsufficientCreditsError, 402),
    (ValidationError, 400),
    (UpstreamError, 502),
    (PaymentProviderError, 502),
    (InternalError, 500),
]


def status_for(exc: RemixError) -> int:
    for exc_type, status_code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 500


@app.exception_handler(RemixError)
async def remix_error_handler(request: Request, exc: RemixError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


app.include_router(remix.router, prefix=settings.api_prefix)
app.include_router(history.router, prefix=settings.api_prefix)
app.include_router(profile.router, prefix=settings.api_prefix)
app.include_router(payments.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "remixhub", "version": settings.api_version}
