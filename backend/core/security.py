"""
core/security.py
────────────────
HTTP hardening for the Weather Trip API and the mapping from retrieval
errors to responses.

  • Per-client quotas   — slowapi; storage backend from RATE_LIMIT_STORAGE_URI
  • Response headers    — CSP / HSTS / X-Frame-Options through `secure`
  • Browser access      — read-only CORS for the configured front-end origins
  • Error responses     — InvalidArgument → 400, StoreUnavailable → 503,
                          anything unexpected → opaque 500
"""

import logging
from typing import TYPE_CHECKING, Any, Dict

import secure
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from core.config import get_settings
from core.errors import InvalidArgument, StoreUnavailable

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger("weathertrip.security")

settings = get_settings()

# ── Quotas ──────────────────────────────────────────────────────────────────
DEFAULT_LIMIT = "100/minute"
# /weather spends the shared KMA service-key quota on every call.
EXTERNAL_API_LIMIT = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_LIMIT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)

# ── Response headers ────────────────────────────────────────────────────────
ONE_YEAR_SECONDS = 31536000

secure_headers = secure.Secure(
    csp=secure.ContentSecurityPolicy().default_src("'self'"),
    hsts=secure.StrictTransportSecurity().max_age(ONE_YEAR_SECONDS).include_subdomains(),
    xfo=secure.XFrameOptions().deny(),
)

_STORE_DOWN_MESSAGE = "The attraction database is unavailable. Please try again later."
_INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def _error_body(detail: str, error: str, **extra: Any) -> Dict[str, Any]:
    return {"detail": detail, "error": error, **extra}


# ═══════════════════════════════════════════════════════════════════════════
# Installation — main.py calls setup_security() once
# ═══════════════════════════════════════════════════════════════════════════


def _install_rate_limiting(app: "FastAPI") -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


def _install_cors(app: "FastAPI") -> None:
    # Every route is a read; nothing but GET (and preflight) is exposed.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )


def _install_secure_headers(app: "FastAPI") -> None:
    @app.middleware("http")
    async def _apply_secure_headers(request: Request, call_next):  # noqa: ANN001
        response = await call_next(request)
        secure_headers.framework.fastapi(response)
        return response


def _install_error_handlers(app: "FastAPI") -> None:
    @app.exception_handler(InvalidArgument)
    async def _on_invalid_argument(request: Request, exc: InvalidArgument):  # noqa: ANN001, ARG001
        return JSONResponse(
            status_code=400,
            content=_error_body(str(exc), "invalid_argument"),
        )

    @app.exception_handler(StoreUnavailable)
    async def _on_store_unavailable(request: Request, exc: StoreUnavailable):  # noqa: ANN001
        logger.error(
            "Attraction store unavailable on %s %s (path=%s): %s",
            request.method,
            request.url.path,
            exc.path,
            exc,
        )
        return JSONResponse(
            status_code=503,
            content=_error_body(_STORE_DOWN_MESSAGE, "database_unavailable", path=exc.path),
        )

    @app.exception_handler(Exception)
    async def _on_unexpected(request: Request, exc: Exception):  # noqa: ANN001, ARG001
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(_INTERNAL_ERROR_MESSAGE, "internal_error"),
        )


def setup_security(app: "FastAPI") -> None:
    """Quotas, CORS, response headers and error mapping, in that order."""
    _install_rate_limiting(app)
    _install_cors(app)
    _install_secure_headers(app)
    _install_error_handlers(app)
