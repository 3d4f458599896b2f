"""Edge middleware: security headers, CSRF double-submit check and the
per-IP API rate limit."""

import logging
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from formbuilder.core.config import settings
from formbuilder.core.rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrfToken"
CSRF_HEADER = "x-csrf-token"
RATE_LIMIT_KEY_PREFIX = "rl:"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": "; ".join(
        [
            "default-src 'self'",
            "script-src 'self' 'unsafe-inline'",
            "connect-src 'self'",
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
            "font-src 'self' https://fonts.gstatic.com",
            "img-src 'self' data: blob:",
            "form-action 'self'",
            "frame-ancestors 'none'",
            "base-uri 'self'",
        ]
    ),
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def get_client_ip(request: Request) -> str | None:
    """First hop of ``x-forwarded-for``, then ``x-real-ip``, then the peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        first = real_ip.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return None


def _set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=CSRF_COOKIE,
        value=token,
        httponly=False,
        secure=not settings.DEBUG,
        samesite="lax",
        path="/",
    )


class SecurityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, rate_limiter: FixedWindowRateLimiter, api_prefix: str = "/api/") -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.api_prefix = api_prefix

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cookie_token = request.cookies.get(CSRF_COOKIE)
        issued_token = None if cookie_token else str(uuid.uuid4())

        if request.url.path.startswith(self.api_prefix):
            client_ip = get_client_ip(request) or "unknown"
            if not self.rate_limiter.hit(f"{RATE_LIMIT_KEY_PREFIX}{client_ip}"):
                logger.warning("API rate limit exceeded for %s", client_ip)
                return self._finish(
                    JSONResponse({"detail": "Too many requests. Please slow down."}, status_code=429),
                    issued_token,
                )

            if request.method.upper() not in SAFE_METHODS:
                header_token = request.headers.get(CSRF_HEADER)
                if not header_token or not cookie_token or header_token != cookie_token:
                    logger.info("CSRF check failed for %s %s", request.method, request.url.path)
                    return self._finish(
                        JSONResponse({"detail": "Invalid CSRF token"}, status_code=403),
                        issued_token,
                    )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse({"detail": "Internal server error"}, status_code=500)
        return self._finish(response, issued_token)

    @staticmethod
    def _finish(response: Response, issued_token: str | None) -> Response:
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        if issued_token is not None:
            _set_csrf_cookie(response, issued_token)
        return response
