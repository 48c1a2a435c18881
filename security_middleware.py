"""
Security Middleware for the donation tracker
Includes rate limiting, security headers, and request validation
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import logging
import re

from config import RATE_LIMIT_ENABLED
from schemas import ErrorResponse

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 5 * 1024 * 1024  # 5MB

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses
    """
    async def dispatch(self, request: Request, call_next: Callable):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        # The hosted checkout widget loads its own script and frame
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' https://checkout.razorpay.com; "
            "frame-src https://api.razorpay.com; "
            "img-src 'self' data:; "
            "connect-src 'self'; "
            "frame-ancestors 'none';"
        )

        return response


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """
    Rejects oversized bodies and script injection in JSON payloads
    """

    XSS_PATTERNS = [
        r"(<script[^>]*>.*?</script>)",
        r"(javascript:)",
        r"(<iframe[^>]*>)",
        r"(<object[^>]*>)",
        r"(<embed[^>]*>)"
    ]

    async def dispatch(self, request: Request, call_next: Callable):
        if request.method not in ["POST", "PUT", "PATCH"]:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_BODY_BYTES:
            return JSONResponse(
                status_code=413,
                content=ErrorResponse(error="Request payload too large. Maximum size is 5MB.").model_dump()
            )

        if request.headers.get("content-type", "").startswith("application/json"):
            body = await request.body()
            body_str = body.decode("utf-8", errors="replace")

            for pattern in self.XSS_PATTERNS:
                if re.search(pattern, body_str, re.IGNORECASE):
                    logger.warning(f"Rejected request to {request.url.path}: suspicious input")
                    return JSONResponse(
                        status_code=400,
                        content=ErrorResponse(error="Invalid input detected").model_dump()
                    )

        return await call_next(request)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same failure envelope as every other API error"""
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(error=f"Rate limit exceeded: {exc.detail}").model_dump()
    )


def setup_rate_limits(app):
    """
    Attach the shared limiter and its 429 handler to the app
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    return limiter
