"""Per-IP rate limits.

Route decorators bind to the module-level ``limiter``, so every app built in
a process shares it. :func:`formbuilder.app.create_app` sets ``enabled`` from
its settings and clears the counters; run one app per process.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from formbuilder.errors import error_body

API_RATE_LIMIT = "100 per 15 minutes"
SUBMIT_RATE_LIMIT = "10 per 15 minutes"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    storage_uri="memory://",
)


async def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    if request.method == "POST" and request.url.path.endswith("/submissions"):
        message = "Too many form submissions, please try again later."
    else:
        message = "Too many requests from this IP, please try again later."
    return JSONResponse(error_body(message), status_code=429)
