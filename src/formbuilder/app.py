from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from formbuilder import __version__
from formbuilder.config import Settings
from formbuilder.errors import install_error_handlers
from formbuilder.media import CloudinaryUploader
from formbuilder.ratelimit import limiter, rate_limit_exceeded
from formbuilder.routes.forms import router as forms_router
from formbuilder.routes.submissions import router as submissions_router
from formbuilder.routes.system import router as system_router
from formbuilder.routes.upload import router as upload_router
from formbuilder.storage import init_storage


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    storage = init_storage(settings)

    app = FastAPI(
        title="Form Builder API",
        version=__version__,
        openapi_tags=[
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/submissions", "description": "REST API: submissions and export"},
            {"name": "api/analytics", "description": "REST API: analytics"},
            {"name": "api/upload", "description": "REST API: media uploads"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.uploader = CloudinaryUploader.from_settings(settings)

    # Shared by every app in the process; the newest app's settings win.
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    app.state.limiter = limiter

    install_error_handlers(app)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # /api/forms/dashboard/analytics is declared before /api/forms/{form_id}.
    app.include_router(forms_router)
    app.include_router(submissions_router)
    app.include_router(upload_router)
    app.include_router(system_router)

    return app
