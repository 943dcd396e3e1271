"""
ExpenseAI HTTP application.

Run with:
    uvicorn --factory expenseai.api.main:create_app --host 0.0.0.0 --port 5000

or `python -m expenseai.api.main`, which reads host/port from the settings.
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from expenseai.api.routers import (
    ai,
    analytics,
    auth,
    budgets,
    categories,
    expenses,
    health,
    insights,
    profile,
    ws,
)
from expenseai.config import Settings, get_settings, validate_all_settings
from expenseai.logger import configure_logging, get_logger
from expenseai.orchestrator import AppComponents, create_app_components
from expenseai.services.storage import (
    BackendUnavailableError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


logger = get_logger(__name__)


def _error_details(errors: list) -> list:
    cleaned = []
    for error in errors:
        error = {k: v for k, v in dict(error).items() if k not in ("ctx", "url")}
        cleaned.append(error)
    return jsonable_encoder(cleaned)


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to {"message": ...} JSON responses."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid data", "errors": _error_details(exc.errors())},
        )

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid data", "errors": _error_details(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": str(exc)})

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(request: Request, exc: DuplicateError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "storage_request_failed",
            path=request.url.path,
            unavailable=isinstance(exc, BackendUnavailableError),
            error=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Storage operation failed"},
        )


def create_app(
    settings: Optional[Settings] = None,
    components: Optional[AppComponents] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Defaults to get_settings()
        components: Pre-built components (tests inject fakes here)
    """
    settings = settings or (components.settings if components else get_settings())
    configure_logging(settings.app.log_level)
    components = components or create_app_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await components.manager.start()
        logger.info(
            "app_started",
            environment=settings.app.app_environment,
            storage=components.manager.backend_name,
        )
        try:
            yield
        finally:
            await components.manager.stop()

    app = FastAPI(
        title="ExpenseAI API",
        description="Personal expense tracking with AI categorization and insights",
        version="1.0.0",
        debug=settings.app.debug_mode,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    for module in (health, auth, categories, expenses, budgets, analytics, insights, ai, profile, ws):
        app.include_router(module.router)

    return app


def run() -> None:
    settings = get_settings()
    configure_logging(settings.app.log_level)
    checks = validate_all_settings()
    failed = [name for name, ok in checks.items() if ok is False]
    for name in failed:
        logger.error("invalid_settings", section=name, error=checks.get(f"{name}_error"))
    if failed:
        raise SystemExit(1)

    uvicorn.run(
        "expenseai.api.main:create_app",
        factory=True,
        host=settings.app.host,
        port=settings.app.port,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()
