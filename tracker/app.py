import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracker.application import build_services, configure_services, get_services
from tracker.core.config import Settings, load_settings
from tracker.core.errors import TrackerError
from tracker.core.logs import configure_logging
from tracker.infrastructure import DuckDBProjectRepository, InMemoryProjectRepository
from tracker.routes import projects, work_items

logger = logging.getLogger("tracker.app")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"err": True, "errMsg": message}, status_code=status_code)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(TrackerError)
    async def handle_tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s rejected: malformed request", request.method, request.url.path)
        return _error_response(400, "Missing required fields.")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error("%s %s crashed", request.method, request.url.path, exc_info=exc)
        return _error_response(500, "An unexpected error occurred.")


def create_app(settings: Settings | None = None, *, configure_store: bool = True) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if configure_store:
        if settings.store == "duckdb":
            repository = DuckDBProjectRepository(settings.db_path)
        else:
            repository = InMemoryProjectRepository()
        configure_services(build_services(repository, settings))

    app = FastAPI(title="Editorial Project Tracker API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(projects.router, prefix="/api")
    app.include_router(work_items.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Editorial Project Tracker API",
                "docs": "/docs",
                "store": type(get_services().repository).__name__,
            }
        )

    logger.info("Tracker API ready (store=%s)", settings.store)
    return app


app = create_app()
