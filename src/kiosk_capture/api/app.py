"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from kiosk_capture.api.downloads import router as downloads_router
from kiosk_capture.api.models import ErrorResponse
from kiosk_capture.api.payments import router as payments_router
from kiosk_capture.api.public import router as public_router
from kiosk_capture.app_logging import configure_logging
from kiosk_capture.containers import AppContainer
from kiosk_capture.errors import KioskError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.scheduler.start()
        try:
            yield
        finally:
            await state_container.scheduler.stop()
            try:
                await state_container.kiosk_service.shutdown()
            except Exception:
                logger.exception("Failed to stop live streams on shutdown")
            await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(KioskError)
    async def kiosk_error_handler(request: Request, exc: KioskError) -> JSONResponse:
        if exc.status_code >= 500:  # noqa: PLR2004
            logger.warning(
                "Request failed: path=%s error=%s detail=%s",
                request.url.path,
                exc.code,
                exc.detail,
            )
        body = ErrorResponse(error=exc.code, message=exc.message, state=exc.state)
        return JSONResponse(body.model_dump(), status_code=exc.status_code)

    app.include_router(public_router)
    app.include_router(downloads_router)
    app.include_router(payments_router)

    hls_dir = container.stream_supervisor.hls_dir
    hls_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/hls", StaticFiles(directory=hls_dir), name="hls")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
