"""
FastAPI application for the image gallery.

Run with (needs the "server" extra):
    uvicorn image_gallery.app:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .config import ImageGallerySettings, configure_logging
from .routes_fastapi import router
from .service import ImageService


def create_app(service: Optional[ImageService] = None) -> FastAPI:
    """
    Build the app around an ImageService.

    Without a service, one is created from environment settings at startup
    and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.image_service is None
        if owned:
            settings = ImageGallerySettings.from_env()
            configure_logging(settings.log_level)
            app.state.image_service = ImageService.from_settings(settings)
        try:
            yield
        finally:
            if owned:
                await app.state.image_service.close()
                app.state.image_service = None

    app = FastAPI(title="Image Gallery API", lifespan=lifespan)
    app.state.image_service = service
    app.include_router(router)
    return app


app = create_app()
