import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from .api.routes import router as api_router
from .api.scripts import get_manager
from .core.config import get_settings
from .core.logging import RequestContextMiddleware, configure_logging

settings = get_settings()

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    """Load the scripts directory on startup."""

    scripts_dir = Path(settings.scripts_dir)
    loaded = get_manager().load_directory(scripts_dir) if scripts_dir.is_dir() else []
    logger.info(
        "Application started",
        extra={"extra": {**settings.dict_for_logging(), "scripts_loaded": len(loaded)}},
    )
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=_lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.include_router(api_router)


__all__ = ["app"]
