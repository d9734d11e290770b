import os

from fastapi import APIRouter
from fastapi.responses import FileResponse

from constants import STATIC_DIR
from logging_config import get_logger

logger = get_logger(__name__)

pages_router = APIRouter(tags=["pages"])


@pages_router.get("/", include_in_schema=False)
async def index():
    """Serve the meeting client's root document."""
    logger.debug("Serving root document")
    return FileResponse(os.path.join(STATIC_DIR, "index.html"))
