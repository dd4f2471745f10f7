"""ASGI entry point: ``uvicorn pulse_web.asgi:app``"""

from pulse.utils.config import load_settings
from pulse.utils.logger import setup_logging

from .main import create_app

settings = load_settings()
setup_logging(
    level=settings.logging.level,
    fmt=settings.logging.format,
    file_path=settings.logging.file_path,
    max_bytes=settings.logging.max_bytes,
    backup_count=settings.logging.backup_count,
)

app = create_app(settings)
