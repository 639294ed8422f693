import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install one stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if any(getattr(h, "_practicum_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._practicum_handler = True
    root.addHandler(handler)
