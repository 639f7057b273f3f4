"""
Content API — Logging setup
"""
import logging

from infinite_flow.core.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: Settings, level_override: str | None = None) -> None:
    level_name = (level_override or settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
