"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``. This module
configures the root handler once, at application startup.
"""

import logging

from campaign_ops.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    global _configured
    if _configured:
        return

    level_name = level or get_settings().LOG_LEVEL
    root = logging.getLogger()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # SQL statements are logged only when DEBUG turns on engine echo
    if not get_settings().DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
