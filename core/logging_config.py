# core/logging_config.py
"""
Logging setup for the API process and maintenance scripts.

Modules log through ``logging.getLogger(__name__)``; this module only decides
where records go and how they look.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | int = "INFO") -> None:
    """
    Attach a single stream handler to the root logger.

    Safe to call more than once; later calls only adjust the level.
    """
    global _configured

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    _configured = True
