"""
Application-wide logging configuration.

Modules log through `logging.getLogger(__name__)`; entry points (seed CLI,
FastAPI app) call `configure_logging` once at startup.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logging.getLogger(__name__).debug("Logging initialized with level %s", level)
