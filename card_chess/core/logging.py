"""Logging setup. Modules only ever call logging.getLogger(__name__); the entrypoint decides the handlers."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a single stream handler to the package logger (idempotent)."""
    package_logger = logging.getLogger("card_chess")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
