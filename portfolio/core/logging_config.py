"""Logging setup shared by the API process and maintenance scripts."""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid stacking handlers when the app is reloaded
    for handler in list(root.handlers):
        if getattr(handler, "_portfolio_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._portfolio_handler = True
    root.addHandler(handler)

    # Request logs from uvicorn are noisy at INFO in production
    if root.level > logging.INFO:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
