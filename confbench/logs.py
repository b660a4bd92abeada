from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER_NAME = "confbench"


def setup_logging(verbose: bool, level: str | None = None) -> logging.Logger:
    """Configure logging for the current process and return the run logger.

    Spawned clients call this with ``verbose=False`` so only the original
    process prints progress.
    """
    if level:
        resolved = getattr(logging, level.upper(), logging.INFO)
    else:
        resolved = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=resolved, format=LOG_FORMAT, force=True)
    return logging.getLogger(ROOT_LOGGER_NAME)


__all__ = ["LOG_FORMAT", "ROOT_LOGGER_NAME", "setup_logging"]
