from __future__ import annotations

import logging
import os
from typing import Sequence

from .errors import ConfigurationError


def split_server_uris(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def select_server(
    server_uris: Sequence[str],
    logger: logging.Logger,
    pid: int | None = None,
) -> str:
    """Pick the server a get client reads from.

    With several servers the choice is ``pid % len(server_uris)``, which
    spreads independently started clients across the list.
    """
    if not server_uris:
        raise ConfigurationError("No server URIs specified")
    if len(server_uris) == 1:
        logger.info("Server URI: %s", server_uris[0])
        return server_uris[0]

    if pid is None:
        pid = os.getpid()
    server_uri = server_uris[pid % len(server_uris)]
    logger.info("Used PID %d to select 'round-robin' server URI: %s", pid, server_uri)
    return server_uri


__all__ = ["select_server", "split_server_uris"]
