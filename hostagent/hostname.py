"""Host name discovery."""

from __future__ import annotations

import logging

from .dependencies import Dependencies

logger = logging.getLogger(__name__)


def get_hostname(dependencies: Dependencies) -> str:
    """The trimmed host name, or an empty string when it cannot be read."""
    try:
        name = dependencies.hostname()
    except OSError as exc:
        logger.warning("Could not retrieve hostname: %s", exc)
        return ""
    return name.strip()