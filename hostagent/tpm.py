"""TPM version discovery."""

from __future__ import annotations

import logging

from .dependencies import Dependencies

logger = logging.getLogger(__name__)

_VERSIONS = {"1": "1.2", "2": "2.0"}


def get_tpm(dependencies: Dependencies) -> str:
    """TPM version: "none" without a TPM, "" when it cannot be read."""
    result = dependencies.execute("cat", "/sys/class/tpm/tpm0/tpm_version_major")
    if result.exit_code != 0:
        if "No such file or directory" in result.stderr:
            return "none"
        logger.warning("Error checking TPM version: %s", result.stderr)
        return ""
    major = result.stdout.removesuffix("\n")
    return _VERSIONS.get(major, major)