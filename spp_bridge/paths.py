"""Filesystem locations used by the SPP bridge.

Every path that may vary between deployments lives here.  The defaults
match a system-wide install but each one can be overridden through an
environment variable, which is handy when running the bridge from a
checkout or inside the test-suite.
"""
from __future__ import annotations

import os
from pathlib import Path

__all__ = [
    "LOG_DIR",
    "LOG_FILE",
]

ENV_PREFIX = "SPP_BRIDGE"


def _env_path(name: str, default: str) -> Path:
    value = os.environ.get(f"{ENV_PREFIX}_{name}")
    return Path(value) if value else Path(default)


LOG_DIR: Path = _env_path("LOG_DIR", "/var/log/spp-bridge")
LOG_FILE: Path = _env_path("LOG_FILE", str(LOG_DIR / "bridge.log"))

# Directories are created lazily by setup_logging().
