from __future__ import annotations

import os
import tempfile
from pathlib import Path

from roster_sync.core.errors import ConfigurationError
from roster_sync.infrastructure.local_config import resolve_appdata_dir

LOG_DIR_ENV_VAR = "ROSTER_SYNC_LOG_DIR"


def log_dir_candidates() -> list[Path]:
    """Explicit override first, then beside the per-user config, then the temp dir."""
    candidates: list[Path] = []
    env_dir = os.environ.get(LOG_DIR_ENV_VAR)
    if env_dir:
        candidates.append(Path(env_dir))
    candidates.append(resolve_appdata_dir() / "logs")
    candidates.append(Path(tempfile.gettempdir()) / "RosterSync" / "logs")
    return candidates


def _is_writable(directory: Path) -> bool:
    marker = directory / ".roster_sync_write_check"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker.touch()
        marker.unlink()
    except OSError:
        return False
    return True


def resolve_log_dir() -> Path:
    for candidate in log_dir_candidates():
        if _is_writable(candidate):
            return candidate
    raise ConfigurationError(f"No writable log directory found; set {LOG_DIR_ENV_VAR}.")
