from __future__ import annotations

from pathlib import Path

import pytest

from roster_sync.bootstrap import settings
from roster_sync.core.errors import ConfigurationError


@pytest.fixture
def appdata(monkeypatch, tmp_path: Path) -> Path:
    monkeypatch.delenv(settings.LOG_DIR_ENV_VAR, raising=False)
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "appdata"))
    monkeypatch.setattr(settings.tempfile, "gettempdir", lambda: str(tmp_path / "tmpbase"))
    return tmp_path / "appdata" / "RosterSync"


def test_env_override_wins(monkeypatch, appdata: Path, tmp_path: Path) -> None:
    monkeypatch.setenv(settings.LOG_DIR_ENV_VAR, str(tmp_path / "env_logs"))

    resolved = settings.resolve_log_dir()

    assert resolved == tmp_path / "env_logs"
    assert resolved.exists()
    assert list(resolved.iterdir()) == []


def test_logs_default_to_the_config_directory(appdata: Path) -> None:
    assert settings.resolve_log_dir() == appdata / "logs"


def test_unwritable_candidates_are_skipped(monkeypatch, appdata: Path, tmp_path: Path) -> None:
    original_mkdir = Path.mkdir

    def failing_mkdir(self: Path, mode: int = 0o777, parents: bool = False, exist_ok: bool = False):
        if self == appdata / "logs":
            raise OSError("read-only")
        return original_mkdir(self, mode, parents=parents, exist_ok=exist_ok)

    monkeypatch.setattr(Path, "mkdir", failing_mkdir)

    assert settings.resolve_log_dir() == tmp_path / "tmpbase" / "RosterSync" / "logs"


def test_no_writable_directory_is_a_configuration_error(monkeypatch, appdata: Path) -> None:
    def failing_mkdir(self: Path, parents: bool = False, exist_ok: bool = False):
        raise OSError("read-only")

    monkeypatch.setattr(Path, "mkdir", failing_mkdir)

    with pytest.raises(ConfigurationError, match=settings.LOG_DIR_ENV_VAR):
        settings.resolve_log_dir()
