from __future__ import annotations

import json
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping, get_args, get_type_hints

from roster_sync.core.errors import ConfigurationError
from roster_sync.domain.config import (
    DateSettings,
    LockSettings,
    RecordStoreSettings,
    RosterLayout,
    SheetNames,
    SyncSettings,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROSTER_SYNC_CONFIG"
TOKEN_ENV_VAR = "ROSTER_SYNC_RECORD_STORE_TOKEN"
CONFIG_FILENAME = "config.json"

# JSON value types accepted for each annotated settings type.
_JSON_TYPES: dict[Any, tuple[type, ...]] = {
    str: (str,),
    int: (int,),
    float: (int, float),
    bool: (bool,),
    Path: (str,),
    type(None): (type(None),),
}


def resolve_appdata_dir() -> Path:
    env_dir = os.environ.get("LOCALAPPDATA")
    if env_dir:
        base_dir = Path(env_dir)
    else:
        base_dir = Path.home() / ".local" / "share"
    return base_dir / "RosterSync"


def resolve_config_path(explicit: Path | None = None) -> Path:
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return resolve_appdata_dir() / CONFIG_FILENAME


def _section(payload: Mapping[str, Any], name: str, cls: type) -> Any:
    raw = payload.get(name) or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Config section '{name}' must be an object.")
    known = {item.name for item in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in config section '{name}': {', '.join(unknown)}")
    hints = get_type_hints(cls)
    for key, value in raw.items():
        _check_type(f"{name}.{key}", value, hints[key])
    return cls(**raw)


def _check_type(key: str, value: Any, annotation: Any) -> None:
    members = get_args(annotation) or (annotation,)
    accepted = tuple(json_type for member in members for json_type in _JSON_TYPES.get(member, (object,)))
    # bool is an int subclass; true/false is never a number here.
    if isinstance(value, bool) and bool not in members:
        accepted = ()
    if not isinstance(value, accepted):
        raise ConfigurationError(f"Config value '{key}' has the wrong type: {type(value).__name__}.")


def _validate(settings: SyncSettings) -> None:
    missing = [
        name
        for name, value in (
            ("spreadsheet_id", settings.spreadsheet_id),
            ("credentials_path", settings.credentials_path),
            ("record_store.token", settings.record_store.token),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
    layout = settings.layout
    if layout.header_row < 1 or layout.first_data_row <= layout.header_row:
        raise ConfigurationError("layout.first_data_row must come after layout.header_row (both 1-based).")
    if min(layout.name_column, layout.designation_column, layout.mapping_header_rows) < 0:
        raise ConfigurationError("Layout column offsets and header rows cannot be negative.")
    if settings.record_store.tier1_property == settings.record_store.tier2_property:
        raise ConfigurationError("The two tier properties must be different.")


def settings_from_payload(payload: Mapping[str, Any], *, base_dir: Path | None = None) -> SyncSettings:
    for key in ("spreadsheet_id", "credentials_path"):
        _check_type(key, payload.get(key, ""), str)
    record_store = _section(payload, "record_store", RecordStoreSettings)
    env_token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if env_token:
        record_store = RecordStoreSettings(**{**_as_dict(record_store), "token": env_token})

    lock = _section(payload, "lock", LockSettings)
    if lock.db_path is not None:
        lock_path = Path(lock.db_path)
        if base_dir is not None and not lock_path.is_absolute():
            lock_path = base_dir / lock_path
        lock = LockSettings(db_path=lock_path, ttl_seconds=lock.ttl_seconds)

    credentials_path = str(payload.get("credentials_path", "")).strip()
    if credentials_path and base_dir is not None and not Path(credentials_path).is_absolute():
        credentials_path = str(base_dir / credentials_path)

    settings = SyncSettings(
        spreadsheet_id=str(payload.get("spreadsheet_id", "")).strip(),
        credentials_path=credentials_path,
        sheets=_section(payload, "sheets", SheetNames),
        layout=_section(payload, "layout", RosterLayout),
        dates=_section(payload, "dates", DateSettings),
        record_store=record_store,
        lock=lock,
    )
    _validate(settings)
    return settings


def load_settings(config_path: Path | None = None) -> SyncSettings:
    path = resolve_config_path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read config file {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"Config file {path} must contain a JSON object.")
    logger.info("Loading settings from %s", path)
    return settings_from_payload(payload, base_dir=path.parent)


def _as_dict(instance: Any) -> dict[str, Any]:
    return {item.name: getattr(instance, item.name) for item in fields(instance)}
