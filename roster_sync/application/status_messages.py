from __future__ import annotations

STATUS_SYNCING = "Syncing..."


def skipped_message(date_key: str) -> str:
    return f"No changes for {date_key}; sync skipped."


def success_message(updated_count: int, date_key: str) -> str:
    noun = "shift" if updated_count == 1 else "shifts"
    return f"Synced {updated_count} {noun} for {date_key}."


def error_message(exc: BaseException) -> str:
    detail = str(exc) or type(exc).__name__
    return f"Error: {detail}"
