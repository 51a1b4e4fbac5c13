from __future__ import annotations


class AppError(Exception):
    pass


class ConfigurationError(AppError):
    pass


class MappingTableEmptyError(ConfigurationError):
    pass


class DateColumnNotFoundError(AppError):
    def __init__(self, date_key: str, sheet_name: str) -> None:
        super().__init__(f"Date '{date_key}' not found in the header of '{sheet_name}'.")
        self.date_key = date_key
        self.sheet_name = sheet_name


class RunAlreadyInProgressError(AppError):
    def __init__(self, date_key: str, owner: str | None = None) -> None:
        super().__init__(f"A sync for {date_key} is already running.")
        self.date_key = date_key
        self.owner = owner


class InfraError(AppError):
    pass


class PersistenceError(InfraError):
    pass


class ExternalServiceError(InfraError):
    pass


class TransientExternalError(ExternalServiceError):
    pass


class SyncAbortedError(AppError):
    def __init__(self, message: str, *, updated_count: int = 0) -> None:
        super().__init__(message)
        self.updated_count = updated_count
