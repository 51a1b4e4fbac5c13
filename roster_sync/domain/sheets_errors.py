from __future__ import annotations

from roster_sync.core.errors import ConfigurationError, ExternalServiceError, TransientExternalError


class SheetsError(ExternalServiceError):
    pass


class SheetsConfigError(ConfigurationError):
    pass


class SheetsApiDisabledError(SheetsConfigError):
    pass


class SheetsPermissionError(SheetsConfigError):
    pass


class SheetsNotFoundError(SheetsConfigError):
    pass


class SheetsCredentialsError(SheetsConfigError):
    pass


class SheetsRateLimitError(TransientExternalError):
    pass
