from __future__ import annotations


class AlertBotError(Exception):
    pass


# =========================
# Inbound alert validation
# =========================
class ValidationError(AlertBotError):
    """Malformed or unsupported alert payload. Raised before any dispatch."""


class UnknownAlertType(ValidationError):
    pass


class MissingField(ValidationError):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class InvalidField(ValidationError):
    def __init__(self, field: str, value, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} is invalid: {value!r}")


# =========================
# Runtime
# =========================
class ConfigurationError(AlertBotError):
    """Unresolved sizing / bot configuration. Aborts only the affected transition."""


class ExchangeError(AlertBotError):
    pass
