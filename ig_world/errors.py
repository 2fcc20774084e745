from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ExtractionError(RuntimeError):
    """Raised when page markup cannot be turned into a scrape record."""


class PersistenceError(RuntimeError):
    """Raised when writing or reading a dump file fails."""


class MalformedDumpError(RuntimeError):
    """Raised when a stored dump does not decode into a scrape record."""


class BrowserUnavailableError(RuntimeError):
    """Raised when no page surface is open to navigate or read."""

    def __init__(self, message: str = "Browser not open") -> None:
        super().__init__(message)
