"""Application exception classes."""


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class JournalError(Exception):
    """Raised when writing to journal files fails."""


class EventSourceError(Exception):
    """Raised when a weather event source request or response parse fails."""

    def __init__(self, message: str, *, source: str = "unknown") -> None:
        super().__init__(message)
        self.source = source


class LLMRequestError(Exception):
    """Raised for chat-completion transport failures with status metadata."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMResponseError(Exception):
    """Raised when model output does not contain the expected JSON."""


class CoverageExtractionError(Exception):
    """Raised when policy declaration pages cannot be analyzed."""
