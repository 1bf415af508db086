"""Exception types for the helpdesk core."""


class HelpdeskError(Exception):
    """Base error for helpdesk bot failures."""


class UpstreamError(HelpdeskError):
    """Raised when the upstream knowledge base API fails or returns a malformed page."""

    def __init__(self, message: str, page: int | None = None, status_code: int | None = None):
        super().__init__(message)
        self.page = page
        self.status_code = status_code


class ModelError(HelpdeskError):
    """Raised when a language model call fails, times out or returns unusable content."""


class StoreError(HelpdeskError):
    """Raised when the article store cannot complete a read or write."""


class ConfigError(HelpdeskError):
    """Raised when a dependency is used without its credentials configured."""
