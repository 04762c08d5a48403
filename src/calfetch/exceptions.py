"""calfetch exceptions."""


class CalendarFetchError(Exception):
    """Base exception for calendar fetching errors."""

    pass


class AuthorizationError(CalendarFetchError):
    """Raised when the interactive flow or the code exchange fails."""

    pass


class ConfigLoadError(AuthorizationError):
    """Raised when the OAuth client configuration is missing or unparseable."""

    pass


class TokenPersistError(CalendarFetchError):
    """Raised when the credential cannot be written to disk."""

    pass


class SourceFetchError(CalendarFetchError):
    """Raised when one calendar cannot be listed."""

    def __init__(self, calendar_id: str, cause: Exception):
        self.calendar_id = calendar_id
        self.cause = cause
        super().__init__(f"Failed to fetch calendar {calendar_id}: {cause}")
