class StaticLeaseError(Exception):
    """Base class for every error raised by staticlease."""


class ConfigError(StaticLeaseError):
    """Bad plugin setup arguments."""


class LoadError(StaticLeaseError):
    """A lease file could not be turned into a snapshot. Nothing was installed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ParseError(StaticLeaseError, ValueError):
    """A single lease line is malformed."""

    def __init__(self, message: str, line: str | None = None, line_no: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.line_no = line_no
