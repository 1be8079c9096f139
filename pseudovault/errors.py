"""Exception hierarchy."""


class PseudovaultError(Exception):
    """Base exception for all pseudovault errors."""
    pass


class ConfigurationError(PseudovaultError):
    """Configuration is invalid or missing."""
    pass


class TransportError(PseudovaultError):
    """The inference oracle could not be reached or answered badly."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class OracleBusyError(TransportError):
    """The oracle is overloaded or still loading (retryable with backoff)."""
    pass


class OracleUnavailableError(TransportError):
    """Network failure or non-success response."""
    pass


class ResponseFormatError(TransportError):
    """The response envelope is missing or malformed."""
    pass
