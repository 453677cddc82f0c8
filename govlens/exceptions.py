"""
govlens Exceptions

Custom exception classes for the governance dashboard engine.
"""


class GovLensException(Exception):
    """Base exception for govlens."""
    pass


class ConfigurationError(GovLensException):
    """Configuration error."""
    pass


class UpstreamError(GovLensException):
    """An external collaborator (log source, chain reader, oracle) failed."""
    pass


class MalformedResponseError(GovLensException):
    """An external response was not JSON or lacked an expected field."""
    pass


class DecodingError(GovLensException):
    """On-chain data could not be interpreted."""
    pass


class UnknownEventError(DecodingError):
    """A log carried a topic with no registered handler."""

    def __init__(self, topic: str):
        super().__init__(f"Unknown log event: {topic}")
        self.topic = topic


class EventDecodingError(DecodingError):
    """A recognised event's data did not decode."""
    pass


class DomainError(GovLensException):
    """A request violated a domain rule (e.g. querying a future block)."""
    pass


class TransactionError(GovLensException):
    """The transaction collaborator rejected or failed a send."""
    pass


class StaleResultError(GovLensException):
    """A newer request superseded this one."""
    pass
