"""Exceptions raised by the crawler, the processor and the store connections."""


class CrawlerError(Exception):
    """Base class for all errors raised by this package."""


class ApiUnavailable(CrawlerError):
    """The vehicle API did not answer with a usable page.

    Raised for non-200 responses, unexpected response shapes and for network
    faults (timeouts, refused connections), so callers only have to tell a
    valid page from a failed request.
    """


class ProtocolViolation(ApiUnavailable):
    """The API answered, but broke the fixed page-size contract."""


class SchemaValidationError(CrawlerError):
    """A vehicle item or stored document lacks a required field or has a wrong type."""


class InvalidRegion(CrawlerError, ValueError):
    """A region whose north-east corner is not strictly north-east of its south-west corner."""


class StartupError(CrawlerError):
    """Invalid arguments or an unreachable store, detected before any work starts."""
