"""Domain-specific exceptions for the sales reporting pipeline.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from SalesBIError for easy catching.
"""

from __future__ import annotations


class SalesBIError(Exception):
    """Base exception for all sales reporting errors.

    Callers can catch this exception to handle any error raised by the
    package.
    """

    pass


class ConfigError(SalesBIError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided
    - Required configuration is missing (e.g. the item store base URL)
    """

    pass


class DataQualityError(SalesBIError):
    """Raised when caller-supplied inputs cannot be interpreted.

    Raw upstream records never raise this; they are normalized to defaults.
    It covers request parameters such as malformed filter dates.
    """

    pass


class ETLError(SalesBIError):
    """Raised when a pipeline stage fails."""

    pass


class ExtractionError(ETLError):
    """Raised when reading a collection from the item store fails.

    This exception is raised when:
    - The connection to the item store fails or times out
    - The item store keeps answering with a non-success status
    - The response body is not the expected ``{"data": [...]}`` envelope
    """

    pass


class CriticalSourceError(ExtractionError):
    """Raised when a critical collection could not be read after all retries.

    Attributes:
        collection: Name of the collection that failed (e.g. "sales_invoice").
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, collection: str, attempts: int, reason: str) -> None:
        self.collection = collection
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Critical source '{collection}' unavailable after {attempts} attempt(s): {reason}"
        )
