from typing import Optional


class ImporterError(Exception):
    """Base class for every failure the import pipeline reports."""


class InvalidReference(ImporterError):
    """Share reference matches neither the collection nor the single-item shape."""


class CredentialError(ImporterError):
    """Read credential for the source catalog could not be obtained."""


class UpstreamFetchError(ImporterError):
    """Source catalog fetch did not succeed. Carries the upstream HTTP status when known."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SearchError(ImporterError):
    """Target catalog search failed on transport or while parsing the response."""


class PersistenceError(ImporterError):
    """Record store rejected or failed an operation."""


class ConstraintViolation(PersistenceError):
    """Record store uniqueness constraint was hit (duplicate key)."""


class Unauthenticated(ImporterError):
    """Caller credential is missing or not recognized."""


class InvariantViolation(ImporterError):
    """Upstream payload is missing a field the pipeline requires."""
