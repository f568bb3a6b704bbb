"""
Error taxonomy for the catalog layer.

NotFoundError and StoreError propagate to the HTTP boundary where they are
mapped to 404 and 500. Image lookup failures are never raised across a batch;
they are captured as ImageResolutionFailure values in catalog.core.images.
"""


class CatalogError(Exception):
    """Base class for catalog errors."""


class NotFoundError(CatalogError):
    """Requested product does not exist."""

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class CatalogValidationError(CatalogError):
    """Malformed filter or identifier supplied by the caller."""

    def __init__(self, message: str, received=None):
        self.message = message
        self.received = received
        super().__init__(message)


class StoreError(CatalogError):
    """The relational store failed to answer a query."""
