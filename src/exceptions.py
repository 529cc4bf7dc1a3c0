"""Domain errors raised by catalog services and translated at the API boundary."""


class CatalogError(Exception):
    """Base class for catalog errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Required fields are missing or malformed. Nothing has been written."""


class NotFoundError(CatalogError):
    """A referenced vendor, category or food item does not exist."""


class PartialFailureError(CatalogError):
    """A cascading delete finished some sub-deletions but not all of them.

    Already-applied deletions are not rolled back. The parent stays marked as
    deletion-in-progress, so retrying the same call resumes from where it stopped.
    """

    def __init__(self, message: str, failed: list[int], succeeded: list[int]) -> None:
        super().__init__(message)
        self.failed = failed
        self.succeeded = succeeded


class UpstreamUnavailable(CatalogError):
    """The presence store, durable store or image store could not be reached."""

    def __init__(self, store: str, message: str) -> None:
        super().__init__(message)
        self.store = store
