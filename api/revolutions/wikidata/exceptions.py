class SparqlError(Exception):
    """Base class for failures talking to the SPARQL endpoint."""


class SparqlRequestError(SparqlError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SparqlRateLimitError(SparqlRequestError):
    """429 responses persisted after all retry attempts."""


class SparqlUnavailableError(SparqlRequestError):
    """503 responses or network failures persisted after all retry attempts."""


class SparqlResponseError(SparqlError):
    """The endpoint answered but the payload is not a SPARQL JSON result set."""
