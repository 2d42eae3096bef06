from typing import Optional


class DuckQueryError(Exception):
    """Base class for every error raised by duckquery."""


class TransportError(DuckQueryError):
    """
    The HTTP round trip failed.

    Attributes:
        status_code: HTTP status of the response, or None when the request
            never got a response (connection refused, DNS failure, ...)
        body: Response body text exactly as the server sent it
    """

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"DuckDB HTTP request failed: {body}"
        else:
            message = f"DuckDB HTTP error {status_code}: {body}"
        super().__init__(message)

    def __repr__(self):
        return f"{self.__class__.__name__}(status_code={self.status_code!r}, body={self.body!r})"


class DecodeError(DuckQueryError):
    """A response or a single cell could not be turned into Python values."""

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        type_tag: Optional[str] = None,
    ):
        self.column = column
        self.type_tag = type_tag
        if column is not None:
            message = f"Column {column!r} ({type_tag}): {message}"
        super().__init__(message)
