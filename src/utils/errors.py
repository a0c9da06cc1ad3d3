"""
Error types raised by the pagination pipeline and its collaborators.
"""


class PaginationError(Exception):
    """Base class for failures of a pagination run."""


class EmptyInputError(PaginationError):
    """There are no blocks to paginate."""


class DegenerateGeometryError(PaginationError):
    """The page configuration leaves no room for content."""


class RenderTimeoutError(PaginationError):
    """Typesetting or surface capture did not finish within its bound.

    Retryable by running the whole pagination again.
    """


class EncodingError(PaginationError):
    """A slice of the surface could not be encoded as an image."""


class RenderCancelledError(PaginationError):
    """The caller abandoned the run before it finished."""


class ExtractionError(Exception):
    """Statement extraction from the uploaded PDF failed."""
