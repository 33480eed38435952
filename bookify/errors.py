"""Exception types raised by the conversion pipeline."""

from enum import Enum


class BookifyError(Exception):
    """Base class for all pipeline errors."""


class ValidationErrorKind(str, Enum):
    MALFORMED_URL = "MalformedUrl"
    DISALLOWED_SCHEME = "DisallowedScheme"
    FORBIDDEN_HOST = "ForbiddenHost"
    FORBIDDEN_IP = "ForbiddenIp"
    HTTP_FAILURE = "HttpFailure"
    NON_HTML_CONTENT = "NonHtmlContent"


class ValidationError(BookifyError):
    """The seed URL was rejected before any job work started."""

    def __init__(self, kind: ValidationErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class FetchError(BookifyError):
    """A plain HTTP fetch failed at the transport level."""


class RenderError(BookifyError):
    """A single page could not be rendered.

    ``category`` is one of ``"crash"``, ``"timeout"`` or ``"other"``.
    """

    CRASH = "crash"
    TIMEOUT = "timeout"
    OTHER = "other"

    def __init__(self, message: str, category: str = OTHER):
        super().__init__(message)
        self.category = category


class MergeError(BookifyError):
    """Rendered pages could not be merged into the output PDF."""


class NoPartialPagesError(MergeError):
    """Cancel-and-save found no rendered page to merge."""


class JobCancelledError(BookifyError):
    """Cancellation was requested for the running job."""
