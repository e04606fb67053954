"""Exceptions raised by the short-link core.

Every error the core reports derives from ``ShortLinkError`` and carries the
HTTP status the transport layer answers with, so the route layer maps the
whole taxonomy through a single exception handler.

Exception Hierarchy
===================
::
    ShortLinkError
    ├─ InvalidRequestError
    │  ├─ InvalidURLError          (400)
    │  ├─ UnsupportedSchemeError    (422)
    │  └─ InvalidCodeError          (400)
    ├─ CodeConflictError            (409)
    ├─ LinkNotFoundError            (404)
    ├─ LinkGoneError                (410)
    ├─ CodeAllocationError          (500)
    └─ UnavailableError             (503)
       ├─ SequenceUnavailableError
       └─ StoreUnavailableError

Example:
    >>> from shortlink.exceptions import CodeConflictError
    >>> raise CodeConflictError("my-link")
    Traceback (most recent call last):
        ...
    shortlink.exceptions.CodeConflictError: Code 'my-link' is already in use
"""

__all__ = [
    "ShortLinkError",
    "InvalidRequestError",
    "InvalidURLError",
    "UnsupportedSchemeError",
    "InvalidCodeError",
    "CodeConflictError",
    "LinkNotFoundError",
    "LinkGoneError",
    "CodeAllocationError",
    "UnavailableError",
    "SequenceUnavailableError",
    "StoreUnavailableError",
]


class ShortLinkError(Exception):
    """Generic base class for short-link errors."""

    status_code: int = 500


class InvalidRequestError(ShortLinkError):
    """Input rejected before any write happened."""

    status_code = 400


class InvalidURLError(InvalidRequestError):
    """Malformed, too long, or self-referential destination URL."""


class UnsupportedSchemeError(InvalidRequestError):
    """Destination scheme is not http or https."""

    status_code = 422


class InvalidCodeError(InvalidRequestError):
    """Custom code has a bad length, bad characters, or is reserved."""


class CodeConflictError(ShortLinkError):
    """The store's uniqueness constraint rejected the code."""

    status_code = 409

    def __init__(self, code: str):
        super().__init__(f"Code '{code}' is already in use")
        self.code = code


class LinkNotFoundError(ShortLinkError):
    """No link exists for the code."""

    status_code = 404

    def __init__(self, code: str):
        super().__init__(f"Short link '{code}' not found")
        self.code = code


class LinkGoneError(ShortLinkError):
    """The link existed but its logical expiry has passed."""

    status_code = 410

    def __init__(self, code: str):
        super().__init__(f"Short link '{code}' has expired")
        self.code = code


class CodeAllocationError(ShortLinkError):
    """A generated code collided twice in a row.

    Generated codes come from an injective encoding of a never-repeating
    counter, so this means the counter was rewound or the data is corrupt.
    """


class UnavailableError(ShortLinkError):
    """A required backend could not be reached in time."""

    status_code = 503


class SequenceUnavailableError(UnavailableError):
    """The atomic counter could not be incremented."""


class StoreUnavailableError(UnavailableError):
    """The durable store failed or timed out."""
