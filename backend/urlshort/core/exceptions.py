class ShortenerError(Exception):
    """Base class for errors raised by the shortener core."""


class ValidationError(ShortenerError):
    """Raised when a URL submitted for shortening is not acceptable."""


class FormatError(ShortenerError):
    """Raised when a short code cannot be decoded."""


class NotFoundError(ShortenerError):
    """Raised when no record matches a short code or id."""


class ConflictError(ShortenerError):
    """Raised when a write violates a uniqueness constraint."""


class StorageError(ShortenerError):
    """Raised when the underlying database fails."""


class QRCodeError(ShortenerError):
    """Raised when a QR code image cannot be produced."""
