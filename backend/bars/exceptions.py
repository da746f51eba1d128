"""Custom exceptions for venue operations."""


class BarNotFoundError(Exception):
    """Raised when a bar cannot be found."""
    pass


class GeocodingError(Exception):
    """Raised when the geocoding service cannot be reached or rejects a request."""
    pass
