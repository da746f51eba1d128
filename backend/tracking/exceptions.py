class TrackingError(Exception):
    """Base exception for the tracking client"""
    pass


class GeolocationUnavailable(TrackingError):
    """Raised by a location source when no position fix can be provided"""
    pass


class ChannelError(TrackingError):
    """Raised when the popularity socket cannot be reached or written to"""
    pass
