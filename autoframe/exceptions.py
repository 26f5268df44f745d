"""
Exception hierarchy for the reframing core.

Only configuration problems are fatal. Everything raised while a stream
is running is caught at the frame boundary and logged.
"""


class ReframeError(Exception):
    """Base exception for all reframing errors."""
    pass


class ConfigurationError(ReframeError, ValueError):
    """Raised once at startup when the configuration or stream metadata is invalid."""
    pass


class DetectionError(ReframeError):
    """Raised when a raw detection record cannot be turned into a Detection."""
    pass
