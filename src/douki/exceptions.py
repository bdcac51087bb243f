"""Custom exceptions for Douki."""


class DoukiError( Exception ):
    """Base class for exceptions raised by Douki."""
    pass


class MediaProbeError( DoukiError ):
    """Raised when ffprobe fails or returns unusable information."""
    pass


class ExtractionError( DoukiError ):
    """Raised when cutting, decoding or extracting from media fails."""
    pass


class SyncDataError( DoukiError ):
    """Raised for missing or malformed synchronization data on disk."""
    pass
