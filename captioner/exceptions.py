"""Custom Exceptions for the Captioner application."""

from typing import Optional


class CaptionerError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(CaptionerError):
    """Exception raised for invalid or missing configuration."""
    pass

class AudioExtractionError(CaptionerError):
    """Exception raised for errors during audio extraction or chunk slicing."""
    pass

class TranscriptionError(CaptionerError):
    """Exception raised when a chunk cannot be transcribed. Aborts the run."""

    def __init__(self, message: str, chunk_index: Optional[int] = None):
        super().__init__(message)
        self.chunk_index = chunk_index

class TranslationError(CaptionerError):
    """Exception raised for unrecoverable errors during translation."""
    pass

class FormattingError(CaptionerError):
    """Exception raised for errors during subtitle formatting."""
    pass

class FileSystemError(CaptionerError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class VideoRenderError(CaptionerError):
    """Exception raised when ffmpeg fails to burn in or mux subtitles."""
    pass

class ServiceError(CaptionerError):
    """Exception raised for a failed request to a remote service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class TransientServiceError(ServiceError):
    """Rate limiting, server errors and connection failures. Eligible for retry."""
    pass

class PermanentServiceError(ServiceError):
    """Client errors other than rate limiting. Never retried."""
    pass

class MalformedResponseError(CaptionerError):
    """Exception raised when a service response does not have the expected shape."""
    pass
