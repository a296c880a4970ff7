import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

class UploadError(Exception):
    """Base exception for upload handling failures."""

    def __init__(self, message: str, name: Optional[str] = None, identity: Optional[str] = None):
        super().__init__(message)
        self.name = name
        self.identity = identity

class InvalidUploadRequest(UploadError):
    """Raised when a submission lacks a file part or carries bad chunk fields."""

def format_limit(limit: float) -> str:
    """Whole-number limits print without a fraction: 16 -> "16", 1048576.0 -> "1048576"."""
    limit = float(limit)
    return str(int(limit)) if limit.is_integer() else repr(limit)

class UploadLimitExceeded(UploadError):
    def __init__(self, limit: float, name: Optional[str] = None, identity: Optional[str] = None):
        super().__init__(f"File size exceeds upload limit of {format_limit(limit)}M", name=name, identity=identity)
        self.limit = limit

class ChunkReadError(UploadError):
    """Raised when an uploaded chunk cannot be read."""

class DetectionError(UploadError):
    """Raised when the content type of an assembled upload cannot be detected."""

ErrorHandler = Callable[[UploadError], None]

class ErrorChannel:
    """
    Delivers infrastructure failures to subscribed handlers.

    Unlike an event emitter, an unobserved channel still logs every error,
    so nothing published here is silently lost.
    """

    def __init__(self):
        self._handlers: List[ErrorHandler] = []

    def subscribe(self, handler: ErrorHandler) -> ErrorHandler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: ErrorHandler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, error: UploadError):
        if not self._handlers:
            logger.error(f"Unhandled upload error for {error.name}: {error}", exc_info=error)
            return

        for handler in list(self._handlers):
            try:
                handler(error)
            except Exception:
                logger.exception(f"Error handler {handler!r} failed")
