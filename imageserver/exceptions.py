"""
Exceptions raised by the image server components.
"""


class ImageServerError(Exception):
    """Base class for image server errors."""
    pass


class ValidationError(ImageServerError):
    """Raised when an upload or request is missing required input."""
    pass


class BlobNotFoundError(ImageServerError):
    """Raised by object stores when a key does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Blob '{key}' not found.")
        self.key = key


class GenerationError(ImageServerError):
    """Raised when a resized artifact could not be produced or stored."""
    pass
