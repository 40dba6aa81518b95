"""
Exception hierarchy for page transformation runs.

    TransformError
    ├── ConfigurationError
    └── PageProcessingError
        ├── PageDecodeError
        ├── EmptyResultError
        └── RemoteServiceError
"""

from typing import Optional


class TransformError(Exception):
    """Base exception for all manga_transform errors."""


class ConfigurationError(TransformError):
    """Raised for invalid or missing configuration values."""


class PageProcessingError(TransformError):
    """
    A failure confined to a single page.

    Colorization runs absorb these as skips; translation runs let them
    abort the whole run.
    """

    def __init__(self, message: str, page_index: Optional[int] = None):
        super().__init__(message)
        self.page_index = page_index


class PageDecodeError(PageProcessingError):
    """The page file could not be read, decoded or measured."""


class EmptyResultError(PageProcessingError):
    """The remote service returned no image for the page."""


class RemoteServiceError(PageProcessingError):
    """The remote service call raised a fault."""
