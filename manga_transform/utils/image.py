"""
Image utility functions for reading page files and probing their dimensions.
"""

import asyncio
import io
import logging
import mimetypes
from dataclasses import dataclass
from math import gcd
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from ..exceptions import PageDecodeError

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/bmp": "bmp",
}

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"}


@dataclass
class PageImage:
    """A single page file loaded into memory with its metadata."""

    data: bytes
    mime_type: str
    width: int
    height: int
    page_index: Optional[int] = None

    @property
    def aspect_ratio(self) -> str:
        return aspect_ratio_label(self.width, self.height)


def aspect_ratio_label(width: int, height: int) -> str:
    """
    Reduce width and height to a "W:H" ratio, e.g. 1200x1800 -> "2:3".
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size: {width}x{height}")
    divisor = gcd(width, height)
    return f"{width // divisor}:{height // divisor}"


def detect_mime_type(image: Image.Image, path: Optional[Union[str, Path]] = None) -> str:
    """
    Media type of a decoded image, falling back to the file extension.
    """
    if image.format and image.format in Image.MIME:
        return Image.MIME[image.format]
    if path is not None:
        guessed, _ = mimetypes.guess_type(str(path))
        if guessed and guessed.startswith("image/"):
            return guessed
    return "image/png"


def extension_for(mime_type: str) -> str:
    """File extension (without dot) for an image media type."""
    return _EXTENSIONS.get(mime_type, "png")


def load_page_image(path: Union[str, Path], page_index: Optional[int] = None) -> PageImage:
    """
    Read a page file, detect its media type and read its dimensions.

    Args:
        path: Path to the image file
        page_index: Index of the page in the run, for error reporting

    Returns:
        PageImage with the raw file bytes

    Raises:
        PageDecodeError: If the file cannot be read or is not a decodable image
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise PageDecodeError(f"Cannot read page file {path}: {e}", page_index) from e

    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            mime_type = detect_mime_type(image, path)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise PageDecodeError(f"Cannot decode page file {path}: {e}", page_index) from e

    logger.debug(f"Loaded {path.name}: {width}x{height} {mime_type}")
    return PageImage(data=data, mime_type=mime_type, width=width, height=height, page_index=page_index)


async def load_page_image_async(path: Union[str, Path], page_index: Optional[int] = None) -> PageImage:
    """Run load_page_image in a worker thread so batch-mates keep running."""
    return await asyncio.to_thread(load_page_image, path, page_index)
