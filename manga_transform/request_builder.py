"""
Assembles the ordered content parts for a single page request.
"""

import inspect
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from .data_models import ContentPart, ProcessedResult
from .prompts import colorization_prompt, translation_prompt
from .utils.image import load_page_image_async

logger = logging.getLogger(__name__)

# Resolver for previously produced pages; may be sync or async and may return
# either a ProcessedResult or raw image bytes
ReferenceImage = Union[ProcessedResult, bytes, None]
ReferenceResolver = Callable[[int], Union[ReferenceImage, Awaitable[ReferenceImage]]]

# Assumed type for resolvers that hand back bare bytes
DEFAULT_REFERENCE_MIME_TYPE = "image/png"


async def resolve_reference(resolver: ReferenceResolver, index: int) -> Optional[Tuple[bytes, str]]:
    """
    Call the resolver and return the reference image with its MIME type.

    Returns None when the resolver has nothing for the page.
    """
    found = resolver(index)
    if inspect.isawaitable(found):
        found = await found
    if isinstance(found, ProcessedResult):
        return (found.image_bytes, found.mime_type) if found.image_bytes else None
    if not found:
        return None
    return found, DEFAULT_REFERENCE_MIME_TYPE


async def build_colorization_request(
    page_index: int,
    path: Union[str, Path],
    reference_indices: Sequence[int],
    resolver: ReferenceResolver,
) -> List[ContentPart]:
    """
    Build the content parts for colorizing one page.

    Reference images come first, each preceded by a label; then the page to
    colorize with its label; the instruction text is always the last part.
    References the resolver cannot provide are skipped.

    Args:
        page_index: Zero-based index of the page to colorize
        path: Path to the page file
        reference_indices: Completed page indices to use as references
        resolver: Returns the produced result (or its bytes) for a completed page

    Returns:
        Ordered list of content parts

    Raises:
        PageDecodeError: If the page file cannot be decoded
    """
    contents: List[ContentPart] = []

    embedded = 0
    for ref_index in reference_indices:
        reference = await resolve_reference(resolver, ref_index)
        if reference is None:
            logger.warning(f"Reference page {ref_index + 1} unavailable for page {page_index + 1}, skipping")
            continue
        contents.append(ContentPart.from_text(f"This is reference page {ref_index + 1} (already colorized):"))
        ref_data, ref_mime_type = reference
        contents.append(ContentPart.from_image(ref_data, ref_mime_type))
        embedded += 1

    page = await load_page_image_async(path, page_index)
    contents.append(ContentPart.from_text(f"Colorize page {page_index + 1}:"))
    contents.append(ContentPart.from_image(page.data, page.mime_type))

    contents.append(ContentPart.from_text(colorization_prompt(embedded, page.aspect_ratio)))

    return contents


async def build_translation_request(
    page_index: int,
    path: Union[str, Path],
    from_language: str,
    to_language: str,
) -> List[ContentPart]:
    """
    Build the content parts for translating one page.

    Raises:
        PageDecodeError: If the page file cannot be decoded
    """
    page = await load_page_image_async(path, page_index)

    return [
        ContentPart.from_text(f"Translate page {page_index + 1}:"),
        ContentPart.from_image(page.data, page.mime_type),
        ContentPart.from_text(translation_prompt(from_language, to_language, page.aspect_ratio)),
    ]
