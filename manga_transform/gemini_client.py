"""
Client for the Gemini image generation API.
"""

import asyncio
import base64
import logging
import time
from typing import List, Optional, Sequence

from google import genai
from google.genai import errors, types
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .config import GEMINI_API_KEY, GEMINI_IMAGE_MODEL, MAX_RETRY_ATTEMPTS, REQUEST_TIMEOUT
from .data_models import ContentPart, GeneratedImage
from .debug import DebugSession, debug_logger
from .exceptions import ConfigurationError, RemoteServiceError

logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Server errors, rate limits and timeouts are worth another attempt."""
    if isinstance(exc, errors.ServerError):
        return True
    if isinstance(exc, errors.ClientError) and getattr(exc, "code", None) == 429:
        return True
    return isinstance(exc, asyncio.TimeoutError)


def _to_part(part: ContentPart) -> types.Part:
    if part.is_image:
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    return types.Part.from_text(text=part.text or "")


def _inline_bytes(data) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return base64.b64decode(data)
    raise TypeError(f"Unsupported inline data type: {type(data)}")


def extract_images(response) -> List[GeneratedImage]:
    """
    Pull inline images out of a generate_content response.

    Returns an empty list when the model produced no image (safety block,
    text-only answer and so on). Thought images are ignored.
    """
    images = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        text = " ".join(p.text for p in parts if getattr(p, "text", None) and not getattr(p, "thought", False))
        for part in parts:
            if getattr(part, "thought", False):
                continue
            inline = getattr(part, "inline_data", None)
            if inline is None or not getattr(inline, "data", None):
                continue
            images.append(
                GeneratedImage(
                    data=_inline_bytes(inline.data),
                    mime_type=inline.mime_type or "image/png",
                    text=text or None,
                    metadata={"finish_reason": str(getattr(candidate, "finish_reason", None) or "")},
                )
            )
    return images


class GeminiImageClient:
    """
    Sends multi-part image requests to Gemini and returns generated images.

    Transient failures are retried here; everything above this client treats
    a request as a single attempt.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = GEMINI_IMAGE_MODEL,
        timeout: Optional[float] = REQUEST_TIMEOUT,
        debug_session: Optional[DebugSession] = None,
        client=None,
    ):
        """
        Initialize the Gemini client.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY / GOOGLE_API_KEY)
            model_name: Image generation model to call
            timeout: Optional per-attempt timeout in seconds
            debug_session: Session that records requests (defaults to the shared one)
            client: Pre-built genai.Client, mainly for tests
        """
        self.model_name = model_name
        self.timeout = timeout
        self.debug_session = debug_session or debug_logger

        if client is None:
            api_key = api_key or GEMINI_API_KEY
            if not api_key:
                raise ConfigurationError(
                    "API key not provided. Set it in the config or as the "
                    "GEMINI_API_KEY or GOOGLE_API_KEY environment variable."
                )
            client = genai.Client(api_key=api_key)
        self.client = client
        logger.info(f"Initialized Gemini image client with model: {self.model_name}")

    def _build_config(self, resolution: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(image_size=resolution),
        )

    @retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    async def _generate(self, parts: List[types.Part], resolution: str, request_id: str):
        logger.debug(f"Calling {self.model_name} for {request_id}")
        call = self.client.aio.models.generate_content(
            model=self.model_name,
            contents=parts,
            config=self._build_config(resolution),
        )
        if self.timeout:
            return await asyncio.wait_for(call, timeout=self.timeout)
        return await call

    async def generate_image(
        self,
        contents: Sequence[ContentPart],
        resolution: str,
        request_id: str,
    ) -> List[GeneratedImage]:
        """
        Submit one page request.

        Args:
            contents: Ordered text and image parts
            resolution: Normalized resolution hint ("1K", "2K" or "4K")
            request_id: Identifier used in logs and the debug session

        Returns:
            Generated images, usually zero or one

        Raises:
            RemoteServiceError: If the API call fails after retries
        """
        parts = [_to_part(part) for part in contents]
        started = time.monotonic()
        try:
            response = await self._generate(parts, resolution, request_id)
        except (errors.APIError, asyncio.TimeoutError) as e:
            self.debug_session.log_request(request_id, contents, 0, time.monotonic() - started, e)
            logger.error(f"Error calling Gemini API for {request_id}: {str(e)}")
            raise RemoteServiceError(f"Gemini request {request_id} failed: {e}") from e

        images = extract_images(response)
        self.debug_session.log_request(request_id, contents, len(images), time.monotonic() - started)
        if not images:
            logger.warning(f"No image returned for {request_id}")
        return images
