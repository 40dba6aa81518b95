import os
from dataclasses import dataclass
from typing import Optional, Union

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

# Gemini API configuration
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-3-pro-image-preview")
MAX_RETRY_ATTEMPTS = int(os.getenv("MAX_RETRY_ATTEMPTS", "3"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "0")) or None  # seconds, 0 disables

# Batch configuration
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "4"))  # Max parallel requests and max reference images
RESOLUTION = os.getenv("RESOLUTION", "2K")

# Optional directory for per-request JSONL debug logs
DEBUG_LOG_DIR = os.getenv("DEBUG_LOG_DIR")

RESOLUTIONS = ("1K", "2K", "4K")
_PIXEL_RESOLUTIONS = {1024: "1K", 2048: "2K", 4096: "4K"}


def format_resolution(value: Union[str, int]) -> str:
    """
    Normalize a resolution hint to the form the image API expects.

    Accepts "1k"/"2K"/"4K" (any case) or a pixel size of 1024, 2048 or 4096.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if value in _PIXEL_RESOLUTIONS:
            return _PIXEL_RESOLUTIONS[value]
        raise ConfigurationError(f"Unsupported resolution: {value}")

    text = str(value).strip().upper()
    if text.isdigit():
        return format_resolution(int(text))
    if text in RESOLUTIONS:
        return text
    raise ConfigurationError(
        f"Unsupported resolution: {value!r}. Expected one of {', '.join(RESOLUTIONS)}"
    )


@dataclass
class ProcessingConfig:
    """Settings shared by colorization and translation runs."""

    api_key: Optional[str] = None
    batch_size: int = BATCH_SIZE
    resolution: Union[str, int] = RESOLUTION
    model: str = GEMINI_IMAGE_MODEL

    def validate(self) -> None:
        """
        Check the configuration before a run starts.

        Raises:
            ConfigurationError: If the batch size is below 1 or the
                resolution is not recognized
        """
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ConfigurationError(f"batch_size must be an integer, got {self.batch_size!r}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be at least 1, got {self.batch_size}")
        format_resolution(self.resolution)

    @classmethod
    def from_env(cls, **overrides) -> "ProcessingConfig":
        """Build a config from environment defaults, ignoring None overrides."""
        values = {"api_key": GEMINI_API_KEY}
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass
class TranslateConfig(ProcessingConfig):
    """Settings for a translation run."""

    from_language: str = "Japanese"
    to_language: str = "English"

    def validate(self) -> None:
        super().validate()
        if not self.from_language or not self.to_language:
            raise ConfigurationError("Both from_language and to_language are required")
