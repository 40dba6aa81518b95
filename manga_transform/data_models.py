from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ContentPart:
    """One part of a multi-part request: either text or an inline image."""
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def from_image(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(data=data, mime_type=mime_type)

    @property
    def is_image(self) -> bool:
        return self.data is not None

    def summary(self) -> Dict[str, Any]:
        """Describe the part without its image bytes, for logs."""
        if self.is_image:
            return {"type": "image", "mime_type": self.mime_type, "bytes": len(self.data)}
        return {"type": "text", "chars": len(self.text or "")}


@dataclass
class GeneratedImage:
    """An image returned by the remote transform service."""
    data: bytes
    mime_type: str
    text: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessedResult:
    """The transformed image for one page, handed to the caller."""
    index: int
    image_bytes: bytes
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_generated(cls, index: int, image: GeneratedImage) -> "ProcessedResult":
        metadata = dict(image.metadata)
        if image.text:
            metadata["text"] = image.text
        return cls(index=index, image_bytes=image.data, mime_type=image.mime_type, metadata=metadata)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (without image bytes)."""
        return {
            "index": self.index,
            "mime_type": self.mime_type,
            "size": len(self.image_bytes),
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class BatchPlan:
    """Pages to process in one round and the references they all share."""
    ordinal: int
    page_indices: List[int]
    reference_indices: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.page_indices)
