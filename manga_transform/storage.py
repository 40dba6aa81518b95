"""
Storage for produced page images.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .data_models import ProcessedResult
from .utils.image import IMAGE_SUFFIXES, extension_for

logger = logging.getLogger(__name__)


def natural_sort_key(path: Union[str, Path]):
    """Sort key that orders "page2" before "page10"."""
    name = Path(path).name.lower()
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


def collect_page_files(inputs: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Expand files and directories into an ordered list of page images.

    Directories contribute their image files in natural name order; explicit
    files keep the order they were given in.
    """
    pages = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            found = [p for p in path.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES]
            pages.extend(sorted(found, key=natural_sort_key))
        else:
            pages.append(path)
    return pages


class ResultStore:
    """
    Keeps produced page images by page index and optionally writes them out.

    `get` is the reference resolver for colorization runs: it returns the
    stored result, with its MIME type, or None for pages that never produced
    an image.
    """

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            output_dir: Directory to write images to (optional)
        """
        self.output_dir = Path(output_dir) if output_dir else None
        self._results: Dict[int, ProcessedResult] = {}
        self._paths: Dict[int, Path] = {}

        if self.output_dir:
            os.makedirs(self.output_dir, exist_ok=True)

    def save(self, result: ProcessedResult) -> Optional[Path]:
        """Store a result, writing it to the output directory if one is set."""
        self._results[result.index] = result
        if not self.output_dir:
            return None

        path = self.output_dir / f"page_{result.index + 1:03d}.{extension_for(result.mime_type)}"
        with open(path, "wb") as f:
            f.write(result.image_bytes)
        self._paths[result.index] = path
        logger.info(f"Saved page {result.index + 1} to {path}")
        return path

    def get(self, index: int) -> Optional[ProcessedResult]:
        return self._results.get(index)

    def path_for(self, index: int) -> Optional[Path]:
        return self._paths.get(index)

    @property
    def indices(self) -> List[int]:
        return sorted(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, index: object) -> bool:
        return index in self._results
