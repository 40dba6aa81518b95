"""
Completion bookkeeping carried from one batch to the next.
"""

import logging
from typing import Iterable, List

logger = logging.getLogger(__name__)


class CompletedIndexRegistry:
    """
    Ordered record of pages that finished successfully.

    This is the only memory of which outputs can serve as references for
    later batches. Each batch's successes are sorted ascending before being
    appended, so the registry reads in page order within a batch regardless
    of the order in which the network returned them.
    """

    def __init__(self):
        self._indices: List[int] = []
        self._seen = set()

    def record_batch(self, indices: Iterable[int]) -> List[int]:
        """
        Append one batch's successful page indices.

        Args:
            indices: Successful page indices in completion order

        Returns:
            The indices as appended (ascending)

        Raises:
            ValueError: If an index is already recorded or repeated
        """
        ordered = sorted(indices)
        if len(set(ordered)) != len(ordered):
            raise ValueError(f"Duplicate page indices in batch: {ordered}")
        duplicates = [index for index in ordered if index in self._seen]
        if duplicates:
            raise ValueError(f"Page indices already completed: {duplicates}")

        self._indices.extend(ordered)
        self._seen.update(ordered)
        logger.debug(f"Recorded completed pages {ordered}; {len(self._indices)} total")
        return ordered

    @property
    def indices(self) -> List[int]:
        return list(self._indices)

    def __len__(self) -> int:
        return len(self._indices)
