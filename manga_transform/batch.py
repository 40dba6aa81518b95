"""
Batch planning for page transformation runs.

Two shapes of batching are supported:

* chained (colorization): batch width ramps up with the number of pages
  already completed, and every page in a batch is given the same window
  of previously completed pages as references;
* flat (translation): fixed-size consecutive batches with no references.
"""

from typing import List, Sequence

from .data_models import BatchPlan


def chained_batch_count(
    total_pages: int,
    max_width: int,
    completed_count: int,
    batch_ordinal: int,
    next_index: int,
) -> int:
    """
    Number of pages to process in the current chained batch.

    The first batch always holds a single page to seed the reference chain.
    After that the width is bounded by the batch ordinal (grows by at most
    one slot per round), the configured width and the number of references
    available, and never overruns the remaining input.

    If nothing has completed yet (every earlier page failed) the chain is
    re-seeded with a single page, otherwise the run could never advance.
    """
    if batch_ordinal == 1 or completed_count == 0:
        count = 1
    else:
        count = min(batch_ordinal, max_width, completed_count)
    return max(0, min(count, total_pages - next_index))


def plan_chained_batch(
    total_pages: int,
    max_width: int,
    completed_indices: Sequence[int],
    batch_ordinal: int,
    next_index: int,
) -> BatchPlan:
    """
    Plan one batch of a chained run.

    Args:
        total_pages: Number of pages in the run
        max_width: Configured batch size (max parallel requests and references)
        completed_indices: Completed page indices in registry order
        batch_ordinal: 1-based number of this batch
        next_index: First page index not yet attempted

    Returns:
        BatchPlan with contiguous page indices and the reference window
    """
    completed_count = len(completed_indices)
    count = chained_batch_count(total_pages, max_width, completed_count, batch_ordinal, next_index)

    ref_count = min(max_width, completed_count)
    references = list(completed_indices[completed_count - ref_count:]) if ref_count else []

    return BatchPlan(
        ordinal=batch_ordinal,
        page_indices=list(range(next_index, next_index + count)),
        reference_indices=references,
    )


class BatchProcessor:
    """
    Creates fixed-size batches of page indices.

    Used by translation runs, where pages do not depend on one another.
    """

    def __init__(self, batch_size: int = 4):
        """
        Initialize the batch processor.

        Args:
            batch_size: Number of pages per batch (default: 4)
        """
        self.batch_size = batch_size

    def create_batches(self, total_pages: int) -> List[BatchPlan]:
        """
        Split page indices [0, total_pages) into consecutive batches.

        Args:
            total_pages: Number of pages

        Returns:
            List of BatchPlans, each with an empty reference list
        """
        batches = []

        for ordinal, start in enumerate(range(0, total_pages, self.batch_size), start=1):
            end = min(start + self.batch_size, total_pages)
            batches.append(BatchPlan(ordinal=ordinal, page_indices=list(range(start, end))))

        return batches
