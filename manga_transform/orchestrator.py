"""
Batch orchestration for colorization and translation runs.

Colorization is chained: each batch uses the outputs of earlier batches as
references, so batches run one after another and their width ramps up as
references accumulate. Translation is flat: fixed-size batches with no
references. In both modes the pages of one batch run concurrently and every
page of a batch settles before the next batch is dispatched.
"""

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .batch import BatchProcessor, plan_chained_batch
from .config import ProcessingConfig, TranslateConfig, format_resolution
from .context import CompletedIndexRegistry
from .data_models import BatchPlan, ProcessedResult
from .debug import debug_logger
from .exceptions import EmptyResultError
from .request_builder import ReferenceResolver, build_colorization_request, build_translation_request

logger = logging.getLogger(__name__)

PagesStartedCallback = Callable[[List[int]], None]
PageCompleteCallback = Callable[[ProcessedResult], None]
PageSource = Union[str, Path]


class RunState(Enum):
    IDLE = "idle"
    PLANNING = "planning"
    DISPATCHING = "dispatching"
    AWAITING_BATCH = "awaiting_batch"
    ADVANCING = "advancing"
    DONE = "done"
    FAILED = "failed"


def make_request_id(mode: str, batch_ordinal: int, page_index: int) -> str:
    return f"{mode}_batch{batch_ordinal}_page{page_index + 1}_{int(time.time() * 1000)}"


class BatchOrchestrator:
    """
    Drives one run: plans batches, fires page requests concurrently within a
    batch, streams completions to the caller and keeps the completed-page
    registry between batches.

    The client must provide an async
    ``generate_image(contents, resolution, request_id)`` returning a list of
    GeneratedImage (normally GeminiImageClient).
    """

    def __init__(self, client, config: ProcessingConfig):
        config.validate()
        self.client = client
        self.config = config
        self.resolution = format_resolution(config.resolution)
        self.state = RunState.IDLE
        self.registry = CompletedIndexRegistry()
        self.batches: List[BatchPlan] = []

    def _reset(self) -> None:
        self.state = RunState.IDLE
        self.registry = CompletedIndexRegistry()
        self.batches = []

    async def _settle_batch(self, plan: BatchPlan, tasks: Sequence[Awaitable]) -> List:
        """
        Wait for every page of the batch, then raise the first page error.

        Batch-mates of a failing page are never cancelled: they finish and
        fire their completion callbacks before the error leaves the run.
        """
        self.state = RunState.AWAITING_BATCH
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        failures = [
            (index, outcome)
            for index, outcome in zip(plan.page_indices, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if failures:
            self.state = RunState.FAILED
            index, error = failures[0]
            logger.error(f"Batch {plan.ordinal} failed on page {index + 1}: {error}")
            raise error
        return outcomes

    def _advance(self, plan: BatchPlan, succeeded: Sequence[int]) -> None:
        self.state = RunState.ADVANCING
        recorded = self.registry.record_batch(succeeded)
        self.batches.append(plan)
        skipped = len(plan) - len(recorded)
        logger.info(
            f"Batch {plan.ordinal} settled: {len(recorded)}/{len(plan)} page(s) completed"
            + (f", {skipped} skipped" if skipped else "")
        )

    async def colorize(
        self,
        files: Sequence[PageSource],
        on_pages_started: PagesStartedCallback,
        on_page_complete: PageCompleteCallback,
        resolve: ReferenceResolver,
    ) -> List[int]:
        """
        Colorize all pages in reference-chained batches.

        Page failures of any kind (unreadable file, API error, no image
        returned) skip the page: it gets no completion callback and is never
        used as a reference, and the run continues. An exception raised by a
        callback fails the run once the rest of its batch has settled.

        Args:
            files: Page files in reading order
            on_pages_started: Called once per batch with the page indices
            on_page_complete: Called as soon as each page's image is ready
            resolve: Returns the produced result (or its bytes) for a completed page

        Returns:
            Completed page indices in registry order
        """
        self._reset()
        total_pages = len(files)
        max_width = self.config.batch_size
        next_index = 0
        batch_ordinal = 1

        logger.info(f"Colorizing {total_pages} page(s) with batch size {max_width}")

        while next_index < total_pages:
            self.state = RunState.PLANNING
            plan = plan_chained_batch(total_pages, max_width, self.registry.indices, batch_ordinal, next_index)
            logger.info(
                f"Batch {plan.ordinal}: pages {[i + 1 for i in plan.page_indices]}, "
                f"references {[i + 1 for i in plan.reference_indices]}"
            )

            self.state = RunState.DISPATCHING
            on_pages_started(list(plan.page_indices))
            tasks = [
                self._colorize_page(plan, index, files[index], resolve, on_page_complete)
                for index in plan.page_indices
            ]

            outcomes = await self._settle_batch(plan, tasks)

            self._advance(plan, [index for index in outcomes if index is not None])
            next_index += len(plan)
            batch_ordinal += 1

        self.state = RunState.DONE
        logger.info(f"Colorization finished: {len(self.registry)}/{total_pages} page(s) completed")
        return self.registry.indices

    async def _colorize_page(
        self,
        plan: BatchPlan,
        page_index: int,
        path: PageSource,
        resolve: ReferenceResolver,
        on_page_complete: PageCompleteCallback,
    ) -> Optional[int]:
        try:
            contents = await build_colorization_request(page_index, path, plan.reference_indices, resolve)
            results = await self.client.generate_image(
                contents, self.resolution, make_request_id("colorize", plan.ordinal, page_index)
            )
        except Exception as e:
            logger.warning(f"Skipping page {page_index + 1}: {type(e).__name__}: {e}")
            return None

        if not results:
            logger.warning(f"Skipping page {page_index + 1}: no image result")
            return None

        on_page_complete(ProcessedResult.from_generated(page_index, results[0]))
        return page_index

    async def translate(
        self,
        files: Sequence[PageSource],
        on_pages_started: PagesStartedCallback,
        on_page_complete: PageCompleteCallback,
    ) -> List[int]:
        """
        Translate all pages in fixed-size batches.

        The first page failure aborts the run. Batch-mates still in flight are
        left to finish and their completion callbacks fire; after that no
        further batch is started and the error of the lowest failed page
        index is raised.

        Raises:
            EmptyResultError: If the service returns no image for a page
            PageProcessingError: For other page failures
        """
        if not isinstance(self.config, TranslateConfig):
            raise TypeError("translate() requires a TranslateConfig")

        self._reset()
        total_pages = len(files)
        batches = BatchProcessor(self.config.batch_size).create_batches(total_pages)

        logger.info(
            f"Translating {total_pages} page(s) from {self.config.from_language} "
            f"to {self.config.to_language} in {len(batches)} batch(es)"
        )

        for plan in batches:
            self.state = RunState.PLANNING
            logger.info(f"Batch {plan.ordinal}/{len(batches)}: pages {[i + 1 for i in plan.page_indices]}")

            self.state = RunState.DISPATCHING
            on_pages_started(list(plan.page_indices))
            tasks = [
                self._translate_page(plan, index, files[index], on_page_complete)
                for index in plan.page_indices
            ]

            outcomes = await self._settle_batch(plan, tasks)

            self._advance(plan, outcomes)

        self.state = RunState.DONE
        logger.info(f"Translation finished: {len(self.registry)}/{total_pages} page(s) completed")
        return self.registry.indices

    async def _translate_page(
        self,
        plan: BatchPlan,
        page_index: int,
        path: PageSource,
        on_page_complete: PageCompleteCallback,
    ) -> int:
        contents = await build_translation_request(
            page_index, path, self.config.from_language, self.config.to_language
        )
        results = await self.client.generate_image(
            contents, self.resolution, make_request_id("translate", plan.ordinal, page_index)
        )
        if not results:
            raise EmptyResultError(f"No image result for page {page_index + 1}", page_index)

        on_page_complete(ProcessedResult.from_generated(page_index, results[0]))
        return page_index


def _default_client(config: ProcessingConfig):
    from .gemini_client import GeminiImageClient

    return GeminiImageClient(api_key=config.api_key, model_name=config.model)


async def process_colorization(
    files: Sequence[PageSource],
    config: ProcessingConfig,
    on_pages_started: PagesStartedCallback,
    on_page_complete: PageCompleteCallback,
    resolve: ReferenceResolver,
    client=None,
) -> List[int]:
    """
    Colorize pages with reference-chained batches.

    See BatchOrchestrator.colorize. A GeminiImageClient is created from the
    config when no client is given.
    """
    config.validate()
    debug_logger.start_session("colorize")
    orchestrator = BatchOrchestrator(client or _default_client(config), config)
    return await orchestrator.colorize(files, on_pages_started, on_page_complete, resolve)


async def process_translation(
    files: Sequence[PageSource],
    config: TranslateConfig,
    on_pages_started: PagesStartedCallback,
    on_page_complete: PageCompleteCallback,
    client=None,
) -> List[int]:
    """
    Translate pages in fixed-size parallel batches.

    See BatchOrchestrator.translate.
    """
    config.validate()
    debug_logger.start_session("translate")
    orchestrator = BatchOrchestrator(client or _default_client(config), config)
    return await orchestrator.translate(files, on_pages_started, on_page_complete)
