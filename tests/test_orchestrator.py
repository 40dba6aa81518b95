"""
Tests for colorization and translation batch orchestration.
"""

import asyncio
import re
import sys
import tempfile
import unittest
from pathlib import Path

import pytest
from PIL import Image

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from manga_transform.config import ProcessingConfig, TranslateConfig
from manga_transform.data_models import GeneratedImage
from manga_transform.exceptions import ConfigurationError, EmptyResultError, RemoteServiceError
from manga_transform.orchestrator import (
    BatchOrchestrator,
    RunState,
    process_colorization,
    process_translation,
)
from manga_transform.storage import ResultStore


class FakeImageClient:
    """Stands in for GeminiImageClient; returns one image per page unless told otherwise."""

    def __init__(self, empty=(), fail=(), delays=None):
        self.empty = set(empty)
        self.fail = set(fail)
        self.delays = delays or {}
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_image(self, contents, resolution, request_id):
        page_index = int(re.search(r"_page(\d+)_", request_id).group(1)) - 1
        self.requests.append((page_index, request_id, resolution, list(contents)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(page_index, 0.05))
        finally:
            self.in_flight -= 1

        if page_index in self.fail:
            raise RemoteServiceError(f"service fault on page {page_index + 1}")
        if page_index in self.empty:
            return []
        return [GeneratedImage(data=f"colored-{page_index}".encode(), mime_type="image/png")]

    def reference_labels(self, page_index):
        for index, _, _, contents in self.requests:
            if index == page_index:
                return [p.text for p in contents if p.text and p.text.startswith("This is reference page")]
        raise KeyError(page_index)


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.started = []
        self.completed = []
        self.store = ResultStore()

    def tearDown(self):
        self.tmp.cleanup()

    def make_pages(self, count):
        paths = []
        for i in range(count):
            path = self.dir / f"page{i + 1}.png"
            Image.new("L", (40, 60), 255).save(path)
            paths.append(path)
        return paths

    def on_pages_started(self, indices):
        self.started.append(indices)

    def on_page_complete(self, result):
        self.completed.append(result.index)
        self.store.save(result)


class TestColorization(OrchestratorTestCase):

    async def test_batches_ramp_up(self):
        client = FakeImageClient()
        config = ProcessingConfig(api_key="test", batch_size=4, resolution="2k")

        completed = await process_colorization(
            self.make_pages(12), config, self.on_pages_started, self.on_page_complete,
            self.store.get, client=client,
        )

        self.assertEqual(self.started, [[0], [1], [2, 3], [4, 5, 6, 7], [8, 9, 10, 11]])
        self.assertEqual(completed, list(range(12)))
        self.assertEqual(sorted(self.completed), list(range(12)))
        self.assertEqual(client.max_in_flight, 4)
        self.assertTrue(all(resolution == "2K" for _, _, resolution, _ in client.requests))

    async def test_references_come_from_previous_batches(self):
        client = FakeImageClient()
        config = ProcessingConfig(api_key="test", batch_size=4)

        await process_colorization(
            self.make_pages(12), config, self.on_pages_started, self.on_page_complete,
            self.store.get, client=client,
        )

        self.assertEqual(client.reference_labels(0), [])
        self.assertEqual(client.reference_labels(2), [
            "This is reference page 1 (already colorized):",
            "This is reference page 2 (already colorized):",
        ])
        self.assertEqual(len(client.reference_labels(9)), 4)
        self.assertIn("This is reference page 5 (already colorized):", client.reference_labels(9))
        # Reference image bytes are the produced outputs, not the source files
        _, _, _, contents = next(r for r in client.requests if r[0] == 1)
        self.assertEqual(contents[1].data, b"colored-0")

    async def test_request_ids_name_batch_and_page(self):
        client = FakeImageClient()
        config = ProcessingConfig(api_key="test", batch_size=2)

        await process_colorization(
            self.make_pages(3), config, self.on_pages_started, self.on_page_complete,
            self.store.get, client=client,
        )

        request_ids = [request_id for _, request_id, _, _ in client.requests]
        self.assertTrue(request_ids[0].startswith("colorize_batch1_page1_"))
        self.assertTrue(request_ids[1].startswith("colorize_batch2_page2_"))
        self.assertTrue(request_ids[2].startswith("colorize_batch3_page3_"))

    async def test_completions_stream_but_registry_is_sorted(self):
        client = FakeImageClient(delays={2: 0.05, 3: 0.0})
        config = ProcessingConfig(api_key="test", batch_size=4)
        orchestrator = BatchOrchestrator(client, config)

        await orchestrator.colorize(
            self.make_pages(4), self.on_pages_started, self.on_page_complete, self.store.get
        )

        self.assertEqual(self.completed, [0, 1, 3, 2])
        self.assertEqual(orchestrator.registry.indices, [0, 1, 2, 3])
        self.assertEqual(orchestrator.state, RunState.DONE)

    async def test_empty_result_is_skipped(self):
        client = FakeImageClient(empty={2})
        config = ProcessingConfig(api_key="test", batch_size=4)
        orchestrator = BatchOrchestrator(client, config)

        completed = await orchestrator.colorize(
            self.make_pages(12), self.on_pages_started, self.on_page_complete, self.store.get
        )

        self.assertNotIn(2, completed)
        self.assertNotIn(2, self.completed)
        self.assertEqual(len(completed), 11)
        self.assertEqual(orchestrator.state, RunState.DONE)
        self.assertEqual([len(b) for b in orchestrator.batches], [1, 1, 2, 3, 4, 1])
        self.assertEqual(sum(len(s) for s in self.started), 12)

    async def test_service_errors_and_bad_files_are_skipped(self):
        client = FakeImageClient(fail={1})
        config = ProcessingConfig(api_key="test", batch_size=2)
        pages = self.make_pages(5)
        pages[3].write_bytes(b"corrupt")

        completed = await process_colorization(
            pages, config, self.on_pages_started, self.on_page_complete,
            self.store.get, client=client,
        )

        self.assertEqual(completed, [0, 2, 4])
        self.assertNotIn(3, [index for index, _, _, _ in client.requests])

    async def test_every_page_failing_still_finishes(self):
        client = FakeImageClient(empty={0, 1, 2})
        config = ProcessingConfig(api_key="test", batch_size=4)

        completed = await process_colorization(
            self.make_pages(3), config, self.on_pages_started, self.on_page_complete,
            self.store.get, client=client,
        )

        self.assertEqual(completed, [])
        self.assertEqual(self.started, [[0], [1], [2]])

    async def test_callback_error_settles_batch_then_fails(self):
        client = FakeImageClient(delays={3: 0.2})
        orchestrator = BatchOrchestrator(client, ProcessingConfig(api_key="test", batch_size=4))

        def on_page_complete(result):
            self.on_page_complete(result)
            if result.index == 2:
                raise OSError("disk full")

        with self.assertRaises(OSError):
            await orchestrator.colorize(
                self.make_pages(4), self.on_pages_started, on_page_complete, self.store.get
            )

        self.assertEqual(self.started, [[0], [1], [2, 3]])
        # Page 4 was in flight when the callback failed and still finished
        self.assertEqual(self.completed, [0, 1, 2, 3])
        self.assertEqual(orchestrator.state, RunState.FAILED)
        self.assertEqual(orchestrator.registry.indices, [0, 1])

    async def test_no_pages(self):
        client = FakeImageClient()
        completed = await process_colorization(
            [], ProcessingConfig(api_key="test"), self.on_pages_started,
            self.on_page_complete, self.store.get, client=client,
        )

        self.assertEqual(completed, [])
        self.assertEqual(self.started, [])

    async def test_invalid_batch_size(self):
        with self.assertRaises(ConfigurationError):
            await process_colorization(
                self.make_pages(1), ProcessingConfig(api_key="test", batch_size=0),
                self.on_pages_started, self.on_page_complete, self.store.get,
                client=FakeImageClient(),
            )


class TestTranslation(OrchestratorTestCase):

    def config(self, batch_size=3):
        return TranslateConfig(api_key="test", batch_size=batch_size, from_language="Japanese", to_language="Korean")

    async def test_flat_batches(self):
        client = FakeImageClient()

        completed = await process_translation(
            self.make_pages(10), self.config(), self.on_pages_started, self.on_page_complete, client=client
        )

        self.assertEqual(self.started, [[0, 1, 2], [3, 4, 5], [6, 7, 8], [9]])
        self.assertEqual(completed, list(range(10)))
        self.assertEqual(client.max_in_flight, 3)
        for _, request_id, _, contents in client.requests:
            self.assertTrue(request_id.startswith("translate_batch"))
            self.assertFalse(any(p.text and "reference page" in p.text for p in contents))
            self.assertIn("to Korean", contents[-1].text)

    async def test_empty_result_aborts_run(self):
        client = FakeImageClient(empty={4}, delays={3: 0.0, 4: 0.05, 5: 0.2})
        orchestrator = BatchOrchestrator(client, self.config())

        with self.assertRaises(EmptyResultError) as ctx:
            await orchestrator.translate(self.make_pages(10), self.on_pages_started, self.on_page_complete)

        self.assertEqual(ctx.exception.page_index, 4)
        self.assertEqual(self.started, [[0, 1, 2], [3, 4, 5]])
        self.assertEqual(orchestrator.state, RunState.FAILED)
        self.assertIn(3, self.completed)
        self.assertNotIn(4, self.completed)
        # The slower batch-mate still finishes and is reported
        self.assertIn(5, self.completed)
        self.assertIn(5, self.store)
        self.assertFalse(any(index > 5 for index, _, _, _ in client.requests))

    async def test_batch_mates_of_failed_page_still_complete(self):
        client = FakeImageClient(empty={0}, delays={0: 0.0, 1: 0.1, 2: 0.1})
        orchestrator = BatchOrchestrator(client, self.config())

        with self.assertRaises(EmptyResultError) as ctx:
            await orchestrator.translate(self.make_pages(3), self.on_pages_started, self.on_page_complete)

        self.assertEqual(ctx.exception.page_index, 0)
        self.assertEqual(sorted(self.completed), [1, 2])
        self.assertEqual(orchestrator.state, RunState.FAILED)
        self.assertEqual(orchestrator.registry.indices, [])

    async def test_lowest_failed_page_is_raised(self):
        client = FakeImageClient(empty={2}, fail={1}, delays={1: 0.1, 2: 0.0})
        orchestrator = BatchOrchestrator(client, self.config())

        with self.assertRaises(RemoteServiceError):
            await orchestrator.translate(self.make_pages(3), self.on_pages_started, self.on_page_complete)

        self.assertEqual(self.completed, [0])

    async def test_service_error_aborts_run(self):
        client = FakeImageClient(fail={0})

        with self.assertRaises(RemoteServiceError):
            await process_translation(
                self.make_pages(4), self.config(batch_size=2), self.on_pages_started,
                self.on_page_complete, client=client,
            )
        self.assertEqual(self.started, [[0, 1]])

    async def test_requires_translate_config(self):
        orchestrator = BatchOrchestrator(FakeImageClient(), ProcessingConfig(api_key="test"))

        with self.assertRaises(TypeError):
            await orchestrator.translate(self.make_pages(1), self.on_pages_started, self.on_page_complete)


@pytest.mark.skip(reason="Requires API keys and real pages")
class TestLiveColorization(OrchestratorTestCase):
    """Integration test against the real Gemini API."""

    async def test_colorize_two_pages(self):
        config = ProcessingConfig.from_env(batch_size=2)
        completed = await process_colorization(
            self.make_pages(2), config, self.on_pages_started, self.on_page_complete, self.store.get
        )
        self.assertEqual(len(completed), 2)


if __name__ == "__main__":
    unittest.main()
