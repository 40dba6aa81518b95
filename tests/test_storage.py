"""
Tests for result storage and the debug session log.
"""

import sys
import tempfile
import unittest
from pathlib import Path

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from manga_transform.data_models import ContentPart, ProcessedResult
from manga_transform.debug import DebugSession
from manga_transform.storage import ResultStore, collect_page_files


class TestResultStore(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_in_memory(self):
        store = ResultStore()
        store.save(ProcessedResult(index=2, image_bytes=b"two", mime_type="image/png"))

        self.assertEqual(store.get(2).image_bytes, b"two")
        self.assertIsNone(store.get(0))
        self.assertIn(2, store)
        self.assertEqual(len(store), 1)

    def test_writes_files(self):
        store = ResultStore(self.dir / "out")
        path = store.save(ProcessedResult(index=0, image_bytes=b"jpeg", mime_type="image/jpeg"))

        self.assertEqual(path.name, "page_001.jpg")
        self.assertEqual(path.read_bytes(), b"jpeg")
        self.assertEqual(store.path_for(0), path)

    def test_collect_page_files_natural_order(self):
        for name in ("page10.png", "page2.png", "page1.jpg", "notes.txt"):
            (self.dir / name).write_bytes(b"x")
        extra = self.dir / "cover.webp"
        extra.write_bytes(b"x")

        pages = collect_page_files([extra, self.dir])

        self.assertEqual(
            [p.name for p in pages],
            ["cover.webp", "cover.webp", "page1.jpg", "page2.png", "page10.png"],
        )


class TestDebugSession(unittest.TestCase):

    def test_writes_jsonl_records(self):
        with tempfile.TemporaryDirectory() as tmp:
            session = DebugSession(log_dir=tmp)
            session_id = session.start_session("colorize")
            session.log_request(
                "colorize_batch1_page1_0",
                [ContentPart.from_text("hi"), ContentPart.from_image(b"1234", "image/png")],
                result_count=1,
                elapsed=0.5,
            )
            session.log_request("colorize_batch2_page2_0", [], 0, 0.1, RuntimeError("boom"))

            records = session.read_records()

        self.assertTrue(session_id.startswith("colorize_"))
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0]["parts"][1], {"type": "image", "mime_type": "image/png", "bytes": 4})
        self.assertIsNone(records[0]["error"])
        self.assertEqual(records[1]["error"], "RuntimeError: boom")

    def test_disabled_session_writes_nothing(self):
        session = DebugSession(log_dir=None)
        session.start_session()
        session.log_request("req", [], 0, 0.0)

        self.assertFalse(session.enabled)
        self.assertEqual(session.read_records(), [])


if __name__ == "__main__":
    unittest.main()
