"""
Per-run debug log of remote requests.

When a log directory is configured every request is appended as one JSON
line to a session file; otherwise requests are only logged at DEBUG level.
"""

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import DEBUG_LOG_DIR
from .data_models import ContentPart

logger = logging.getLogger(__name__)


class DebugSession:
    """Records request summaries for one run at a time."""

    def __init__(self, log_dir: Optional[Union[str, Path]] = DEBUG_LOG_DIR):
        self.log_dir = Path(log_dir) if log_dir else None
        self.session_id: Optional[str] = None
        self.log_path: Optional[Path] = None

    @property
    def enabled(self) -> bool:
        return self.log_dir is not None

    def start_session(self, mode: str = "run") -> str:
        """Begin a new session and return its id."""
        self.session_id = f"{mode}_{time.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        if self.enabled:
            os.makedirs(self.log_dir, exist_ok=True)
            self.log_path = self.log_dir / f"{self.session_id}.jsonl"
            logger.info(f"Debug session {self.session_id} logging to {self.log_path}")
        else:
            self.log_path = None
            logger.debug(f"Debug session {self.session_id} started")
        return self.session_id

    def log_request(
        self,
        request_id: str,
        contents: Sequence[ContentPart],
        result_count: int,
        elapsed: float,
        error: Optional[BaseException] = None,
    ) -> None:
        """Record one request; image bytes are summarized, never written."""
        record = {
            "session_id": self.session_id,
            "request_id": request_id,
            "parts": [part.summary() for part in contents],
            "result_count": result_count,
            "elapsed_seconds": round(elapsed, 3),
            "error": f"{type(error).__name__}: {error}" if error else None,
        }
        logger.debug(f"Request {request_id}: {result_count} result(s) in {elapsed:.2f}s")

        if self.log_path is None:
            return
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def read_records(self) -> List[dict]:
        """Load the records written in the current session."""
        if self.log_path is None or not self.log_path.exists():
            return []
        with open(self.log_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


debug_logger = DebugSession()
