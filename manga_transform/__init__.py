"""
Manga Page Transformer
======================

Colorizes and translates manga pages with Gemini image models. Colorization
runs in reference-chained batches so characters keep consistent colors;
translation runs in flat parallel batches.
"""

__version__ = "0.1.0"

from .config import ProcessingConfig, TranslateConfig
from .data_models import ProcessedResult
from .orchestrator import BatchOrchestrator, process_colorization, process_translation

__all__ = [
    "BatchOrchestrator",
    "ProcessedResult",
    "ProcessingConfig",
    "TranslateConfig",
    "process_colorization",
    "process_translation",
]
