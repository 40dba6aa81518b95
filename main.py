#!/usr/bin/env python3
import argparse
import asyncio
import json
import logging
import os
import sys

from tqdm import tqdm

from manga_transform.config import ProcessingConfig, TranslateConfig
from manga_transform.orchestrator import process_colorization, process_translation
from manga_transform.storage import ResultStore, collect_page_files

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("manga_transform.log")
    ]
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Colorize or translate manga pages with Gemini image models"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "inputs", nargs="+",
        help="Page image files or directories of page images, in reading order"
    )
    common.add_argument(
        "-o", "--output", default="output",
        help="Directory to save the processed pages (default: output)"
    )
    common.add_argument(
        "--batch-size", type=int,
        help="Max parallel requests (and reference images for colorize)"
    )
    common.add_argument("--resolution", help="Output resolution: 1K, 2K or 4K")
    common.add_argument("--model", help="Gemini image model to use")

    subparsers.add_parser("colorize", parents=[common], help="Colorize pages with reference chaining")

    translate = subparsers.add_parser("translate", parents=[common], help="Translate page text")
    translate.add_argument("--from", dest="from_language", default="Japanese", help="Source language")
    translate.add_argument("--to", dest="to_language", default="English", help="Target language")

    return parser


async def run(args: argparse.Namespace) -> ResultStore:
    files = collect_page_files(args.inputs)
    missing = [str(path) for path in files if not path.exists()]
    if missing:
        raise FileNotFoundError(f"Input file(s) not found: {', '.join(missing)}")
    if not files:
        raise FileNotFoundError("No page images found in the given inputs")

    store = ResultStore(args.output)
    progress = tqdm(total=len(files), desc=f"{args.command.capitalize()} pages", unit="page")

    def on_pages_started(indices):
        progress.set_postfix_str(f"pages {indices[0] + 1}-{indices[-1] + 1}")

    def on_page_complete(result):
        store.save(result)
        progress.update(1)

    overrides = {
        "batch_size": args.batch_size,
        "resolution": args.resolution,
        "model": args.model,
    }
    try:
        if args.command == "colorize":
            config = ProcessingConfig.from_env(**overrides)
            await process_colorization(files, config, on_pages_started, on_page_complete, store.get)
        else:
            config = TranslateConfig.from_env(
                from_language=args.from_language, to_language=args.to_language, **overrides
            )
            await process_translation(files, config, on_pages_started, on_page_complete)
    finally:
        progress.close()

    skipped = [str(files[i]) for i in range(len(files)) if i not in store]
    summary = {
        "command": args.command,
        "total_pages": len(files),
        "completed": len(store),
        "skipped": skipped,
        "pages": [
            {"source": str(files[i]), "output": str(store.path_for(i)), **store.get(i).to_dict()}
            for i in store.indices
        ],
    }
    with open(os.path.join(args.output, "summary.json"), 'w', encoding='utf-8') as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    return store


def main(argv=None):
    """
    Main entry point for the manga page transformer.
    """
    args = build_parser().parse_args(argv)
    logger.info(f"Starting {args.command} on {len(args.inputs)} input(s)")
    logger.info(f"Output will be saved to {os.path.abspath(args.output)}")

    try:
        store = asyncio.run(run(args))
    except Exception as e:
        logger.error(f"Error during processing: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info(f"Processing complete. {len(store)} page(s) saved to {args.output}")


if __name__ == "__main__":
    main()
