"""
NoteDigest — Command Line Interface
====================================

What:  Runs the note pipeline on local image files without the HTTP server.
Why:   Quick checks of transcription and summary quality on a handful of
       photographed pages.
How:   argparse subcommands; each builds its own NotesStore, generators and
       SummaryPipeline, then awaits NoteService / the accuracy scorer.

Usage:
    notedigest summarize "Fractions" page1.jpg page2.png
    notedigest accuracy page1.jpg --expected page1.txt --terms numerator,denominator
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence

import aiofiles

from notedigest import __version__
from notedigest.config import settings
from notedigest.exceptions import NoteDigestError
from notedigest.main import setup_logging
from notedigest.services.gemini_service import create_gemini_generators
from notedigest.services.image_service import image_service
from notedigest.services.note_service import NoteService
from notedigest.services.notes_store import NotesStore
from notedigest.services.summary_pipeline import SummaryPipeline
from notedigest.services.summary_validator import SummaryValidator, ValidatorConfig
from notedigest.services.transcription_accuracy import calculate_keyword_match

logger = logging.getLogger(__name__)

_RULE = "=" * 50


def build_note_service(store: NotesStore) -> NoteService:
    text_generator, vision_generator = create_gemini_generators()
    pipeline = SummaryPipeline(SummaryValidator(ValidatorConfig.from_settings()))
    return NoteService(
        store=store,
        text_generator=text_generator,
        vision_generator=vision_generator,
        pipeline=pipeline,
    )


# ── summarize ─────────────────────────────────────────────────────────────

async def run_summarize(
    topic: str,
    image_paths: Sequence[str],
    service: Optional[NoteService] = None,
) -> int:
    store = service.store if service is not None else NotesStore()
    service = service or build_note_service(store)

    section = store.create_section(topic)
    for path in image_paths:
        print(f"Processing {path}...")
        image = await image_service.load_image_file(path)
        await service.add_page_and_process(section.id, image)

    print(f"\nSection: {topic}")
    print(_RULE)
    print("Summary:")
    print(store.get_summary(section.id) or "")

    print("\nPage Summaries:")
    for i, page in enumerate(section.pages, start=1):
        print(f"\nPage {i} ({page.image.title}):")
        print(page.page_summary)

    print("\nFull Texts:")
    for i, page in enumerate(section.pages, start=1):
        print(f"\n--- Page {i} ({page.image.title}) ---")
        print(page.transcription)
    return 0


# ── accuracy ──────────────────────────────────────────────────────────────

def parse_terms(raw: str) -> List[str]:
    return [term.strip() for term in raw.split(",") if term.strip()]


async def run_accuracy(
    image_path: str,
    expected_path: str,
    terms: Sequence[str],
    service: Optional[NoteService] = None,
) -> int:
    service = service or build_note_service(NotesStore())

    async with aiofiles.open(expected_path, "r", encoding="utf-8") as f:
        expected = await f.read()

    image = await image_service.load_image_file(image_path)
    actual = await service.transcribe(image)
    result = calculate_keyword_match(actual, expected, terms)

    print(f"Accuracy: {result.score * 100:.1f}%")
    print(f"Matched terms: {', '.join(result.matched) or '-'}")
    print(f"Missing terms: {', '.join(result.missing) or '-'}")
    return 0


# ── Entry point ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notedigest",
        description="Transcribe handwritten notes and produce validated summaries.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summarize = subparsers.add_parser(
        "summarize", help="Transcribe pages into one section and print its summaries"
    )
    summarize.add_argument("topic", help="Section topic, used in the section prompt")
    summarize.add_argument("images", nargs="+", help="Page images (.png, .jpg, .jpeg)")

    accuracy = subparsers.add_parser(
        "accuracy", help="Score a transcription against a reference text by key terms"
    )
    accuracy.add_argument("image", help="Page image to transcribe")
    accuracy.add_argument("--expected", required=True, help="File holding the reference transcription")
    accuracy.add_argument(
        "--terms", required=True, type=parse_terms, help="Comma-separated key terms"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    try:
        if args.command == "summarize":
            return asyncio.run(run_summarize(args.topic, args.images))
        return asyncio.run(run_accuracy(args.image, args.expected, args.terms))
    except NoteDigestError as e:
        logger.error("%s failed: %s", args.command, e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
