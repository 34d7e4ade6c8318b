#!/usr/bin/env python3
"""
Main CLI entrypoint for the shift OCR pipeline.
"""

import argparse
import json
import sys
from pathlib import Path

from shift_ocr_pipeline.core.config import LLM_PROVIDERS, load_config
from shift_ocr_pipeline.core.database import WorkEntryStore
from shift_ocr_pipeline.core.errors import ExtractionFailed, ImageValidationError
from shift_ocr_pipeline.core.logging import configure_logging
from shift_ocr_pipeline.core.processor import ShiftProcessor
from shift_ocr_pipeline.core.reporting import summary_lines, write_csv

EXIT_OK = 0
EXIT_EXTRACTION_FAILED = 1
EXIT_INVALID_IMAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import work shifts from a gig-app earnings screenshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a screenshot for user 42 (vision model first, Tesseract fallback)
  shift-ocr shift.png --user 42

  # Tesseract + regex only
  shift-ocr shift.png --user 42 --no-llm

  # Use Anthropic and keep a CSV of everything that was parsed
  shift-ocr shift.png --user 42 --llm-provider anthropic --csv parsed.csv
        """
    )
    parser.add_argument("image", help="Screenshot to import (PNG, JPEG, WEBP, ...)")
    parser.add_argument("--user", required=True, help="User the shifts belong to")
    parser.add_argument("--db", help="SQLite record store (default: ./shifts.sqlite, or SHIFT_DB_PATH env var)")
    parser.add_argument("--csv", help="Also write every parsed entry to this CSV file")
    parser.add_argument("--json", action="store_true", help="Print the import result as JSON")
    parser.add_argument("--lenient-dates", action="store_true",
                        help="Accept date lines without weekday or comma ('Sep 18')")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show debug logging")

    # LLM configuration
    parser.add_argument("--llm-provider", choices=LLM_PROVIDERS,
                        help="LLM provider to use (default: openai, or LLM_PROVIDER env var)")
    parser.add_argument("--llm-model",
                        help="LLM model to use (uses provider default if not specified, or LLM_MODEL env var)")
    parser.add_argument("--no-llm", action="store_true",
                        help="Disable vision extraction, use only Tesseract + regex parsing")
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_EXTRACTION_FAILED

    if args.llm_provider or args.llm_model:
        config = config.with_provider(args.llm_provider or config.llm_provider, args.llm_model)
    if args.no_llm:
        config.use_vision = False
    if args.lenient_dates:
        config.lenient_dates = True
    if args.db:
        config.database_path = Path(args.db)
    if args.verbose:
        config.log_level = "DEBUG"

    configure_logging(config.log_level)

    processor = ShiftProcessor(config, WorkEntryStore(config.database_path))
    try:
        summary = processor.process_screenshot(Path(args.image), args.user)
    except ImageValidationError as e:
        print(f"[ERROR] Invalid image: {e}", file=sys.stderr)
        return EXIT_INVALID_IMAGE
    except ExtractionFailed as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_EXTRACTION_FAILED

    if args.csv:
        out_csv = Path(args.csv)
        write_csv(summary, out_csv)
        # Keep stdout a single JSON document under --json
        print(f"[OK] Wrote {out_csv}", file=sys.stderr if args.json else sys.stdout)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        for line in summary_lines(summary):
            print(line)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
