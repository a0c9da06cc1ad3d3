#!/usr/bin/env python
"""
Command-line interface for the Math Notes Pipeline.

Usage:
    python src/cli.py --input <notes.pdf|items.json> --output <output_dir> [options]

Examples:
    # Extract statements from a PDF and export everything
    python src/cli.py --input notes.pdf --output ./output --format all

    # Re-paginate previously extracted statements on US letter paper
    python src/cli.py --input output/extracted.json --output ./output --format pdf --page-format letter

    # Debug mode (saves the rendered surface with page breaks drawn on it)
    python src/cli.py --input items.json --output ./output --format pdf --debug
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time
from typing import List, Optional

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mathnotes")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Math Notes Pipeline - Extract statements from notes and paginate them into a PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Extract from a PDF and export all formats:
    python -m cli --input notes.pdf --output ./output --format all

  Paginate an existing JSON list of statements:
    python -m cli --input items.json --output ./output --format pdf

  Landscape A4 with 20mm margins:
    python -m cli --input items.json --output ./output --unit mm --margin 20 --orientation l
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input PDF of notes, or a JSON file of extracted statements"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=None,
        choices=["json", "markdown", "pdf", "all"],
        help="Output format(s) (default: json markdown pdf)"
    )

    parser.add_argument(
        "--name",
        default=None,
        help="Base name of the output files (default: input file name)"
    )

    # Page geometry
    parser.add_argument(
        "--page-format",
        choices=["a3", "a4", "a5", "letter", "legal"],
        default=None,
        help="Target page format (default: a4)"
    )

    parser.add_argument(
        "--orientation",
        choices=["p", "l", "portrait", "landscape"],
        default=None,
        help="Page orientation (default: portrait)"
    )

    parser.add_argument(
        "--unit",
        choices=["pt", "mm", "cm", "in"],
        default=None,
        help="Unit of the page and margin (default: pt)"
    )

    parser.add_argument(
        "--margin",
        type=float,
        default=None,
        help="Page margin in --unit (default: 28)"
    )

    # Rendering
    parser.add_argument(
        "--raster-scale",
        type=float,
        default=None,
        help="Rasterization scale; higher is sharper (default: 2.8)"
    )

    parser.add_argument(
        "--content-width",
        type=int,
        default=None,
        help="Layout width of the card column in px (default: 820)"
    )

    parser.add_argument(
        "--block-spacing",
        type=int,
        default=None,
        help="Gap between cards in px (default: 24)"
    )

    parser.add_argument(
        "--font",
        default=None,
        help="TrueType font file for card text"
    )

    # Extraction
    parser.add_argument(
        "--model",
        default=None,
        help="Chat model used for extraction (default: gpt-4o-mini)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (saves the rendered surface with page breaks)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def build_config(args):
    """Apply command-line options on top of the default configuration."""
    from config import get_config

    config = get_config()

    if args.page_format:
        config.page.format = args.page_format
    if args.orientation:
        config.page.orientation = args.orientation
    if args.unit:
        config.page.unit = args.unit
    if args.margin is not None:
        config.page.margin = args.margin

    if args.raster_scale is not None:
        config.render.raster_scale = args.raster_scale
    if args.content_width is not None:
        config.render.content_width_px = args.content_width
    if args.block_spacing is not None:
        config.render.block_spacing_px = args.block_spacing
    if args.font:
        config.render.font_path = args.font

    if args.model:
        config.extraction.model = args.model

    config.debug_mode = args.debug or config.debug_mode
    config.output_dir = args.output
    return config


def load_input_blocks(input_path: Path, config) -> Optional[List]:
    """Load blocks from a JSON file or extract them from a PDF."""
    from utils.io import detect_input_type, load_blocks
    from utils.extraction import StatementExtractor

    input_type = detect_input_type(input_path)
    logger.info(f"Input type detected: {input_type}")

    if input_type == "json":
        return load_blocks(input_path)

    if input_type == "pdf":
        extractor = StatementExtractor(config.extraction)
        result = extractor.extract_pdf(input_path)
        logger.info(f"Extracted {len(result.items)} item(s) from {result.total_pages} page(s)")
        return result.items

    logger.error(f"Unsupported input type: {input_path}")
    return None


def run_pipeline(args) -> int:
    """Run extraction and export."""
    from utils.io import ensure_dir
    from utils.export import DocumentExporter
    from utils.errors import PaginationError, ExtractionError

    start_time = time.time()

    output_dir = ensure_dir(args.output)
    input_path = Path(args.input)
    config = build_config(args)

    try:
        blocks = load_input_blocks(input_path, config)
    except (ExtractionError, ValueError, FileNotFoundError) as e:
        logger.error(f"Could not load statements: {e}")
        if args.debug:
            raise
        return 1

    if blocks is None:
        return 1

    if not blocks:
        logger.error("No mathematical content was extracted.")
        return 1

    formats = args.format or config.export.formats
    if "all" in formats:
        formats = list(DocumentExporter.FORMATS)

    exporter = DocumentExporter(output_dir, args.name or input_path.stem, config=config)
    try:
        export_results = exporter.export(blocks, formats)
    except (PaginationError, ValueError) as e:
        logger.error(f"Export failed: {e}")
        if args.debug:
            raise
        return 1

    for fmt, path in export_results.items():
        logger.info(f"Exported {fmt}: {path}")

    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "=" * 60)
        print("EXPORT COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Statements: {len(blocks)}")
        print(f"Processing time: {elapsed:.2f}s")
        for fmt, path in export_results.items():
            print(f"  {fmt}: {path}")
        print("=" * 60)

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
