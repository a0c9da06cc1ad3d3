"""
Utility modules for the math notes pipeline.
"""

from .errors import (
    PaginationError, EmptyInputError, DegenerateGeometryError,
    RenderTimeoutError, EncodingError, RenderCancelledError, ExtractionError,
)
from .blocks import ContentBlock, blocks_from_records
from .units import PageGeometry, page_size, px_to_units
from .slicer import BlockRect, PageSlice, compute_page_slices, uncovered_ranges
from .layout import LayoutRenderer, RenderedBlock, RenderResult, RenderSurface
from .assembler import DocumentAssembler, PaginatedDocument, paginate, generate_document
from .extraction import StatementExtractor, ExtractionResult, normalize_numbered_title, dedupe_by_numbered_title
from .io import load_blocks, save_blocks, save_json, load_json, ensure_dir
from .export import MarkdownExporter, PdfExporter, DocumentExporter

__all__ = [
    # Errors
    "PaginationError", "EmptyInputError", "DegenerateGeometryError",
    "RenderTimeoutError", "EncodingError", "RenderCancelledError", "ExtractionError",
    # Blocks
    "ContentBlock", "blocks_from_records",
    # Geometry
    "PageGeometry", "page_size", "px_to_units",
    # Pagination
    "BlockRect", "PageSlice", "compute_page_slices", "uncovered_ranges",
    "LayoutRenderer", "RenderedBlock", "RenderResult", "RenderSurface",
    "DocumentAssembler", "PaginatedDocument", "paginate", "generate_document",
    # Extraction
    "StatementExtractor", "ExtractionResult", "normalize_numbered_title", "dedupe_by_numbered_title",
    # IO / Export
    "load_blocks", "save_blocks", "save_json", "load_json", "ensure_dir",
    "MarkdownExporter", "PdfExporter", "DocumentExporter",
]
