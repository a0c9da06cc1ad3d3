"""
Document assembler for paginated PDF output.

Provides:
- PaginatedDocument (the multi-page PDF being built)
- DocumentAssembler (surface + slices -> pages)
- paginate / generate_document, the end-to-end entry points
"""

import io
import time
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union, Dict, Any

import numpy as np
from fpdf import FPDF

from config import PipelineConfig, PageConfig, get_config
from .blocks import ContentBlock
from .errors import EmptyInputError, RenderCancelledError
from .images import crop_rows, encode_png, draw_debug_image, save_image
from .layout import LayoutRenderer, RenderResult
from .slicer import PageSlice, compute_page_slices, page_capacity, uncovered_ranges
from .units import PageGeometry, normalize_orientation

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class PlacedPage:
    """One output page and where its image sits, in page units."""
    page_number: int
    page_slice: PageSlice
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "x": self.x,
            "y": self.y,
            "width": round(self.width, 3),
            "height": round(self.height, 3),
            "slice": self.page_slice.to_dict(),
        }


class PaginatedDocument:
    """
    A PDF under construction, one placed image per page.

    The document starts with one empty page. It is finalized once, by
    ``to_bytes`` or ``save``; after that no page can be added.
    """

    def __init__(self, page: PageConfig, title: Optional[str] = None):
        self.page_config = page
        self._pdf = FPDF(
            orientation=normalize_orientation(page.orientation).upper(),
            unit=page.unit,
            format=page.format.lower()
        )
        self._pdf.set_auto_page_break(auto=False)
        self._pdf.set_creator("mathnotes")
        if title:
            self._pdf.set_title(title)
        self._pdf.add_page()

        self.pages: List[PlacedPage] = []
        self._output: Optional[bytes] = None

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def is_finalized(self) -> bool:
        return self._output is not None

    def place_slice(self, png: bytes, page_slice: PageSlice) -> PlacedPage:
        """
        Append one page showing a slice image.

        The image fills the usable width and keeps the slice's aspect ratio.
        """
        if self._output is not None:
            raise RuntimeError("Document has already been finalized")

        if self.pages:
            self._pdf.add_page()

        placed = PlacedPage(
            page_number=len(self.pages) + 1,
            page_slice=page_slice,
            x=page_slice.margin,
            y=page_slice.margin,
            width=page_slice.usable_width,
            height=page_slice.height_units,
        )
        self._pdf.image(
            io.BytesIO(png),
            x=placed.x,
            y=placed.y,
            w=placed.width,
            h=placed.height
        )
        self.pages.append(placed)
        return placed

    def to_bytes(self) -> bytes:
        """Finalize the document and return the PDF contents."""
        if self._output is None:
            self._output = bytes(self._pdf.output())
            logger.debug(f"Finalized PDF: {self.page_count} page(s), {len(self._output)} bytes")
        return self._output

    def save(self, output_path: Union[str, Path]) -> Path:
        """Finalize the document and write it to ``output_path``."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.to_bytes())
        logger.info(f"Saved PDF: {output_path}")
        return output_path


# ============================================================================
# Document Assembler
# ============================================================================

class DocumentAssembler:
    """
    Turns page slices of a rendered surface into PDF pages.

    Usage:
        assembler = DocumentAssembler(PageConfig())
        document = assembler.assemble(render_result.surface, slices)
    """

    def __init__(self, page: Optional[PageConfig] = None, title: Optional[str] = None):
        self.page = page or PageConfig()
        self.title = title

    def assemble(
        self,
        surface: np.ndarray,
        slices: Sequence[PageSlice],
        cancel_event: Optional[threading.Event] = None
    ) -> PaginatedDocument:
        """
        Build one page per slice.

        Args:
            surface: Full rendered surface (RGB)
            slices: Page slices computed for that surface
            cancel_event: Optional signal to abandon the run

        Returns:
            A PaginatedDocument, not yet finalized

        Raises:
            EncodingError: If a slice image cannot be encoded
            RenderCancelledError: If ``cancel_event`` is set
        """
        document = PaginatedDocument(self.page, title=self.title)

        for page_slice in slices:
            if cancel_event is not None and cancel_event.is_set():
                raise RenderCancelledError("Pagination run was cancelled")

            png = encode_png(crop_rows(surface, page_slice.y_start, page_slice.y_end))
            placed = document.place_slice(png, page_slice)
            logger.debug(
                f"Page {placed.page_number}: rows {page_slice.y_start}-{page_slice.y_end} "
                f"-> {placed.width:.2f}x{placed.height:.2f}{self.page.unit}"
            )

        logger.info(f"Assembled {document.page_count} page(s)")
        return document


# ============================================================================
# Pipeline
# ============================================================================

def paginate(
    blocks: Sequence[ContentBlock],
    config: Optional[PipelineConfig] = None,
    cancel_event: Optional[threading.Event] = None
) -> PaginatedDocument:
    """
    Render blocks and lay them out on pages without splitting any block.

    Args:
        blocks: Ordered, already deduplicated blocks
        config: Page and render settings (defaults from ``get_config``)
        cancel_event: Optional signal to abandon the run

    Returns:
        PaginatedDocument ready to be finalized

    Raises:
        EmptyInputError: If ``blocks`` is empty
        DegenerateGeometryError: If the page leaves no room for content
        RenderTimeoutError: If typesetting or capture takes too long
        EncodingError: If a page image cannot be produced
        RenderCancelledError: If ``cancel_event`` is set
    """
    if not blocks:
        raise EmptyInputError("No items to export.")

    config = config or get_config()
    start_time = time.time()

    geometry = PageGeometry.from_format(
        config.page.format,
        config.page.orientation,
        config.page.unit,
        config.page.margin
    )
    renderer = LayoutRenderer(config.render)

    # Fail on impossible geometry before allocating a surface
    page_capacity(renderer.typesetter.width, geometry)

    result = renderer.render(blocks, cancel_event=cancel_event)
    slices = compute_page_slices(result.rects, result.width, result.height, geometry)
    skipped = uncovered_ranges(slices, result.height)
    if skipped:
        logger.debug(
            f"{sum(end - start for start, end in skipped)}px of the surface fall outside any page: {skipped}"
        )

    if config.debug_mode and config.output_dir:
        _save_debug_image(result, slices, config.output_dir)

    document = DocumentAssembler(config.page).assemble(result.surface, slices, cancel_event)

    elapsed = time.time() - start_time
    logger.info(f"Paginated {len(blocks)} block(s) onto {document.page_count} page(s) in {elapsed:.2f}s")
    return document


def generate_document(
    blocks: Sequence[ContentBlock],
    config: Optional[PipelineConfig] = None,
    cancel_event: Optional[threading.Event] = None
) -> bytes:
    """Render, paginate and return the finished PDF as bytes."""
    return paginate(blocks, config, cancel_event).to_bytes()


def _save_debug_image(result: RenderResult, slices: Sequence[PageSlice], output_dir) -> None:
    """Save the surface with block rectangles and page breaks drawn on it."""
    debug_img = draw_debug_image(
        result.surface,
        [(b.top_px, b.height_px) for b in result.blocks],
        [(s.y_start, s.y_end) for s in slices],
        labels=[f"page {i + 1}" + (" (clipped)" if s.clipped else "") for i, s in enumerate(slices)]
    )
    debug_path = Path(output_dir) / "debug" / "surface_debug.png"
    save_image(debug_img, debug_path)
    logger.debug(f"Saved debug image: {debug_path}")
