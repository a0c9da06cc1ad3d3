"""
Layout renderer for content blocks.

Lays out an ordered sequence of blocks as cards stacked in one column of
fixed width, rasterizes them onto a single tall surface and reports the
rectangle of every card on that surface.

Rendering runs in two phases. Each card is typeset as a job on a worker
pool and its height is only read once the job has completed; the cards
are then composited onto an off-screen canvas and the pixels captured.
Both phases wait with a timeout.

Math in a body (``$...$``, ``\\(...\\)``, ``$$...$$``, ``\\[...\\]``) is
typeset with matplotlib's mathtext and laid out inline with the text, so
a card's height reflects its typeset notation. Expressions mathtext
cannot parse are drawn as their source.
"""

import io
import re
import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps

from config import RenderConfig
from .blocks import ContentBlock
from .errors import EmptyInputError, RenderTimeoutError, RenderCancelledError
from .slicer import BlockRect

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\S+\s*|\s+")

_MATH_RE = re.compile(
    r"\$\$(?P<display>.+?)\$\$"
    r"|\\\[(?P<display_brackets>.+?)\\\]"
    r"|(?<!\\)\$(?P<inline>[^$\n]+?)\$"
    r"|\\\((?P<inline_parens>.+?)\\\)",
    re.DOTALL
)

# mathtext keeps parser and font caches that are not safe to share across threads
_MATHTEXT_LOCK = threading.Lock()


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class RenderedBlock:
    """Position of a block on the rendered surface, in raster pixels."""
    block: ContentBlock
    index: int
    top_px: int
    height_px: int

    @property
    def bottom_px(self) -> int:
        return self.top_px + self.height_px

    @property
    def rect(self) -> BlockRect:
        return BlockRect(self.top_px, self.height_px)


@dataclass
class RenderResult:
    """Captured surface plus the rectangle of every block."""
    surface: np.ndarray                 # H x W x 3, RGB
    blocks: List[RenderedBlock] = field(default_factory=list)
    raster_scale: float = 1.0
    gap_px: int = 0

    @property
    def width(self) -> int:
        return int(self.surface.shape[1])

    @property
    def height(self) -> int:
        return int(self.surface.shape[0])

    @property
    def rects(self) -> List[BlockRect]:
        return [b.rect for b in self.blocks]


@dataclass
class LineItem:
    """A word or a typeset formula placed on a body line."""
    x: int
    width: int
    ascent: int
    descent: int
    text: Optional[str] = None
    mask: Optional[Image.Image] = None     # 'L' image, ink = 255


@dataclass
class BodyLine:
    """One laid-out line of a card body, in raster pixels."""
    items: List[LineItem] = field(default_factory=list)
    width: int = 0
    height: int = 0
    baseline: int = 0
    centered: bool = False


# ============================================================================
# Helpers
# ============================================================================

def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """'#RRGGBB' or '#RGB' to an (r, g, b) tuple."""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        raise ValueError(f"Invalid colour: {color!r}")
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))


def default_font_path(bold: bool = False) -> Optional[str]:
    """Path of DejaVu Sans as shipped with matplotlib, or None."""
    from matplotlib import font_manager

    try:
        return font_manager.findfont(
            font_manager.FontProperties(family="DejaVu Sans", weight="bold" if bold else "normal"),
            fallback_to_default=False
        )
    except ValueError as e:
        logger.warning(f"DejaVu Sans not found: {e}")
        return None


def load_font(path: Optional[str], size: int, bold: bool = False):
    """
    Load a TrueType font.

    Without ``path`` (or when it cannot be read) DejaVu Sans is used, which
    covers the mathematical symbols found in notes. Pillow's bundled font
    is the last resort.
    """
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError as e:
            logger.warning(f"Could not load font {path}: {e}; using DejaVu Sans")

    fallback = default_font_path(bold)
    if fallback:
        try:
            return ImageFont.truetype(fallback, size)
        except OSError as e:
            logger.warning(f"Could not load font {fallback}: {e}; using default font")
    return ImageFont.load_default(size=size)


def split_math_runs(text: str) -> List[Tuple[str, str, str]]:
    """
    Split text into plain and math runs.

    Returns:
        (kind, content, source) triples, kind being 'text', 'inline' or
        'display'. ``content`` is the expression without its delimiters;
        joining every ``source`` gives back ``text``.
    """
    runs: List[Tuple[str, str, str]] = []
    pos = 0

    for match in _MATH_RE.finditer(text):
        if match.start() > pos:
            plain = text[pos:match.start()]
            runs.append(("text", plain, plain))

        source = match.group(0)
        display = match.group("display")
        if display is None:
            display = match.group("display_brackets")
        expr = display if display is not None else (match.group("inline") or match.group("inline_parens"))

        if expr and expr.strip():
            runs.append(("display" if display is not None else "inline", expr.strip(), source))
        else:
            runs.append(("text", source, source))
        pos = match.end()

    if pos < len(text):
        runs.append(("text", text[pos:], text[pos:]))
    return runs


def render_math(expr: str, size_px: int) -> Optional[Tuple[Image.Image, int]]:
    """
    Typeset a TeX expression with matplotlib's mathtext.

    Args:
        expr: Expression without ``$`` delimiters
        size_px: Font size in pixels

    Returns:
        (mask, depth): an 'L' image whose ink is 255 and the number of
        pixels below the baseline, or None if mathtext cannot parse it
    """
    from matplotlib import mathtext
    from matplotlib.font_manager import FontProperties

    buffer = io.BytesIO()
    try:
        with _MATHTEXT_LOCK:
            depth = mathtext.math_to_image(
                f"${' '.join(expr.split())}$",
                buffer,
                prop=FontProperties(size=size_px),
                dpi=72,
                format="png"
            )
    except ValueError as e:
        logger.debug(f"mathtext cannot parse {expr!r}, drawing its source: {e}")
        return None

    buffer.seek(0)
    with Image.open(buffer) as image:
        rgba = image.convert("RGBA")
    flat = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flat.alpha_composite(rgba)
    mask = ImageOps.invert(flat.convert("L"))
    return mask, min(mask.height, max(0, round(depth)))


def wrap_paragraph(text: str, font, max_width: int) -> List[str]:
    """
    Break one paragraph into lines no wider than ``max_width``.

    Only line breaks are chosen here; ``"".join(result) == text``.
    Words wider than a line are broken between characters.
    """
    if text == "":
        return [""]

    lines: List[str] = []
    current = ""

    for token in _TOKEN_RE.findall(text):
        candidate = current + token
        if font.getlength(candidate.rstrip()) <= max_width:
            current = candidate
            continue

        if current:
            lines.append(current)
            current = ""

        if font.getlength(token.rstrip()) <= max_width:
            current = token
            continue

        # Token alone is too wide
        for char in token:
            if current and font.getlength((current + char).rstrip()) > max_width:
                lines.append(current)
                current = ""
            current += char

    if current or not lines:
        lines.append(current)
    return lines


def wrap_text(text: str, font, max_width: int) -> List[str]:
    """Wrap text keeping its own newlines as hard breaks."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        lines.extend(wrap_paragraph(paragraph, font, max_width))
    return lines


# ============================================================================
# Render Surface
# ============================================================================

class RenderSurface:
    """
    Off-screen compositing canvas for one rendering run.

    Use as a context manager; the canvas is released on exit whether the
    run succeeded or not. Drawing, capture and release are serialized, so a
    worker still compositing when the surface is released gets a
    RuntimeError rather than a half-closed canvas.
    """

    _lock = threading.Lock()
    _active = 0

    def __init__(self, width: int, height: int, background: Tuple[int, int, int] = (255, 255, 255)):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.background = background
        self._canvas: Optional[Image.Image] = None
        self._canvas_lock = threading.Lock()

    @classmethod
    def active_count(cls) -> int:
        """Number of surfaces currently allocated."""
        with cls._lock:
            return cls._active

    def __enter__(self) -> "RenderSurface":
        with self._canvas_lock:
            self._canvas = Image.new("RGB", (self.width, self.height), self.background)
        with RenderSurface._lock:
            RenderSurface._active += 1
        logger.debug(f"Allocated render surface {self.width}x{self.height}")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    @property
    def is_open(self) -> bool:
        return self._canvas is not None

    def paste(self, card: Image.Image, top: int) -> None:
        with self._canvas_lock:
            if self._canvas is None:
                raise RuntimeError("Render surface has been released")
            self._canvas.paste(card, (0, top))

    def capture(self) -> np.ndarray:
        """Copy the canvas pixels into an RGB array."""
        with self._canvas_lock:
            if self._canvas is None:
                raise RuntimeError("Render surface has been released")
            return np.array(self._canvas, dtype=np.uint8)

    def release(self) -> None:
        with self._canvas_lock:
            if self._canvas is None:
                return
            self._canvas.close()
            self._canvas = None
        with RenderSurface._lock:
            RenderSurface._active -= 1
        logger.debug("Released render surface")


# ============================================================================
# Typesetter
# ============================================================================

class Typesetter:
    """
    Draws one block as a card at raster scale.

    Card metrics are given in layout pixels and multiplied by the raster
    scale, so the card's pixel height is only known after its text has
    been wrapped.
    """

    def __init__(self, config: RenderConfig):
        self.config = config
        s = config.raster_scale
        self.scale = s
        self.width = round(config.content_width_px * s)

        self.pad_x = round(18 * s)
        self.pad_y = round(16 * s)
        self.border = round(5 * s)
        self.radius = round(10 * s)
        self.header_gap = round(10 * s)
        self.badge_pad_x = round(10 * s)
        self.badge_pad_y = round(4 * s)
        self.meta_gap = round(10 * s)

        self.math_pad = round(8 * s)

        self.body_size = round(15 * s)
        self.body_font = load_font(config.font_path, self.body_size)
        self.title_font = load_font(config.bold_font_path or config.font_path, round(16 * s), bold=True)
        self.small_font = load_font(config.bold_font_path or config.font_path, round(11 * s), bold=True)

        self.body_line = round(15 * 1.85 * s)
        self.title_line = round(16 * 1.4 * s)
        self.small_line = round(11 * 1.6 * s)

        self.accent = hex_to_rgb(config.accent_color)
        self.text_color = hex_to_rgb(config.text_color)
        self.meta_color = hex_to_rgb(config.meta_color)

    @property
    def inner_width(self) -> int:
        return self.width - self.border - 2 * self.pad_x

    def background_for(self, block: ContentBlock) -> Tuple[int, int, int]:
        color_map = self.config.color_map
        color = color_map.get(block.visual_kind) or color_map.get("definition", "#FFFFFF")
        return hex_to_rgb(color)

    def _math(self, expr: str) -> Optional[Tuple[Image.Image, int]]:
        """Typeset an expression at body size, shrunk to fit the column."""
        rendered = render_math(expr, self.body_size)
        if rendered is None:
            return None

        mask, depth = rendered
        if mask.width > self.inner_width:
            ratio = self.inner_width / mask.width
            mask = mask.resize(
                (self.inner_width, max(1, round(mask.height * ratio))),
                Image.LANCZOS
            )
            depth = min(mask.height, round(depth * ratio))
        return mask, depth

    def _add_item(self, lines: List[BodyLine], item: LineItem, fit: float) -> None:
        line = lines[-1]
        if line.centered or (line.items and line.width + fit > self.inner_width):
            line = BodyLine()
            lines.append(line)
        item.x = line.width
        line.items.append(item)
        line.width += item.width

    def _add_text(self, lines: List[BodyLine], text: str) -> None:
        ascent, descent = self.body_font.getmetrics()

        for n, paragraph in enumerate(text.split("\n")):
            # A display formula already ends its line
            if n > 0 and not lines[-1].centered:
                lines.append(BodyLine())

            for token in _TOKEN_RE.findall(paragraph):
                if not token.strip() and (lines[-1].centered or not lines[-1].items):
                    continue

                fit = self.body_font.getlength(token.rstrip())
                pieces = [token]
                if fit > self.inner_width:
                    pieces = wrap_paragraph(token, self.body_font, self.inner_width)

                for piece in pieces:
                    self._add_item(
                        lines,
                        LineItem(0, round(self.body_font.getlength(piece)), ascent, descent, text=piece),
                        self.body_font.getlength(piece.rstrip())
                    )

    def layout_body(self, body: str) -> List[BodyLine]:
        """
        Break a body into measured lines.

        Inline math sits on the text baseline; display math gets a centered
        line of its own. The body string itself is never modified.
        """
        lines: List[BodyLine] = [BodyLine()]

        for kind, content, source in split_math_runs(body):
            rendered = self._math(content) if kind != "text" else None
            if rendered is None:
                self._add_text(lines, source)
                continue

            mask, depth = rendered
            item = LineItem(0, mask.width, mask.height - depth, depth, mask=mask)
            if kind == "inline":
                self._add_item(lines, item, mask.width)
                continue

            line = lines[-1]
            if line.items or line.centered:
                line = BodyLine()
                lines.append(line)
            line.centered = True
            line.items.append(item)
            line.width = mask.width

        text_ascent, text_descent = self.body_font.getmetrics()
        for line in lines:
            ascent = max([text_ascent] + [i.ascent for i in line.items])
            descent = max([text_descent] + [i.descent for i in line.items])
            pad = self.math_pad if any(i.mask is not None for i in line.items) else 0
            line.height = max(self.body_line, ascent + descent + pad)
            line.baseline = (line.height - ascent - descent) // 2 + ascent
        return lines

    def render_card(self, block: ContentBlock, index: int) -> Image.Image:
        """
        Typeset and draw one card.

        Args:
            block: Block to draw
            index: 0-based position, used for the fallback title

        Returns:
            RGB image exactly as wide as the column
        """
        badge_text = (block.kind or "Item").upper()
        badge_w = round(self.small_font.getlength(badge_text)) + 2 * self.badge_pad_x
        badge_h = self.small_line + 2 * self.badge_pad_y

        title_width = max(1, self.inner_width - badge_w - self.header_gap)
        title_lines = wrap_text(block.display_title(index), self.title_font, title_width)
        header_h = max(badge_h, len(title_lines) * self.title_line)

        body_lines = self.layout_body(block.body)
        body_h = sum(line.height for line in body_lines)

        meta_h = 0
        if block.source_page is not None:
            meta_h = self.meta_gap + self.small_line

        height = self.pad_y + header_h + self.header_gap + body_h + meta_h + self.pad_y

        card = Image.new("RGB", (self.width, height), (255, 255, 255))
        draw = ImageDraw.Draw(card)
        draw.rounded_rectangle(
            (0, 0, self.width - 1, height - 1),
            radius=self.radius,
            fill=self.background_for(block)
        )
        draw.rectangle((0, 0, self.border - 1, height - 1), fill=self.accent)

        x = self.border + self.pad_x
        y = self.pad_y

        # Header: badge then title
        draw.rounded_rectangle(
            (x, y, x + badge_w, y + badge_h),
            radius=round(5 * self.scale),
            fill=self.accent
        )
        draw.text((x + self.badge_pad_x, y + self.badge_pad_y), badge_text,
                  font=self.small_font, fill=(255, 255, 255))

        title_x = x + badge_w + self.header_gap
        for i, line in enumerate(title_lines):
            draw.text((title_x, y + i * self.title_line), line,
                      font=self.title_font, fill=self.text_color)
        y += header_h + self.header_gap

        for line in body_lines:
            line_x = x + ((self.inner_width - line.width) // 2 if line.centered else 0)
            baseline = y + line.baseline
            for item in line.items:
                if item.mask is not None:
                    card.paste(self.text_color, (line_x + item.x, baseline - item.ascent), mask=item.mask)
                else:
                    draw.text((line_x + item.x, baseline), item.text,
                              font=self.body_font, fill=self.text_color, anchor="ls")
            y += line.height

        if block.source_page is not None:
            y += self.meta_gap
            draw.text((x, y), f"Source page: {block.source_page}",
                      font=self.small_font, fill=self.meta_color)

        return card


# ============================================================================
# Layout Renderer
# ============================================================================

def _log_abandoned_capture(future) -> None:
    """Done callback for a capture job that outlived its timeout."""
    error = future.exception()
    if error is not None:
        logger.debug(f"Abandoned surface capture ended with: {error}")
    else:
        logger.debug("Abandoned surface capture finished after its timeout")

class LayoutRenderer:
    """
    Render blocks onto one surface and measure them.

    Usage:
        renderer = LayoutRenderer(RenderConfig())
        result = renderer.render(blocks)
    """

    def __init__(self, config: Optional[RenderConfig] = None, max_workers: int = 4):
        self.config = config or RenderConfig()
        self.max_workers = max_workers
        self._typesetter: Optional[Typesetter] = None

    @property
    def typesetter(self) -> Typesetter:
        if self._typesetter is None:
            self._typesetter = Typesetter(self.config)
        return self._typesetter

    @property
    def gap_px(self) -> int:
        return round(self.config.block_spacing_px * self.config.raster_scale)

    def render(
        self,
        blocks: Sequence[ContentBlock],
        cancel_event: Optional[threading.Event] = None
    ) -> RenderResult:
        """
        Lay out and rasterize blocks.

        Args:
            blocks: Non-empty ordered blocks
            cancel_event: Optional signal to abandon the run

        Returns:
            RenderResult with the captured surface and block rectangles

        Raises:
            EmptyInputError: If ``blocks`` is empty
            RenderTimeoutError: If typesetting or capture exceeds its bound
            RenderCancelledError: If ``cancel_event`` is set
        """
        if not blocks:
            raise EmptyInputError("No items to export.")

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(blocks))),
            thread_name_prefix="typeset"
        )
        try:
            cards = self._typeset_all(executor, blocks)
            self._check_cancelled(cancel_event)

            if self.config.settle_delay_s > 0:
                time.sleep(self.config.settle_delay_s)

            rendered, total_height = self._place(blocks, cards)
            logger.info(
                f"Laid out {len(rendered)} block(s) on a "
                f"{self.typesetter.width}x{total_height}px surface"
            )

            with RenderSurface(self.typesetter.width, total_height) as surface:
                pixels = self._capture(executor, surface, rendered, cards)
                self._check_cancelled(cancel_event)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return RenderResult(
            surface=pixels,
            blocks=rendered,
            raster_scale=self.config.raster_scale,
            gap_px=self.gap_px
        )

    def _typeset_all(self, executor, blocks) -> List[Image.Image]:
        """Typeset every card and wait until all have finished."""
        futures = [
            executor.submit(self.typesetter.render_card, block, i)
            for i, block in enumerate(blocks)
        ]
        done, not_done = wait(futures, timeout=self.config.typeset_timeout_s)
        if not_done:
            for f in not_done:
                f.cancel()
            raise RenderTimeoutError(
                f"Typesetting {len(not_done)} of {len(futures)} block(s) did not finish "
                f"within {self.config.typeset_timeout_s}s"
            )
        return [f.result() for f in futures]

    def _place(self, blocks, cards) -> Tuple[List[RenderedBlock], int]:
        """Stack measured cards with a gap between consecutive ones."""
        rendered: List[RenderedBlock] = []
        top = 0
        for i, (block, card) in enumerate(zip(blocks, cards)):
            if i > 0:
                top += self.gap_px
            rendered.append(RenderedBlock(block=block, index=i, top_px=top, height_px=card.height))
            top += card.height
        return rendered, top

    def _capture(self, executor, surface, rendered, cards) -> np.ndarray:
        """Composite the cards onto the surface and read back its pixels."""
        abandoned = threading.Event()

        def composite():
            for placed, card in zip(rendered, cards):
                if abandoned.is_set():
                    return None
                surface.paste(card, placed.top_px)
            if abandoned.is_set():
                return None
            return surface.capture()

        future = executor.submit(composite)
        try:
            return future.result(timeout=self.config.capture_timeout_s)
        except FutureTimeoutError:
            abandoned.set()
            if not future.cancel():
                future.add_done_callback(_log_abandoned_capture)
            raise RenderTimeoutError(
                f"Surface capture did not finish within {self.config.capture_timeout_s}s"
            )

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RenderCancelledError("Pagination run was cancelled")
