"""
Configuration and constants for the math notes pipeline.

This module provides:
- Global logging setup
- Page, rendering, extraction and export settings
- Block kind constants and the card colour map
- Environment overrides
"""

import os
from dataclasses import dataclass, field
from typing import Optional, List, Dict
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mathnotes")


# ============================================================================
# Block Kinds
# ============================================================================

class BlockKind:
    """Standard block kind identifiers."""
    DEFINITION = "definition"
    THEOREM = "theorem"
    LEMMA = "lemma"
    PROPOSITION = "proposition"
    COROLLARY = "corollary"
    REMARK = "remark"
    CLAIM = "claim"
    AXIOM = "axiom"


KNOWN_KINDS = (
    BlockKind.DEFINITION,
    BlockKind.THEOREM,
    BlockKind.LEMMA,
    BlockKind.PROPOSITION,
    BlockKind.COROLLARY,
    BlockKind.REMARK,
    BlockKind.CLAIM,
    BlockKind.AXIOM,
)

# Unknown kinds are drawn with this one
DEFAULT_KIND = BlockKind.DEFINITION

DEFAULT_COLOR_MAP: Dict[str, str] = {
    "definition": "#E8EDFF",
    "lemma": "#E8FFF3",
    "theorem": "#FFF5E6",
    "proposition": "#FFF0F5",
    "corollary": "#F0FFF4",
    "remark": "#F7FAFC",
    "claim": "#F9FAFB",
    "axiom": "#E6F7FF",
}


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class PageConfig:
    """Target page of the generated PDF."""
    format: str = "a4"          # a3, a4, a5, letter, legal
    orientation: str = "p"      # p(ortrait) or l(andscape)
    unit: str = "pt"            # pt, mm, cm, in
    margin: float = 28.0        # in `unit`, ~0.39in for pt


@dataclass
class RenderConfig:
    """Off-screen layout and rasterization settings."""
    raster_scale: float = 2.8           # higher = sharper, larger files
    content_width_px: int = 820         # layout width of the card column
    block_spacing_px: int = 24          # gap between consecutive cards
    typeset_timeout_s: float = 30.0
    capture_timeout_s: float = 30.0
    settle_delay_s: float = 0.12        # pause between typesetting and capture
    font_path: Optional[str] = None     # TrueType font for body text
    bold_font_path: Optional[str] = None
    accent_color: str = "#667eea"
    text_color: str = "#2d3748"
    meta_color: str = "#718096"
    color_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_COLOR_MAP))


@dataclass
class ExtractionConfig:
    """Language model extraction settings."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    chunk_size: int = 15000
    chunk_delay_s: float = 0.4
    max_retries: int = 2
    timeout_s: float = 120.0
    api_key: Optional[str] = None
    base_url: Optional[str] = None


@dataclass
class ExportConfig:
    """Export configuration."""
    filename: str = "extracted.pdf"
    formats: List[str] = field(default_factory=lambda: ["json", "markdown", "pdf"])


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    page: PageConfig = field(default_factory=PageConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Global settings
    debug_mode: bool = False
    output_dir: Optional[str] = None    # where debug images go


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("MATHNOTES_DEBUG", "").lower() == "true":
        config.debug_mode = True

    page_format = os.environ.get("MATHNOTES_PAGE_FORMAT")
    if page_format:
        config.page.format = page_format.lower()

    raster_scale = os.environ.get("MATHNOTES_RASTER_SCALE")
    if raster_scale:
        try:
            config.render.raster_scale = float(raster_scale)
        except ValueError:
            logger.warning(f"Ignoring invalid MATHNOTES_RASTER_SCALE: {raster_scale!r}")

    model = os.environ.get("MATHNOTES_MODEL")
    if model:
        config.extraction.model = model

    # OpenAI-compatible API credentials from environment
    config.extraction.api_key = os.environ.get("OPENAI_API_KEY")
    config.extraction.base_url = os.environ.get("OPENAI_BASE_URL")

    return config

