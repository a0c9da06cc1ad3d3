"""
Export module for extracted statements.

Provides:
- Markdown export (bodies verbatim, so LaTeX survives)
- JSON export of block records
- Paginated PDF export
"""

import logging
from pathlib import Path
from typing import Dict, Optional, List, Union, Sequence

from config import PipelineConfig
from .blocks import ContentBlock
from .io import save_blocks

logger = logging.getLogger(__name__)


# ============================================================================
# Markdown Exporter
# ============================================================================

class MarkdownExporter:
    """Export blocks to Markdown."""

    def __init__(
        self,
        title: str = "Extracted Mathematical Content",
        include_source_pages: bool = True
    ):
        self.title = title
        self.include_source_pages = include_source_pages

    def export(
        self,
        blocks: Sequence[ContentBlock],
        output_path: Union[str, Path]
    ) -> Path:
        """
        Export blocks to a Markdown file.

        Args:
            blocks: Blocks in display order
            output_path: Output file path

        Returns:
            Path to the generated Markdown file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.to_markdown(blocks))

        logger.info(f"Exported Markdown to: {output_path}")
        return output_path

    def to_markdown(self, blocks: Sequence[ContentBlock]) -> str:
        """Render blocks as one Markdown document."""
        lines = []

        if self.title:
            lines.append(f"# {self.title}")
            lines.append("")

        for i, block in enumerate(blocks):
            lines.append(self._block_to_markdown(block, i))
            lines.append("")

        return "\n".join(lines)

    def _block_to_markdown(self, block: ContentBlock, index: int) -> str:
        """Convert a block to Markdown."""
        parts = [
            f"## {block.display_title(index)}",
            "",
            f"*{(block.kind or 'item').capitalize()}*",
            "",
            block.body,
        ]
        if self.include_source_pages and block.source_page is not None:
            parts.extend(["", f"<small>Source page: {block.source_page}</small>"])
        return "\n".join(parts)


# ============================================================================
# PDF Exporter
# ============================================================================

class PdfExporter:
    """Export blocks to a paginated PDF."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config

    def export(
        self,
        blocks: Sequence[ContentBlock],
        output_path: Union[str, Path]
    ) -> Path:
        from .assembler import paginate

        document = paginate(blocks, self.config)
        return document.save(output_path)


# ============================================================================
# Multi-format Exporter
# ============================================================================

class DocumentExporter:
    """Convenience class for exporting to multiple formats."""

    FORMATS = ("json", "markdown", "pdf")

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "extracted",
        config: Optional[PipelineConfig] = None
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name

        self.markdown_exporter = MarkdownExporter()
        self.pdf_exporter = PdfExporter(config)

    def export(
        self,
        blocks: Sequence[ContentBlock],
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Export blocks to several formats.

        Args:
            blocks: Blocks in display order
            formats: Any of 'json', 'markdown', 'pdf', 'all'

        Returns:
            Dictionary mapping format to output path
        """
        if formats is None:
            formats = ["json", "markdown"]

        if "all" in formats:
            formats = list(self.FORMATS)

        self.output_dir.mkdir(parents=True, exist_ok=True)

        results = {}

        if "json" in formats:
            path = self.output_dir / f"{self.base_name}.json"
            results["json"] = save_blocks(list(blocks), path)
            logger.info(f"Exported JSON to: {path}")

        if "markdown" in formats:
            path = self.output_dir / f"{self.base_name}.md"
            results["markdown"] = self.markdown_exporter.export(blocks, path)

        if "pdf" in formats:
            path = self.output_dir / f"{self.base_name}.pdf"
            results["pdf"] = self.pdf_exporter.export(blocks, path)

        return results
