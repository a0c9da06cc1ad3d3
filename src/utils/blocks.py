"""
Block model for extracted mathematical statements.

A ContentBlock is built once from an upstream record of the form
``{type, title?, content, page?}`` and is never modified afterwards.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Iterable, Sequence, Tuple

from config import KNOWN_KINDS, DEFAULT_KIND

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentBlock:
    """One extracted statement (definition, theorem, lemma, ...)."""
    kind: str
    body: str
    title: Optional[str] = None
    source_page: Optional[int] = None

    @property
    def visual_kind(self) -> str:
        """Kind used for presentation; unknown kinds map to the default."""
        kind = (self.kind or "").strip().lower()
        return kind if kind in KNOWN_KINDS else DEFAULT_KIND

    def display_title(self, index: int) -> str:
        """
        Title shown on the card.

        Args:
            index: 0-based position of the block in its sequence

        Returns:
            The title, or ``"{kind} {index + 1}"`` when it is missing
        """
        if self.title:
            return self.title
        return f"{self.kind or 'Item'} {index + 1}"

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "ContentBlock":
        """
        Build a block from an upstream JSON record.

        Raises:
            ValueError: If ``type`` or ``content`` is missing
        """
        if not isinstance(record, dict):
            raise ValueError(f"Block record must be an object, got {type(record).__name__}")

        kind = record.get("type")
        body = record.get("content")
        if not kind or not isinstance(kind, str):
            raise ValueError(f"Block record is missing 'type': {record!r}")
        if body is None:
            raise ValueError(f"Block record is missing 'content': {record!r}")

        title = record.get("title") or None
        page = record.get("page")
        source_page = None
        if page is not None and page != "":
            try:
                source_page = int(page)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric page reference: {page!r}")

        return cls(
            kind=kind,
            body=str(body),
            title=str(title) if title is not None else None,
            source_page=source_page,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.kind, "content": self.body}
        if self.title is not None:
            result["title"] = self.title
        if self.source_page is not None:
            result["page"] = self.source_page
        return result


def blocks_from_records(records: Iterable[Dict[str, Any]]) -> List[ContentBlock]:
    """Convert upstream records to blocks, preserving order."""
    return [ContentBlock.from_dict(r) for r in records]


def numbered_blocks(
    blocks: Sequence[ContentBlock],
    kinds: Optional[Iterable[str]] = None
) -> List[Tuple[int, ContentBlock]]:
    """
    Blocks paired with their position in the full sequence.

    Filtering by ``kinds`` (visual kinds) keeps the original positions, so
    ``display_title`` gives the same fallback numbers as in the exported PDF.
    """
    wanted = set(kinds) if kinds is not None else None
    return [
        (i, block) for i, block in enumerate(blocks)
        if wanted is None or block.visual_kind in wanted
    ]
