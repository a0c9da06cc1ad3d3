"""
Tests for the block model.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestContentBlock:
    """Test ContentBlock class."""

    def test_from_dict_full_record(self):
        """Test creation from a complete upstream record."""
        from utils.blocks import ContentBlock

        block = ContentBlock.from_dict({
            "type": "theorem",
            "title": "Theorem 2.1 (Bolzano)",
            "content": "Every bounded sequence in $\\mathbb{R}$ has a convergent subsequence.",
            "page": 4,
        })

        assert block.kind == "theorem"
        assert block.title == "Theorem 2.1 (Bolzano)"
        assert block.body.startswith("Every bounded sequence")
        assert block.source_page == 4

    def test_from_dict_minimal_record(self):
        """Test that title and page are optional."""
        from utils.blocks import ContentBlock

        block = ContentBlock.from_dict({"type": "lemma", "content": "x"})

        assert block.title is None
        assert block.source_page is None

    def test_from_dict_numeric_string_page(self):
        """Test that numeric strings are accepted as page numbers."""
        from utils.blocks import ContentBlock

        block = ContentBlock.from_dict({"type": "lemma", "content": "x", "page": "7"})

        assert block.source_page == 7

    def test_from_dict_ignores_bad_page(self):
        """Test that a non-numeric page is dropped."""
        from utils.blocks import ContentBlock

        block = ContentBlock.from_dict({"type": "lemma", "content": "x", "page": "iv"})

        assert block.source_page is None

    @pytest.mark.parametrize("record", [
        {"content": "x"},
        {"type": "", "content": "x"},
        {"type": "theorem"},
        "not a record",
    ])
    def test_from_dict_rejects_malformed(self, record):
        """Test that records without type or content are rejected."""
        from utils.blocks import ContentBlock

        with pytest.raises(ValueError):
            ContentBlock.from_dict(record)

    def test_body_is_kept_verbatim(self):
        """Test that LaTeX in the body is not altered."""
        from utils.blocks import ContentBlock

        body = "$$\\int_0^1 f(x)\\,dx$$\n\\begin{align} a &= b \\end{align}"
        block = ContentBlock.from_dict({"type": "definition", "content": body})

        assert block.body == body

    def test_display_title_fallback(self):
        """Test that untitled blocks get '{kind} {n}'."""
        from utils.blocks import ContentBlock

        block = ContentBlock(kind="lemma", body="x")

        assert block.display_title(0) == "lemma 1"
        assert block.display_title(4) == "lemma 5"

    def test_display_title_uses_title(self):
        """Test that an existing title wins."""
        from utils.blocks import ContentBlock

        block = ContentBlock(kind="lemma", body="x", title="Lemma 3")

        assert block.display_title(0) == "Lemma 3"

    def test_visual_kind(self):
        """Test that unknown kinds are drawn as definitions."""
        from utils.blocks import ContentBlock

        assert ContentBlock(kind="Theorem", body="x").visual_kind == "theorem"
        assert ContentBlock(kind="conjecture", body="x").visual_kind == "definition"

    def test_blocks_are_immutable(self):
        """Test that blocks cannot be modified after construction."""
        from dataclasses import FrozenInstanceError
        from utils.blocks import ContentBlock

        block = ContentBlock(kind="axiom", body="x")

        with pytest.raises(FrozenInstanceError):
            block.body = "y"

    def test_to_dict(self):
        """Test conversion back to an upstream record."""
        from utils.blocks import ContentBlock

        block = ContentBlock(kind="axiom", body="x", title="Axiom 1", source_page=2)

        assert block.to_dict() == {"type": "axiom", "content": "x", "title": "Axiom 1", "page": 2}
        assert ContentBlock(kind="axiom", body="x").to_dict() == {"type": "axiom", "content": "x"}

    def test_blocks_from_records_keeps_order(self):
        """Test that record order is preserved."""
        from utils.blocks import blocks_from_records

        blocks = blocks_from_records([
            {"type": "definition", "content": "a"},
            {"type": "theorem", "content": "b"},
            {"type": "lemma", "content": "c"},
        ])

        assert [b.body for b in blocks] == ["a", "b", "c"]

    def test_numbered_blocks_keep_positions_when_filtered(self):
        """Test that a kind filter does not renumber untitled blocks."""
        from utils.blocks import ContentBlock, numbered_blocks

        blocks = [
            ContentBlock(kind="definition", body="a"),
            ContentBlock(kind="theorem", body="b"),
            ContentBlock(kind="lemma", body="c"),
            ContentBlock(kind="theorem", body="d"),
        ]

        shown = numbered_blocks(blocks, ["theorem"])

        assert [i for i, _ in shown] == [1, 3]
        assert [b.display_title(i) for i, b in shown] == ["theorem 2", "theorem 4"]

    def test_numbered_blocks_without_filter(self):
        from utils.blocks import ContentBlock, numbered_blocks

        blocks = [ContentBlock(kind="lemma", body="a"), ContentBlock(kind="axiom", body="b")]

        assert numbered_blocks(blocks) == [(0, blocks[0]), (1, blocks[1])]
        assert numbered_blocks(blocks, []) == []
