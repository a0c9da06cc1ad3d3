"""
Tests for PDF assembly and the end-to-end pagination entry points.
"""

import threading
import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def pdf_page_count(pdf_bytes):
    import fitz

    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc.page_count


@pytest.fixture
def pipeline_config(tmp_path):
    """Pipeline settings that render quickly."""
    from config import PipelineConfig

    config = PipelineConfig()
    config.render.raster_scale = 1.0
    config.render.content_width_px = 400
    config.render.settle_delay_s = 0.0
    config.output_dir = str(tmp_path)
    return config


@pytest.fixture
def many_blocks():
    from utils.blocks import ContentBlock

    return [
        ContentBlock(
            kind=kind,
            title=f"{kind.capitalize()} {i + 1}",
            body=f"Statement {i + 1}: for all $x \\in X$ we have $f(x) \\geq 0$. " * (1 + i % 4),
            source_page=i + 1,
        )
        for i, kind in enumerate(["definition", "theorem", "lemma", "proposition", "corollary"] * 4)
    ]


def make_slices(surface_height, cuts, px_to_unit=0.5, margin=20.0):
    """Page slices over the given row ranges."""
    from utils.slicer import PageSlice

    return [
        PageSlice(
            y_start=start, y_end=end, px_to_unit=px_to_unit, margin=margin,
            usable_width=100 * px_to_unit, usable_height=surface_height,
            first_block=i, last_block=i
        )
        for i, (start, end) in enumerate(cuts)
    ]


class TestDocumentAssembler:
    """Test DocumentAssembler class."""

    @pytest.fixture
    def surface(self):
        surface = np.full((300, 100, 3), 255, dtype=np.uint8)
        surface[0:100] = (200, 210, 255)
        surface[120:300] = (255, 240, 220)
        return surface

    def test_one_page_per_slice(self, surface):
        from config import PageConfig
        from utils.assembler import DocumentAssembler

        slices = make_slices(300, [(0, 100), (120, 300)])
        document = DocumentAssembler(PageConfig()).assemble(surface, slices)

        assert document.page_count == 2
        assert pdf_page_count(document.to_bytes()) == 2

    def test_placement(self, surface):
        from config import PageConfig
        from utils.assembler import DocumentAssembler

        slices = make_slices(300, [(0, 100), (120, 300)], px_to_unit=0.5, margin=20.0)
        document = DocumentAssembler(PageConfig()).assemble(surface, slices)

        first, second = document.pages
        assert (first.x, first.y) == (20.0, 20.0)
        assert first.width == pytest.approx(50.0)
        assert first.height == pytest.approx(50.0)
        assert second.height == pytest.approx(90.0)
        assert [p.page_number for p in document.pages] == [1, 2]

    def test_encoding_error_propagates(self, surface, monkeypatch):
        from config import PageConfig
        from utils import assembler
        from utils.errors import EncodingError

        def broken(image, compression=6):
            raise EncodingError("broken encoder")

        monkeypatch.setattr(assembler, "encode_png", broken)

        with pytest.raises(EncodingError):
            assembler.DocumentAssembler(PageConfig()).assemble(surface, make_slices(300, [(0, 100)]))

    def test_cancelled(self, surface):
        from config import PageConfig
        from utils.assembler import DocumentAssembler
        from utils.errors import RenderCancelledError

        cancel = threading.Event()
        cancel.set()

        with pytest.raises(RenderCancelledError):
            DocumentAssembler(PageConfig()).assemble(surface, make_slices(300, [(0, 100)]), cancel)


class TestPaginatedDocument:
    """Test PaginatedDocument class."""

    def test_finalized_once(self):
        from config import PageConfig
        from utils.assembler import PaginatedDocument
        from utils.images import encode_png

        document = PaginatedDocument(PageConfig(), title="Notes")
        png = encode_png(np.full((10, 10, 3), 128, dtype=np.uint8))
        document.place_slice(png, make_slices(10, [(0, 10)])[0])

        first = document.to_bytes()
        assert first.startswith(b"%PDF")
        assert document.is_finalized
        assert document.to_bytes() == first

        with pytest.raises(RuntimeError):
            document.place_slice(png, make_slices(10, [(0, 10)])[0])

    def test_save(self, tmp_path):
        from config import PageConfig
        from utils.assembler import PaginatedDocument
        from utils.images import encode_png

        document = PaginatedDocument(PageConfig(format="letter", orientation="l", unit="mm", margin=10))
        png = encode_png(np.full((10, 10, 3), 128, dtype=np.uint8))
        document.place_slice(png, make_slices(10, [(0, 10)])[0])

        path = document.save(tmp_path / "out" / "notes.pdf")

        assert path.exists()
        assert pdf_page_count(path.read_bytes()) == 1


class TestPaginate:
    """Test the end-to-end pagination entry points."""

    def test_no_block_is_split(self, pipeline_config, many_blocks):
        from utils.assembler import paginate

        document = paginate(many_blocks, pipeline_config)
        slices = [p.page_slice for p in document.pages]

        assert document.page_count > 1
        assert [i for s in slices for i in s.block_indices] == list(range(len(many_blocks)))
        assert not any(s.clipped for s in slices)
        for placed in document.pages:
            assert placed.height <= placed.page_slice.usable_height + 1e-6

    def test_generate_document(self, pipeline_config, many_blocks):
        from utils.assembler import paginate, generate_document

        expected = paginate(many_blocks, pipeline_config).page_count
        pdf_bytes = generate_document(many_blocks, pipeline_config)

        assert pdf_page_count(pdf_bytes) == expected

    def test_single_block_single_page(self, pipeline_config, many_blocks):
        from utils.assembler import generate_document

        assert pdf_page_count(generate_document(many_blocks[:1], pipeline_config)) == 1

    def test_oversized_block_is_clipped(self, pipeline_config):
        from utils.assembler import paginate
        from utils.blocks import ContentBlock

        huge = ContentBlock(kind="theorem", body="\n".join(f"line {i}" for i in range(400)))
        document = paginate([huge], pipeline_config)

        assert document.page_count == 1
        assert document.pages[0].page_slice.clipped is True

    def test_empty_input(self, pipeline_config, monkeypatch):
        """Empty input fails before anything is rendered."""
        from utils import assembler
        from utils.errors import EmptyInputError

        def fail(*args, **kwargs):
            raise AssertionError("renderer used")

        monkeypatch.setattr(assembler.LayoutRenderer, "render", fail)

        with pytest.raises(EmptyInputError):
            assembler.paginate([], pipeline_config)

    def test_degenerate_geometry(self, pipeline_config, many_blocks, monkeypatch):
        """A page without usable height fails before anything is rendered."""
        from utils import assembler
        from utils.errors import DegenerateGeometryError

        def fail(*args, **kwargs):
            raise AssertionError("renderer used")

        monkeypatch.setattr(assembler.LayoutRenderer, "render", fail)
        pipeline_config.page.orientation = "l"
        pipeline_config.page.margin = 300

        with pytest.raises(DegenerateGeometryError):
            assembler.paginate(many_blocks, pipeline_config)

    def test_debug_image(self, pipeline_config, many_blocks, tmp_path):
        from utils.assembler import paginate

        pipeline_config.debug_mode = True
        paginate(many_blocks[:3], pipeline_config)

        assert (tmp_path / "debug" / "surface_debug.png").exists()

    def test_surfaces_released(self, pipeline_config, many_blocks):
        from utils.assembler import generate_document
        from utils.layout import RenderSurface

        before = RenderSurface.active_count()
        generate_document(many_blocks, pipeline_config)

        assert RenderSurface.active_count() == before
