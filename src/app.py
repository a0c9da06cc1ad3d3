#!/usr/bin/env python
"""
Streamlit Web UI for the Math Notes Pipeline.

Run with:
    streamlit run src/app.py

Features:
- Upload a PDF of lecture notes
- Extract definitions, theorems, lemmas, ... with a language model
- Preview the extracted statements with rendered math
- Download a paginated PDF (no statement split across pages), JSON or Markdown
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import streamlit as st
import tempfile
import json
from typing import Optional, List

import logging
logging.getLogger('fontTools').setLevel(logging.ERROR)

from config import get_config, KNOWN_KINDS, DEFAULT_COLOR_MAP
from utils.blocks import ContentBlock, numbered_blocks


# Page config must be first Streamlit command
st.set_page_config(
    page_title="Math Notes Extractor",
    page_icon="📐",
    layout="wide",
    initial_sidebar_state="expanded"
)


def load_css():
    """Load custom CSS styles."""
    kind_rules = "\n".join(
        f"    .kind-{kind} {{ background-color: {color}; }}"
        for kind, color in DEFAULT_COLOR_MAP.items()
    )
    st.markdown(f"""
    <style>
    .main-header {{
        font-size: 2.5rem;
        font-weight: bold;
        color: #667eea;
        text-align: center;
        margin-bottom: 1rem;
    }}
    .sub-header {{
        font-size: 1.2rem;
        color: #888;
        text-align: center;
        margin-bottom: 2rem;
    }}
    .kind-badge {{
        display: inline-block;
        background: #667eea;
        color: white;
        padding: 2px 10px;
        border-radius: 5px;
        font-size: 0.7rem;
        font-weight: 700;
        text-transform: uppercase;
    }}
{kind_rules}
    </style>
    """, unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables."""
    if "blocks" not in st.session_state:
        st.session_state.blocks = None
    if "stats" not in st.session_state:
        st.session_state.stats = None
    if "pdf_bytes" not in st.session_state:
        st.session_state.pdf_bytes = None


def render_sidebar():
    """Render sidebar with settings."""
    st.sidebar.header("⚙️ Settings")

    st.sidebar.subheader("Page")

    page_format = st.sidebar.selectbox(
        "Format",
        ["a4", "letter", "legal", "a5", "a3"],
        index=0
    )

    orientation_display = st.sidebar.radio(
        "Orientation",
        ["Portrait", "Landscape"],
        horizontal=True
    )

    margin = st.sidebar.number_input(
        "Margin (pt)",
        min_value=0.0,
        max_value=200.0,
        value=28.0,
        step=2.0
    )

    st.sidebar.subheader("Rendering")

    raster_scale = st.sidebar.slider(
        "Raster scale",
        min_value=1.0,
        max_value=4.0,
        value=2.8,
        step=0.1,
        help="Higher = sharper text and larger files"
    )

    block_spacing = st.sidebar.slider(
        "Spacing between statements (px)",
        min_value=0,
        max_value=80,
        value=24,
        step=4
    )

    st.sidebar.subheader("Extraction")

    model = st.sidebar.text_input("Model", value="gpt-4o-mini")

    return {
        "page_format": page_format,
        "orientation": "l" if orientation_display == "Landscape" else "p",
        "margin": margin,
        "raster_scale": raster_scale,
        "block_spacing": block_spacing,
        "model": model,
    }


def build_config(settings: dict):
    """Pipeline configuration from the sidebar settings."""
    config = get_config()
    config.page.format = settings["page_format"]
    config.page.orientation = settings["orientation"]
    config.page.unit = "pt"
    config.page.margin = settings["margin"]
    config.render.raster_scale = settings["raster_scale"]
    config.render.block_spacing_px = settings["block_spacing"]
    config.extraction.model = settings["model"]
    return config


def extract_statements(uploaded_file, settings) -> Optional[dict]:
    """Extract statements from the uploaded PDF."""
    from utils.extraction import StatementExtractor
    from utils.errors import ExtractionError

    config = build_config(settings)

    try:
        with tempfile.TemporaryDirectory(prefix="mathnotes_") as temp_dir:
            input_path = Path(temp_dir) / uploaded_file.name
            with open(input_path, "wb") as f:
                f.write(uploaded_file.getbuffer())

            extractor = StatementExtractor(config.extraction)
            result = extractor.extract_pdf(input_path)

    except ExtractionError as e:
        st.error(f"Failed to process PDF: {e}")
        return None

    if not result.items:
        st.error(
            "No mathematical content was extracted. Make sure your PDF contains "
            "definitions, theorems, or lemmas."
        )
        return None

    return result.to_dict()


def render_statements(blocks: List[ContentBlock], kinds: Optional[List[str]] = None):
    """Render the extracted statements of the selected kinds as cards."""
    shown = numbered_blocks(blocks, kinds)
    st.markdown(f"**Found {len(blocks)} mathematical items** (showing {len(shown)})")

    for i, block in shown:
        with st.container(border=True):
            st.markdown(
                f'<span class="kind-badge">{block.kind}</span> '
                f'<strong>{block.display_title(i)}</strong>',
                unsafe_allow_html=True
            )
            st.markdown(block.body)
            if block.source_page is not None:
                st.caption(f"Source page: {block.source_page}")


def build_pdf(blocks: List[ContentBlock], settings: dict) -> Optional[bytes]:
    """Paginate the statements into a PDF."""
    from utils.assembler import generate_document
    from utils.errors import PaginationError

    try:
        return generate_document(blocks, build_config(settings))
    except PaginationError as e:
        st.error(f"PDF generation failed: {e}")
        return None


def render_downloads(blocks: List[ContentBlock], settings: dict):
    """Render download buttons."""
    from utils.export import MarkdownExporter

    st.subheader("📥 Downloads")

    cols = st.columns(3)

    with cols[0]:
        if st.button("📕 Build PDF", use_container_width=True, type="primary"):
            with st.spinner("Rendering and paginating..."):
                st.session_state.pdf_bytes = build_pdf(blocks, settings)

        if st.session_state.pdf_bytes:
            st.download_button(
                "⬇️ Download PDF",
                st.session_state.pdf_bytes,
                file_name=build_config(settings).export.filename,
                mime="application/pdf",
                use_container_width=True
            )

    with cols[1]:
        json_str = json.dumps([b.to_dict() for b in blocks], indent=2, ensure_ascii=False)
        st.download_button(
            "📄 JSON",
            json_str,
            file_name="extracted.json",
            mime="application/json",
            use_container_width=True
        )

    with cols[2]:
        st.download_button(
            "📝 Markdown",
            MarkdownExporter().to_markdown(blocks),
            file_name="extracted.md",
            mime="text/markdown",
            use_container_width=True
        )


def main():
    """Main application."""
    load_css()
    init_session_state()

    st.markdown('<h1 class="main-header">📐 Math Notes Extractor</h1>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Pull every definition, theorem and lemma out of your notes '
        'into a clean PDF</p>',
        unsafe_allow_html=True
    )

    settings = render_sidebar()

    st.markdown("---")

    uploaded_file = st.file_uploader(
        "Upload your notes",
        type=["pdf"],
        help="Only PDF files are allowed"
    )

    if uploaded_file:
        col1, col2 = st.columns([2, 1])

        with col1:
            st.info(f"📁 **{uploaded_file.name}** ({uploaded_file.size / 1024:.1f} KB)")

        with col2:
            process_btn = st.button(
                "🚀 Extract Statements",
                use_container_width=True,
                type="primary"
            )

        if process_btn:
            with st.spinner("Extracting statements..."):
                result = extract_statements(uploaded_file, settings)

            if result:
                st.session_state.blocks = [ContentBlock.from_dict(r) for r in result["content"]]
                st.session_state.stats = result["stats"]
                st.session_state.pdf_bytes = None
                st.success("✅ Statements extracted successfully!")

    if st.session_state.blocks:
        blocks = st.session_state.blocks
        stats = st.session_state.stats or {}

        st.markdown("---")

        cols = st.columns(2)
        cols[0].metric("Pages read", stats.get("totalPages", 0))
        cols[1].metric("Statements", stats.get("totalItems", len(blocks)))

        kinds = sorted({b.visual_kind for b in blocks}, key=KNOWN_KINDS.index)
        selected = st.multiselect("Show", kinds, default=kinds)

        render_statements(blocks, selected)

        st.markdown("---")

        render_downloads(blocks, settings)

    st.markdown("---")
    st.markdown(
        """
        <div style="text-align: center; color: #666; font-size: 0.8rem;">
            Math Notes Extractor v1.0 |
            Built with Streamlit, Pillow and fpdf2
        </div>
        """,
        unsafe_allow_html=True
    )


if __name__ == "__main__":
    main()
