"""
Math Notes Pipeline
===================

Extracts mathematical statements (definitions, theorems, lemmas, ...) from
PDF lecture notes and re-paginates them into a downloadable PDF without
splitting any statement across a page boundary.

Main components:
- Statement extraction (PDF text + language model, de-duplication)
- Card layout and rasterization
- Page slicing that only breaks between cards
- PDF assembly
- Multi-format export
"""

__version__ = "1.0.0"
__author__ = "Math Notes Team"
