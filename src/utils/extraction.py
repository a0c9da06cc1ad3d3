"""
Statement extraction from uploaded lecture notes.

Handles:
- PDF text extraction (PyMuPDF)
- Chunking for the language model
- LLM extraction of definitions, theorems, lemmas, ...
- De-duplication by normalized numbered title
"""

import re
import json
import time
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple, Union

from config import ExtractionConfig
from .blocks import ContentBlock
from .errors import ExtractionError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = "Extract unique math statements and preserve LaTeX exactly."

USER_PROMPT = """You are an expert at extracting mathematical content from academic notes.

Extract ALL unique Definitions, Theorems, Lemmas, Propositions, Corollaries, and Axioms.

RULES:
- Preserve LaTeX EXACTLY (backslashes, $, $$, \\begin{{env}} ... \\end{{env}}, etc.).
- Keep the author's numbering and titles exactly.
- Do NOT add, remove, or rewrite any math.
- No proofs/examples, only the statements.
- Return JSON with an "items" array of objects: {{type,title,content,page}}.

Text (chunk {index}/{total}):
\"\"\"{text}\"\"\""""


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ExtractionResult:
    """Blocks extracted from one document."""
    items: List[ContentBlock] = field(default_factory=list)
    total_pages: int = 0
    source_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "content": [item.to_dict() for item in self.items],
            "stats": {
                "totalPages": self.total_pages,
                "totalItems": len(self.items),
            },
        }


# ============================================================================
# PDF Text
# ============================================================================

def extract_pdf_text(pdf_path: Union[str, Path]) -> Tuple[str, int]:
    """
    Read the text layer of a PDF.

    Args:
        pdf_path: Path to the PDF file

    Returns:
        (text, page_count)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ExtractionError: If the file is not a readable PDF
    """
    import fitz  # PyMuPDF

    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        doc = fitz.open(str(pdf_path))
    except Exception as e:
        raise ExtractionError(f"Failed to open PDF {pdf_path.name}: {e}") from e

    try:
        if not doc.is_pdf:
            raise ExtractionError(f"Only PDF files are allowed: {pdf_path.name}")
        pages = [page.get_text("text") for page in doc]
        page_count = doc.page_count
    finally:
        doc.close()

    logger.info(f"Read {page_count} page(s) of text from {pdf_path.name}")
    return "\n".join(pages), page_count


def chunk_text(text: str, chunk_size: int = 15000) -> List[str]:
    """Split text into consecutive chunks of at most ``chunk_size`` characters."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


# ============================================================================
# Title Normalization and De-duplication
# ============================================================================

_KEYWORD_RE = re.compile(
    r"^(definition|theorem|lemma|proposition|corollary|axiom|prop\.?|cor\.?)\s+(\d+(?:\.\d+)*)",
    re.IGNORECASE
)
_NUMBER_RE = re.compile(r"\b(\d+(?:\.\d+)*)\b")


def normalize_numbered_title(title: Optional[str] = "", fallback_type: Optional[str] = "") -> str:
    """
    Canonical key for a numbered title.

    "Proposition 1.2.3 (Archimedean Property)", "prop. 1.2.3" and
    "PROPOSITION 1.2.3." all map to "proposition 1.2.3".
    """
    raw = str(title or "").lower().strip()
    raw = re.sub(r"\s+", " ", raw)
    raw = re.sub(r"[·–—-]", "-", raw)
    raw = re.sub(r"\s*[.:;,-]+\s*$", "", raw)

    norm = re.sub(r"^prop\.\s+", "proposition ", raw)
    norm = re.sub(r"^cor\.\s+", "corollary ", norm)

    fallback = str(fallback_type or "").lower().strip()

    match = _KEYWORD_RE.match(norm)
    if match:
        head = match.group(1).lower().rstrip(".")
        head = {"prop": "proposition", "cor": "corollary"}.get(head, head)
        return f"{head} {match.group(2)}"

    match = _NUMBER_RE.search(norm)
    if match and fallback:
        return f"{fallback} {match.group(1)}"

    return norm or fallback


def dedupe_by_numbered_title(items: List[ContentBlock]) -> List[ContentBlock]:
    """
    Keep one block per normalized title.

    The block with the longest body wins; on a tie the first one seen is
    kept. Output follows the order in which keys were first seen.
    """
    best: Dict[str, ContentBlock] = {}
    for item in items:
        key = normalize_numbered_title(item.title, item.kind)
        existing = best.get(key)
        if existing is None or len(item.body or "") > len(existing.body or ""):
            best[key] = item
    return list(best.values())


# ============================================================================
# LLM Extraction
# ============================================================================

def parse_items(reply: str) -> List[ContentBlock]:
    """
    Parse a model reply into blocks.

    Accepts ``{"items": [...]}`` or a bare list. Records missing ``type``
    or ``content`` are dropped.

    Raises:
        ValueError: If the reply is not JSON
    """
    parsed = json.loads(reply or "{}")
    if isinstance(parsed, dict):
        records = parsed.get("items")
    else:
        records = parsed
    if not isinstance(records, list):
        return []

    items = []
    for record in records:
        try:
            items.append(ContentBlock.from_dict(record))
        except ValueError as e:
            logger.debug(f"Dropping malformed item: {e}")
    return items


class StatementExtractor:
    """
    Extracts statements from note text with an OpenAI-compatible chat API.

    Usage:
        extractor = StatementExtractor(config.extraction)
        result = extractor.extract_pdf("notes.pdf")
    """

    def __init__(self, config: Optional[ExtractionConfig] = None, client: Any = None):
        self.config = config or ExtractionConfig()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.config.api_key:
                raise ExtractionError("OpenAI API key not set (OPENAI_API_KEY).")
            from openai import OpenAI
            self._client = OpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
        return self._client

    def _complete(self, prompt: str) -> str:
        """One chat completion with retries."""
        last_err: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                resp = self.client.chat.completions.create(
                    model=self.config.model,
                    temperature=self.config.temperature,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    timeout=self.config.timeout_s,
                )
                return resp.choices[0].message.content or ""
            except ExtractionError:
                raise
            except Exception as e:
                last_err = e
                logger.warning(f"Chat request failed (attempt {attempt + 1}): {e}")
                if attempt < self.config.max_retries:
                    time.sleep(0.6 * (attempt + 1))
        raise ExtractionError(f"Extraction request failed: {last_err}") from last_err

    def extract_text(self, text: str) -> List[ContentBlock]:
        """
        Extract and de-duplicate statements from plain text.

        Args:
            text: Full note text

        Returns:
            Blocks in first-seen order
        """
        chunks = chunk_text(text, self.config.chunk_size)
        all_items: List[ContentBlock] = []

        for i, chunk in enumerate(chunks):
            prompt = USER_PROMPT.format(index=i + 1, total=len(chunks), text=chunk)
            reply = self._complete(prompt)
            try:
                chunk_items = parse_items(reply)
            except ValueError as e:
                logger.warning(f"Skipping chunk {i + 1}/{len(chunks)}: reply is not JSON ({e})")
                chunk_items = []

            logger.info(f"Chunk {i + 1}/{len(chunks)}: {len(chunk_items)} item(s)")
            all_items.extend(chunk_items)

            if i < len(chunks) - 1 and self.config.chunk_delay_s > 0:
                time.sleep(self.config.chunk_delay_s)

        deduped = dedupe_by_numbered_title(all_items)
        logger.info(f"Extracted {len(deduped)} unique item(s) ({len(all_items)} before de-duplication)")
        return deduped

    def extract_pdf(self, pdf_path: Union[str, Path]) -> ExtractionResult:
        """Extract statements from a PDF file."""
        text, page_count = extract_pdf_text(pdf_path)
        items = self.extract_text(text)
        return ExtractionResult(
            items=items,
            total_pages=page_count,
            source_file=str(pdf_path)
        )
