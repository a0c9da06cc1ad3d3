"""
I/O utilities for the math notes pipeline.

Handles:
- JSON serialization
- Loading and saving block records
- Input type detection
- Directory management
"""

import json
import logging
from pathlib import Path
from typing import List, Union, Any
from dataclasses import asdict

import numpy as np

from .blocks import ContentBlock, blocks_from_records

logger = logging.getLogger(__name__)


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy scalars, blocks and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, ContentBlock):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Block Records
# ============================================================================

def load_blocks(json_path: Union[str, Path]) -> List[ContentBlock]:
    """
    Load blocks from a JSON file.

    Accepts a bare list of records, ``{"items": [...]}`` or the extraction
    response shape ``{"content": [...]}``.

    Raises:
        ValueError: If the file holds no list of records
    """
    data = load_json(json_path)
    if isinstance(data, dict):
        data = data.get("content", data.get("items"))
    if not isinstance(data, list):
        raise ValueError(f"No block records found in {json_path}")

    blocks = blocks_from_records(data)
    logger.info(f"Loaded {len(blocks)} block(s) from {json_path}")
    return blocks


def save_blocks(blocks: List[ContentBlock], output_path: Union[str, Path]) -> Path:
    """Save blocks as a list of upstream records."""
    return save_json([b.to_dict() for b in blocks], output_path)


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# File Type Detection
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of an input file.

    Returns:
        One of: 'pdf', 'json', 'unknown'
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    elif suffix == '.json':
        return 'json'

    return 'unknown'
