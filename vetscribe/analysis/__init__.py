"""Analysis output normalization and rendering."""

from .formatting import format_analysis_text
from .normalizer import normalize_analysis, normalize_mapping, strip_fence

__all__ = [
    "format_analysis_text",
    "normalize_analysis",
    "normalize_mapping",
    "strip_fence",
]
