"""Plain-text rendering of an analysis record."""

from ..models.analysis import AnalysisRecord, CATEGORIES
from .normalizer import NOT_MENTIONED


def format_analysis_text(record: AnalysisRecord) -> str:
    lines = []
    for category in CATEGORIES:
        items = record[category.key]
        lines.append(f"【{category.icon} {category.name}】")
        if not items:
            lines.append(f"  {NOT_MENTIONED}")
        else:
            lines.extend(f"  • {item}" for item in items)
        lines.append("")
    return "\n".join(lines) + "\n"
