"""History persistence and export/import."""

from .history import HistoryStore
from .exchange import ExportDocument, ImportResult, build_export, export_to_file, import_file, parse_import

__all__ = [
    "HistoryStore",
    "ExportDocument",
    "ImportResult",
    "build_export",
    "export_to_file",
    "import_file",
    "parse_import",
]
