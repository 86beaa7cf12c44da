"""JSON export/import of a transcript and its analysis."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..analysis.normalizer import normalize_analysis, normalize_mapping
from ..errors import InvalidImportError
from ..models.analysis import AnalysisRecord
from ..models.history import HistoryEntry
from .history import HistoryStore

logger = logging.getLogger(__name__)

APP_NAME = "VetScribe"


class ExportDocument(BaseModel):
    """The persisted export format."""
    model_config = ConfigDict(populate_by_name=True)

    export_date: datetime = Field(alias="exportDate")
    app_name: str = Field(default=APP_NAME, alias="appName")
    transcript: str = ""
    analysis: Dict[str, List[str]]


class ImportDocument(BaseModel):
    """Lenient reading of an export; either part may be missing."""
    model_config = ConfigDict(extra="ignore")

    transcript: Optional[str] = None
    analysis: Optional[Union[Dict[str, Any], str]] = None


@dataclass
class ImportResult:
    transcript: Optional[str]
    analysis: Optional[AnalysisRecord]
    history_entry: Optional[HistoryEntry] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.transcript) and self.analysis is not None


def build_export(transcript: str, analysis: AnalysisRecord, now: Optional[datetime] = None) -> Dict[str, Any]:
    document = ExportDocument(
        export_date=now or datetime.now(timezone.utc),
        transcript=transcript,
        analysis=analysis.to_dict(),
    )
    return document.model_dump(by_alias=True, mode="json")


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{APP_NAME}_{now.strftime('%Y-%m-%d')}_{int(now.timestamp() * 1000)}.json"


def export_to_file(path: Union[str, Path], transcript: str, analysis: AnalysisRecord) -> str:
    """Write an export document; a directory path gets a generated file name."""
    path = Path(path)
    if path.is_dir():
        path = path / export_filename()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(build_export(transcript, analysis), f, ensure_ascii=False, indent=2)
    logger.info(f"Exported analysis to {path}")
    return str(path)


def parse_import(text: str) -> ImportResult:
    """Read an export document.

    Raises:
        InvalidImportError: Not JSON, or not an object of the expected shape
    """
    try:
        raw = json.loads(text)
        document = ImportDocument.model_validate(raw)
    except (ValueError, RecursionError, ValidationError) as e:
        raise InvalidImportError(f"Invalid import document: {e}") from e

    analysis = None
    if isinstance(document.analysis, dict):
        analysis = normalize_mapping(document.analysis)
    elif isinstance(document.analysis, str):
        analysis = normalize_analysis(document.analysis)

    return ImportResult(transcript=document.transcript or None, analysis=analysis)


def import_file(path: Union[str, Path], history: Optional[HistoryStore] = None) -> ImportResult:
    """Import a document; a complete transcript/analysis pair is added to history."""
    try:
        text = Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidImportError(f"Cannot read {path}: {e}") from e

    result = parse_import(text)
    if history is not None and result.is_complete:
        result.history_entry = history.append(result.transcript, result.analysis)
    logger.info(f"Imported {path} (complete={result.is_complete})")
    return result
