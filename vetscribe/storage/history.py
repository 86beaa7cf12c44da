"""Append-only, newest-first history of completed analyses, kept in a JSON file."""

import os
import json
import time
import logging
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..analysis.normalizer import normalize_mapping
from ..errors import HistoryWriteError
from ..models.analysis import AnalysisRecord
from ..models.history import HistoryEntry
from ..notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50


class HistoryStore:
    """Manages the history file."""

    def __init__(self,
                 path: Union[str, Path],
                 max_entries: int = DEFAULT_MAX_ENTRIES,
                 notifier: Optional[Notifier] = None):
        """Initialize history store.

        Args:
            path: JSON file holding the history
            max_entries: Oldest entries beyond this are evicted on append
            notifier: Receives a warning when entries are evicted
        """
        self.path = Path(path)
        self.max_entries = max_entries
        self.notifier = notifier

        logger.info(f"HistoryStore initialized with file: {self.path}")

    def list(self) -> List[HistoryEntry]:
        """All entries, newest first. An unreadable file counts as empty."""
        if not self.path.exists():
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable history file {self.path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning(f"Ignoring history file with unexpected shape: {self.path}")
            return []

        entries = []
        for item in raw:
            entry = self._entry_from_dict(item)
            if entry is not None:
                entries.append(entry)
        return entries

    def get(self, entry_id: int) -> Optional[HistoryEntry]:
        for entry in self.list():
            if entry.id == entry_id:
                return entry
        return None

    def append(self, transcript: str, analysis: AnalysisRecord) -> HistoryEntry:
        """Add an entry at the front, evicting the oldest beyond max_entries.

        Raises:
            HistoryWriteError: If the file cannot be written
        """
        entries = self.list()
        entry = HistoryEntry(
            id=self._next_id(entries),
            timestamp=datetime.now(),
            transcript=transcript,
            analysis=analysis,
        )
        entries.insert(0, entry)

        if len(entries) > self.max_entries:
            evicted = len(entries) - self.max_entries
            entries = entries[:self.max_entries]
            message = f"History is full; removed {evicted} oldest entr{'y' if evicted == 1 else 'ies'}"
            logger.warning(message)
            if self.notifier is not None:
                self.notifier.warning(message)

        self._write(entries)
        logger.info(f"History entry saved: {entry.id}")
        return entry

    def delete(self, entry_id: int) -> bool:
        entries = self.list()
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._write(remaining)
        logger.info(f"History entry deleted: {entry_id}")
        return True

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise HistoryWriteError(f"Cannot clear history file {self.path}: {e}") from e
        logger.info("History cleared")

    def _next_id(self, entries: List[HistoryEntry]) -> int:
        entry_id = int(time.time() * 1000)
        if entries and entries[0].id >= entry_id:
            entry_id = entries[0].id + 1
        return entry_id

    def _write(self, entries: List[HistoryEntry]) -> None:
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump([e.to_dict() for e in entries], f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise HistoryWriteError(f"Cannot write history file {self.path}: {e}") from e

    @staticmethod
    def _entry_from_dict(item: Any) -> Optional[HistoryEntry]:
        if not isinstance(item, dict):
            return None
        try:
            return HistoryEntry(
                id=int(item['id']),
                timestamp=datetime.fromisoformat(item['timestamp']),
                transcript=str(item.get('transcript', '')),
                analysis=normalize_mapping(item['analysis'] if isinstance(item.get('analysis'), dict) else {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed history entry: {e}")
            return None
