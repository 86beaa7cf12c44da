"""Clinical categories and the structured analysis record."""

from dataclasses import dataclass, field, fields
from typing import Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class Category:
    """One of the fixed clinical-note sections."""
    key: str
    name: str
    name_en: str
    icon: str


CATEGORIES: Tuple[Category, ...] = (
    Category("chief_complaint", "主訴", "Chief Complaint", "🐾"),
    Category("symptoms", "症狀", "Symptoms", "🔍"),
    Category("physical_exam", "理學檢查結果", "Physical Examination", "🩺"),
    Category("blood_test", "血檢結果", "Blood Test Results", "🩸"),
    Category("imaging", "影像檢查結果", "Imaging Results", "📷"),
    Category("treatment", "後續治療選項", "Treatment Options", "💊"),
    Category("other", "其他備註", "Other Notes", "📝"),
)

CATEGORY_KEYS: Tuple[str, ...] = tuple(c.key for c in CATEGORIES)

CATCH_ALL_KEY = "other"


@dataclass
class AnalysisRecord:
    """Structured analysis: every category key is always present as a list."""
    chief_complaint: List[str] = field(default_factory=list)
    symptoms: List[str] = field(default_factory=list)
    physical_exam: List[str] = field(default_factory=list)
    blood_test: List[str] = field(default_factory=list)
    imaging: List[str] = field(default_factory=list)
    treatment: List[str] = field(default_factory=list)
    other: List[str] = field(default_factory=list)

    def __getitem__(self, key: str) -> List[str]:
        if key not in CATEGORY_KEYS:
            raise KeyError(key)
        return getattr(self, key)

    def keys(self) -> Tuple[str, ...]:
        return CATEGORY_KEYS

    def items(self) -> List[Tuple[str, List[str]]]:
        return [(f.name, list(getattr(self, f.name))) for f in fields(self)]

    def is_empty(self) -> bool:
        return not any(getattr(self, key) for key in CATEGORY_KEYS)

    def to_dict(self) -> Dict[str, List[str]]:
        return {key: list(values) for key, values in self.items()}

    @classmethod
    def from_lists(cls, data: Mapping[str, List[str]]) -> "AnalysisRecord":
        """Build a record from already-clean lists; unknown keys are dropped."""
        return cls(**{key: list(data.get(key, [])) for key in CATEGORY_KEYS})
