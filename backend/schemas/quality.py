# schemas/quality.py
from __future__ import annotations
from typing import List, Optional
from enum import Enum

from schemas.process_data import CamelModel


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class QualityCheckItem(CamelModel):
    id: str
    category: str
    rule: str
    passed: bool
    details: str
    severity: Severity

    # Optional drill-down for the report
    location: Optional[str] = None
    block_ids: Optional[List[str]] = None
    consequence: Optional[str] = None
    recommendation: Optional[str] = None


class QualityCheckResult(CamelModel):
    score: int
    items: List[QualityCheckItem]
    summary: str

    @property
    def failed_errors(self) -> List[QualityCheckItem]:
        return [i for i in self.items if not i.passed and i.severity == Severity.ERROR]

    @property
    def failed_warnings(self) -> List[QualityCheckItem]:
        return [i for i in self.items if not i.passed and i.severity == Severity.WARNING]
