from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from boletim.core.models import Assessment, Category, Identifier, Status


@dataclass(frozen=True)
class LogEntry:
    """One step of the audit trail rendered into transcripts and class records."""

    step: str
    message: str


@dataclass
class CalculationLog:
    entries: List[LogEntry] = field(default_factory=list)

    def add(self, step: str, message: str) -> None:
        self.entries.append(LogEntry(step, message))

    def extend(self, other: "CalculationLog") -> None:
        self.entries.extend(other.entries)


@dataclass(frozen=True)
class CalculatedAssessment:
    id: Identifier
    category: Category
    assessment_type_id: Optional[Identifier]
    value: Optional[float]
    original_value: Optional[float]
    is_recovered: bool = False
    recovery_value: Optional[float] = None
    recovery_date: Optional[date] = None

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> "CalculatedAssessment":
        return cls(
            id=assessment.id,
            category=assessment.category or Category.REGULAR,
            assessment_type_id=assessment.assessment_type_id,
            value=assessment.score,
            original_value=assessment.score,
        )


@dataclass(frozen=True)
class PeriodCalculationResult:
    period_id: Identifier
    period_name: str
    regular_average: float
    recovery_grade: Optional[float]
    final_period_grade: float
    is_recovery_used: bool
    log: List[LogEntry] = field(default_factory=list)
    assessments: List[CalculatedAssessment] = field(default_factory=list)

    @property
    def logs(self) -> List[str]:
        return [entry.message for entry in self.log]


@dataclass(frozen=True)
class SubjectCalculationResult:
    final_grade: float
    raw_final_grade: float
    is_passing: bool
    status: Status
    period_results: List[PeriodCalculationResult]
    rule_name: str
    formula_used: str
    recovery_strategy_applied: str
    formula_error: Optional[str] = None
    log: List[LogEntry] = field(default_factory=list)

    @property
    def logs(self) -> List[str]:
        return [entry.message for entry in self.log]


def fmt(value: float) -> str:
    """Render a score the way the class records print it: no trailing zeros."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text
