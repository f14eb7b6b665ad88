from __future__ import annotations

from dataclasses import dataclass, field
import datetime
import math
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

Identifier = Union[int, str]


class Category(str, Enum):
    REGULAR = "regular"
    RECUPERATION = "recuperation"


class RecoveryStrategy(str, Enum):
    REPLACE_IF_HIGHER = "replace_if_higher"


class Status(str, Enum):
    """Mirrors the host application's status set; the engine never produces CURSANDO."""

    APROVADO = "Aprovado"
    REPROVADO = "Reprovado"
    DEPENDENCIA = "Dependência"
    CURSANDO = "Cursando"


def same_id(left: Optional[Identifier], right: Optional[Identifier]) -> bool:
    """Ids come from different stores as ints or strings; compare them as text."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


def numeric_value(value: Union[float, int, str, None]) -> Optional[float]:
    """Return the score as a float, or None for descriptive (non-numeric) values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    # "inf" and "nan" parse as floats but are not scores.
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class Assessment:
    id: Identifier
    subject_id: Identifier
    period_id: Identifier
    value: Union[float, int, str, None]
    category: Optional[Category] = Category.REGULAR
    assessment_type_id: Optional[Identifier] = None
    date: Optional[datetime.date] = None
    related_assessment_id: Optional[Identifier] = None

    @property
    def is_recuperation(self) -> bool:
        return self.category == Category.RECUPERATION

    @property
    def is_linked(self) -> bool:
        """Empty links from storage (None, "") mean a period-wide recovery."""
        return bool(self.related_assessment_id)

    @property
    def score(self) -> Optional[float]:
        return numeric_value(self.value)


@dataclass(frozen=True)
class AssessmentType:
    id: Identifier
    name: str
    exclude_from_average: bool = False
    is_recovery: bool = False


@dataclass(frozen=True)
class Period:
    id: Identifier
    name: str
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None


@dataclass(frozen=True)
class EvaluationRule:
    name: str = ""
    passing_grade: Optional[float] = None
    min_dependency_grade: Optional[float] = None
    min_attendance: Optional[float] = None
    type_weights: Mapping[str, float] = field(default_factory=dict)
    allowed_exclusions: bool = False
    formula: Optional[str] = None
    period_count: Optional[int] = None
    recovery_strategy: Optional[str] = RecoveryStrategy.REPLACE_IF_HIGHER.value

    def __post_init__(self) -> None:
        # Read-only copy so the engine can never write through to the caller's dict.
        weights = {str(type_id): float(weight) for type_id, weight in (self.type_weights or {}).items()}
        object.__setattr__(self, "type_weights", MappingProxyType(weights))

    @property
    def has_type_weights(self) -> bool:
        return len(self.type_weights) > 0

    @property
    def has_formula(self) -> bool:
        return bool(self.formula and self.formula.strip())
