from __future__ import annotations

from typing import Optional

from boletim.config.settings import settings
from boletim.core.models import EvaluationRule, Status


def _threshold(value: Optional[float], default: float) -> float:
    # Rules saved without a threshold arrive as None or 0.
    return float(value) if value else default


def passing_grade(rule: EvaluationRule) -> float:
    return _threshold(rule.passing_grade, settings.passing_grade)


def min_dependency_grade(rule: EvaluationRule) -> float:
    return _threshold(rule.min_dependency_grade, settings.min_dependency_grade)


def classify(final_grade: float, rule: EvaluationRule) -> Status:
    """Both lower bounds are inclusive. Completeness of the periods is not checked."""
    if final_grade >= passing_grade(rule):
        return Status.APROVADO
    if final_grade >= min_dependency_grade(rule):
        return Status.DEPENDENCIA
    return Status.REPROVADO
