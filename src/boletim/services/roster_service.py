from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from boletim.config.settings import settings
from boletim.core.engine import compute_subject_grade
from boletim.core.models import Assessment, AssessmentType, EvaluationRule, Identifier, Period, Status
from boletim.core.results import SubjectCalculationResult

logger = logging.getLogger(__name__)


class RosterServiceError(Exception):
    pass


class FinalSituation(str, Enum):
    APROVADO = "Aprovado"
    DEPENDENCIA = "Dependência"
    REPROVADO = "Reprovado"
    REPROVADO_POR_FREQUENCIA = "Reprovado por Frequência"


class PromotionDecision(str, Enum):
    PROMOTED = "promoted"
    PROMOTED_WITH_DEPENDENCY = "promoted_with_dependency"
    RETAINED = "retained"


@dataclass(frozen=True)
class RosterEntry:
    student_id: Identifier
    subject_id: Identifier
    assessments: Sequence[Assessment] = ()
    attendance: Sequence[bool] = ()


@dataclass(frozen=True)
class StudentPromotion:
    student_id: Identifier
    decision: PromotionDecision
    situations: Dict[Identifier, FinalSituation] = field(default_factory=dict)
    dependencies: List[Identifier] = field(default_factory=list)


def attendance_rate(records: Iterable[bool]) -> float:
    """Percentage of classes attended; a student with no records is not penalised."""
    records = list(records)
    if not records:
        return 100.0
    present = sum(1 for r in records if r)
    return present / len(records) * 100


def final_situation(
    result: SubjectCalculationResult,
    attendance: float,
    rule: EvaluationRule,
) -> FinalSituation:
    """Grade failure takes precedence; otherwise low attendance fails the student."""
    if result.status == Status.REPROVADO:
        return FinalSituation.REPROVADO
    min_attendance = rule.min_attendance or settings.min_attendance
    if attendance < min_attendance:
        return FinalSituation.REPROVADO_POR_FREQUENCIA
    if result.status == Status.DEPENDENCIA:
        return FinalSituation.DEPENDENCIA
    return FinalSituation.APROVADO


class RosterService:
    def __init__(
        self,
        rule: EvaluationRule,
        periods: Sequence[Period],
        assessment_types: Sequence[AssessmentType] = (),
        max_workers: Optional[int] = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise RosterServiceError("max_workers must be at least 1")
        self.rule = rule
        self.periods = list(periods)
        self.assessment_types = list(assessment_types)
        self.max_workers = max_workers or settings.roster_workers

    def _compute_one(self, entry: RosterEntry) -> SubjectCalculationResult:
        try:
            return compute_subject_grade(entry.assessments, self.rule, self.periods, self.assessment_types)
        except Exception as exc:
            raise RosterServiceError(
                f"Failed to compute grade for student {entry.student_id}, subject {entry.subject_id}: {exc}"
            ) from exc

    def compute(self, entries: Iterable[RosterEntry]) -> Dict[Tuple[Identifier, Identifier], SubjectCalculationResult]:
        entries = list(entries)
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = list(pool.map(self._compute_one, entries))
        logger.debug("Computed %d roster entries for rule %r", len(entries), self.rule.name)
        return {(e.student_id, e.subject_id): r for e, r in zip(entries, results)}

    def promotion_preview(self, entries: Iterable[RosterEntry]) -> Dict[Identifier, StudentPromotion]:
        entries = list(entries)
        results = self.compute(entries)

        situations: Dict[Identifier, Dict[Identifier, FinalSituation]] = {}
        for entry in entries:
            result = results[(entry.student_id, entry.subject_id)]
            situation = final_situation(result, attendance_rate(entry.attendance), self.rule)
            situations.setdefault(entry.student_id, {})[entry.subject_id] = situation

        preview: Dict[Identifier, StudentPromotion] = {}
        for student_id, by_subject in situations.items():
            dependencies = [s for s, sit in by_subject.items() if sit == FinalSituation.DEPENDENCIA]
            failed = any(
                sit in (FinalSituation.REPROVADO, FinalSituation.REPROVADO_POR_FREQUENCIA)
                for sit in by_subject.values()
            )
            if failed:
                decision = PromotionDecision.RETAINED
            elif dependencies:
                decision = PromotionDecision.PROMOTED_WITH_DEPENDENCY
            else:
                decision = PromotionDecision.PROMOTED
            preview[student_id] = StudentPromotion(student_id, decision, by_subject, dependencies)
        return preview
