from __future__ import annotations

from typing import Iterable, List

from boletim.core.averaging import simple_average, weighted_type_average
from boletim.core.models import Assessment, AssessmentType, EvaluationRule, Period, RecoveryStrategy, same_id
from boletim.core.recovery import apply_linked_recoveries, substitute_period_recovery
from boletim.core.results import CalculatedAssessment, CalculationLog, PeriodCalculationResult


def split_by_category(assessments: Iterable[Assessment]) -> tuple[List[Assessment], List[Assessment]]:
    regular: List[Assessment] = []
    recoveries: List[Assessment] = []
    for a in assessments:
        if a.is_recuperation:
            recoveries.append(a)
        else:
            regular.append(a)
    return regular, recoveries


def aggregate_period(
    period: Period,
    assessments: Iterable[Assessment],
    rule: EvaluationRule,
    assessment_types: List[AssessmentType],
    strategy: RecoveryStrategy = RecoveryStrategy.REPLACE_IF_HIGHER,
) -> PeriodCalculationResult:
    log = CalculationLog()
    in_period = [a for a in assessments if same_id(a.period_id, period.id)]
    regular, recoveries = split_by_category(in_period)

    effective = apply_linked_recoveries(regular, recoveries, strategy, log)

    if rule.has_type_weights:
        if not any(a.value is not None for a in effective):
            log.add("regular", "Nenhuma avaliação regular válida para cálculo.")
        regular_average = weighted_type_average(effective, rule, assessment_types, log)
    else:
        regular_average = simple_average(effective, rule, assessment_types, log)

    unlinked = [r for r in recoveries if not r.is_linked]
    outcome = substitute_period_recovery(regular_average, unlinked, strategy, log)

    breakdown = list(effective)
    breakdown.extend(CalculatedAssessment.from_assessment(r) for r in unlinked)

    return PeriodCalculationResult(
        period_id=period.id,
        period_name=period.name,
        regular_average=regular_average,
        recovery_grade=outcome.recovery_grade,
        final_period_grade=outcome.final_grade,
        is_recovery_used=outcome.is_recovery_used,
        log=list(log.entries),
        assessments=breakdown,
    )
