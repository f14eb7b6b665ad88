from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from boletim.config.settings import settings
from boletim.core.formula import FormulaError, evaluate_formula, round_grade
from boletim.core.models import Assessment, AssessmentType, EvaluationRule, Period
from boletim.core.periods import aggregate_period
from boletim.core.recovery import resolve_strategy
from boletim.core.results import CalculationLog, PeriodCalculationResult, SubjectCalculationResult
from boletim.core.status import classify, passing_grade

logger = logging.getLogger(__name__)

DEFAULT_FORMULA_LABEL = "Média Aritmética dos Períodos"


def period_divisor(rule: EvaluationRule) -> int:
    if rule.period_count and rule.period_count > 0:
        return int(rule.period_count)
    return settings.period_count


def _formula_grade(
    rule: EvaluationRule,
    period_results: Sequence[PeriodCalculationResult],
    log: CalculationLog,
) -> Tuple[float, Optional[str]]:
    grades = [p.final_period_grade for p in period_results]
    try:
        evaluation = evaluate_formula(rule.formula or "", grades)
    except FormulaError as exc:
        logger.warning("Formula %r for rule %r rejected: %s", rule.formula, rule.name, exc)
        log.add("formula", f"Erro na fórmula ({exc}). Nota final considerada 0.")
        return 0.0, str(exc)

    for name in evaluation.unresolved:
        log.add("formula", f"{name} sem nota lançada: considerado 0.")
    log.add("formula", f"Fórmula {evaluation.expression} = {evaluation.value:.2f}")
    return evaluation.value, None


def compute_subject_grade(
    assessments: Iterable[Assessment],
    rule: EvaluationRule,
    periods: Iterable[Period],
    assessment_types: Iterable[AssessmentType] = (),
) -> SubjectCalculationResult:
    """
    Final grade and status of one student in one subject.

    Pure function of its arguments: nothing is read from or written to storage, and
    formula problems are reported on the result instead of raised.
    """
    assessments = list(assessments)
    assessment_types = list(assessment_types)
    log = CalculationLog()

    strategy, known = resolve_strategy(rule.recovery_strategy)
    if not known:
        logger.info("Unknown recovery strategy %r on rule %r, using %s", rule.recovery_strategy, rule.name, strategy.value)
        log.add(
            "recovery",
            f"Estratégia de recuperação '{rule.recovery_strategy}' desconhecida. Aplicada '{strategy.value}'.",
        )

    period_results: List[PeriodCalculationResult] = [
        aggregate_period(period, assessments, rule, assessment_types, strategy) for period in periods
    ]

    formula_error: Optional[str] = None
    if rule.has_formula:
        formula_used = rule.formula or ""
        raw_final_grade, formula_error = _formula_grade(rule, period_results, log)
    elif period_results:
        total = sum(p.final_period_grade for p in period_results)
        divisor = period_divisor(rule)
        # Periods not yet graded still count in the divisor.
        raw_final_grade = total / divisor
        formula_used = f"Soma das notas ({total:.1f}) / Total de períodos ({divisor})"
    else:
        raw_final_grade = 0.0
        formula_used = DEFAULT_FORMULA_LABEL

    if not math.isfinite(raw_final_grade):
        logger.warning("Non-finite final grade for rule %r, using 0", rule.name)
        log.add("final", "Nota final não numérica. Nota final considerada 0.")
        raw_final_grade = 0.0

    final_grade = round_grade(raw_final_grade)
    status = classify(final_grade, rule)

    return SubjectCalculationResult(
        final_grade=final_grade,
        raw_final_grade=raw_final_grade,
        is_passing=final_grade >= passing_grade(rule),
        status=status,
        period_results=period_results,
        rule_name=rule.name,
        formula_used=formula_used,
        recovery_strategy_applied=strategy.value,
        formula_error=formula_error,
        log=list(log.entries),
    )
