from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from boletim.core.models import Assessment, RecoveryStrategy, same_id
from boletim.core.results import CalculatedAssessment, CalculationLog, fmt


@dataclass(frozen=True)
class RecoveryOutcome:
    final_grade: float
    recovery_grade: Optional[float]
    is_recovery_used: bool


def resolve_strategy(name: Optional[str]) -> Tuple[RecoveryStrategy, bool]:
    """Map the rule's strategy name to a known strategy; the flag is False when it was defaulted."""
    if not name:
        return RecoveryStrategy.REPLACE_IF_HIGHER, True
    if isinstance(name, RecoveryStrategy):
        return name, True
    try:
        return RecoveryStrategy(str(name).strip().lower()), True
    except ValueError:
        return RecoveryStrategy.REPLACE_IF_HIGHER, False


def _replace_if_higher(original: float, recovery: float) -> Tuple[float, bool]:
    if recovery > original:
        return recovery, True
    return original, False


_STRATEGIES: Dict[RecoveryStrategy, Callable[[float, float], Tuple[float, bool]]] = {
    RecoveryStrategy.REPLACE_IF_HIGHER: _replace_if_higher,
}


def apply_linked_recoveries(
    regular: Iterable[Assessment],
    recoveries: Iterable[Assessment],
    strategy: RecoveryStrategy,
    log: CalculationLog,
) -> List[CalculatedAssessment]:
    """Apply recovery exams that target one specific regular assessment."""
    linked = [r for r in recoveries if r.is_linked]
    substitute = _STRATEGIES[strategy]

    effective: List[CalculatedAssessment] = []
    for assessment in regular:
        calculated = CalculatedAssessment.from_assessment(assessment)
        match = next((r for r in linked if same_id(r.related_assessment_id, assessment.id)), None)
        if match is None or match.score is None:
            effective.append(calculated)
            continue

        original = calculated.original_value
        if original is None:
            value, used = match.score, True
        else:
            value, used = substitute(original, match.score)

        shown = fmt(original) if original is not None else "-"
        if used:
            log.add(
                "linked_recovery",
                f"Recuperação Individual: Avaliação ({shown}) substituída por ({fmt(match.score)}) [Maior Nota].",
            )
        else:
            log.add(
                "linked_recovery",
                f"Recuperação Individual: Recuperação ({fmt(match.score)}) não superou original ({shown}). "
                "Mantida original.",
            )
        effective.append(
            replace(
                calculated,
                value=value,
                is_recovered=True,
                recovery_value=match.score,
                recovery_date=match.date,
            )
        )
    return effective


def substitute_period_recovery(
    regular_average: float,
    recoveries: Iterable[Assessment],
    strategy: RecoveryStrategy,
    log: CalculationLog,
) -> RecoveryOutcome:
    scores = [r.score for r in recoveries if r.score is not None]
    if not scores:
        return RecoveryOutcome(regular_average, None, False)

    best = max(scores)
    final_grade, used = _STRATEGIES[strategy](regular_average, best)
    if used:
        log.add(
            "period_recovery",
            f"Recuperação Periódica (Maior Nota): Recuperação ({fmt(best)}) é maior que a média regular "
            f"({regular_average:.2f}). Nota substituída.",
        )
    else:
        log.add(
            "period_recovery",
            f"Recuperação Periódica (Maior Nota): Recuperação ({fmt(best)}) não superou a média regular "
            f"({regular_average:.2f}). Mantida a nota original.",
        )
    return RecoveryOutcome(final_grade, best, used)
