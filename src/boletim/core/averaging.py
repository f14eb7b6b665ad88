from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from boletim.core.models import AssessmentType, EvaluationRule, same_id
from boletim.core.results import CalculatedAssessment, CalculationLog, fmt

UNKNOWN_TYPE_NAME = "Desconhecido"


def _type_lookup(assessment_types: Iterable[AssessmentType]) -> Dict[str, AssessmentType]:
    return {str(t.id): t for t in assessment_types}


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def weighted_type_average(
    assessments: Iterable[CalculatedAssessment],
    rule: EvaluationRule,
    assessment_types: Iterable[AssessmentType],
    log: CalculationLog,
) -> float:
    """
    Σ(mean of each configured type * weight / 100).
    Weights are absolute contributions on the 0-10 scale and are not renormalised,
    so a rule whose weights do not add up to 100 can land outside [0, 10].
    """
    regular = list(assessments)
    types = _type_lookup(assessment_types)
    log.add("weighted", "Cálculo: Média Ponderada por Tipo de Avaliação.")

    weighted_sum = 0.0
    for type_id, weight in rule.type_weights.items():
        type_name = types[type_id].name if type_id in types else UNKNOWN_TYPE_NAME
        values = [
            a.value for a in regular if a.value is not None and same_id(a.assessment_type_id, type_id)
        ]
        if not values:
            log.add("weighted", f"• {type_name}: Nenhuma nota lançada (Peso {fmt(weight)}%)")
            continue

        avg = _mean(values)
        contribution = avg * (weight / 100)
        weighted_sum += contribution
        log.add(
            "weighted",
            f"• {type_name}: Média {avg:.2f} (Peso {fmt(weight)}%) -> Contribuição: {contribution:.2f}",
        )

    return weighted_sum


def drop_lowest(values: List[float]) -> Optional[float]:
    """Remove the first occurrence of the minimum in place and return it."""
    if len(values) <= 1:
        return None
    lowest = min(values)
    values.remove(lowest)
    return lowest


def simple_average(
    assessments: Iterable[CalculatedAssessment],
    rule: EvaluationRule,
    assessment_types: Iterable[AssessmentType],
    log: CalculationLog,
) -> float:
    types = _type_lookup(assessment_types)

    values: List[float] = []
    for a in assessments:
        a_type = types.get(str(a.assessment_type_id)) if a.assessment_type_id is not None else None
        if a_type is not None and a_type.exclude_from_average:
            shown = fmt(a.value) if a.value is not None else "-"
            log.add("simple", f"Nota {shown} ignorada (Tipo: {a_type.name} não contabiliza na média)")
            continue
        if a.value is None:
            log.add("simple", f"Avaliação {a.id} sem nota numérica (descritiva) não contabiliza na média.")
            continue
        values.append(a.value)

    if not values:
        log.add("simple", "Nenhuma avaliação regular válida para cálculo.")
        return 0.0

    if rule.allowed_exclusions:
        lowest = drop_lowest(values)
        if lowest is not None:
            log.add("exclusion", f"Regra de Exclusão Ativa: Removendo a menor nota ({fmt(lowest)}) do cálculo.")

    total = sum(values)
    average = total / len(values)
    log.add("simple", f"Média Aritmética: Soma ({fmt(total)}) / Qtd ({len(values)}) = {average:.2f}")
    return average
