import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from boletim.core.models import Assessment, AssessmentType, Category, EvaluationRule, Period

Id = Union[int, str]


class PayloadError(Exception):
    pass


class _Payload(BaseModel):
    # Storage rows carry bookkeeping columns (created_at, school_id, ...) we do not need.
    model_config = ConfigDict(extra="ignore")


class AssessmentPayload(_Payload):
    id: Id
    subject_id: Id
    period_id: Id
    value: Union[float, str, None] = None
    category: Optional[Category] = None
    assessment_type_id: Optional[Id] = None
    date: Optional[datetime.date] = None
    related_assessment_id: Optional[Id] = None

    def to_domain(self) -> Assessment:
        return Assessment(
            id=self.id,
            subject_id=self.subject_id,
            period_id=self.period_id,
            value=self.value,
            category=self.category or Category.REGULAR,
            assessment_type_id=self.assessment_type_id,
            date=self.date,
            related_assessment_id=self.related_assessment_id,
        )


class AssessmentTypePayload(_Payload):
    id: Id
    name: str
    exclude_from_average: bool = False
    is_recovery: bool = False

    def to_domain(self) -> AssessmentType:
        return AssessmentType(
            id=self.id,
            name=self.name,
            exclude_from_average=self.exclude_from_average,
            is_recovery=self.is_recovery,
        )


class PeriodPayload(_Payload):
    id: Id
    name: str
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None

    def to_domain(self) -> Period:
        return Period(id=self.id, name=self.name, start_date=self.start_date, end_date=self.end_date)


class EvaluationRulePayload(_Payload):
    name: str = ""
    passing_grade: Optional[float] = None
    min_dependency_grade: Optional[float] = None
    min_attendance: Optional[float] = None
    type_weights: Optional[Dict[str, float]] = Field(default=None)
    allowed_exclusions: bool = False
    formula: Optional[str] = None
    period_count: Optional[int] = None
    recovery_strategy: Optional[str] = None

    def to_domain(self) -> EvaluationRule:
        return EvaluationRule(
            name=self.name,
            passing_grade=self.passing_grade,
            min_dependency_grade=self.min_dependency_grade,
            min_attendance=self.min_attendance,
            type_weights=self.type_weights or {},
            allowed_exclusions=self.allowed_exclusions,
            formula=self.formula,
            period_count=self.period_count,
            recovery_strategy=self.recovery_strategy,
        )


P = TypeVar("P", bound=_Payload)


def _validate(model: Type[P], row: Mapping[str, Any], label: str) -> P:
    try:
        return model.model_validate(dict(row))
    except ValidationError as exc:
        raise PayloadError(f"Invalid {label} record {row.get('id', '?')}: {exc}") from exc


def parse_assessments(rows: Iterable[Mapping[str, Any]]) -> List[Assessment]:
    return [_validate(AssessmentPayload, row, "assessment").to_domain() for row in rows]


def parse_assessment_types(rows: Iterable[Mapping[str, Any]]) -> List[AssessmentType]:
    return [_validate(AssessmentTypePayload, row, "assessment type").to_domain() for row in rows]


def parse_periods(rows: Iterable[Mapping[str, Any]]) -> List[Period]:
    return [_validate(PeriodPayload, row, "period").to_domain() for row in rows]


def parse_rule(row: Mapping[str, Any]) -> EvaluationRule:
    return _validate(EvaluationRulePayload, row, "evaluation rule").to_domain()
