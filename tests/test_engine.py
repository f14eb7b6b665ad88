import unittest

from boletim.core.engine import compute_subject_grade
from boletim.core.models import Assessment, AssessmentType, Category, EvaluationRule, Period, Status

PERIODS = [Period(f"p{n}", f"{n}º Bimestre") for n in range(1, 5)]


def _assessment(id, period_id, value, category=Category.REGULAR, type_id=None):
    return Assessment(
        id=id,
        subject_id="mat",
        period_id=period_id,
        value=value,
        category=category,
        assessment_type_id=type_id,
    )


class EndToEndTests(unittest.TestCase):
    def test_unfinished_periods_count_as_zero(self):
        assessments = [
            _assessment("a1", "p1", 5.5),
            _assessment("a2", "p1", 8.0, Category.RECUPERATION),
            _assessment("a3", "p2", 7.0),
        ]
        result = compute_subject_grade(assessments, EvaluationRule(name="Padrão"), PERIODS[:2], [])

        first, second = result.period_results
        self.assertEqual(first.regular_average, 5.5)
        self.assertEqual(first.recovery_grade, 8.0)
        self.assertEqual(first.final_period_grade, 8.0)
        self.assertTrue(first.is_recovery_used)
        self.assertEqual(second.final_period_grade, 7.0)
        self.assertIsNone(second.recovery_grade)

        self.assertEqual(result.raw_final_grade, 3.75)
        self.assertEqual(result.final_grade, 3.8)
        self.assertEqual(result.status, Status.REPROVADO)
        self.assertFalse(result.is_passing)
        self.assertEqual(result.formula_used, "Soma das notas (15.0) / Total de períodos (4)")
        self.assertEqual(result.rule_name, "Padrão")
        self.assertEqual(result.recovery_strategy_applied, "replace_if_higher")

    def test_default_divisor_over_four_periods(self):
        assessments = [_assessment(f"a{i}", p.id, v) for i, (p, v) in enumerate(zip(PERIODS, [6, 7, 8, 5]))]
        result = compute_subject_grade(assessments, EvaluationRule(), PERIODS, [])
        self.assertEqual(result.final_grade, 6.5)
        self.assertEqual(result.status, Status.APROVADO)
        self.assertTrue(result.is_passing)

    def test_custom_period_count(self):
        assessments = [_assessment("a1", "p1", 6), _assessment("a2", "p2", 8)]
        result = compute_subject_grade(assessments, EvaluationRule(period_count=2), PERIODS[:2], [])
        self.assertEqual(result.final_grade, 7.0)

    def test_custom_formula(self):
        assessments = [
            _assessment("a1", "p1", 5.5),
            _assessment("a2", "p1", 8.0, Category.RECUPERATION),
            _assessment("a3", "p2", 7.0),
        ]
        rule = EvaluationRule(formula="(eval1 + eval2) / 2")
        result = compute_subject_grade(assessments, rule, PERIODS[:2], [])
        self.assertEqual(result.final_grade, 7.5)
        self.assertEqual(result.formula_used, "(eval1 + eval2) / 2")
        self.assertIsNone(result.formula_error)

    def test_unsafe_formula_fails_closed(self):
        assessments = [_assessment("a1", "p1", 9.0)]
        rule = EvaluationRule(formula="eval1; DROP TABLE")
        result = compute_subject_grade(assessments, rule, PERIODS[:1], [])
        self.assertEqual(result.final_grade, 0.0)
        self.assertEqual(result.raw_final_grade, 0.0)
        self.assertIsNotNone(result.formula_error)
        self.assertEqual(result.status, Status.REPROVADO)
        self.assertTrue(any("Erro na fórmula" in m for m in result.logs))

    def test_division_by_zero_fails_closed(self):
        assessments = [_assessment("a1", "p1", 9.0)]
        result = compute_subject_grade(assessments, EvaluationRule(formula="eval1 / 0"), PERIODS[:1], [])
        self.assertEqual(result.final_grade, 0.0)
        self.assertIn("zero", result.formula_error)

    def test_weighted_rule(self):
        types = [AssessmentType("A", "Prova"), AssessmentType("B", "Trabalho")]
        assessments = [
            _assessment("a1", "p1", 8.0, type_id="A"),
            _assessment("a2", "p1", 6.0, type_id="B"),
        ]
        rule = EvaluationRule(type_weights={"A": 50, "B": 50}, period_count=1)
        result = compute_subject_grade(assessments, rule, PERIODS[:1], types)
        self.assertAlmostEqual(result.period_results[0].regular_average, 7.0)
        self.assertEqual(result.final_grade, 7.0)

    def test_linked_recovery_feeds_average(self):
        assessments = [
            _assessment("a1", "p1", 2.0),
            _assessment("a2", "p1", 8.0),
            Assessment(
                id="r1",
                subject_id="mat",
                period_id="p1",
                value=6.0,
                category=Category.RECUPERATION,
                related_assessment_id="a1",
            ),
        ]
        result = compute_subject_grade(assessments, EvaluationRule(period_count=1), PERIODS[:1], [])
        period = result.period_results[0]
        self.assertEqual(period.regular_average, 7.0)
        self.assertIsNone(period.recovery_grade)
        self.assertEqual(len(period.assessments), 2)


class EngineInvariantTests(unittest.TestCase):
    def setUp(self):
        self.assessments = [
            _assessment("a1", "p1", 4.0),
            _assessment("a2", "p1", 6.0),
            _assessment("r1", "p1", 5.0, Category.RECUPERATION),
            _assessment("a3", "p2", 3.0),
            _assessment("r2", "p2", 9.0, Category.RECUPERATION),
            _assessment("a4", "p3", 8.0),
            _assessment("r3", "p3", 2.0, Category.RECUPERATION),
        ]
        self.rule = EvaluationRule(name="Fundamental", type_weights={}, allowed_exclusions=True)

    def test_deterministic(self):
        first = compute_subject_grade(self.assessments, self.rule, PERIODS, [])
        second = compute_subject_grade(self.assessments, self.rule, PERIODS, [])
        self.assertEqual(first, second)

    def test_final_period_grade_never_below_regular_average(self):
        result = compute_subject_grade(self.assessments, self.rule, PERIODS, [])
        for period in result.period_results:
            self.assertGreaterEqual(period.final_period_grade, period.regular_average)

    def test_equal_recovery_is_not_used(self):
        # Exclusion drops the 4.0, so the regular average equals the recovery score.
        assessments = [
            _assessment("a1", "p1", 4.0),
            _assessment("a2", "p1", 6.0),
            _assessment("r1", "p1", 6.0, Category.RECUPERATION),
        ]
        period = compute_subject_grade(assessments, self.rule, PERIODS[:1], []).period_results[0]
        self.assertEqual(period.regular_average, 6.0)
        self.assertFalse(period.is_recovery_used)
        self.assertEqual(period.final_period_grade, 6.0)

    def test_one_result_per_period_even_when_empty(self):
        result = compute_subject_grade(self.assessments, self.rule, PERIODS, [])
        self.assertEqual([p.period_id for p in result.period_results], ["p1", "p2", "p3", "p4"])
        empty = result.period_results[3]
        self.assertEqual(empty.final_period_grade, 0.0)
        self.assertIn("Nenhuma avaliação regular válida para cálculo.", empty.logs)

    def test_inputs_are_not_mutated(self):
        weights = {"A": 50}
        rule = EvaluationRule(type_weights=weights)
        snapshot = list(self.assessments)
        compute_subject_grade(self.assessments, rule, PERIODS, [])
        self.assertEqual(weights, {"A": 50})
        self.assertEqual(self.assessments, snapshot)

    def test_no_periods(self):
        result = compute_subject_grade(self.assessments, self.rule, [], [])
        self.assertEqual(result.final_grade, 0.0)
        self.assertEqual(result.formula_used, "Média Aritmética dos Períodos")
        self.assertEqual(result.period_results, [])

    def test_unknown_recovery_strategy_is_defaulted(self):
        rule = EvaluationRule(recovery_strategy="average")
        result = compute_subject_grade(self.assessments, rule, PERIODS, [])
        self.assertEqual(result.recovery_strategy_applied, "replace_if_higher")
        self.assertTrue(any("desconhecida" in m for m in result.logs))
        self.assertTrue(result.period_results[1].is_recovery_used)

    def test_non_finite_text_scores_are_descriptive(self):
        for value in ("inf", "Infinity", "nan", "-inf"):
            with self.subTest(value=value):
                assessments = [_assessment("a1", "p1", value), _assessment("a2", "p1", 7.0)]
                result = compute_subject_grade(assessments, EvaluationRule(period_count=1), PERIODS[:1], [])
                self.assertEqual(result.final_grade, 7.0)
                self.assertEqual(result.status, Status.APROVADO)

    def test_only_non_finite_scores_give_zero(self):
        result = compute_subject_grade([_assessment("a1", "p1", "NaN")], EvaluationRule(period_count=1), PERIODS[:1], [])
        self.assertEqual(result.final_grade, 0.0)
        self.assertEqual(result.raw_final_grade, 0.0)
        self.assertEqual(result.status, Status.REPROVADO)

    def test_non_finite_final_grade_fails_closed(self):
        types = [AssessmentType("A", "Prova")]
        rule = EvaluationRule(type_weights={"A": float("inf")}, period_count=1)
        result = compute_subject_grade([_assessment("a1", "p1", 8.0, type_id="A")], rule, PERIODS[:1], types)
        self.assertEqual(result.final_grade, 0.0)
        self.assertEqual(result.raw_final_grade, 0.0)
        self.assertIn("Nota final não numérica. Nota final considerada 0.", result.logs)

    def test_empty_recovery_link_is_period_recovery(self):
        assessments = [
            _assessment("a1", "p1", 5.0),
            Assessment(
                id="r1",
                subject_id="mat",
                period_id="p1",
                value=9.0,
                category=Category.RECUPERATION,
                related_assessment_id="",
            ),
        ]
        result = compute_subject_grade(assessments, EvaluationRule(period_count=1), PERIODS[:1], [])
        period = result.period_results[0]
        self.assertTrue(period.is_recovery_used)
        self.assertEqual(period.recovery_grade, 9.0)
        self.assertEqual(result.final_grade, 9.0)

    def test_weighted_rule_with_only_descriptive_scores(self):
        rule = EvaluationRule(type_weights={"A": 100}, period_count=1)
        result = compute_subject_grade([_assessment("a1", "p1", "Satisfatório", type_id="A")], rule, PERIODS[:1], [])
        self.assertIn("Nenhuma avaliação regular válida para cálculo.", result.period_results[0].logs)
        self.assertEqual(result.final_grade, 0.0)

    def test_period_ids_compare_as_text(self):
        assessments = [_assessment("a1", 1, 7.0)]
        result = compute_subject_grade(assessments, EvaluationRule(period_count=1), [Period("1", "1º Bimestre")], [])
        self.assertEqual(result.final_grade, 7.0)


if __name__ == "__main__":
    unittest.main()
