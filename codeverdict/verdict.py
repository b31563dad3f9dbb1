"""
The verdict engine: fuses the rule-based comparison, the test execution
result and the security events of one submission into a final verdict.

Only the rule-based result, the tests and the security events influence
the decision, the score and the trust score. AI verdict data may add
issues, strengths and a suggestion to the report, and an AI explanation
is carried through verbatim, but neither is ever scored.

Every input is optional. Factors that are absent are left out of the
trust score average and of the decision ratio instead of counting as
failures.
"""
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from . import config
from . import logger
from .comparator import AlgorithmMatch, ComparisonResult, complexity_marks

log = logger.get('verdict')


class Decision(StrEnum):
    CORRECT = 'CORRECT'
    ACCEPTABLE = 'ACCEPTABLE'
    NEEDS_IMPROVEMENT = 'NEEDS_IMPROVEMENT'
    INCORRECT = 'INCORRECT'


PASSING = (Decision.CORRECT, Decision.ACCEPTABLE)


@dataclass(frozen=True)
class VerdictRules:
    """Weights and thresholds of the verdict engine (see grading.yaml)."""
    test_weight: float = 0.70
    logic_weight: float = 0.20
    thresholds: tuple[tuple[Decision, float], ...] = (
        (Decision.CORRECT, 0.85),
        (Decision.ACCEPTABLE, 0.65),
        (Decision.NEEDS_IMPROVEMENT, 0.40),
    )
    rule_weight: float = 50
    test_bands: tuple[tuple[float, float], ...] = ((100, 50), (80, 40), (60, 25), (40, 15), (0.000001, 5))
    security_points: tuple[int, ...] = (33, 20, 10, 0)
    max_recommendations: int = 5

    @classmethod
    def from_config(cls, grading: Mapping) -> 'VerdictRules':
        defaults = cls()
        weights = grading.get('score_weights', {})
        thresholds = grading.get('decision_thresholds')
        trust = grading.get('trust', {})
        return cls(
            test_weight=weights.get('tests', defaults.test_weight),
            logic_weight=weights.get('logic', defaults.logic_weight),
            thresholds=(tuple(sorted(((Decision(name), float(value)) for name, value in thresholds.items()),
                                     key=lambda item: -item[1]))
                        if thresholds else defaults.thresholds),
            rule_weight=trust.get('rule_weight', defaults.rule_weight),
            test_bands=(tuple((float(low), float(points)) for low, points in trust['test_bands'])
                        if trust.get('test_bands') else defaults.test_bands),
            security_points=tuple(trust.get('security_points', defaults.security_points)),
            max_recommendations=grading.get('max_recommendations', defaults.max_recommendations),
        )


def default_verdict_rules() -> VerdictRules:
    """Verdict rules of grading.yaml; the built-in values if they are unusable."""
    try:
        return VerdictRules.from_config(config.grading_config())
    except (AttributeError, TypeError, ValueError, KeyError, config.ConfigError) as err:
        log.warning('Unusable verdict settings (%s); using built-in defaults', err)
        return VerdictRules()


class _Model(BaseModel):
    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True,
        alias_generator=to_camel,
    )


class TestExecutionResult(_Model):
    """Outcome of running the submission against its test cases."""

    __test__ = False

    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int | list[Any] = 0
    pass_rate: float | None = None
    execution_error: str | None = None
    timeout_occurred: bool = False

    @property
    def failed_count(self) -> int:
        if isinstance(self.failed_tests, list):
            return len(self.failed_tests)
        return max(0, self.failed_tests)

    @property
    def rate(self) -> float:
        """Pass rate in [0, 100], derived from the counts when not given."""
        if self.pass_rate is not None:
            if math.isnan(self.pass_rate):
                return 0.0
            return max(0.0, min(100.0, self.pass_rate))
        if self.total_tests > 0:
            return max(0.0, min(100.0, 100.0 * self.passed_tests / self.total_tests))
        return 0.0


class AIExplanation(_Model):
    explanation: str | None = None
    model: str | None = None


class AIVerdict(_Model):
    """Verdict of an AI reviewer. Reported, never scored."""
    algorithm_correct: bool = True
    approach_used: str | None = None
    complexity_correct: bool = True
    actual_complexity: str | None = None
    logic_score: float | None = None
    verdict: str | None = None
    has_disallowed_patterns: bool = False
    disallowed_patterns_found: list[str] = []
    weaknesses: list[str] = []
    strengths: list[str] = []
    suggestion: str | None = None


class Issue(_Model):
    source: str
    severity: str
    type: str
    description: str


class Strength(_Model):
    source: str
    type: str
    description: str


class Verdict(_Model):
    model_config = ConfigDict(frozen=True)

    decision: Decision
    score: int
    trust_score: int
    components: dict[str, Any] = {}
    issues: list[Issue] = []
    strengths: list[Strength] = []
    recommendations: list[str] = []
    ai_explanation: str | None = None
    ai_explanation_model: str | None = None
    summary: dict[str, Any] = {}

    @field_validator('score', 'trust_score')
    @classmethod
    def _percentage(cls, value: int) -> int:
        return max(0, min(100, value))

    @property
    def passed(self) -> bool:
        return self.decision in PASSING

    def to_dict(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _coerce(model, value, what):
    if value is None or isinstance(value, model):
        return value
    if isinstance(value, Mapping):
        try:
            return model.model_validate(dict(value))
        except ValidationError as err:
            log.error('Ignoring malformed %s: %s', what, err)
            return None
    log.error('Ignoring %s of type %s', what, type(value).__name__)
    return None


def _security_count(events) -> int | None:
    if events is None:
        return None
    if isinstance(events, bool):
        return int(events)
    if isinstance(events, int):
        return max(0, events)
    if isinstance(events, Sequence) and not isinstance(events, (str, bytes)):
        return len(events)
    log.error('Ignoring security events of type %s', type(events).__name__)
    return None


def trust_score(rule: ComparisonResult | None, tests: TestExecutionResult | None,
                security_events: int | None, rules: VerdictRules) -> int:
    """Confidence in the verdict, averaged over the factors present."""
    total = 0.0
    factors = 0

    if rule is not None:
        agreements = sum([
            rule.algorithm_match == AlgorithmMatch.FULL,
            rule.complexity_match,
            not rule.violates_disallowed_patterns,
        ])
        total += agreements / 3 * rules.rule_weight
        factors += 1

    if tests is not None:
        rate = tests.rate
        total += next((points for low, points in rules.test_bands if rate >= low), 0)
        factors += 1

    if security_events is not None:
        points = rules.security_points
        total += points[min(security_events, len(points) - 1)]
        factors += 1

    if factors == 0:
        return 0
    return max(0, min(100, round_half_up(total / factors)))


def decide(rule: ComparisonResult | None, tests: TestExecutionResult | None, rules: VerdictRules) -> Decision:
    positive = 0
    total = 0

    if rule is not None:
        if rule.algorithm_match == AlgorithmMatch.FULL:
            positive += 2
        elif rule.algorithm_match == AlgorithmMatch.PARTIAL:
            positive += 1
        if rule.complexity_match:
            positive += 2
        if not rule.violates_disallowed_patterns:
            positive += 1
        total += 5

    if tests is not None:
        rate = tests.rate
        if rate >= 100:
            positive += 3
        elif rate >= 80:
            positive += 2
        elif rate >= 50:
            positive += 1
        total += 3

    ratio = positive / total if total else 0.0
    for decision, threshold in rules.thresholds:
        if ratio >= threshold:
            return decision
    return Decision.INCORRECT


def aggregate_score(rule: ComparisonResult | None, tests: TestExecutionResult | None, rules: VerdictRules) -> int:
    """Weighted grade: tests, logic score, and complexity marks added as-is."""
    score = 0.0
    if tests is not None:
        score += tests.rate * rules.test_weight
    if rule is not None:
        score += max(0, min(100, rule.logic_score)) * rules.logic_weight
        score += complexity_marks(rule.time_complexity_match, rule.space_complexity_match)
    return max(0, min(100, round_half_up(score)))


def aggregate_issues(rule: ComparisonResult | None, ai: AIVerdict | None,
                     tests: TestExecutionResult | None) -> list[Issue]:
    issues = []

    def add(source, severity, type, description):
        issues.append(Issue(source=source, severity=severity, type=type, description=description))

    if rule is not None:
        if rule.algorithm_match == AlgorithmMatch.NONE:
            add('rule-based', 'critical', 'algorithm_mismatch', 'Algorithm does not match expected approach')
        elif rule.algorithm_match == AlgorithmMatch.PARTIAL:
            add('rule-based', 'warning', 'partial_algorithm_match', 'Algorithm partially matches expected approach')
        if not rule.complexity_match:
            add('rule-based', 'warning', 'complexity_mismatch',
                f'Expected complexity: {rule.expected_time_complexity}/{rule.expected_space_complexity}, '
                f'Detected: {rule.detected_time_complexity}/{rule.detected_space_complexity}')
        if rule.violates_disallowed_patterns:
            description = 'Disallowed patterns detected'
            if rule.violated_patterns:
                description += ': ' + ', '.join(rule.violated_patterns)
            add('rule-based', 'critical', 'disallowed_patterns', description)

    if ai is not None:
        if not ai.algorithm_correct:
            add('ai-verdict', 'critical', 'algorithm_incorrect', f'Algorithm analysis: {ai.approach_used}')
        if not ai.complexity_correct:
            add('ai-verdict', 'warning', 'complexity_incorrect',
                f'Expected complexity not met. Actual: {ai.actual_complexity}')
        if ai.has_disallowed_patterns and ai.disallowed_patterns_found:
            add('ai-verdict', 'critical', 'disallowed_patterns',
                'Disallowed patterns: ' + ', '.join(ai.disallowed_patterns_found))
        if ai.weaknesses:
            add('ai-verdict', 'info', 'identified_weakness', '; '.join(ai.weaknesses))

    if tests is not None:
        if tests.failed_count > 0:
            add('test-execution', 'critical', 'test_failures',
                f'Failed tests: {tests.failed_count}/{tests.total_tests}')
        if tests.execution_error:
            add('test-execution', 'critical', 'runtime_error', tests.execution_error)
        if tests.timeout_occurred:
            add('test-execution', 'critical', 'timeout', 'Code execution timeout exceeded')

    return issues


def aggregate_strengths(rule: ComparisonResult | None, ai: AIVerdict | None,
                        tests: TestExecutionResult | None) -> list[Strength]:
    strengths = []

    def add(source, type, description):
        strengths.append(Strength(source=source, type=type, description=description))

    if rule is not None:
        if rule.algorithm_match == AlgorithmMatch.FULL:
            add('rule-based', 'algorithm_match', 'Algorithm matches expected approach')
        if rule.complexity_match:
            add('rule-based', 'complexity_match', 'Time complexity matches expected requirement')
        if not rule.violates_disallowed_patterns:
            add('rule-based', 'no_violations', 'No disallowed patterns detected')
        for reason in rule.reasons:
            if reason.startswith('✓'):
                add('rule-based', 'feedback', reason.removeprefix('✓').strip())

    if ai is not None:
        for strength in ai.strengths:
            add('ai-verdict', 'identified_strength', strength)

    if tests is not None:
        rate = tests.rate
        if rate >= 100 and tests.total_tests > 0:
            add('test-execution', 'all_tests_passed', f'All {tests.total_tests} test cases passed')
        elif 80 <= rate < 100:
            add('test-execution', 'high_pass_rate',
                f'{tests.passed_tests}/{tests.total_tests} tests passed ({rate:g}%)')

    return strengths


_DECISION_ADVICE = {
    Decision.INCORRECT: [
        'Review the problem statement and expected algorithm carefully',
        'Consider consulting reference solutions or examples',
    ],
    Decision.NEEDS_IMPROVEMENT: [
        'Refactor code to improve algorithm or complexity',
        'Review the hints provided and focus on failing test cases',
    ],
    Decision.ACCEPTABLE: [
        'Minor optimizations recommended for better efficiency',
    ],
    Decision.CORRECT: [
        'Solution is correct! Review the analysis for optimization opportunities',
    ],
}

# Critical issue types and the advice they trigger, in output order.
_ISSUE_ADVICE = [
    (('algorithm_mismatch', 'algorithm_incorrect'), 'Revise the algorithm to match expected approach'),
    (('complexity_mismatch', 'complexity_incorrect'), 'Optimize time complexity - avoid unnecessary nested loops'),
    (('disallowed_patterns',), 'Remove disallowed patterns and use approved techniques'),
    (('test_failures',), 'Debug failing test cases to identify edge cases'),
    (('runtime_error',), 'Fix runtime errors in the code'),
    (('timeout',), 'Optimize code to prevent timeout - reduce time complexity'),
]


def recommendations(decision: Decision, issues: list[Issue], ai: AIVerdict | None, limit: int = 5) -> list[str]:
    advice = list(_DECISION_ADVICE[decision])
    critical = {issue.type for issue in issues if issue.severity == 'critical'}
    for types, text in _ISSUE_ADVICE:
        if critical.intersection(types):
            advice.append(text)
    if ai is not None and ai.suggestion:
        advice.append(ai.suggestion)
    return list(dict.fromkeys(advice))[:limit]


def _components(rule, ai, tests) -> dict:
    components: dict[str, Any] = {'ruleBased': None, 'aiAnalysis': None, 'testResults': None}
    if rule is not None:
        components['ruleBased'] = {
            'algorithmMatch': rule.algorithm_match.value,
            'complexityMatch': rule.complexity_match,
            'timeComplexityMatch': rule.time_complexity_match,
            'spaceComplexityMatch': rule.space_complexity_match,
            'disallowedPatternsFound': rule.violates_disallowed_patterns,
            'logicScore': rule.logic_score,
            'detectedTimeComplexity': rule.detected_time_complexity,
            'expectedTimeComplexity': rule.expected_time_complexity,
            'detectedSpaceComplexity': rule.detected_space_complexity,
            'expectedSpaceComplexity': rule.expected_space_complexity,
            'complexityMarks': complexity_marks(rule.time_complexity_match, rule.space_complexity_match),
        }
    if ai is not None:
        components['aiAnalysis'] = ai.model_dump(
            mode='json', by_alias=True,
            include={'algorithm_correct', 'approach_used', 'complexity_correct',
                     'actual_complexity', 'logic_score', 'verdict'})
    if tests is not None:
        components['testResults'] = {
            'totalTests': tests.total_tests,
            'passedTests': tests.passed_tests,
            'failedTests': tests.failed_tests,
            'passRate': tests.rate,
            'executionError': tests.execution_error,
        }
    return components


def generate_verdict(rule_result=None, test_result=None, security_events=None,
                     ai_explanation=None, ai_verdict=None, rules: VerdictRules | None = None) -> Verdict:
    """Build the final verdict for one submission.

    Args:
        rule_result: ComparisonResult (or its camelCase dict form).
        test_result: TestExecutionResult (or its dict form).
        security_events: list of events, or their number.
        ai_explanation: {"explanation", "model"}, passed through untouched.
        ai_verdict: AI reviewer verdict, reported but never scored.
        rules: weights and thresholds, defaulting to those of grading.yaml.

    Any argument may be None.
    """
    rules = rules or default_verdict_rules()
    rule = _coerce(ComparisonResult, rule_result, 'rule-based result')
    tests = _coerce(TestExecutionResult, test_result, 'test execution result')
    ai = _coerce(AIVerdict, ai_verdict, 'AI verdict')
    explanation = _coerce(AIExplanation, ai_explanation, 'AI explanation')
    events = _security_count(security_events)

    decision = decide(rule, tests, rules)
    score = aggregate_score(rule, tests, rules)
    trust = trust_score(rule, tests, events, rules)
    issues = aggregate_issues(rule, ai, tests)
    strengths = aggregate_strengths(rule, ai, tests)
    advice = recommendations(decision, issues, ai, rules.max_recommendations)
    log.debug('Verdict %s, score %d, trust %d', decision, score, trust)

    return Verdict(
        decision=decision,
        score=score,
        trust_score=trust,
        components=_components(rule, ai, tests),
        issues=issues,
        strengths=strengths,
        recommendations=advice,
        ai_explanation=explanation.explanation if explanation else None,
        ai_explanation_model=explanation.model if explanation else None,
        summary={
            'overallStatus': decision.value,
            'keyMetrics': {
                'score': score,
                'trustScore': trust,
                'testPassRate': tests.rate if tests is not None else 'N/A',
                'algorithmMatch': rule.algorithm_match.value if rule is not None else 'N/A',
                'complexityMatch': 'Yes' if rule is not None and rule.complexity_match else 'No',
            },
            'nextSteps': advice[:2],
        },
    )


_PARAMETERS = {
    'ruleVerdictData': 'rule_result',
    'testVerdictData': 'test_result',
    'securityViolations': 'security_events',
    'aiExplanation': 'ai_explanation',
    'aiVerdictData': 'ai_verdict',
}


def generate_final_verdict(params: Mapping | None = None, rules: VerdictRules | None = None, **kwargs) -> Verdict:
    """generate_verdict() taking its inputs as one mapping.

    Keys may be the camelCase names ruleVerdictData, aiVerdictData,
    testVerdictData, securityViolations and aiExplanation, or the
    parameter names of generate_verdict().
    """
    arguments = {}
    for key, value in {**(params or {}), **kwargs}.items():
        name = _PARAMETERS.get(key, key)
        if name in _PARAMETERS.values():
            arguments[name] = value
        else:
            log.warning('Ignoring unknown verdict input %s', key)
    return generate_verdict(rules=rules, **arguments)
