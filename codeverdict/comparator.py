"""
Rule-based comparison of a submission's features against the reference
logic of its question.

compare() is pure: it needs the feature vector, the reference logic and,
optionally, the TAC similarity between the submission and the reference
solution. compare_against_reference() looks the reference logic up and
computes the similarity when it can. Neither raises; a missing rubric
yields a result with success=False and an error message.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from . import config
from . import logger
from .complexity import Complexity
from .extract import extract_features
from .features import FeatureVector, Paradigm
from .reference import ReferenceLogic, ReferenceLogicLoader, default_loader
from .tac import compare_tac, generate_tac

log = logger.get('comparator')


class AlgorithmMatch(StrEnum):
    FULL = 'FULL'
    PARTIAL = 'PARTIAL'
    NONE = 'NONE'


class Severity(StrEnum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


# Marks for (time matches, space matches).
COMPLEXITY_MARKS = {
    (True, True): 10,
    (True, False): 5,
    (False, True): 5,
    (False, False): 0,
}

# Issue types that count as using a disallowed pattern.
VIOLATION_TYPES = ('hardcoding_detected', 'nested_loops_detected', 'brute_force_detected')


def complexity_marks(time_match: bool, space_match: bool) -> int:
    return COMPLEXITY_MARKS[(bool(time_match), bool(space_match))]


@dataclass(frozen=True)
class ScoringRules:
    """Logic score debits and TAC similarity thresholds (see grading.yaml)."""
    start: int = 100
    critical_issue: int = 20
    medium_issue: int = 10
    warning: int = 5
    tac_similarity_warning: float = 0.5
    tac_similarity_success: float = 0.9

    @classmethod
    def from_config(cls, grading: Mapping) -> 'ScoringRules':
        debits = grading.get('logic_score', {})
        return cls(
            start=debits.get('start', cls.start),
            critical_issue=debits.get('critical_issue', cls.critical_issue),
            medium_issue=debits.get('medium_issue', cls.medium_issue),
            warning=debits.get('warning', cls.warning),
            tac_similarity_warning=grading.get('tac_similarity_warning', cls.tac_similarity_warning),
            tac_similarity_success=grading.get('tac_similarity_success', cls.tac_similarity_success),
        )


def default_scoring_rules() -> ScoringRules:
    """Scoring rules of grading.yaml; the built-in values if they are unusable."""
    try:
        return ScoringRules.from_config(config.grading_config())
    except (AttributeError, TypeError, ValueError, config.ConfigError) as err:
        log.warning('Unusable logic scoring settings (%s); using built-in defaults', err)
        return ScoringRules()


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class Finding(_Model):
    """One issue, warning or success produced by a rule."""
    type: str
    message: str = ''
    severity: Severity | None = None
    expected: str | None = None
    actual: str | None = None
    pattern: str | None = None


class ComparisonResult(_Model):
    success: bool = True
    error: str | None = None
    question_id: str | None = None
    reference_algorithm: str | None = None
    matched: bool = False
    algorithm_match: AlgorithmMatch = AlgorithmMatch.NONE
    complexity_match: bool = False
    time_complexity_match: bool = False
    space_complexity_match: bool = False
    complexity_marks: int = 0
    violates_disallowed_patterns: bool = False
    violated_patterns: list[str] = []
    logic_score: int = 0
    issues: list[Finding] = []
    warnings: list[Finding] = []
    successes: list[Finding] = []
    detected_time_complexity: Complexity | None = None
    expected_time_complexity: Complexity | None = None
    detected_space_complexity: Complexity | None = None
    expected_space_complexity: Complexity | None = None
    detected_approaches: list[str] = []
    tac_similarity: float | None = None
    reasons: list[str] = []

    @classmethod
    def failure(cls, error: str, question_id: str | None = None) -> 'ComparisonResult':
        return cls(success=False, error=error, question_id=question_id)


def _coerce_features(features: Any) -> FeatureVector:
    if isinstance(features, FeatureVector):
        return features
    if isinstance(features, Mapping):
        try:
            return FeatureVector.model_validate(dict(features))
        except ValidationError as err:
            log.error('Invalid feature vector, using defaults: %s', err)
            return FeatureVector()
    log.error('Invalid feature vector of type %s, using defaults', type(features).__name__)
    return FeatureVector()


class _Findings(object):

    def __init__(self):
        self.issues: list[Finding] = []
        self.warnings: list[Finding] = []
        self.successes: list[Finding] = []
        self.matched = True

    def issue(self, type, severity, message, breaks_match=True, **extra):
        self.issues.append(Finding(type=type, severity=severity, message=message, **extra))
        if breaks_match:
            self.matched = False

    def warning(self, type, severity, message, **extra):
        self.warnings.append(Finding(type=type, severity=severity, message=message, **extra))

    def success(self, type, message):
        self.successes.append(Finding(type=type, message=message))


def _check_complexity(f: FeatureVector, ref: ReferenceLogic, out: _Findings) -> tuple[bool, bool]:
    detected = f.estimated_time_complexity
    expected = ref.expected_time_complexity
    time_match = detected == expected or detected in ref.acceptable_complexities
    if not time_match:
        out.issue('complexity_mismatch', Severity.HIGH,
                  f'Time complexity mismatch: expected {expected}, got {detected}',
                  expected=expected.value, actual=detected.value)
    elif detected == expected:
        out.success('complexity_match', f'Time complexity matches expected: {expected}')
    else:
        out.success('complexity_match', f'Time complexity matches acceptable set: {detected}')

    space_match = f.estimated_space_complexity == ref.expected_space_complexity
    if space_match:
        out.success('space_complexity_match', f'Space complexity matches: {ref.expected_space_complexity}')
    else:
        out.warning('space_complexity_mismatch', Severity.MEDIUM,
                    f'Space complexity mismatch: expected {ref.expected_space_complexity}, '
                    f'got {f.estimated_space_complexity}',
                    expected=ref.expected_space_complexity.value, actual=f.estimated_space_complexity.value)
    return time_match, space_match


def _check_paradigm(f: FeatureVector, ref: ReferenceLogic, out: _Findings) -> None:
    if not ref.paradigm:
        return
    if f.paradigm.value.lower() == ref.paradigm.strip().lower():
        out.success('paradigm_match', f'Algorithm paradigm correct: {ref.paradigm}')
    else:
        out.warning('paradigm_mismatch', Severity.LOW,
                    f'Expected {ref.paradigm} approach but detected {f.paradigm}',
                    expected=ref.paradigm, actual=f.paradigm.value)


def _check_constraints(f: FeatureVector, ref: ReferenceLogic, out: _Findings) -> None:
    c = ref.constraints

    if c.should_read_input:
        if f.input_dependent_logic:
            out.success('input_handling_correct', 'Input is properly read and processed')
        else:
            out.issue('missing_input_handling', Severity.HIGH, 'Solution must read input but does not')

    if c.should_use_loops:
        if f.loop_count > 0:
            out.success('loops_used', f'Solution correctly uses {f.loop_count} loop(s)')
        else:
            out.warning('missing_loops', Severity.MEDIUM, 'Solution should use loops for efficiency')
    elif c.should_use_loops is False and f.loop_count > 0:
        out.warning('unnecessary_loops', Severity.LOW,
                    "Solution has loops but doesn't require them (O(1) solution expected)")

    if c.should_use_recursion:
        if f.recursion_detected:
            out.success('recursion_used', 'Recursion correctly implemented')
        else:
            out.warning('missing_recursion', Severity.MEDIUM, 'Solution should use recursion')
    elif c.should_use_recursion is False and f.recursion_detected:
        out.warning('unnecessary_recursion', Severity.LOW, 'Recursive solution not needed')

    if c.min_line_count and f.line_count < c.min_line_count:
        out.warning('too_short', Severity.LOW,
                    f'Solution is very short ({f.line_count} lines vs {c.min_line_count} minimum)')
    if c.max_line_count and f.line_count > c.max_line_count:
        out.warning('too_long', Severity.LOW,
                    f'Solution seems verbose ({f.line_count} lines vs {c.max_line_count} maximum)')


def _check_disallowed(f: FeatureVector, ref: ReferenceLogic, out: _Findings) -> None:
    for pattern in ref.disallowed_patterns:
        lowered = pattern.lower()
        if 'hardcod' in lowered and f.hardcoding_detected:
            out.issue('hardcoding_detected', Severity.HIGH,
                      'Hardcoded values detected - solution must handle any input', pattern=pattern)
        if 'nested' in lowered and f.nested_loop_count > 0:
            out.issue('nested_loops_detected', Severity.HIGH,
                      f'Nested loops detected ({f.nested_loop_count}) - optimize to single loop',
                      pattern=pattern)
        if 'brute' in lowered and f.nested_loop_count >= 2:
            out.issue('brute_force_detected', Severity.HIGH,
                      'Brute force approach detected - use more efficient algorithm', pattern=pattern)
        if 'recursion' in lowered and 'without' not in lowered and f.recursion_detected:
            out.issue('recursion_detected', Severity.MEDIUM, 'Recursive solution not allowed',
                      breaks_match=False, pattern=pattern)
        if ('linear' in lowered and f.estimated_time_complexity == Complexity.LINEAR
                and f.loop_count == 1):
            out.issue('linear_search_detected', Severity.HIGH,
                      'Linear search detected - use more efficient approach', pattern=pattern)


def detect_approaches(f: FeatureVector, allowed: list[str]) -> list[str]:
    """Allowed approach tags the features give evidence for, as approach names."""
    simple = f.paradigm == Paradigm.SIMPLE_LOGIC
    rules = [
        ('hash', 'hash_map', f.uses_hash_map),
        ('sort', 'sorting', f.uses_sorting),
        ('two_pointer', 'two_pointers', f.two_pointers),
        ('binary', 'binary_search',
         f.estimated_time_complexity == Complexity.LOGARITHMIC or f.has_log_loop or f.divides_input),
        ('dp', 'dynamic_programming', f.dynamic_programming or f.memoization_or_dp),
        ('greedy', 'greedy', simple),
        ('print', 'simple_output', f.loop_count == 0 and not f.input_dependent_logic),
        ('addition', 'arithmetic_operation', simple),
    ]
    found = []
    for approach in allowed:
        lowered = approach.lower()
        for keyword, name, present in rules:
            if keyword in lowered and present and name not in found:
                found.append(name)
    return found


def compare(features, reference: ReferenceLogic | None, tac_similarity: float | None = None,
            rules: ScoringRules | None = None) -> ComparisonResult:
    """Judge a feature vector against reference logic.

    Args:
        features: FeatureVector (or a mapping with its fields).
        reference: the question's reference logic; None means there is no
            rubric, which yields success=False and a zero logic score.
        tac_similarity: similarity of the submission's TAC to the reference
            solution's, if known.
        rules: scoring parameters, defaulting to those of grading.yaml.
    """
    if reference is None:
        return ComparisonResult.failure('Reference logic not found')
    rules = rules or default_scoring_rules()
    f = _coerce_features(features)
    out = _Findings()

    time_match, space_match = _check_complexity(f, reference, out)
    _check_paradigm(f, reference, out)
    _check_constraints(f, reference, out)
    _check_disallowed(f, reference, out)

    approaches = detect_approaches(f, reference.allowed_approaches)
    if approaches:
        out.success('approach_match', f'Approach matches allowed methods: {", ".join(approaches)}')
    elif f.paradigm == Paradigm.SIMPLE_LOGIC and reference.allowed_approaches:
        out.success('approach_match',
                    f'Simple approach matches allowed: {", ".join(reference.allowed_approaches)}')

    if tac_similarity is not None:
        if tac_similarity < rules.tac_similarity_warning:
            out.warning('low_structural_similarity', Severity.LOW,
                        f'Code structure differs from the reference solution (similarity {tac_similarity:.2f})')
        elif tac_similarity >= rules.tac_similarity_success:
            out.success('structural_match',
                        f'Code structure closely follows the reference solution (similarity {tac_similarity:.2f})')

    critical = sum(1 for issue in out.issues if issue.severity == Severity.HIGH)
    medium = sum(1 for issue in out.issues if issue.severity == Severity.MEDIUM)
    score = (rules.start
             - critical * rules.critical_issue
             - medium * rules.medium_issue
             - len(out.warnings) * rules.warning)
    score = max(0, min(100, score))

    if not out.issues:
        algorithm_match = AlgorithmMatch.FULL
    elif len(out.issues) <= 2:
        algorithm_match = AlgorithmMatch.PARTIAL
    else:
        algorithm_match = AlgorithmMatch.NONE

    violations = [issue for issue in out.issues if issue.type in VIOLATION_TYPES]
    violated_patterns = []
    for issue in violations:
        if issue.pattern not in violated_patterns:
            violated_patterns.append(issue.pattern)

    both = time_match and space_match
    reasons = []
    if both:
        reasons.append(f'✓ Time complexity matches: {reference.expected_time_complexity}')
    if algorithm_match == AlgorithmMatch.FULL:
        reasons.append('✓ Algorithm fully matches expected approach')
    if violations:
        reasons.append('✗ Uses disallowed patterns or approaches')

    return ComparisonResult(
        question_id=reference.question_id,
        reference_algorithm=reference.expected_algorithm,
        matched=out.matched,
        algorithm_match=algorithm_match,
        complexity_match=both,
        time_complexity_match=time_match,
        space_complexity_match=space_match,
        complexity_marks=complexity_marks(time_match, space_match),
        violates_disallowed_patterns=bool(violations),
        violated_patterns=violated_patterns,
        logic_score=score,
        issues=out.issues,
        warnings=out.warnings,
        successes=out.successes,
        detected_time_complexity=f.estimated_time_complexity,
        expected_time_complexity=reference.expected_time_complexity,
        detected_space_complexity=f.estimated_space_complexity,
        expected_space_complexity=reference.expected_space_complexity,
        detected_approaches=approaches,
        tac_similarity=tac_similarity,
        reasons=reasons,
    )


def tac_similarity(code, language, reference: ReferenceLogic) -> float | None:
    """TAC similarity of code to the reference solution, if there is one."""
    if reference.reference_solution is None:
        return None
    student = generate_tac(code, language)
    model = generate_tac(reference.reference_solution.code, reference.reference_solution.language)
    return compare_tac(student, model).similarity


def compare_against_reference(features, question_id, loader: ReferenceLogicLoader | None = None,
                              code=None, language=None, rules: ScoringRules | None = None) -> ComparisonResult:
    """Look up a question's reference logic and compare features against it.

    When the submitted code is given and the reference logic carries a
    reference solution, their TAC similarity is taken into account.
    """
    reference = (loader or default_loader()).get(question_id)
    if reference is None:
        return ComparisonResult.failure(f'Reference logic not found for question {question_id}',
                                        question_id=str(question_id))
    similarity = None
    if code is not None:
        similarity = tac_similarity(code, language, reference)
    return compare(features, reference, tac_similarity=similarity, rules=rules)


class CoreFeatures(_Model):
    loop_count: int = 0
    nested_loop_count: int = 0
    recursion_detected: bool = False
    uses_hash_map: bool = False
    uses_sorting: bool = False
    memoization_or_dp: bool = Field(default=False, alias='memoizationOrDP')
    has_log_loop: bool = False
    divides_input: bool = False
    paradigm: Paradigm = Paradigm.SIMPLE_LOGIC
    estimated_time_complexity: Complexity = Complexity.CONSTANT
    estimated_space_complexity: Complexity = Complexity.CONSTANT

    @classmethod
    def of(cls, features: FeatureVector) -> 'CoreFeatures':
        return cls.model_validate(features.model_dump(include=set(cls.model_fields)))


class CodePairComparison(_Model):
    success: bool = True
    error: str | None = None
    overall_match: bool = False
    matches: dict[str, bool] = {}
    reference: CoreFeatures = CoreFeatures()
    submission: CoreFeatures = CoreFeatures()
    deltas: dict[str, Any] = {}
    equivalence: dict[str, bool] = {}
    tac_similarity: float = 0.0


_PAIR_FLAGS = ('uses_hash_map', 'uses_sorting', 'recursion_detected', 'memoization_or_dp',
               'has_log_loop', 'divides_input')


def _program(value) -> tuple[str, str | None]:
    if isinstance(value, Mapping):
        return value.get('code') or '', value.get('language')
    if isinstance(value, (str, bytes)):
        return value, None
    return '', None


def _is_dp_class(core: CoreFeatures) -> bool:
    return core.memoization_or_dp or core.paradigm == Paradigm.DYNAMIC_PROGRAMMING


def compare_code_pair(reference, submission) -> CodePairComparison:
    """Run a reference program and a submission through the same pipeline.

    Args:
        reference, submission: {"code": ..., "language": ...} mappings or
            bare code. The submission defaults to the reference's language,
            which defaults to Python.
    """
    ref_code, ref_lang = _program(reference)
    sub_code, sub_lang = _program(submission)
    ref_lang = ref_lang or 'python'
    sub_lang = sub_lang or ref_lang

    ref = CoreFeatures.of(extract_features(ref_code, ref_lang))
    sub = CoreFeatures.of(extract_features(sub_code, sub_lang))

    time_match = ref.estimated_time_complexity == sub.estimated_time_complexity
    space_match = ref.estimated_space_complexity == sub.estimated_space_complexity
    flags = {}
    for name in _PAIR_FLAGS:
        flags[CoreFeatures.model_fields[name].alias] = {
            'reference': getattr(ref, name),
            'submission': getattr(sub, name),
        }

    return CodePairComparison(
        overall_match=time_match and space_match,
        matches={
            'timeMatch': time_match,
            'spaceMatch': space_match,
            'paradigmMatch': ref.paradigm == sub.paradigm,
        },
        reference=ref,
        submission=sub,
        deltas={
            'loopCount': sub.loop_count - ref.loop_count,
            'nestedLoopCount': sub.nested_loop_count - ref.nested_loop_count,
            'flags': flags,
        },
        equivalence={
            'logarithmicSearchClass': (ref.estimated_time_complexity == Complexity.LOGARITHMIC
                                       and sub.estimated_time_complexity == Complexity.LOGARITHMIC),
            'dynamicProgrammingClass': _is_dp_class(ref) and _is_dp_class(sub),
        },
        tac_similarity=compare_tac(generate_tac(ref_code, ref_lang), generate_tac(sub_code, sub_lang)).similarity,
    )
