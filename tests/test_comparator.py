# -*- coding: utf-8 -*-
import pytest

from codeverdict import comparator
from codeverdict import config
from codeverdict import parsers
from codeverdict import reference
from codeverdict.comparator import AlgorithmMatch, ComparisonResult, ScoringRules, Severity
from codeverdict.complexity import Complexity
from codeverdict.extract import ASTFeatureExtractor, PatternFeatureExtractor, extract_features
from codeverdict.features import FeatureVector, Paradigm


def make_reference(**overrides):
    document = {
        'questionId': 'Q100',
        'expectedAlgorithm': 'Single pass with a hash map',
        'allowedApproaches': ['hash_map'],
        'disallowedPatterns': [],
        'expectedTimeComplexity': 'O(n)',
        'expectedSpaceComplexity': 'O(n)',
    }
    document.update(overrides)
    return reference.validate(document, document['questionId'])


def hash_map_features(**overrides):
    values = dict(
        loop_count=1,
        conditional_count=1,
        line_count=9,
        uses_hash_map=True,
        estimated_time_complexity=Complexity.LINEAR,
        estimated_space_complexity=Complexity.LINEAR,
        paradigm=Paradigm.HASH_MAP,
    )
    values.update(overrides)
    return FeatureVector(**values)


def finding_types(findings):
    return [finding.type for finding in findings]


@pytest.mark.parametrize('time, space, marks', [
    ('O(n)', 'O(n)', 10),
    ('O(n)', 'O(1)', 5),
    ('O(n²)', 'O(n)', 5),
    ('O(n²)', 'O(1)', 0),
])
def test_complexity_marks(time, space, marks):
    features = hash_map_features(estimated_time_complexity=time, estimated_space_complexity=space)
    result = comparator.compare(features, make_reference())
    assert result.complexity_marks == marks
    assert result.complexity_match == (marks == 10)


def test_full_match():
    result = comparator.compare(hash_map_features(), make_reference(paradigm='hash map'))
    assert result.success
    assert result.matched
    assert result.algorithm_match == AlgorithmMatch.FULL
    assert result.logic_score == 100
    assert result.issues == []
    assert result.warnings == []
    assert set(finding_types(result.successes)) == {
        'complexity_match', 'space_complexity_match', 'paradigm_match', 'approach_match',
    }
    assert result.detected_approaches == ['hash_map']
    assert result.reasons == [
        '✓ Time complexity matches: O(n)',
        '✓ Algorithm fully matches expected approach',
    ]


def test_missing_reference_fails_closed():
    result = comparator.compare(hash_map_features(), None)
    assert not result.success
    assert result.error == 'Reference logic not found'
    assert result.logic_score == 0
    assert result.complexity_marks == 0
    assert not result.matched


def test_compare_against_missing_question(tmp_path):
    loader = reference.ReferenceLogicLoader(tmp_path)
    result = comparator.compare_against_reference(hash_map_features(), 'Q404', loader)
    assert not result.success
    assert result.error == 'Reference logic not found for question Q404'
    assert result.question_id == 'Q404'


def test_acceptable_complexity():
    ref = make_reference(acceptableComplexities=['O(n log n)'])
    result = comparator.compare(hash_map_features(estimated_time_complexity='O(n log n)'), ref)
    assert result.time_complexity_match
    assert 'Time complexity matches acceptable set: O(n log n)' in [s.message for s in result.successes]


def test_time_mismatch_is_high_severity():
    result = comparator.compare(hash_map_features(estimated_time_complexity='O(n²)'), make_reference())
    assert finding_types(result.issues) == ['complexity_mismatch']
    issue = result.issues[0]
    assert issue.severity == Severity.HIGH
    assert issue.expected == 'O(n)'
    assert issue.actual == 'O(n²)'
    assert result.algorithm_match == AlgorithmMatch.PARTIAL
    assert result.logic_score == 80


def test_nested_loops_and_brute_force():
    ref = make_reference(disallowedPatterns=['nested loops', 'brute force'])
    features = FeatureVector(
        loop_count=3,
        nested_loop_count=2,
        estimated_time_complexity=Complexity.QUADRATIC,
    )
    result = comparator.compare(features, ref)

    assert finding_types(result.issues) == ['complexity_mismatch', 'nested_loops_detected', 'brute_force_detected']
    assert result.algorithm_match == AlgorithmMatch.NONE
    assert not result.matched
    assert result.violates_disallowed_patterns
    assert result.violated_patterns == ['nested loops', 'brute force']
    # three critical issues and the space mismatch warning
    assert result.logic_score == 100 - 3 * 20 - 5
    assert '✗ Uses disallowed patterns or approaches' in result.reasons


def test_hardcoding():
    ref = make_reference(disallowedPatterns=['hardcoded output'])
    features = hash_map_features(hardcoding_detected=True, constant_only_output=True)
    result = comparator.compare(features, ref)
    assert finding_types(result.issues) == ['hardcoding_detected']
    assert result.violated_patterns == ['hardcoded output']


def test_recursion_pattern_does_not_break_match():
    ref = make_reference(disallowedPatterns=['recursion', 'exponential recursion without memoization'])
    features = hash_map_features(recursion_detected=True, memoization_or_dp=True)
    result = comparator.compare(features, ref)
    assert finding_types(result.issues) == ['recursion_detected']
    assert result.issues[0].severity == Severity.MEDIUM
    assert result.matched
    assert result.algorithm_match == AlgorithmMatch.PARTIAL
    assert not result.violates_disallowed_patterns
    assert result.logic_score == 90


def test_linear_search_is_an_issue_but_no_violation():
    ref = make_reference(expectedTimeComplexity='O(n)', disallowedPatterns=['linear search'])
    result = comparator.compare(hash_map_features(), ref)
    assert finding_types(result.issues) == ['linear_search_detected']
    assert not result.violates_disallowed_patterns


def test_loop_constraints():
    features = hash_map_features()
    result = comparator.compare(features, make_reference(constraints={'shouldUseLoops': False}))
    assert 'unnecessary_loops' in finding_types(result.warnings)

    result = comparator.compare(features, make_reference(constraints={}))
    assert 'unnecessary_loops' not in finding_types(result.warnings)

    result = comparator.compare(hash_map_features(loop_count=0), make_reference(constraints={'shouldUseLoops': True}))
    assert 'missing_loops' in finding_types(result.warnings)


def test_input_and_length_constraints():
    ref = make_reference(constraints={'shouldReadInput': True, 'maxLineCount': 5, 'minLineCount': 2})
    result = comparator.compare(hash_map_features(line_count=9), ref)
    assert 'missing_input_handling' in finding_types(result.issues)
    assert 'too_long' in finding_types(result.warnings)

    result = comparator.compare(hash_map_features(line_count=1, input_dependent_logic=True), ref)
    assert 'input_handling_correct' in finding_types(result.successes)
    assert 'too_short' in finding_types(result.warnings)


def test_paradigm_mismatch_is_a_warning():
    result = comparator.compare(hash_map_features(), make_reference(paradigm='Sorting'))
    assert finding_types(result.warnings) == ['paradigm_mismatch']
    assert result.logic_score == 95
    assert result.algorithm_match == AlgorithmMatch.FULL


@pytest.mark.parametrize('similarity, warning, success', [
    (0.3, True, False),
    (0.7, False, False),
    (0.95, False, True),
])
def test_tac_similarity_findings(similarity, warning, success):
    result = comparator.compare(hash_map_features(), make_reference(), tac_similarity=similarity)
    assert ('low_structural_similarity' in finding_types(result.warnings)) == warning
    assert ('structural_match' in finding_types(result.successes)) == success
    assert result.tac_similarity == similarity


def test_scoring_rules():
    rules = ScoringRules.from_config({'logic_score': {'critical_issue': 50}, 'tac_similarity_warning': 0.8})
    assert rules.critical_issue == 50
    assert rules.medium_issue == 10
    assert rules.tac_similarity_warning == 0.8

    result = comparator.compare(hash_map_features(estimated_time_complexity='O(n²)'), make_reference(), rules=rules)
    assert result.logic_score == 50


def test_features_from_mapping():
    features = {
        'loopCount': 1,
        'usesHashMap': True,
        'estimatedTimeComplexity': 'O(n)',
        'estimatedSpaceComplexity': 'O(n)',
        'paradigm': 'Hash Map',
    }
    result = comparator.compare(features, make_reference())
    assert result.complexity_marks == 10


def test_invalid_features_use_defaults():
    result = comparator.compare('not a feature vector', make_reference())
    assert result.success
    assert result.detected_time_complexity == Complexity.CONSTANT


def test_detect_approaches():
    features = FeatureVector(
        loop_count=1,
        two_pointers=True,
        has_log_loop=True,
        estimated_time_complexity=Complexity.LOGARITHMIC,
        paradigm=Paradigm.TWO_POINTERS,
    )
    found = comparator.detect_approaches(features, ['two_pointers', 'binary_search', 'binary', 'hash_map'])
    assert found == ['two_pointers', 'binary_search']


def test_to_dict_wire_form():
    data = comparator.compare(hash_map_features(), make_reference()).to_dict()
    assert data['algorithmMatch'] == 'FULL'
    assert data['complexityMarks'] == 10
    assert data['detectedTimeComplexity'] == 'O(n)'
    assert 'error' not in data


TWO_SUM = """
function twoSum(nums, target) {
  const map = new Map();
  for (let i = 0; i < nums.length; i++) {
    const comp = target - nums[i];
    if (map.has(comp)) return [map.get(comp), i];
    map.set(nums[i], i);
  }
  return [];
}
"""

FIB_DP = """
function fib(n) {
  if (n <= 1) return n;
  const dp = new Array(n + 1).fill(0);
  dp[1] = 1;
  for (let i = 2; i <= n; i++) {
    dp[i] = dp[i-1] + dp[i-2];
  }
  return dp[n];
}
"""

BINARY_SEARCH = """
function binarySearch(arr, target) {
  let left = 0, right = arr.length - 1;
  while (left <= right) {
    const mid = Math.floor((left + right) / 2);
    if (arr[mid] === target) return mid;
    if (arr[mid] < target) left = mid + 1; else right = mid - 1;
  }
  return -1;
}
"""

ACTIVITY_SELECTION = """
function activitySelection(activities) {
  activities.sort((a, b) => a.end - b.end);
  let count = 1;
  let lastEnd = activities[0].end;
  for (let i = 1; i < activities.length; i++) {
    if (activities[i].start >= lastEnd) {
      count++;
      lastEnd = activities[i].end;
    }
  }
  return count;
}
"""

FIB_NAIVE = """
function fib(n) {
  if (n <= 1) return n;
  return fib(n - 1) + fib(n - 2);
}
"""

TWO_SUM_NESTED = """
function twoSumNested(nums, target) {
  for (let i = 0; i < nums.length; i++) {
    for (let j = i + 1; j < nums.length; j++) {
      if (nums[i] + nums[j] === target) return [i, j];
    }
  }
  return [];
}
"""

SCENARIOS = [
    ('Q022', TWO_SUM, True, True, 10),
    ('Q010', FIB_DP, True, True, 10),
    ('Q027', BINARY_SEARCH, True, True, 10),
    ('Q034', ACTIVITY_SELECTION, True, False, 5),
    ('Q010', FIB_NAIVE, False, False, 0),
    ('Q022', TWO_SUM_NESTED, False, False, 0),
]


def javascript_extractors():
    extractors = [PatternFeatureExtractor()]
    if parsers.is_available('javascript'):
        extractors.append(ASTFeatureExtractor())
    return extractors


@pytest.fixture
def bundled_loader():
    return reference.ReferenceLogicLoader(reference.DEFAULT_LOGIC_DIR)


@pytest.mark.parametrize('question_id, code, time_match, space_match, marks', SCENARIOS)
def test_bundled_questions(bundled_loader, question_id, code, time_match, space_match, marks):
    for extractor in javascript_extractors():
        features = extract_features(code, 'javascript', extractor)
        result = comparator.compare_against_reference(features, question_id, bundled_loader)
        assert result.success, extractor.name
        assert result.time_complexity_match == time_match, extractor.name
        assert result.space_complexity_match == space_match, extractor.name
        assert result.complexity_marks == marks, extractor.name


def test_nested_two_sum_violates(bundled_loader):
    features = extract_features(TWO_SUM_NESTED, 'javascript', PatternFeatureExtractor())
    result = comparator.compare_against_reference(features, 'Q022', bundled_loader)
    assert 'nested_loops_detected' in finding_types(result.issues)
    assert result.violated_patterns == ['nested loops']


def test_reference_solution_similarity(bundled_loader):
    features = extract_features(TWO_SUM, 'javascript', PatternFeatureExtractor())
    result = comparator.compare_against_reference(features, 'Q022', bundled_loader,
                                                  code=TWO_SUM, language='javascript')
    # same program up to variable names
    assert result.tac_similarity == 1.0
    assert 'structural_match' in finding_types(result.successes)


PY_TWO_SUM = """
def two_sum(nums, target):
    seen = {}
    for i, x in enumerate(nums):
        if target - x in seen:
            return [seen[target - x], i]
        seen[x] = i
    return []
"""

PY_BINARY_SEARCH = """
def binary_search(arr, target):
    lo, hi = 0, len(arr) - 1
    while lo <= hi:
        mid = (lo + hi) // 2
        if arr[mid] == target:
            return mid
        elif arr[mid] < target:
            lo = mid + 1
        else:
            hi = mid - 1
    return -1
"""


def test_code_pair_across_languages():
    result = comparator.compare_code_pair({'code': PY_TWO_SUM, 'language': 'python'},
                                          {'code': TWO_SUM, 'language': 'javascript'})
    assert result.success
    assert result.overall_match
    assert result.matches == {'timeMatch': True, 'spaceMatch': True, 'paradigmMatch': True}
    assert result.deltas['loopCount'] == 0
    assert result.deltas['flags']['usesHashMap'] == {'reference': True, 'submission': True}
    assert 'memoizationOrDP' in result.deltas['flags']
    assert not result.equivalence['logarithmicSearchClass']


def test_code_pair_logarithmic_class():
    result = comparator.compare_code_pair({'code': PY_BINARY_SEARCH, 'language': 'py'},
                                          {'code': BINARY_SEARCH, 'language': 'js'})
    assert result.equivalence['logarithmicSearchClass']
    assert result.reference.estimated_time_complexity == Complexity.LOGARITHMIC
    assert result.to_dict()['reference']['memoizationOrDP'] is False


PY_RECURSIVE_BINARY_SEARCH = """
def search(arr, target, lo, hi):
    if lo > hi:
        return -1
    mid = (lo + hi) // 2
    if arr[mid] == target:
        return mid
    if arr[mid] < target:
        return search(arr, target, mid + 1, hi)
    return search(arr, target, lo, mid - 1)
"""


def test_code_pair_iterative_and_recursive_search():
    result = comparator.compare_code_pair(PY_BINARY_SEARCH, PY_RECURSIVE_BINARY_SEARCH)
    assert result.matches['timeMatch']
    assert not result.matches['spaceMatch']
    assert not result.overall_match
    assert result.equivalence['logarithmicSearchClass']
    assert result.reference.estimated_space_complexity == Complexity.CONSTANT
    assert result.submission.estimated_space_complexity == Complexity.LOGARITHMIC
    assert result.submission.recursion_detected


def test_code_pair_defaults_to_reference_language():
    result = comparator.compare_code_pair(PY_TWO_SUM, PY_TWO_SUM)
    assert result.overall_match
    assert result.tac_similarity == 1.0


def test_failure_result_round_trips_through_dict():
    result = ComparisonResult.failure('Reference logic not found', 'Q404')
    assert ComparisonResult.model_validate(result.to_dict()) == result


def test_default_scoring_follows_grading_config(monkeypatch, tmp_path):
    (tmp_path / 'grading.yaml').write_text('logic_score:\n  critical_issue: 30\n')
    monkeypatch.setenv('CODEVERDICT_CONFIG_DIR', str(tmp_path))
    config.grading_config.cache_clear()
    try:
        result = comparator.compare(hash_map_features(estimated_time_complexity='O(n²)'), make_reference())
        assert result.logic_score == 70
    finally:
        config.grading_config.cache_clear()
