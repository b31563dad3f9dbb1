# -*- coding: utf-8 -*-
import pytest

from codeverdict import config
from codeverdict import verdict
from codeverdict.comparator import AlgorithmMatch, ComparisonResult
from codeverdict.complexity import Complexity
from codeverdict.verdict import Decision, TestExecutionResult, VerdictRules


def rule_result(**overrides):
    values = dict(
        question_id='Q022',
        matched=True,
        algorithm_match=AlgorithmMatch.FULL,
        complexity_match=True,
        time_complexity_match=True,
        space_complexity_match=True,
        complexity_marks=10,
        logic_score=100,
        detected_time_complexity=Complexity.LINEAR,
        expected_time_complexity=Complexity.LINEAR,
        detected_space_complexity=Complexity.LINEAR,
        expected_space_complexity=Complexity.LINEAR,
        reasons=['✓ Time complexity matches: O(n)', '✓ Algorithm fully matches expected approach'],
    )
    values.update(overrides)
    return ComparisonResult(**values)


ALL_PASSED = {'totalTests': 4, 'passedTests': 4, 'failedTests': [], 'passRate': 100}


def test_perfect_submission():
    v = verdict.generate_verdict(rule_result(), ALL_PASSED, [])
    assert v.decision == Decision.CORRECT
    assert v.passed
    # 100 * 0.7 + 100 * 0.2 + 10
    assert v.score == 100
    # (50 + 50 + 33) / 3
    assert v.trust_score == 44
    assert v.issues == []
    assert v.recommendations == ['Solution is correct! Review the analysis for optimization opportunities']


def test_score_formula():
    rule = rule_result(logic_score=75, space_complexity_match=False, complexity_match=False)
    tests = {'totalTests': 10, 'passedTests': 8, 'passRate': 80}
    v = verdict.generate_verdict(rule, tests)
    # 80 * 0.7 + 75 * 0.2 + 5
    assert v.score == 76


def test_score_rounds_half_up():
    assert verdict.round_half_up(0.5) == 1
    assert verdict.round_half_up(2.5) == 3
    assert verdict.round_half_up(2.4999) == 2
    tests = {'totalTests': 2, 'passedTests': 1, 'passRate': 50}
    rule = rule_result(logic_score=5, time_complexity_match=False, space_complexity_match=False,
                       complexity_match=False)
    # 35 + 1 = 36
    assert verdict.generate_verdict(rule, tests).score == 36


def test_nothing_known():
    v = verdict.generate_verdict()
    assert v.decision == Decision.INCORRECT
    assert v.score == 0
    assert v.trust_score == 0
    assert v.components == {'ruleBased': None, 'aiAnalysis': None, 'testResults': None}
    assert v.summary['keyMetrics']['testPassRate'] == 'N/A'


def test_trust_renormalizes_over_present_factors():
    rules = VerdictRules()
    assert verdict.trust_score(rule_result(), None, None, rules) == 50
    assert verdict.trust_score(None, TestExecutionResult(pass_rate=100), None, rules) == 50
    assert verdict.trust_score(None, None, 0, rules) == 33
    assert verdict.trust_score(None, None, 7, rules) == 0
    # (40 + 20) / 2
    assert verdict.trust_score(None, TestExecutionResult(pass_rate=85), 1, rules) == 30


def test_trust_rule_factor():
    rules = VerdictRules()
    partial = rule_result(algorithm_match=AlgorithmMatch.PARTIAL, violates_disallowed_patterns=True)
    # one of three checks agree: 50 / 3
    assert verdict.trust_score(partial, None, None, rules) == 17


@pytest.mark.parametrize('rate, points', [
    (100, 50),
    (99.9, 40),
    (80, 40),
    (60, 25),
    (40, 15),
    (10, 5),
    (0, 0),
])
def test_trust_test_bands(rate, points):
    assert verdict.trust_score(None, TestExecutionResult(pass_rate=rate), None, VerdictRules()) == points


def test_security_events_as_count_or_list():
    with_list = verdict.generate_verdict(security_events=['tab_switch', 'paste'])
    with_count = verdict.generate_verdict(security_events=2)
    assert with_list.trust_score == with_count.trust_score == 10


@pytest.mark.parametrize('rule, tests, expected', [
    (rule_result(), ALL_PASSED, Decision.CORRECT),
    # 5/5 from the rules alone
    (rule_result(), None, Decision.CORRECT),
    # 2 + 0 + 1 + 2 = 5 of 8
    (rule_result(complexity_match=False), {'totalTests': 5, 'passedTests': 4, 'passRate': 80}, Decision.NEEDS_IMPROVEMENT),
    # 2 + 2 + 1 + 1 = 6 of 8
    (rule_result(), {'totalTests': 2, 'passedTests': 1, 'passRate': 50}, Decision.ACCEPTABLE),
    # 0 + 0 + 0 + 0 = 0 of 8
    (rule_result(algorithm_match=AlgorithmMatch.NONE, complexity_match=False, violates_disallowed_patterns=True),
     {'totalTests': 2, 'passedTests': 0, 'passRate': 0}, Decision.INCORRECT),
    # tests alone: 3 of 3
    (None, ALL_PASSED, Decision.CORRECT),
])
def test_decision(rule, tests, expected):
    assert verdict.generate_verdict(rule, tests).decision == expected


def test_ai_verdict_is_never_scored():
    ai = {
        'algorithmCorrect': False,
        'complexityCorrect': False,
        'hasDisallowedPatterns': True,
        'disallowedPatternsFound': ['nested loops'],
        'weaknesses': ['Too slow'],
        'strengths': ['Readable'],
        'suggestion': 'Use a hash map',
        'logicScore': 0,
    }
    explanation = {'explanation': 'The loop is fine.', 'model': 'reviewer-1'}
    without = verdict.generate_verdict(rule_result(), ALL_PASSED, 0)
    with_ai = verdict.generate_verdict(rule_result(), ALL_PASSED, 0, ai_explanation=explanation, ai_verdict=ai)

    assert with_ai.decision == without.decision
    assert with_ai.score == without.score
    assert with_ai.trust_score == without.trust_score
    assert with_ai.ai_explanation == 'The loop is fine.'
    assert with_ai.ai_explanation_model == 'reviewer-1'
    assert {issue.source for issue in with_ai.issues} == {'ai-verdict'}
    assert 'Use a hash map' in with_ai.recommendations
    assert with_ai.components['aiAnalysis']['algorithmCorrect'] is False
    assert any(strength.description == 'Readable' for strength in with_ai.strengths)


def test_failing_tests_raise_issues():
    tests = {'totalTests': 5, 'passedTests': 2, 'failedTests': [{'input': '1'}, {'input': '2'}, {'input': '3'}],
             'executionError': 'IndexError', 'timeoutOccurred': True}
    v = verdict.generate_verdict(None, tests)
    types = [issue.type for issue in v.issues]
    assert types == ['test_failures', 'runtime_error', 'timeout']
    assert v.issues[0].description == 'Failed tests: 3/5'
    assert v.components['testResults']['passRate'] == 40.0


def test_pass_rate_from_counts():
    tests = TestExecutionResult(total_tests=4, passed_tests=3)
    assert tests.rate == 75.0
    assert TestExecutionResult().rate == 0.0
    assert TestExecutionResult(pass_rate=130).rate == 100.0
    assert TestExecutionResult(failed_tests=2).failed_count == 2


def test_recommendations_are_limited_and_unique():
    rule = rule_result(algorithm_match=AlgorithmMatch.NONE, complexity_match=False,
                       violates_disallowed_patterns=True, violated_patterns=['nested loops'])
    tests = {'totalTests': 3, 'passedTests': 0, 'failedTests': 3, 'passRate': 0,
             'executionError': 'boom', 'timeoutOccurred': True}
    ai = {'algorithmCorrect': False, 'suggestion': 'Start over'}
    v = verdict.generate_verdict(rule, tests, ai_verdict=ai)
    assert v.decision == Decision.INCORRECT
    assert len(v.recommendations) == 5
    assert len(set(v.recommendations)) == 5
    assert v.recommendations[0] == 'Review the problem statement and expected algorithm carefully'
    assert v.summary['nextSteps'] == v.recommendations[:2]


def test_disallowed_patterns_issue():
    rule = rule_result(violates_disallowed_patterns=True, violated_patterns=['nested loops', 'brute force'])
    v = verdict.generate_verdict(rule)
    issue = next(issue for issue in v.issues if issue.type == 'disallowed_patterns')
    assert issue.severity == 'critical'
    assert issue.description == 'Disallowed patterns detected: nested loops, brute force'


def test_strengths_include_rule_feedback():
    v = verdict.generate_verdict(rule_result(), ALL_PASSED)
    descriptions = [strength.description for strength in v.strengths]
    assert 'Time complexity matches: O(n)' in descriptions
    assert 'All 4 test cases passed' in descriptions


def test_components_carry_complexity_marks():
    rule = rule_result(space_complexity_match=False, complexity_match=False, complexity_marks=5,
                       detected_space_complexity=Complexity.CONSTANT)
    data = verdict.generate_verdict(rule).to_dict()
    rule_based = data['components']['ruleBased']
    assert rule_based['complexityMarks'] == 5
    assert rule_based['timeComplexityMatch'] is True
    assert rule_based['spaceComplexityMatch'] is False
    assert rule_based['detectedSpaceComplexity'] == 'O(1)'
    assert rule_based['expectedSpaceComplexity'] == 'O(n)'
    assert data['trustScore'] == verdict.generate_verdict(rule).trust_score


def test_rule_result_from_wire_form():
    wire = rule_result().to_dict()
    assert verdict.generate_verdict(wire, ALL_PASSED).score == 100


def test_malformed_inputs_are_ignored():
    v = verdict.generate_verdict('garbage', {'totalTests': 'many'}, object())
    assert v.decision == Decision.INCORRECT
    assert v.components['testResults'] is None


def test_generate_final_verdict_accepts_wire_names():
    v = verdict.generate_final_verdict({
        'ruleVerdictData': rule_result(),
        'aiVerdictData': None,
        'testVerdictData': ALL_PASSED,
        'securityViolations': [],
        'aiExplanation': None,
        'somethingElse': 1,
    })
    assert v.decision == Decision.CORRECT
    assert v.components['ruleBased']['complexityMarks'] == 10
    assert verdict.generate_final_verdict(test_result=ALL_PASSED).decision == Decision.CORRECT


def test_rules_from_config():
    rules = VerdictRules.from_config({
        'score_weights': {'tests': 0.5},
        'decision_thresholds': {'NEEDS_IMPROVEMENT': 0.1, 'CORRECT': 0.9, 'ACCEPTABLE': 0.5},
        'trust': {'security_points': [10, 0]},
        'max_recommendations': 2,
    })
    assert rules.test_weight == 0.5
    assert rules.logic_weight == 0.20
    assert [decision for decision, _ in rules.thresholds] == [
        Decision.CORRECT, Decision.ACCEPTABLE, Decision.NEEDS_IMPROVEMENT,
    ]
    assert rules.security_points == (10, 0)
    v = verdict.generate_verdict(None, {'totalTests': 1, 'passedTests': 0, 'passRate': 0}, 3, rules=rules)
    assert v.trust_score == 0
    assert len(v.recommendations) <= 2


def test_nan_pass_rate_fails_closed():
    assert TestExecutionResult(pass_rate=float('nan')).rate == 0.0
    v = verdict.generate_verdict(None, {'totalTests': 4, 'passedTests': 4, 'passRate': float('nan')})
    assert v.score == 0
    assert v.decision == Decision.INCORRECT


def test_default_rules_follow_grading_config(monkeypatch, tmp_path):
    (tmp_path / 'grading.yaml').write_text('score_weights:\n  tests: 0.5\n')
    monkeypatch.setenv('CODEVERDICT_CONFIG_DIR', str(tmp_path))
    config.grading_config.cache_clear()
    try:
        assert verdict.generate_verdict(None, ALL_PASSED).score == 50
    finally:
        config.grading_config.cache_clear()


def test_unusable_grading_values_use_built_in_rules(monkeypatch, tmp_path):
    (tmp_path / 'grading.yaml').write_text('decision_thresholds:\n  EXCELLENT: 0.99\n')
    monkeypatch.setenv('CODEVERDICT_CONFIG_DIR', str(tmp_path))
    config.grading_config.cache_clear()
    try:
        assert verdict.default_verdict_rules() == VerdictRules()
    finally:
        config.grading_config.cache_clear()
