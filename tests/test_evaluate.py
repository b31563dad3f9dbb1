# -*- coding: utf-8 -*-
import json
import sys

import pytest
import yaml

from codeverdict import evaluate
from codeverdict import reference

TWO_SUM = """function twoSum(nums, target) {
  const map = new Map();
  for (let i = 0; i < nums.length; i++) {
    const comp = target - nums[i];
    if (map.has(comp)) return [map.get(comp), i];
    map.set(nums[i], i);
  }
  return [];
}
"""


def run(monkeypatch, capsys, *argv):
    """Run the command line tool; returns exit status, stdout and stderr."""
    monkeypatch.setattr(sys, 'argv', ['codeverdict', *[str(arg) for arg in argv]])
    try:
        evaluate.main()
        status = 0
    except SystemExit as err:
        status = err.code
    captured = capsys.readouterr()
    return status, captured.out, captured.err


@pytest.fixture
def submission(tmp_path):
    path = tmp_path / 'double.py'
    path.write_text('print(int(input()) * 2)\n')
    return path


def test_passing_tests_only(monkeypatch, capsys, tmp_path, submission):
    tests = tmp_path / 'tests.json'
    tests.write_text(json.dumps({'totalTests': 3, 'passedTests': 3, 'passRate': 100}))
    status, out, _ = run(monkeypatch, capsys, '-t', tests, '-f', 'json', submission)
    assert status == 0
    report = json.loads(out)
    assert report['verdict']['decision'] == 'CORRECT'
    # 100 * 0.7
    assert report['verdict']['score'] == 70
    assert report['verdict']['components']['ruleBased'] is None
    assert 'features' not in report


def test_failing_verdict_exits_with_one(monkeypatch, capsys, tmp_path, submission):
    tests = tmp_path / 'tests.yaml'
    tests.write_text('totalTests: 4\npassedTests: 0\npassRate: 0\n')
    status, out, _ = run(monkeypatch, capsys, '-t', tests, submission)
    assert status == 1
    report = yaml.safe_load(out)
    assert report['verdict']['decision'] == 'INCORRECT'
    assert report['verdict']['score'] == 0


def test_missing_submission(monkeypatch, capsys, tmp_path):
    status, out, err = run(monkeypatch, capsys, tmp_path / 'nope.py')
    assert status == 2
    assert out == ''
    assert err.startswith('ERROR:')


def test_test_result_must_be_a_mapping(monkeypatch, capsys, tmp_path, submission):
    tests = tmp_path / 'tests.yaml'
    tests.write_text('- 1\n- 2\n')
    status, _, err = run(monkeypatch, capsys, '-t', tests, submission)
    assert status == 2
    assert 'expected a mapping' in err


def test_graded_against_reference(monkeypatch, capsys, tmp_path):
    code = tmp_path / 'two_sum.js'
    code.write_text(TWO_SUM)
    tests = tmp_path / 'tests.json'
    tests.write_text(json.dumps({'totalTests': 5, 'passedTests': 5, 'passRate': 100}))
    status, out, _ = run(monkeypatch, capsys, '-q', '22', '--logic_dir', reference.DEFAULT_LOGIC_DIR,
                         '-t', tests, '-d', '-f', 'json', code)
    assert status == 0
    report = json.loads(out)
    assert report['verdict']['decision'] in ('CORRECT', 'ACCEPTABLE')
    assert report['features']['usesHashMap'] is True
    comparison = report['comparison']
    assert comparison['questionId'] == 'Q022'
    assert comparison['timeComplexityMatch'] is True
    assert comparison['complexityMarks'] == 10
    # the bundled reference solution is the same program with other names
    assert comparison['tacSimilarity'] == 1.0


def test_unknown_question(monkeypatch, capsys, tmp_path, submission):
    status, out, err = run(monkeypatch, capsys, '-q', 'Q999', '--logic_dir', tmp_path, '-d', '-f', 'json', submission)
    assert status == 1
    report = json.loads(out)
    assert report['comparison']['success'] is False
    assert 'Q999' in report['comparison']['error']


def test_markdown_submission(monkeypatch, capsys, tmp_path):
    answer = tmp_path / 'answer.md'
    answer.write_text('Here you go:\n\n```python\nfor x in xs:\n    print(x)\n```\n')
    status, out, _ = run(monkeypatch, capsys, '-m', '-d', '-f', 'json', answer)
    # nothing to grade against
    assert status == 1
    features = json.loads(out)['features']
    assert features['loopCount'] == 1
    assert features['estimatedTimeComplexity'] == 'O(n)'


def test_version(monkeypatch, capsys):
    status, out, _ = run(monkeypatch, capsys, '--version')
    assert status == 0
    assert out.startswith('codeverdict ')


@pytest.mark.parametrize('path, language', [
    ('a.py', 'python'),
    ('dir/b.JS', 'javascript'),
    ('c.cc', 'cpp'),
    ('Main.java', 'java'),
    ('notes.txt', None),
    (None, None),
])
def test_guess_language(path, language):
    assert evaluate.guess_language(path) == language
