# -*- coding: utf-8 -*-
import logging
from types import SimpleNamespace

import pytest

from codeverdict import logger
from codeverdict import parsers
from codeverdict.extract import PatternFeatureExtractor, extract_features


@pytest.mark.parametrize('code', ['', '  \n', None, 42, '(){}[]'])
def test_nothing_to_parse(code):
    assert parsers.parse(code, 'python') is None
    assert parsers.parse(code, 'javascript') is None


def test_parser_is_shared_between_tags():
    assert parsers.get_parser('py') is parsers.get_parser('python')
    assert parsers.get_parser('Python3') is parsers.get_parser('python')


def test_python_tree():
    if not parsers.is_available('python'):
        pytest.skip('no python grammar installed')
    tree = parsers.parse('def f(x):\n    return x + 1\n', 'py')
    assert tree.kind == parsers.TREE_SITTER
    assert tree.language == 'python'
    assert tree.root.type == 'module'
    assert tree.source == b'def f(x):\n    return x + 1\n'


def test_javascript_tree():
    if not parsers.is_available('javascript'):
        pytest.skip('esprima not installed')
    tree = parsers.parse('const a = 1;', 'js')
    assert tree.kind == parsers.ESTREE
    assert tree.root['type'] == 'Program'
    assert tree.root['body'][0]['type'] == 'VariableDeclaration'


def test_estree_dict():
    node = SimpleNamespace(type='Identifier', name='x', range=[0, 1])
    wrapped = SimpleNamespace(type='ExpressionStatement', expression=node)
    assert parsers._estree_dict(wrapped) == {
        'type': 'ExpressionStatement',
        'expression': {'type': 'Identifier', 'name': 'x', 'range': [0, 1]},
    }


def test_missing_backend_falls_back_to_patterns(monkeypatch):
    def unavailable(lang):
        raise ImportError(f'no grammar for {lang.lang_id}')

    monkeypatch.setattr(parsers, '_parsers', {})
    monkeypatch.setattr(parsers, '_create_parser', unavailable)
    count = logger.get('parsers').count
    warnings = count.warnings

    assert parsers.get_parser('java') is None
    assert not parsers.is_available('java')
    assert parsers.parse('class A {}', 'java') is None
    # reported once
    assert count.warnings == warnings + 1

    code = 'class A {\n    int f(int n) {\n        for (int i = 0; i < n; i++) {}\n        return n;\n    }\n}\n'
    assert extract_features(code, 'java') == extract_features(code, 'java', PatternFeatureExtractor())


def test_component_loggers():
    log = logger.get('test_component')
    assert isinstance(log, logger.ComponentLogger)
    assert logging.getLogger('codeverdict.test_component') is log
    assert logger.get('test_component') is log


def test_counter():
    counter = logger.Counter()
    for level in (logging.INFO, logging.WARNING, logging.WARNING, logging.ERROR, logging.CRITICAL):
        counter.filter(logging.LogRecord('x', level, __file__, 1, 'message', None, None))
    assert (counter.warnings, counter.errors) == (2, 2)
    assert str(counter) == '2 errors, 2 warnings'
    counter.reset()
    assert str(counter) == '0 errors, 0 warnings'


def test_summary_names_components_with_reports():
    logger.reset()
    assert logger.summary() == ''
    log = logger.get('test_summary')
    assert logger.components()['test_summary'] is log
    log.warning('degraded')
    assert logger.summary() == 'test_summary: 0 errors, 1 warning'
    logger.reset()
    assert not log.count
