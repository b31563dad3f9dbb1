# -*- coding: utf-8 -*-
import pytest

from codeverdict import parsers
from codeverdict.extract import ASTFeatureExtractor, PatternFeatureExtractor

import test_extract as samples

CORPUS = [
    ('python', samples.PY_LOOPS),
    ('python', samples.PY_NAIVE_FIB),
    ('python', samples.PY_MEMO_FIB),
    ('python', samples.PY_BINARY_SEARCH),
    ('javascript', samples.JS_SORT),
    ('javascript', samples.JS_STACK),
    ('cpp', samples.CPP_NESTED),
    ('java', samples.JAVA_RECURSION),
]

COMPARED_FIELDS = [
    'loop_count',
    'nested_loop_count',
    'recursion_detected',
    'estimated_time_complexity',
    'estimated_space_complexity',
    'paradigm',
]


@pytest.mark.parametrize('language, code', CORPUS)
def test_ast_and_pattern_extractors_agree(language, code):
    if not parsers.is_available(language):
        pytest.skip(f'no {language} parser installed')
    ast = ASTFeatureExtractor().extract(code, language)
    pattern = PatternFeatureExtractor().extract(code, language)
    for field in COMPARED_FIELDS:
        assert getattr(ast, field) == getattr(pattern, field), field
