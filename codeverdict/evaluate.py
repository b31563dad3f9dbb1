#! /usr/bin/env python3
"""Grade one submission from the command line and print its verdict."""
import argparse
import json
import logging
import sys
from pathlib import Path

import colorlog
import yaml

from . import config
from . import logger
from .codeblock import extract_first_code_block
from .comparator import ComparisonResult, ScoringRules, compare, compare_against_reference
from .extract import extract_features
from .reference import ReferenceLogicLoader
from .source import decode_source
from .tac import compare_tac, generate_tac
from .verdict import PASSING, VerdictRules, generate_verdict
from .version import add_version_arg

log = logger.get('evaluate')

SUFFIXES = {
    '.py': 'python',
    '.js': 'javascript',
    '.mjs': 'javascript',
    '.cpp': 'cpp',
    '.cc': 'cpp',
    '.cxx': 'cpp',
    '.c': 'cpp',
    '.h': 'cpp',
    '.hpp': 'cpp',
    '.java': 'java',
}


def guess_language(path: str | None) -> str | None:
    if path is None:
        return None
    return SUFFIXES.get(Path(path).suffix.lower())


def read_text(path: str) -> str:
    with open(path, 'rb') as f:
        return decode_source(f.read())


def read_test_result(path: str) -> dict:
    """Test execution result from a JSON or YAML file."""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f'{path}: expected a mapping, got {type(data).__name__}')
    return data


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Estimate the complexity of a submission, compare it with the reference logic of its question and print a verdict.'
    )
    parser.add_argument('-L', '--language', help='language of the submission (default: guessed from the file name, else python)')
    parser.add_argument('-q', '--question', help='question id, e.g. Q022 or 22')
    parser.add_argument('-t', '--tests', metavar='FILE', help='test execution result (JSON or YAML)')
    parser.add_argument(
        '-s',
        '--security_events',
        type=int,
        metavar='N',
        help='number of security events recorded during the submission',
    )
    parser.add_argument(
        '-r',
        '--reference_code',
        metavar='FILE',
        help='reference solution to compare the structure of the submission with (default: the one in the reference logic, if any)',
    )
    parser.add_argument('--reference_language', help='language of the reference solution (default: guessed from the file name)')
    parser.add_argument('--logic_dir', help='directory holding the reference logic documents')
    parser.add_argument(
        '-m',
        '--markdown',
        action='store_true',
        help='the submission is markdown; grade its first fenced code block',
    )
    parser.add_argument('-f', '--format', choices=['yaml', 'json'], default='yaml', help='output format')
    parser.add_argument(
        '-d',
        '--details',
        action='store_true',
        help='also print the feature vector and the rule-based comparison',
    )
    parser.add_argument('-l', '--log_level', default='warning', help='set log level (debug, info, warning, error, critical)')
    add_version_arg(parser)
    parser.add_argument('submission')
    return parser


def initialize_logging(args: argparse.Namespace) -> None:
    fmt = '%(log_color)s%(levelname)s %(message)s'
    colorlog.basicConfig(stream=sys.stderr, format=fmt, level=getattr(logging, args.log_level.upper()))


def _rule_result(args, features, code, language, scoring) -> ComparisonResult | None:
    if args.question is None:
        return None
    loader = ReferenceLogicLoader(args.logic_dir)
    if args.reference_code is None:
        return compare_against_reference(features, args.question, loader, code=code, language=language, rules=scoring)

    reference = loader.get(args.question)
    if reference is None:
        return ComparisonResult.failure(f'Reference logic not found for question {args.question}', args.question)
    reference_language = args.reference_language or guess_language(args.reference_code) or language
    similarity = compare_tac(
        generate_tac(code, language),
        generate_tac(read_text(args.reference_code), reference_language),
    ).similarity
    return compare(features, reference, tac_similarity=similarity, rules=scoring)


def evaluate(args: argparse.Namespace) -> dict:
    grading = config.load_config('grading.yaml')

    code = read_text(args.submission)
    language = args.language or guess_language(args.submission)
    if args.markdown:
        block = extract_first_code_block(code)
        if block is None:
            log.warning('No fenced code block in %s; grading the whole text', args.submission)
        else:
            code = block.code
            language = args.language or block.language
    language = language or 'python'

    features = extract_features(code, language)
    rule_result = _rule_result(args, features, code, language, ScoringRules.from_config(grading))
    if rule_result is not None and not rule_result.success:
        log.error('%s', rule_result.error)
    test_result = read_test_result(args.tests) if args.tests else None

    verdict = generate_verdict(
        rule_result=rule_result,
        test_result=test_result,
        security_events=args.security_events,
        rules=VerdictRules.from_config(grading),
    )
    degraded = logger.summary()
    if degraded:
        log.info('Reported during grading: %s', degraded)
    report = {'verdict': verdict.to_dict()}
    if args.details:
        report['features'] = features.to_dict()
        report['comparison'] = rule_result.to_dict() if rule_result is not None else None
    return report


def dump(report: dict, fmt: str) -> str:
    if fmt == 'json':
        return json.dumps(report, indent=2, ensure_ascii=False)
    return yaml.safe_dump(report, sort_keys=False, allow_unicode=True)


def main() -> None:
    args = argparser().parse_args()

    initialize_logging(args)

    try:
        report = evaluate(args)
    except (OSError, ValueError, yaml.YAMLError, config.ConfigError) as err:
        print(f'ERROR: {err}', file=sys.stderr)
        sys.exit(2)

    print(dump(report, args.format), end='' if args.format == 'yaml' else '\n')
    if report['verdict']['decision'] not in PASSING:
        sys.exit(1)


if __name__ == '__main__':
    main()
