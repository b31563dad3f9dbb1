"""
Parser registry: maps a language onto a concrete parser.

JavaScript is parsed by esprima into an ESTree dictionary; Python, C++ and
Java are parsed by tree-sitter grammars from tree-sitter-language-pack.
Parser handles are created once per language and shared.

parse() never raises: anything that goes wrong while loading a grammar or
parsing is logged and reported as None.
"""

import threading
from dataclasses import dataclass
from typing import Any

from . import languages
from . import logger
from .source import decode_source, has_program_text

log = logger.get('parsers')


class ParseError(Exception):
    """Raised by a parser when the source cannot be turned into a tree."""
    pass


ESTREE = 'estree'
TREE_SITTER = 'tree-sitter'

# Share of the source (in bytes) that may sit inside ERROR nodes before a
# tree-sitter tree is considered a failed parse.
MAX_ERROR_SHARE = 0.5


@dataclass(frozen=True)
class ParsedTree:
    language: str
    kind: str
    root: Any
    source: bytes


class EsprimaParser(object):
    kind = ESTREE

    def __init__(self, language: str):
        import esprima

        self.language = language
        self._esprima = esprima

    def parse(self, code: str) -> ParsedTree:
        try:
            program = self._esprima.parseScript(code, {'range': True, 'tolerant': True})
        except Exception as err:
            raise ParseError(f'{self.language}: {err}') from err
        return ParsedTree(self.language, self.kind, _estree_dict(program), code.encode('utf-8'))


def _estree_dict(node):
    """Turn an esprima node tree into plain dictionaries and lists."""
    if hasattr(node, 'toDict'):
        node = node.toDict()
    if isinstance(node, dict):
        return {key: _estree_dict(value) for key, value in node.items()}
    if isinstance(node, (list, tuple)):
        return [_estree_dict(value) for value in node]
    if hasattr(node, '__dict__') and not isinstance(node, type):
        return {key: _estree_dict(value) for key, value in vars(node).items()}
    return node


class TreeSitterParser(object):
    kind = TREE_SITTER

    def __init__(self, language: str, grammar: str):
        import tree_sitter_language_pack

        self.language = language
        self.grammar = grammar
        self._parser = tree_sitter_language_pack.get_parser(grammar)
        self._lock = threading.Lock()

    def parse(self, code: str) -> ParsedTree:
        source = code.encode('utf-8')
        # tree-sitter parser objects are not safe to share between threads
        with self._lock:
            tree = self._parser.parse(source)
        root = tree.root_node
        if root.has_error and _error_share(root, len(source)) > MAX_ERROR_SHARE:
            raise ParseError(f'{self.language}: source is mostly unparseable')
        return ParsedTree(self.language, self.kind, root, source)


def _error_share(root, total: int) -> float:
    if total == 0:
        return 0.0
    covered = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == 'ERROR':
            covered += node.end_byte - node.start_byte
        elif node.has_error:
            stack.extend(node.children)
    return covered / total


_parsers: dict[str, EsprimaParser | TreeSitterParser | None] = {}
_parsers_lock = threading.Lock()


def _create_parser(lang: languages.Language):
    if lang.parser == 'esprima':
        return EsprimaParser(lang.lang_id)
    return TreeSitterParser(lang.lang_id, lang.grammar)


def get_parser(language) -> EsprimaParser | TreeSitterParser | None:
    """Parser for a language tag, or None if its backend is unavailable.

    The outcome is remembered, so a missing grammar is only reported once.
    """
    lang = languages.get_languages().normalize(language)
    with _parsers_lock:
        if lang.lang_id not in _parsers:
            try:
                _parsers[lang.lang_id] = _create_parser(lang)
            except Exception as err:
                log.warning('No %s parser available (%s), falling back to pattern matching', lang.name, err)
                _parsers[lang.lang_id] = None
        return _parsers[lang.lang_id]


def is_available(language) -> bool:
    return get_parser(language) is not None


def parse(code, language) -> ParsedTree | None:
    """Parse code in the given language.

    Returns:
        ParsedTree, or None when there is no parser for the language or
        the code cannot be parsed.
    """
    text = decode_source(code)
    if text is None or not has_program_text(text):
        return None
    parser = get_parser(language)
    if parser is None:
        return None
    try:
        return parser.parse(text)
    except ParseError as err:
        log.warning('Parse failed: %s', err)
        return None
    except Exception as err:
        log.warning('Parser crashed on %s code: %s', parser.language, err)
        return None
