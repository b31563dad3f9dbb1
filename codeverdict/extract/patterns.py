"""
Fact collection by pattern matching, for when no parser is available.

Loops, functions and their bodies are located with the structure regexes
from patterns.yaml; bodies are delimited by matching braces, or by
indentation for Python. Nesting and recursion are then decided from the
spans, the same way the tree walkers decide them from subtrees.
"""
import re

from ..source import blank_strings
from .facts import FunctionFacts, ProgramFacts, SyntaxTable

_NUMBER = re.compile(r'(?<![\w.])\d+(?:\.\d+)?(?![\w.])')
_BLANKED_STRING = re.compile(r'""|``')
_CLOSERS = {'(': ')', '[': ']', '{': '}'}


def _matching(text: str, start: int) -> int:
    """Index of the bracket closing the one at start (or the last index)."""
    opener = text[start]
    closer = _CLOSERS[opener]
    depth = 0
    for i in range(start, len(text)):
        if text[i] == opener:
            depth += 1
        elif text[i] == closer:
            depth -= 1
            if depth == 0:
                return i
    return len(text) - 1


def _statement_end(text: str, i: int) -> int:
    """End of the statement starting at i, for brace-delimited languages."""
    while i < len(text):
        c = text[i]
        if c == '{':
            return _matching(text, i) + 1
        if c in '([':
            i = _matching(text, i) + 1
            continue
        if c == ';':
            return i + 1
        if c == '}':
            return i
        i += 1
    return len(text)


def _skip_space(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _line_start(text: str, pos: int) -> int:
    return text.rfind('\n', 0, pos) + 1


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(' \t'))


def _indented_block_end(text: str, header: int) -> int:
    """End of the block introduced by the line containing header."""
    start = _line_start(text, header)
    newline = text.find('\n', header)
    if newline < 0:
        return len(text)
    header_indent = _indent(text[start:newline])
    pos = newline + 1
    end = len(text)
    while pos < len(text):
        eol = text.find('\n', pos)
        if eol < 0:
            eol = len(text)
        line = text[pos:eol]
        if line.strip() and _indent(line) <= header_indent:
            return pos
        end = eol
        pos = eol + 1
    return end


class PatternCollector(object):

    def __init__(self, table: SyntaxTable, style: str):
        self.table = table
        self.style = style
        self.indented = style == 'hash'

    def collect(self, source: str) -> ProgramFacts:
        """Collect facts from comment-free source."""
        text = blank_strings(source, self.style)
        structure = self.table.structure
        facts = ProgramFacts()

        loops = [self._loop_span(text, m) for m in structure['loop'].finditer(text)]
        facts.loop_count = len(loops)
        facts.nested_loop_count = sum(
            1 for (start, end) in loops
            if any(start < other < end for (other, _) in loops)
        )
        facts.conditional_count = len(structure['conditional'].findall(text))
        facts.literal_count = len(_NUMBER.findall(text)) + len(_BLANKED_STRING.findall(text))

        halvings = [m.start() for m in structure['halving'].finditer(text)]
        facts.halving_in_loop = any(start <= h < end for h in halvings for (start, end) in loops)

        for match in structure['function'].finditer(text):
            name = next((group for group in match.groups() if group), None)
            if name is None or name in ('if', 'for', 'while', 'switch', 'catch', 'return', 'else'):
                continue
            body_start, body_end = self._function_body(text, match)
            fn = facts.function(name)
            self._function_facts(fn, text[body_start:body_end], loops, halvings, body_start, body_end)

        facts.digest.append(text)
        facts.digest.extend(m.group(0) for m in self.table.names['input_read'].finditer(source))
        return facts

    def _loop_span(self, text: str, match) -> tuple[int, int]:
        if self.indented:
            return match.start(), _indented_block_end(text, match.end())
        paren = text.find('(', match.start())
        if paren < 0:
            return match.start(), match.end()
        return match.start(), _statement_end(text, _skip_space(text, _matching(text, paren) + 1))

    def _function_body(self, text: str, match) -> tuple[int, int]:
        if self.indented:
            return match.end(), _indented_block_end(text, match.end())
        i = match.end()
        if text[i - 1] == '{':
            return i - 1, _matching(text, i - 1) + 1
        # JavaScript: skip the parameter list (unless the match already did)
        # and take either a braced body or an arrow expression.
        paren = text.find('(', match.start(), i + 1)
        if paren >= 0 and text[i - 1] == '(':
            i = _matching(text, paren) + 1
        i = _skip_space(text, i)
        if text.startswith('=>', i):
            i = _skip_space(text, i + 2)
        if i < len(text) and text[i] == '{':
            return i, _matching(text, i) + 1
        return i, _statement_end(text, i)

    def _function_facts(self, fn: FunctionFacts, body: str, loops, halvings, start, end):
        name = re.escape(fn.name)
        direct = re.compile(r'(?<![\w.$])' + name + r'\s*\(|\b(?:self|cls|this)\s*(?:\.|->)\s*' + name + r'\s*\(')
        if direct.search(body):
            fn.calls.add(fn.name)
        for other in re.findall(r'(?<![\w.$])([A-Za-z_$][\w$]*)\s*\(', body):
            fn.calls.add(other)
        if any(start <= loop_start < end for (loop_start, _) in loops):
            fn.has_loop = True
        if any(start <= h < end for h in halvings):
            fn.halving = True


def collect_facts(source: str, table: SyntaxTable, style: str) -> ProgramFacts:
    return PatternCollector(table, style).collect(source)
