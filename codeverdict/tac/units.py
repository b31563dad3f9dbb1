"""
Cutting source text into statement units, and the bracket and string
aware scanning helpers the lowering needs.
"""
import re
from dataclasses import dataclass

_QUOTES = '"\'`'
_OPEN = '([{'
_CLOSE = ')]}'
_TAB_WIDTH = 4

# A "{" after one of these starts an object, array or dict literal rather
# than a block.
_LITERAL_BRACE = re.compile(r'(?:[=(,\[?\]]|\breturn)\s*$')


@dataclass(frozen=True)
class Unit:
    indent: int
    text: str
    # whether the unit is the first one on its line; only those can close
    # indentation blocks
    first: bool


def skip_string(text: str, i: int) -> int:
    """Index just past the string literal starting at text[i]."""
    quote = text[i]
    if quote != '`' and text.startswith(quote * 3, i):
        end = text.find(quote * 3, i + 3)
        return len(text) if end < 0 else end + 3
    j = i + 1
    while j < len(text):
        c = text[j]
        if c == '\\':
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == '\n' and quote != '`':
            return j
        j += 1
    return len(text)


def closing_index(text: str, start: int) -> int:
    """Index of the bracket closing the one at text[start], or -1."""
    depth = 0
    i = start
    while i < len(text):
        c = text[i]
        if c in _QUOTES:
            i = skip_string(text, i)
            continue
        if c in _OPEN:
            depth += 1
        elif c in _CLOSE:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _top_level(text: str):
    """Yield (index, depth) for every character outside string literals."""
    depth = 0
    i = 0
    while i < len(text):
        c = text[i]
        if c in _QUOTES:
            i = skip_string(text, i)
            continue
        if c in _OPEN:
            depth += 1
        elif c in _CLOSE:
            depth = max(0, depth - 1)
        yield i, depth
        i += 1


def split_top(text: str, separator: str) -> list[str]:
    """Split on separator where it is outside brackets and strings."""
    parts = []
    start = 0
    skip_until = 0
    for i, depth in _top_level(text):
        if i < skip_until or depth != 0 or not text.startswith(separator, i):
            continue
        parts.append(text[start:i].strip())
        start = i + len(separator)
        skip_until = start
    parts.append(text[start:].strip())
    return parts


def top_level_colon(text: str) -> int:
    """Index of the first ":" outside brackets and strings, or -1.

    "::" and ":=" do not count.
    """
    for i, depth in _top_level(text):
        if depth != 0 or text[i] != ':':
            continue
        if text[i + 1:i + 2] in (':', '=') or text[i - 1:i] == ':':
            continue
        return i
    return -1


_AUGMENTED = ('>>>', '**', '//', '<<', '>>', '&&', '||', '??', '+', '-', '*', '/', '%', '&', '|', '^')


def find_assignment(text: str) -> tuple[int, int, str] | None:
    """Locate the first top-level assignment in a statement.

    Returns:
        (end of target, start of value, operator) where operator is "" for
        a plain assignment and e.g. "+" for "+=", or None.
    """
    i = 0
    depth = 0
    while i < len(text):
        c = text[i]
        if c in _QUOTES:
            i = skip_string(text, i)
            continue
        if c in _OPEN:
            depth += 1
        elif c in _CLOSE:
            depth = max(0, depth - 1)
        elif c == '=' and depth == 0:
            following = text[i + 1:i + 2]
            if following in ('=', '>'):
                while i < len(text) and text[i] in '=>':
                    i += 1
                continue
            before = text[:i]
            operator = next((op for op in _AUGMENTED if before.endswith(op)), '')
            if not operator and before.endswith(('!', '<', '>', '=')):
                i += 1
                continue
            return i - len(operator), i + 1, operator
        i += 1
    return None


def _indent_width(prefix: str) -> int:
    return sum(_TAB_WIDTH if c == '\t' else 1 for c in prefix)


def split_units(source: str) -> list[Unit]:
    """Cut source text into statement units.

    Units end at newlines and semicolons outside brackets. A block brace
    is a unit of its own; a brace that opens a literal stays part of the
    statement. A backslash before a newline joins the lines.
    """
    units: list[Unit] = []
    buf: list[str] = []
    depth = 0
    indent = 0
    first = True
    line_start = True

    def flush():
        nonlocal first
        text = ''.join(buf).strip()
        buf.clear()
        if text:
            units.append(Unit(indent, text, first))
            first = False

    def brace(text):
        nonlocal first
        flush()
        units.append(Unit(indent, text, first))
        first = False

    i = 0
    while i < len(source):
        c = source[i]
        if line_start:
            j = i
            while j < len(source) and source[j] in ' \t':
                j += 1
            if depth == 0:
                indent = _indent_width(source[i:j])
                first = True
            line_start = False
            i = j
            continue
        if c in _QUOTES:
            end = skip_string(source, i)
            buf.append(source[i:end])
            i = end
            continue
        if c == '\\' and source.startswith('\n', i + 1):
            buf.append(' ')
            i += 2
            continue
        if c == '\n':
            if depth == 0:
                flush()
            else:
                buf.append(' ')
            line_start = True
        elif c == ';' and depth == 0:
            flush()
        elif c == '{' and depth == 0 and not _LITERAL_BRACE.search(''.join(buf)):
            brace('{')
        elif c == '}' and depth == 0:
            brace('}')
        elif c in _OPEN:
            depth += 1
            buf.append(c)
        elif c in _CLOSE:
            depth = max(0, depth - 1)
            buf.append(c)
        else:
            buf.append(c)
        i += 1
    flush()
    return units
