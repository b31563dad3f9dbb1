"""
Helpers for handling submitted source text.
"""
import re


def decode_source(code) -> str | None:
    """Coerce submitted code to text; bytes are decoded leniently."""
    if isinstance(code, str):
        return code
    if isinstance(code, (bytes, bytearray)):
        return bytes(code).decode('utf-8', errors='replace')
    return None


def has_program_text(code: str) -> bool:
    """Whether the text holds any identifier or number characters at all."""
    return re.search(r'[A-Za-z0-9_]', code) is not None


def count_lines(code: str) -> int:
    return code.count('\n') + 1 if code else 0


_STRING_OR_COMMENT = {
    'c': re.compile(
        r'("(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'|`(?:\\.|[^`\\])*`)|(//[^\n]*|/\*.*?\*/)',
        re.DOTALL,
    ),
    'hash': re.compile(
        r'("""[\s\S]*?"""|\'\'\'[\s\S]*?\'\'\'|[rbuf]*"(?:\\.|[^"\\\n])*"|[rbuf]*\'(?:\\.|[^\'\\\n])*\')|(#[^\n]*)',
        re.IGNORECASE,
    ),
}


def strip_comments(code: str, style: str) -> str:
    """Remove comments, keeping string literals and the line structure.

    style is "c" for // and /* */ comments, "hash" for # comments.
    """
    def replace(match):
        if match.group(1) is not None:
            return match.group(1)
        return '\n' * match.group(2).count('\n')
    return _STRING_OR_COMMENT[style].sub(replace, code)


def blank_strings(code: str, style: str) -> str:
    """Remove comments and replace every string literal by an empty one."""
    def replace(match):
        if match.group(1) is None:
            return '\n' * match.group(2).count('\n')
        quote = '`' if match.group(1).endswith('`') else '"'
        return quote + quote
    return _STRING_OR_COMMENT[style].sub(replace, code)
