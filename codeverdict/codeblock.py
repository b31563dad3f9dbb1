"""
Fenced code blocks in markdown text, for submissions pasted together with
prose (or produced by a chat assistant).
"""
import re
from dataclasses import dataclass

_FENCE = re.compile(r'```(\w+)?[ \t]*\n(.*?)\n[ \t]*```', re.DOTALL)


@dataclass(frozen=True)
class CodeBlock:
    code: str
    language: str | None = None


def extract_all_code_blocks(text) -> list[CodeBlock]:
    if not isinstance(text, str) or not text:
        return []
    return [CodeBlock(match.group(2).strip(), match.group(1)) for match in _FENCE.finditer(text)]


def extract_first_code_block(text) -> CodeBlock | None:
    """The first fenced block, e.g.

    >>> extract_first_code_block("Here:\\n```python\\nprint(1)\\n```")
    CodeBlock(code='print(1)', language='python')
    """
    blocks = extract_all_code_blocks(text)
    return blocks[0] if blocks else None


def extract_first_code(text) -> str | None:
    block = extract_first_code_block(text)
    return block.code if block else None
