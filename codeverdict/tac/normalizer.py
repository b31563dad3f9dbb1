"""
Canonical form of an instruction stream.

Relational operators are turned to point one way (a > b becomes b < a)
on the raw operands, then variables, temps and labels are renamed to
v1.., t1.., L1.. in order of first appearance, and the operands of
commutative operators are sorted. Programs that differ only in naming,
comparison direction or operand order end up with the same lines.
"""
import re

from .expressions import is_literal
from .instructions import Assign, BinOp, CJump, Call, Goto, Instruction, Label, Return, TACProgram

FLIPPED = {'>': '<', '>=': '<='}
COMMUTATIVE = {'+', '*', '&&', '||'}

# Call roots kept verbatim: library namespaces rather than user objects.
NAMESPACES = {
    'Math', 'console', 'System', 'std', 'sys', 'Arrays', 'Collections', 'heapq', 'math',
    'Integer', 'String', 'Object', 'JSON', 'Number',
}

_TEMP = re.compile(r't\d+')
_LABEL = re.compile(r'L\d+')
_IDENTIFIER = re.compile(r'[A-Za-z_$][\w$]*')
_PIECE = re.compile(
    r'"(?:\\.|[^"\\])*"|`(?:\\.|[^`\\])*`'
    r'|\d[\w.]*'
    r'|(?P<attribute>\.\s*)?(?P<name>[A-Za-z_$][\w$]*)'
)


class _Renamer(object):

    def __init__(self):
        self.variables: dict[str, str] = {}
        self.temps: dict[str, str] = {}
        self.labels: dict[str, str] = {}

    def label(self, name: str) -> str:
        if name not in self.labels:
            self.labels[name] = f'L{len(self.labels) + 1}'
        return self.labels[name]

    def _name(self, name: str) -> str:
        if _TEMP.fullmatch(name):
            if name not in self.temps:
                self.temps[name] = f't{len(self.temps) + 1}'
            return self.temps[name]
        if name in ('true', 'false', 'null'):
            return name
        if name not in self.variables:
            self.variables[name] = f'v{len(self.variables) + 1}'
        return self.variables[name]

    def operand(self, text: str | None) -> str | None:
        if text is None or is_literal(text):
            return text
        if _IDENTIFIER.fullmatch(text):
            return self._name(text)

        def replace(match):
            if match.group('name') is None or match.group('attribute') is not None:
                return match.group(0)
            return self._name(match.group('name'))
        return _PIECE.sub(replace, text)

    def call_name(self, name: str) -> str:
        root, dot, rest = name.partition('.')
        if not dot or root in NAMESPACES:
            return name
        return f'{self.operand(root)}.{rest}'


def _canonical(instruction: Instruction, names: _Renamer) -> Instruction:
    if isinstance(instruction, BinOp):
        a, b, operator = instruction.a, instruction.b, instruction.operator
        if operator in FLIPPED:
            a, b, operator = b, a, FLIPPED[operator]
        dst = names.operand(instruction.dst)
        a = names.operand(a)
        b = names.operand(b)
        if operator in COMMUTATIVE and b < a:
            a, b = b, a
        return BinOp(dst, a, b, operator)
    if isinstance(instruction, Assign):
        return Assign(names.operand(instruction.dst), names.operand(instruction.src))
    if isinstance(instruction, CJump):
        return CJump(names.operand(instruction.cond),
                     names.label(instruction.true_label),
                     names.label(instruction.false_label))
    if isinstance(instruction, Label):
        return Label(names.label(instruction.name))
    if isinstance(instruction, Goto):
        return Goto(names.label(instruction.label))
    if isinstance(instruction, Return):
        return Return(names.operand(instruction.src))
    if isinstance(instruction, Call):
        dst = names.operand(instruction.dst)
        return Call(names.call_name(instruction.name),
                    tuple(names.operand(arg) for arg in instruction.args),
                    dst)
    return instruction


def normalize_tac(program) -> list[Instruction]:
    """Canonical copy of an instruction stream (a TACProgram or a list)."""
    if isinstance(program, TACProgram):
        program = program.instructions
    names = _Renamer()
    return [_canonical(instruction, names) for instruction in program or []]
