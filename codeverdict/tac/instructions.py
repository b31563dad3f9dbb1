"""
Three-address code instructions.

Each instruction serializes to one line; the line format is what the
normalizer and comparator operate on.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Assign:
    dst: str
    src: str

    def __str__(self) -> str:
        return f'ASSIGN {self.dst} = {self.src}'


@dataclass(frozen=True)
class BinOp:
    dst: str
    a: str
    b: str
    operator: str

    def __str__(self) -> str:
        return f'BINOP {self.dst} = {self.a} {self.operator} {self.b}'


@dataclass(frozen=True)
class CJump:
    cond: str
    true_label: str
    false_label: str

    def __str__(self) -> str:
        return f'CJUMP {self.cond} ? {self.true_label} : {self.false_label}'


@dataclass(frozen=True)
class Label:
    name: str

    def __str__(self) -> str:
        return f'LABEL {self.name}'


@dataclass(frozen=True)
class Goto:
    label: str

    def __str__(self) -> str:
        return f'GOTO {self.label}'


@dataclass(frozen=True)
class Return:
    src: str | None = None

    def __str__(self) -> str:
        return 'RETURN' if self.src is None else f'RETURN {self.src}'


@dataclass(frozen=True)
class Call:
    """Call of a function whose result, if any, is kept in dst."""

    name: str
    args: tuple[str, ...] = ()
    dst: str | None = None

    def __str__(self) -> str:
        if not self.args and self.dst is None:
            return f'CALL {self.name}'
        call = f'{self.name}({", ".join(self.args)})'
        return f'CALL {call}' if self.dst is None else f'CALL {self.dst} = {call}'


Instruction = Assign | BinOp | CJump | Label | Goto | Return | Call


@dataclass
class TACProgram:
    instructions: list[Instruction] = field(default_factory=list)
    temp_count: int = 0
    label_count: int = 0

    def lines(self) -> list[str]:
        return [str(instr) for instr in self.instructions]

    def __str__(self) -> str:
        return '\n'.join(self.lines())

    def to_dict(self) -> dict:
        return {
            'instructions': self.lines(),
            'tempCount': self.temp_count,
            'labelCount': self.label_count,
        }
