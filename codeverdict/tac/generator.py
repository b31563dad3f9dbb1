"""
Lowering of source text to three-address code.

The lowering is a heuristic over statements, not a parse. The source is
cut into units (statements and block braces), blocks are recognised from
braces, from indentation after a colon, or as a single statement body,
and expressions are lowered by precedence climbing. Python, JavaScript,
Java and C++ all go through the same pass; the language only decides how
comments are removed.

Temps (t1, t2, ...) and labels (L1, L2, ...) come from one counter pair
per generation, so identical text always lowers to an identical stream.
"""
import re
from dataclasses import dataclass, field

from .. import languages
from .. import logger
from ..source import decode_source, strip_comments
from .expressions import ExpressionLowering, safe_name, tokenize
from .instructions import Assign, BinOp, CJump, Call, Goto, Instruction, Label, Return, TACProgram
from .units import closing_index, find_assignment, split_top, split_units, top_level_colon

log = logger.get('tac')

# Block styles: closed by "}", by a line indented no deeper than the
# header, or after the one statement that forms the body.
BRACE = 'brace'
INDENT = 'indent'
SINGLE = 'single'

LOOP_KINDS = ('while', 'for', 'foreach', 'do')

# x.length() and x.size() are lowered like len(x)
_LENGTH_SUFFIXES = ('.length', '.size')

_PREPROCESSOR = re.compile(r'^[ \t]*#.*$', re.MULTILINE)

_ELSE_IF = re.compile(r'^(?:else\s+if\b|elif\b)(.*)$', re.DOTALL)
_ELSE = re.compile(r'^else\b(.*)$', re.DOTALL)
_IF = re.compile(r'^if\b(.*)$', re.DOTALL)
_WHILE = re.compile(r'^while\b(.*)$', re.DOTALL)
_FOR = re.compile(r'^for\b(.*)$', re.DOTALL)
_DO = re.compile(r'^do(?:$|\s+([A-Za-z_$].*)$)', re.DOTALL)
_SWITCH = re.compile(r'^switch\s*\((.*)\)$', re.DOTALL)
_CASE_LABEL = re.compile(r'^(?:case\b[^:]*|default)\s*:(?!:)(.*)$', re.DOTALL)

_PYTHON_GROUP = re.compile(
    r'^(?:(?:async\s+)?def\s+\w+\s*\([^)]*\)(?:\s*->\s*[^:]+)?'
    r'|class\s+\w+(?:\s*\([^)]*\))?'
    r'|try|finally|except\b[^:]*'
    r'|(?:async\s+)?with\b[^:]+)\s*:(?!=)(.*)$',
    re.DOTALL,
)
_BRACE_GROUP = [
    re.compile(r'^(?:try|finally|static)$'),
    re.compile(r'^(?:catch|synchronized)\s*\(.*\)$', re.DOTALL),
    re.compile(r'^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\b[^=]*$', re.DOTALL),
    re.compile(r'^(?:(?:public|private|protected|static|final|abstract|export|default)\s+)*'
               r'(?:class|struct|interface|enum|namespace)\b', re.DOTALL),
    re.compile(r'^(?:(?:public|private|protected|static|final|abstract|synchronized|native|inline|virtual'
               r'|explicit|constexpr|extern|override)\s+)*'
               r'(?!(?:return|new|throw|else|case|delete|typeof|await|yield|print|puts|goto)\b)'
               r'[A-Za-z_][\w:]*(?:\s*<[^;()]*>)?(?:\s*\[\s*\])*[\s*&]+[A-Za-z_]\w*\s*\([^;]*\)'
               r'\s*(?:const\b\s*)?(?:throws\s+[\w.,\s]+)?$', re.DOTALL),
]
_ARROW = re.compile(
    r'^(?:(?:const|let|var)\s+)?[\w$.]+\s*=\s*(?:async\s+)?(?:\([^)]*\)|[\w$]+)\s*=>\s*(.*)$', re.DOTALL)

_IGNORED = re.compile(
    r'^(?:import\b|from\s+\S+\s+import\b|package\b|using\b|#|@|global\b|nonlocal\b|pass$'
    r'|(?:public|private|protected)\s*:$|[\'"]use strict[\'"]$)'
)
_RETURN = re.compile(r'^return\b(.*)$', re.DOTALL)
_RAISE = re.compile(r'^(?:raise|throw)\b(.*)$', re.DOTALL)
_PRINT = re.compile(
    r'^(?:print|console\.(?:log|error|info)|System\.out\.print(?:ln|f)?|printf|puts'
    r'|process\.stdout\.write|sys\.stdout\.write)\s*\((.*)\)$',
    re.DOTALL,
)
_FORMATTED_PRINT = ('printf', 'System.out.printf')
_COUT = re.compile(r'^(?:std::)?cout\s*<<(.*)$', re.DOTALL)
_STREAM_END = {'endl', 'std::endl', '"\\n"', "'\\n'"}
_KEYWORD_ARGUMENT = re.compile(r'^\w+\s*=(?!=)')

_DECLARATION = re.compile(r'^(?:(?:const|let|var|final|static|volatile|register)\s+)+')
_TYPED_DECLARATION = re.compile(
    r'^(?:(?:const|final|static|unsigned|signed|long|short|volatile)\s+)*'
    r'(?!(?:return|new|delete|throw|yield|await|typeof|print|else|not|in|is|and|or|lambda|cout|cin)\b)'
    r'[A-Za-z_][\w.:]*(?:\s*<[^=;]*?>)?(?:\s*\[\s*\])*[\s*&]+'
    r'(?=[A-Za-z_$][\w$]*\s*(?:=(?!=)|,|\[|\(|$))'
)
_ANNOTATED_TARGET = re.compile(r'^([\w$.]+)\s*:(?!:).*$', re.DOTALL)
_TARGET = r'[A-Za-z_$][\w$]*(?:\s*(?:\.|->)\s*[A-Za-z_$][\w$]*|\s*\[[^\]]*\])*'
_INCREMENT = re.compile(rf'^(?:(\+\+|--)\s*({_TARGET})|({_TARGET})\s*(\+\+|--))$')
_RANGE = re.compile(r'^(\w+)\s+in\s+range\s*\((.*)\)$', re.DOTALL)
_FOREACH = re.compile(r'^(.+?)\s+(?:in|of)\s+(.+)$', re.DOTALL)
_IDENTIFIER = re.compile(r'[A-Za-z_$][\w$]*')
_DECLARATION_WORDS = {'const', 'let', 'var', 'final', 'auto', 'int', 'long', 'double', 'float', 'char',
                      'bool', 'boolean', 'String', 'string', 'unsigned', 'size_t'}


@dataclass
class _Block:
    kind: str
    style: str = SINGLE
    indent: int = 0
    awaiting: bool = False
    start: str | None = None
    end: str | None = None
    false: str | None = None
    cont: str | None = None
    step: list[str] = field(default_factory=list)
    else_taken: bool = False


class TACGenerator(object):
    """Lowers one program at a time.

    Args:
        comments: comment syntax of the source, "hash" or "c".
    """

    def __init__(self, comments: str = 'hash'):
        self.comments = comments
        self.indented = comments == 'hash'
        self._reset()

    def _reset(self) -> None:
        self.instructions: list[Instruction] = []
        self.temps = 0
        self.labels = 0
        self.stack: list[_Block] = []
        self._dangling: _Block | None = None

    def generate(self, code: str) -> TACProgram:
        self._reset()
        source = strip_comments(code, self.comments)
        if self.comments == 'c':
            source = _PREPROCESSOR.sub('', source)
        for unit in split_units(source):
            self._unit(unit)
        self._close_all()
        return TACProgram(list(self.instructions), self.temps, self.labels)

    # Allocation and emission, also used by ExpressionLowering.

    def temp(self) -> str:
        self.temps += 1
        return f't{self.temps}'

    def label(self) -> str:
        self.labels += 1
        return f'L{self.labels}'

    def emit(self, instruction: Instruction) -> None:
        self.instructions.append(instruction)

    def emit_assign(self, dst: str, src: str) -> None:
        self.emit(Assign(dst, src))

    def emit_cjump(self, cond: str, true_label: str, false_label: str) -> None:
        self.emit(CJump(cond, true_label, false_label))

    def emit_label(self, name: str) -> None:
        self.emit(Label(name))

    def emit_goto(self, name: str) -> None:
        self.emit(Goto(name))

    def binop(self, a: str, operator: str, b: str) -> str:
        dst = self.temp()
        self.emit(BinOp(dst, a, b, operator))
        return dst

    def call(self, name: str, args) -> str:
        args = list(args)
        if not args and name.endswith(_LENGTH_SUFFIXES):
            name, args = 'len', [name.rsplit('.', 1)[0]]
        dst = self.temp()
        self.emit(Call(name, tuple(args), dst))
        return dst

    def increment(self, target: str, sign: str) -> None:
        self.emit(Assign(target, self.binop(target, sign, '1')))

    def lower(self, text: str) -> str:
        """Lower an expression, returning the operand holding its value."""
        tokens = tokenize(text)
        if not tokens:
            return '0'
        return ExpressionLowering(self, tokens).value()

    # Units and blocks.

    def _unit(self, unit) -> None:
        text = unit.text
        if unit.first and text not in ('{', '}'):
            self._dedent(unit.indent)
        if self._dangling is not None:
            if self._continue_dangling(text, unit.indent):
                return
            self._flush_dangling()
        if text == '{':
            self._open_brace()
            return
        if text == '}':
            self._close_brace()
            return
        if self.stack and self.stack[-1].style == SINGLE and self.stack[-1].awaiting:
            self.stack[-1].awaiting = False
        self._line(text, unit.indent)

    def _dedent(self, indent: int) -> None:
        while self.stack:
            top = self.stack[-1]
            if top.style == INDENT and top.indent >= indent:
                self._flush_dangling()
                self._close(self.stack.pop())
                self._statement_done()
            elif (top.style == SINGLE and not top.awaiting and self._dangling is not None
                  and any(b.style == INDENT and b.indent >= indent for b in self.stack)):
                self._flush_dangling()
            else:
                break

    def _open_brace(self) -> None:
        top = self.stack[-1] if self.stack else None
        if top is not None and top.style == SINGLE and top.awaiting:
            top.style = BRACE
            top.awaiting = False
        else:
            self.stack.append(_Block('group', style=BRACE))

    def _close_brace(self) -> None:
        if not any(block.style == BRACE for block in self.stack):
            return
        while self.stack:
            self._flush_dangling()
            block = self.stack.pop()
            self._close(block)
            if block.style == BRACE:
                break
        self._statement_done()

    def _close_all(self) -> None:
        while True:
            self._flush_dangling()
            if not self.stack:
                return
            self._close(self.stack.pop())

    def _open(self, block: _Block, body: str, colon: bool, indent: int) -> None:
        block.indent = indent
        self.stack.append(block)
        if body:
            block.style = SINGLE
            block.awaiting = False
            self._line(body, indent)
        elif colon:
            block.style = INDENT
        else:
            block.style = SINGLE
            block.awaiting = True

    def _close(self, block: _Block) -> None:
        # an if may still get an else, a do its while
        if block.kind == 'do' or (block.kind == 'if' and not block.else_taken):
            self._dangling = block
        else:
            self._emit_close(block)

    def _flush_dangling(self) -> None:
        if self._dangling is None:
            return
        block, self._dangling = self._dangling, None
        self._emit_close(block)
        self._statement_done()

    def _statement_done(self) -> None:
        while (self._dangling is None and self.stack
               and self.stack[-1].style == SINGLE and not self.stack[-1].awaiting):
            self._close(self.stack.pop())

    def _emit_close(self, block: _Block) -> None:
        if block.kind == 'if':
            self.emit(Label(block.end if block.else_taken else block.false))
        elif block.kind in ('while', 'foreach'):
            self.emit(Goto(block.start))
            self.emit(Label(block.end))
        elif block.kind == 'for':
            if block.cont is not None:
                self.emit(Label(block.cont))
            for step in block.step:
                self._simple(step)
            self.emit(Goto(block.start))
            self.emit(Label(block.end))
        elif block.kind == 'do':
            if block.cont is not None:
                self.emit(Label(block.cont))
            self.emit(Label(block.end))
        elif block.kind == 'switch' and block.end is not None:
            self.emit(Label(block.end))

    def _continue_dangling(self, text: str, indent: int) -> bool:
        block = self._dangling
        if block.kind == 'if' and _ELSE.match(text):
            self._dangling = None
            self._else(block, text, indent)
            return True
        match = _WHILE.match(text)
        if block.kind == 'do' and match:
            self._dangling = None
            self._do_tail(block, match.group(1))
            return True
        return False

    def _header(self, rest: str) -> tuple[str, str, bool]:
        """Split a compound statement header.

        Returns:
            (condition, inline body, whether a colon ends the header)
        """
        rest = rest.strip()
        colon = top_level_colon(rest)
        if rest.startswith('('):
            close = closing_index(rest, 0)
            if close > 0:
                after = rest[close + 1:].lstrip()
                if after.startswith(':') and not after.startswith('::'):
                    return rest[1:close], after[1:].strip(), True
                if not (self.indented and colon > close):
                    return rest[1:close], after, False
        if colon >= 0:
            return rest[:colon], rest[colon + 1:].strip(), True
        return rest, '', False

    # Statements.

    def _line(self, text: str, indent: int) -> None:
        text = text.strip()
        match = _CASE_LABEL.match(text)
        if match:
            text = match.group(1).strip()
        if not text or _IGNORED.match(text):
            self._statement_done()
            return
        if self._compound(text, indent):
            return
        self._statement(text)
        self._statement_done()

    def _compound(self, text: str, indent: int) -> bool:
        """Open the block a header starts; False if text is no header."""
        match = _ELSE_IF.match(text)
        if match:
            self._if(match.group(1), indent)
            return True
        match = _ELSE.match(text)
        if match:
            # else without a matching if
            rest = match.group(1).strip()
            colon = rest.startswith(':')
            self._open(_Block('group'), rest[1:].strip() if colon else rest, colon, indent)
            return True
        for pattern, handler in ((_IF, self._if), (_WHILE, self._while), (_FOR, self._for)):
            match = pattern.match(text)
            if match:
                handler(match.group(1), indent)
                return True
        match = _DO.match(text)
        if match:
            self._do(match.group(1) or '', indent)
            return True
        match = _SWITCH.match(text)
        if match:
            self.lower(match.group(1))
            self._open(_Block('switch'), '', False, indent)
            return True
        match = _PYTHON_GROUP.match(text)
        if match:
            self._open(_Block('group'), match.group(1).strip(), True, indent)
            return True
        match = _ARROW.match(text)
        if match:
            body = match.group(1).strip()
            self._open(_Block('group'), f'return {body}' if body else '', False, indent)
            return True
        if any(pattern.match(text) for pattern in _BRACE_GROUP):
            self._open(_Block('group'), '', False, indent)
            return True
        return False

    def _if(self, rest: str, indent: int) -> None:
        cond, body, colon = self._header(rest)
        value = self.lower(cond)
        block = _Block('if')
        yes = self.label()
        block.false = self.label()
        self.emit(CJump(value, yes, block.false))
        self.emit(Label(yes))
        self._open(block, body, colon, indent)

    def _else(self, block: _Block, text: str, indent: int) -> None:
        if block.end is None:
            block.end = self.label()
        self.emit(Goto(block.end))
        self.emit(Label(block.false))
        block.else_taken = True
        match = _ELSE_IF.match(text)
        if match:
            self._open(block, 'if ' + match.group(1).strip(), False, indent)
            return
        rest = _ELSE.match(text).group(1).strip()
        colon = rest.startswith(':')
        self._open(block, rest[1:].strip() if colon else rest, colon, indent)

    def _while(self, rest: str, indent: int) -> None:
        cond, body, colon = self._header(rest)
        block = _Block('while')
        block.start = self.label()
        body_label = self.label()
        block.end = self.label()
        self.emit(Label(block.start))
        self.emit(CJump(self.lower(cond), body_label, block.end))
        self.emit(Label(body_label))
        self._open(block, body, colon, indent)

    def _for(self, rest: str, indent: int) -> None:
        inner, body, colon = self._header(rest)
        inner = inner.strip()
        parts = split_top(inner, ';')
        if len(parts) == 3:
            self._counted_for(parts[0], parts[1], parts[2], body, colon, indent)
            return
        match = _RANGE.match(inner)
        if match:
            var = match.group(1)
            args = split_top(match.group(2), ',')
            start, stop, step = '0', args[0], '1'
            if len(args) >= 2:
                start, stop = args[0], args[1]
            if len(args) >= 3:
                step = args[2]
            if step.startswith('-'):
                cond, increment = f'{var} > {stop}', f'{var} = {var} - {step[1:].strip()}'
            else:
                cond, increment = f'{var} < {stop}', f'{var} = {var} + {step}'
            self._counted_for(f'{var} = {start}', cond, increment, body, colon, indent)
            return
        colon_at = top_level_colon(inner)
        match = _FOREACH.match(inner)
        if match:
            self._foreach(match.group(1), match.group(2), body, colon, indent)
        elif colon_at > 0:
            self._foreach(inner[:colon_at], inner[colon_at + 1:], body, colon, indent)
        else:
            self._counted_for('', inner, '', body, colon, indent)

    def _counted_for(self, init, cond, step, body, colon, indent) -> None:
        if init.strip():
            self._simple(init)
        block = _Block('for')
        block.start = self.label()
        body_label = self.label()
        block.end = self.label()
        block.step = [part for part in split_top(step, ',') if part]
        self.emit(Label(block.start))
        if cond.strip():
            self.emit(CJump(self.lower(cond), body_label, block.end))
        else:
            self.emit(Goto(body_label))
        self.emit(Label(body_label))
        self._open(block, body, colon, indent)

    def _foreach(self, targets: str, iterable: str, body, colon, indent) -> None:
        names = _foreach_targets(targets)
        sequence = self.call('iter', [self.lower(iterable)])
        block = _Block('foreach')
        block.start = self.label()
        body_label = self.label()
        block.end = self.label()
        self.emit(Label(block.start))
        item = self.call('next', [sequence])
        self.emit(CJump(item, body_label, block.end))
        self.emit(Label(body_label))
        if len(names) == 1:
            self.emit(Assign(names[0], item))
        else:
            for i, name in enumerate(names):
                self.emit(Assign(name, f'{item}[{i}]'))
        self._open(block, body, colon, indent)

    def _do(self, body: str, indent: int) -> None:
        block = _Block('do')
        block.start = self.label()
        block.end = self.label()
        self.emit(Label(block.start))
        self._open(block, body.strip(), False, indent)

    def _do_tail(self, block: _Block, rest: str) -> None:
        if block.cont is not None:
            self.emit(Label(block.cont))
        cond, _, _ = self._header(rest)
        self.emit(CJump(self.lower(cond), block.start, block.end))
        self.emit(Label(block.end))
        self._statement_done()

    def _innermost(self, kinds) -> _Block | None:
        for block in reversed(self.stack):
            if block.kind in kinds:
                return block
        return None

    def _statement(self, text: str) -> None:
        if text in ('break', 'continue'):
            self._jump(text)
            return
        match = _RETURN.match(text)
        if match:
            value = match.group(1).strip()
            self.emit(Return(self.lower(value) if value else None))
            return
        match = _RAISE.match(text)
        if match:
            value = match.group(1).strip()
            self.emit(Call('raise', (self.lower(value),) if value else ()))
            return
        if self._print(text):
            return
        self._simple(text)

    def _jump(self, keyword: str) -> None:
        if keyword == 'break':
            block = self._innermost(LOOP_KINDS + ('switch',))
            if block is None:
                return
            if block.end is None:
                block.end = self.label()
            self.emit(Goto(block.end))
            return
        block = self._innermost(LOOP_KINDS)
        if block is None:
            return
        if block.kind in ('for', 'do'):
            if block.cont is None:
                block.cont = self.label()
            self.emit(Goto(block.cont))
        else:
            self.emit(Goto(block.start))

    def _print(self, text: str) -> bool:
        """Output statements become one RETURN per printed value."""
        match = _PRINT.match(text)
        if match:
            args = [arg for arg in split_top(match.group(1), ',')
                    if arg and not _KEYWORD_ARGUMENT.match(arg)]
            if text.startswith(_FORMATTED_PRINT) and len(args) > 1 and args[0][:1] in '"\'':
                args = args[1:]
        else:
            match = _COUT.match(text)
            if not match:
                return False
            args = [arg for arg in split_top(match.group(1), '<<') if arg and arg not in _STREAM_END]
        for arg in args:
            self.emit(Return(self.lower(arg)))
        return True

    def _simple(self, text: str) -> None:
        """Declarations, assignments and expression statements."""
        text = text.strip()
        if not text:
            return
        declared, text = _strip_declaration(text)
        parts = split_top(text, ',')
        if len(parts) > 1:
            found = find_assignment(text)
            if found is not None and not declared and len(split_top(text[:found[0]], ',')) > 1:
                self._tuple_assign(text[:found[0]], text[found[1]:])
                return
            if declared or all(find_assignment(part) is not None for part in parts):
                for part in parts:
                    if find_assignment(part) is not None:
                        self._assign_text(part)
                return
        self._assign_text(text)

    def _assign_text(self, text: str) -> None:
        text = text.strip()
        match = _INCREMENT.match(text)
        if match:
            sign = (match.group(1) or match.group(4))[0]
            target = match.group(2) or match.group(3)
            self._assign(target, f'{target} {sign} 1')
            return
        found = find_assignment(text)
        if found is None:
            self._expression_statement(text)
            return
        target_end, value_start, operator = found
        target = text[:target_end].strip()
        match = _ANNOTATED_TARGET.match(target)
        if match:
            target = match.group(1)
        value = text[value_start:].strip()
        if operator:
            self._assign(target, f'{target} {operator} ({value})')
            return
        chained = find_assignment(value)
        if chained is not None and not chained[2]:
            self._assign_text(value)
            value = value[:chained[0]].strip()
        self._assign(target, value)

    def _assign(self, target: str, value: str) -> None:
        src = self.lower(value)
        dst = self.lower(target)
        self.emit(Assign(dst, src))

    def _tuple_assign(self, targets: str, values: str) -> None:
        names = split_top(targets, ',')
        items = split_top(values, ',')
        if len(items) != len(names):
            src = self.lower(values)
            for i, name in enumerate(names):
                self.emit(Assign(self.lower(name), f'{src}[{i}]'))
            return
        # every value is computed before any target changes
        operands = []
        for item in items:
            operand = self.lower(item)
            if _IDENTIFIER.fullmatch(operand):
                snapshot = self.temp()
                self.emit(Assign(snapshot, operand))
                operand = snapshot
            operands.append(operand)
        for name, operand in zip(names, operands):
            self.emit(Assign(self.lower(name), operand))

    def _expression_statement(self, text: str) -> None:
        tokens = tokenize(text)
        if not tokens:
            return
        lowering = ExpressionLowering(self, tokens)
        if (len(tokens) >= 3 and tokens[0][0] == 'name' and tokens[1] == ('op', '(')
                and _closing_token(tokens, 1) == len(tokens) - 1):
            lowering.pos = 2
            args = lowering.sequence(')')
            self.emit(Call(safe_name(tokens[0][1]), tuple(args)))
            return
        lowering.value()


def _closing_token(tokens, start: int) -> int:
    depth = 0
    for i in range(start, len(tokens)):
        kind, text = tokens[i]
        if kind != 'op':
            continue
        if text in ('(', '[', '{'):
            depth += 1
        elif text in (')', ']', '}'):
            depth -= 1
            if depth == 0:
                return i
    return -1


def _strip_declaration(text: str) -> tuple[bool, str]:
    stripped = _DECLARATION.sub('', text)
    stripped = _TYPED_DECLARATION.sub('', stripped, count=1)
    return stripped != text, stripped


def _foreach_targets(text: str) -> list[str]:
    text = text.strip()
    if text[:1] in ('[', '(') or '[' in text:
        inner = text[text.find('[') + 1:] if '[' in text else text[1:]
        names = [name for name in _IDENTIFIER.findall(inner) if name not in _DECLARATION_WORDS]
    elif ',' in text and '<' not in text:
        names = [part.split()[-1] for part in split_top(text, ',') if part]
    else:
        found = _IDENTIFIER.findall(text)
        names = found[-1:]
    return [safe_name(name) for name in names] or ['_']


def generate_tac(code, language='python') -> TACProgram:
    """Lower source code to three-address code.

    Args:
        code: source text or bytes.
        language: language tag, only used to choose the comment syntax.

    Returns:
        TACProgram; an empty one when nothing could be lowered.
    """
    text = decode_source(code)
    if not text:
        return TACProgram()
    lang = languages.get_languages().normalize(language)
    try:
        program = TACGenerator(lang.comments).generate(text)
    except RecursionError:
        log.warning('Program nests too deeply to lower; using an empty instruction stream')
        return TACProgram()
    log.debug('Lowered %s program to %d instructions', lang.name, len(program.instructions))
    return program
