"""
Expression lowering.

Expressions are tokenized and lowered by precedence climbing. Every
operator application becomes a BINOP into a fresh temp, every call a CALL
into a fresh temp; operands are names, literals, temps or subscripts of
those ("a[t3]").
"""
import re

# Binding strength of binary operators; "?" is the C conditional.
PRECEDENCE = {
    '?': 0,
    '||': 1,
    '&&': 2,
    '|': 3,
    '^': 4,
    '&': 5,
    '==': 6, '!=': 6, 'in': 6, 'not in': 6, 'instanceof': 6,
    '<': 7, '>': 7, '<=': 7, '>=': 7,
    '<<': 8, '>>': 8, '>>>': 8,
    '+': 9, '-': 9,
    '*': 10, '/': 10, '%': 10,
    '**': 11,
}
UNARY_PRECEDENCE = 12
RIGHT_ASSOCIATIVE = {'**', '?'}

OPERATOR_ALIASES = {
    'and': '&&',
    'or': '||',
    '===': '==',
    '!==': '!=',
    '//': '/',
    '??': '||',
}

CONSTANTS = {
    'True': 'true', 'true': 'true',
    'False': 'false', 'false': 'false',
    'None': 'null', 'null': 'null', 'undefined': 'null', 'nullptr': 'null', 'NULL': 'null',
}

# Words that only decorate the expression that follows them.
_PREFIX_WORDS = {'new', 'await', 'typeof', 'yield', 'delete', 'void', 'lambda'}

_TOKEN = re.compile(
    r'(?P<string>(?:[rRbBuUfF]{1,2})?(?:"""[\s\S]*?"""|\'\'\'[\s\S]*?\'\'\'|"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'|`(?:\\.|[^`\\])*`))'
    r'|(?P<number>0[xXbBoO][\da-fA-F_]+|(?:\d[\d_]*(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d+)?[lLfFuUdDnN]*)'
    r'|(?P<name>[A-Za-z_$][\w$]*(?:\s*(?:\.|->|::)\s*[A-Za-z_$][\w$]*)*)'
    r'|(?P<op>>>>=|<<=|>>=|\*\*=|//=|===|!==|>>>|\*\*|//|<<|>>|<=|>=|==|!=|&&|\|\||\?\?|\+\+|--|=>'
    r'|[-+*/%&|^]=|[-+*/%<>=!~&|^?:()\[\]{},.])'
    r'|(?P<other>\S)'
)
_NUMBER = re.compile(r'-?(?:\d[\w.]*|\.\d+)')
_GENERIC_NEW = re.compile(r'\bnew\s+([\w.]+)\s*<[^<>()]*>')
_RESERVED_OPERAND = re.compile(r'[tvL]\d+')


def tokenize(text: str) -> list[tuple[str, str]]:
    text = _GENERIC_NEW.sub(r'new \1', text)
    tokens = []
    for match in _TOKEN.finditer(text):
        kind = match.lastgroup
        if kind == 'other':
            continue
        value = match.group(kind)
        if kind == 'name':
            value = re.sub(r'\s+', '', value).replace('->', '.').replace('::', '.')
        tokens.append((kind, value))
    return tokens


def safe_name(name: str) -> str:
    """Keep user identifiers from looking like generated temps or labels."""
    root = name.split('.', 1)[0]
    if _RESERVED_OPERAND.fullmatch(root):
        return '_' + name
    return name


def _canonical_string(text: str) -> str:
    body = text.lstrip('rRbBuUfF')
    if body[:3] in ('"""', "'''"):
        body = '"' + body[3:-3] + '"'
    elif body[:1] == "'":
        body = '"' + body[1:-1].replace('"', '\\"') + '"'
    return body


def _canonical_number(text: str) -> str:
    text = text.replace('_', '')
    if text[:2].lower() in ('0x', '0b', '0o'):
        return text
    return text.rstrip('lLfFuUdDnN') or '0'


def is_literal(operand: str) -> bool:
    return bool(_NUMBER.fullmatch(operand)) or operand[:1] in ('"', '`') or operand in ('true', 'false', 'null')


class ExpressionLowering(object):
    """Lowers one token list into instructions emitted by a generator.

    The generator supplies temp(), label(), emit(), binop(), call() and
    increment().
    """

    def __init__(self, generator, tokens):
        self.gen = generator
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> tuple[str, str]:
        i = self.pos + offset
        if i < len(self.tokens):
            return self.tokens[i]
        return ('', '')

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def take(self) -> tuple[str, str]:
        token = self.peek()
        if not self.at_end():
            self.pos += 1
        return token

    def skip_to(self, closer: str) -> None:
        """Skip past the bracket closing the current group."""
        depth = 0
        while not self.at_end():
            kind, text = self.take()
            if kind != 'op':
                continue
            if text in ('(', '[', '{'):
                depth += 1
            elif text in (')', ']', '}'):
                if depth == 0:
                    return
                depth -= 1

    def value(self) -> str:
        """Lower a full expression; a top-level comma list becomes a tuple."""
        first = self.expression(0)
        if self.peek() != ('op', ','):
            return first
        items = [first]
        while self.peek() == ('op', ','):
            self.pos += 1
            if self.at_end():
                break
            items.append(self.expression(0))
        return self.gen.call('tuple', items)

    def binary_operator(self) -> tuple[str | None, int]:
        kind, text = self.peek()
        if kind == 'op':
            text = OPERATOR_ALIASES.get(text, text)
            if text in PRECEDENCE:
                return text, 1
        elif kind == 'name':
            if text == 'not' and self.peek(1) == ('name', 'in'):
                return 'not in', 2
            if text == 'is':
                if self.peek(1) == ('name', 'not'):
                    return '!=', 2
                return '==', 1
            if text in ('and', 'or', 'in', 'instanceof'):
                return OPERATOR_ALIASES.get(text, text), 1
        return None, 0

    def expression(self, min_prec: int = 0) -> str:
        left = self.unary()
        while True:
            op, width = self.binary_operator()
            if op is None:
                if min_prec == 0 and self.peek() == ('name', 'if'):
                    left = self.python_conditional(left)
                    continue
                return left
            prec = PRECEDENCE[op]
            if prec < min_prec:
                return left
            self.pos += width
            if op == '?':
                left = self.conditional(left)
                continue
            right = self.expression(prec if op in RIGHT_ASSOCIATIVE else prec + 1)
            left = self.gen.binop(left, op, right)

    def conditional(self, cond: str) -> str:
        """c ? a : b, lowered to branches writing one temp."""
        result = self.gen.temp()
        yes, no, end = self.gen.label(), self.gen.label(), self.gen.label()
        self.gen.emit_cjump(cond, yes, no)
        self.gen.emit_label(yes)
        self.gen.emit_assign(result, self.expression(1))
        if self.peek() == ('op', ':'):
            self.pos += 1
        self.gen.emit_goto(end)
        self.gen.emit_label(no)
        self.gen.emit_assign(result, self.expression(0))
        self.gen.emit_label(end)
        return result

    def python_conditional(self, chosen: str) -> str:
        """a if c else b; a has already been lowered."""
        self.pos += 1
        cond = self.expression(1)
        result = self.gen.temp()
        yes, no, end = self.gen.label(), self.gen.label(), self.gen.label()
        self.gen.emit_cjump(cond, yes, no)
        self.gen.emit_label(yes)
        self.gen.emit_assign(result, chosen)
        self.gen.emit_goto(end)
        self.gen.emit_label(no)
        other = 'null'
        if self.peek() == ('name', 'else'):
            self.pos += 1
            other = self.expression(0)
        self.gen.emit_assign(result, other)
        self.gen.emit_label(end)
        return result

    def unary(self) -> str:
        kind, text = self.peek()
        if kind == 'op' and text in ('-', '+', '!', '~', '++', '--'):
            self.pos += 1
            if text == '+':
                return self.unary()
            operand = self.unary()
            if text in ('++', '--'):
                self.gen.increment(operand, text[0])
                return operand
            if text == '-':
                if _NUMBER.fullmatch(operand) and not operand.startswith('-'):
                    return '-' + operand
                return self.gen.binop('0', '-', operand)
            if text == '!':
                return self.gen.binop(operand, '==', '0')
            return self.gen.binop(operand, '^', '-1')
        if kind == 'name' and text == 'not':
            self.pos += 1
            return self.gen.binop(self.expression(PRECEDENCE['==']), '==', '0')
        if kind == 'name' and text in _PREFIX_WORDS:
            self.pos += 1
            return self.unary()
        return self.postfix(self.primary())

    def primary(self) -> str:
        kind, text = self.take()
        if kind == 'number':
            return _canonical_number(text)
        if kind == 'string':
            return _canonical_string(text)
        if kind == 'name':
            if text in CONSTANTS:
                return CONSTANTS[text]
            name = safe_name(text)
            if self.peek() == ('op', '('):
                self.pos += 1
                return self.gen.call(name, self.sequence(')'))
            if name.endswith('.length'):
                return self.gen.call('len', [name[:-len('.length')]])
            return name
        if kind == 'op':
            if text == '(':
                items = self.sequence(')')
                if len(items) == 1:
                    return items[0]
                return self.gen.call('tuple', items)
            if text == '[':
                return self.gen.call('list', self.sequence(']'))
            if text == '{':
                return self.gen.call('dict', self.sequence('}'))
        return '0'

    def postfix(self, operand: str) -> str:
        while True:
            kind, text = self.peek()
            if (kind, text) == ('op', '['):
                self.pos += 1
                if self.peek() == ('op', ']'):
                    self.pos += 1
                    continue
                index = self.expression(0)
                if self.peek() == ('op', ']'):
                    self.pos += 1
                    operand = f'{operand}[{index}]'
                else:
                    # slice
                    self.skip_to(']')
                    operand = self.gen.call('slice', [operand, index])
            elif (kind, text) == ('op', '('):
                self.pos += 1
                operand = self.gen.call(operand, self.sequence(')'))
            elif (kind, text) == ('op', '.') and self.peek(1)[0] == 'name':
                attribute = self.peek(1)[1]
                self.pos += 2
                operand = f'{operand}.{attribute}'
                if self.peek() != ('op', '(') and operand.endswith('.length'):
                    operand = self.gen.call('len', [operand[:-len('.length')]])
            elif kind == 'op' and text in ('++', '--'):
                self.pos += 1
                self.gen.increment(operand, text[0])
            else:
                return operand

    def sequence(self, closer: str) -> list[str]:
        """Comma (or colon) separated items up to and including closer."""
        items = []
        while not self.at_end():
            kind, text = self.peek()
            if (kind, text) == ('op', closer):
                self.pos += 1
                return items
            if (kind, text) in (('op', ','), ('op', ':')):
                self.pos += 1
                continue
            if (kind, text) == ('name', 'for'):
                # comprehension
                self.skip_to(closer)
                return items
            if kind == 'name' and self.peek(1) == ('op', '='):
                # keyword argument
                self.pos += 2
                continue
            start = self.pos
            items.append(self.expression(0))
            if self.pos == start:
                self.pos += 1
        return items
