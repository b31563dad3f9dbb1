"""
Fact collection over tree-sitter concrete syntax trees (Python, C++, Java).

The walker itself is shared; what differs per language is the table of
node types below.
"""
import re
from dataclasses import dataclass

from .facts import FunctionFacts, ProgramFacts


@dataclass(frozen=True)
class NodeTypes:
    loops: frozenset
    conditionals: frozenset
    functions: frozenset
    calls: frozenset
    members: frozenset
    identifiers: frozenset
    literals: frozenset
    maps: frozenset = frozenset()
    generics: frozenset = frozenset()
    constructors: frozenset = frozenset()
    receivers: frozenset = frozenset(['this'])


NODE_TYPES = {
    'python': NodeTypes(
        loops=frozenset(['for_statement', 'while_statement']),
        conditionals=frozenset(['if_statement', 'elif_clause']),
        functions=frozenset(['function_definition']),
        calls=frozenset(['call']),
        members=frozenset(['attribute']),
        identifiers=frozenset(['identifier']),
        literals=frozenset(['integer', 'float', 'string']),
        maps=frozenset(['dictionary', 'dictionary_comprehension', 'set', 'set_comprehension']),
        receivers=frozenset(['self', 'cls']),
    ),
    'cpp': NodeTypes(
        loops=frozenset(['for_statement', 'while_statement', 'do_statement', 'for_range_loop']),
        conditionals=frozenset(['if_statement']),
        functions=frozenset(['function_definition']),
        calls=frozenset(['call_expression']),
        members=frozenset(['field_expression']),
        identifiers=frozenset(['identifier', 'field_identifier', 'type_identifier', 'namespace_identifier']),
        literals=frozenset(['number_literal', 'string_literal', 'char_literal', 'raw_string_literal']),
        generics=frozenset(['template_type']),
    ),
    'java': NodeTypes(
        loops=frozenset(['for_statement', 'enhanced_for_statement', 'while_statement', 'do_statement']),
        conditionals=frozenset(['if_statement']),
        functions=frozenset(['method_declaration', 'constructor_declaration']),
        calls=frozenset(['method_invocation']),
        members=frozenset(['field_access']),
        identifiers=frozenset(['identifier', 'type_identifier']),
        literals=frozenset([
            'decimal_integer_literal', 'hex_integer_literal', 'octal_integer_literal',
            'binary_integer_literal', 'decimal_floating_point_literal',
            'string_literal', 'character_literal',
        ]),
        generics=frozenset(['generic_type']),
        constructors=frozenset(['object_creation_expression']),
    ),
}

HALVING_OPERATORS = {
    '/': '2', '//': '2', '/=': '2', '//=': '2', '*=': '2',
    '>>': '1', '>>=': '1', '>>>': '1', '>>>=': '1', '<<=': '1',
}

_SIMPLE_CHAIN = re.compile(r'^[A-Za-z_][\w.:]*$')
_LAST_NAME = re.compile(r'([A-Za-z_]\w*)\s*$')


def _text(node) -> str:
    if node is None:
        return ''
    return node.text.decode('utf-8', errors='replace')


def _chain(text: str) -> str:
    """Reduce a callee or member expression to a dotted chain."""
    text = re.sub(r'\s+', '', text).replace('->', '.')
    if _SIMPLE_CHAIN.match(text):
        return text
    last = _LAST_NAME.search(text)
    return '.' + last.group(1) if last else ''


def _last_segment(text: str) -> str:
    return re.split(r'::|\.', text)[-1]


class TreeSitterCollector(object):
    """Single depth-first pass over a tree-sitter tree."""

    def __init__(self, language: str):
        self.language = language
        self.types = NODE_TYPES[language]
        self.facts = ProgramFacts()

    def collect(self, root) -> ProgramFacts:
        self._visit(root, 0, [])
        return self.facts

    def _visit(self, node, loop_depth, functions: list[FunctionFacts]) -> bool:
        """Visit node; returns whether its subtree contains a loop."""
        types = self.types
        facts = self.facts
        kind = node.type
        current = functions[-1] if functions else None

        if kind == 'keyword_argument':
            value = node.child_by_field_name('value')
            return self._visit(value, loop_depth, functions) if value is not None else False

        if kind in types.functions:
            name = self._function_name(node)
            if name:
                functions = functions + [facts.function(name)]
        elif kind in types.loops:
            facts.loop_count += 1
            for fn in functions:
                fn.has_loop = True
        elif kind in types.conditionals:
            facts.conditional_count += 1
        elif kind in types.identifiers:
            facts.digest.append(_text(node))
        elif kind in types.literals:
            facts.literal_count += 1
        elif kind in types.calls:
            self._call(node, current)
        elif kind in types.members:
            text = _chain(_text(node))
            if text and not text.startswith('.'):
                facts.digest.append(text)
        elif kind in types.maps:
            facts.digest.append('{}')
        elif kind in types.generics:
            base = node.child_by_field_name('name') or (node.named_children[0] if node.named_children else None)
            facts.digest.append(_last_segment(_text(base)) + '<')
        elif kind in types.constructors:
            created = re.sub(r'<.*', '', _text(node.child_by_field_name('type')))
            facts.digest.append('new ' + created + '(')

        self._halving(node, loop_depth, functions)

        inner_depth = loop_depth + 1 if kind in types.loops else loop_depth
        contains_loop = False
        for child in node.named_children:
            if self._visit(child, inner_depth, functions):
                contains_loop = True

        if kind in types.loops:
            if contains_loop:
                facts.nested_loop_count += 1
            return True
        return contains_loop

    def _function_name(self, node) -> str | None:
        if self.language != 'cpp':
            return _text(node.child_by_field_name('name')) or None
        declarator = node.child_by_field_name('declarator')
        while declarator is not None and declarator.type != 'function_declarator':
            declarator = declarator.child_by_field_name('declarator')
        if declarator is None:
            return None
        return _last_segment(_text(declarator.child_by_field_name('declarator'))) or None

    def _halving(self, node, loop_depth, functions):
        operator = node.child_by_field_name('operator')
        right = node.child_by_field_name('right')
        if operator is None or right is None:
            return
        expected = HALVING_OPERATORS.get(operator.type)
        if expected is None or _text(right).strip() != expected:
            return
        if loop_depth > 0:
            self.facts.halving_in_loop = True
        for fn in functions:
            fn.halving = True

    def _call(self, node, current):
        if self.language == 'java':
            receiver = node.child_by_field_name('object')
            name = _text(node.child_by_field_name('name'))
            callee = _chain(_text(receiver)) + '.' + name if receiver is not None else name
            args = node.child_by_field_name('arguments')
            direct = name if receiver is None or _text(receiver) in self.types.receivers else None
        else:
            function = node.child_by_field_name('function')
            callee = _chain(_text(function))
            args = node.child_by_field_name('arguments')
            direct = None
            if function is not None and function.type in ('identifier', 'qualified_identifier'):
                direct = _last_segment(_text(function))
            elif callee.count('.') == 1 and callee.split('.')[0] in self.types.receivers:
                direct = callee.split('.')[1]

        has_args = args is not None and len(args.named_children) > 0
        self.facts.digest.append(callee + ('(' if has_args else '()'))
        if current is not None and direct:
            current.calls.add(direct)


def collect_facts(root, language: str) -> ProgramFacts:
    return TreeSitterCollector(language).collect(root)
