"""
Fact collection over an ESTree syntax tree, as produced by esprima.
"""
from .facts import FunctionFacts, ProgramFacts

LOOP_TYPES = frozenset([
    'ForStatement', 'WhileStatement', 'DoWhileStatement', 'ForInStatement', 'ForOfStatement',
])
FUNCTION_TYPES = frozenset(['FunctionDeclaration', 'FunctionExpression', 'ArrowFunctionExpression'])

# operator -> literal operand that makes the expression halve (or double) a value
HALVING_OPERATORS = {
    '/': '2', '/=': '2', '*=': '2',
    '>>': '1', '>>=': '1', '>>>': '1', '>>>=': '1', '<<=': '1',
}


def _is_node(value) -> bool:
    return isinstance(value, dict) and isinstance(value.get('type'), str)


def _children(node):
    for key, value in node.items():
        if key in ('range', 'loc'):
            continue
        if _is_node(value):
            yield key, value
        elif isinstance(value, list):
            for item in value:
                if _is_node(item):
                    yield key, item


def _dotted(node) -> str:
    """Source-like text of a simple member chain such as console.log."""
    if node.get('type') == 'Identifier':
        return node.get('name', '')
    if node.get('type') == 'ThisExpression':
        return 'this'
    if node.get('type') == 'MemberExpression' and not node.get('computed'):
        prop = node.get('property') or {}
        return _dotted(node.get('object') or {}) + '.' + prop.get('name', '')
    return ''


def _literal_text(node) -> str | None:
    if node.get('type') != 'Literal':
        return None
    if node.get('raw') is not None:
        return str(node['raw'])
    return str(node.get('value'))


def _bound_name(parent, key) -> str | None:
    """Name a function expression receives from where it is defined."""
    kind = parent.get('type')
    if kind == 'VariableDeclarator' and key == 'init':
        return (parent.get('id') or {}).get('name')
    if kind in ('MethodDefinition', 'Property') and key == 'value':
        return (parent.get('key') or {}).get('name')
    if kind == 'AssignmentExpression' and key == 'right':
        left = parent.get('left') or {}
        if left.get('type') == 'Identifier':
            return left.get('name')
        if left.get('type') == 'MemberExpression' and not left.get('computed'):
            return (left.get('property') or {}).get('name')
    return None


class EstreeCollector(object):
    """Single depth-first pass over an ESTree dictionary."""

    def __init__(self):
        self.facts = ProgramFacts()

    def collect(self, program: dict) -> ProgramFacts:
        self._visit(program, None, None, 0, [])
        return self.facts

    def _visit(self, node, parent, key, loop_depth, functions: list[FunctionFacts]) -> bool:
        """Visit node; returns whether its subtree contains a loop."""
        facts = self.facts
        kind = node['type']
        current = functions[-1] if functions else None

        if kind in FUNCTION_TYPES:
            name = (node.get('id') or {}).get('name')
            if name is None and parent is not None:
                name = _bound_name(parent, key)
            if name:
                functions = functions + [facts.function(name)]
                current = functions[-1]
        elif kind in LOOP_TYPES:
            facts.loop_count += 1
            for fn in functions:
                fn.has_loop = True
        elif kind == 'IfStatement':
            facts.conditional_count += 1
        elif kind == 'Identifier':
            facts.digest.append(node.get('name', ''))
        elif kind == 'Literal':
            if isinstance(node.get('value'), (int, float, str)) and not isinstance(node.get('value'), bool):
                facts.literal_count += 1
        elif kind in ('BinaryExpression', 'AssignmentExpression'):
            self._halving(node, loop_depth, functions)
        elif kind == 'CallExpression':
            self._call(node, current)
        elif kind == 'NewExpression':
            facts.digest.append('new ' + _dotted(node.get('callee') or {}) + '(')
        elif kind == 'MemberExpression':
            text = _dotted(node)
            if text:
                facts.digest.append(text)
        elif kind == 'ObjectExpression' and not node.get('properties'):
            facts.digest.append('= {}')

        inner_depth = loop_depth + 1 if kind in LOOP_TYPES else loop_depth
        contains_loop = False
        for child_key, child in _children(node):
            if self._visit(child, node, child_key, inner_depth, functions):
                contains_loop = True

        if kind in LOOP_TYPES:
            if contains_loop:
                facts.nested_loop_count += 1
            return True
        return contains_loop

    def _halving(self, node, loop_depth, functions):
        expected = HALVING_OPERATORS.get(node.get('operator'))
        if expected is None or _literal_text(node.get('right') or {}) != expected:
            return
        if loop_depth > 0:
            self.facts.halving_in_loop = True
        for fn in functions:
            fn.halving = True

    def _call(self, node, current):
        callee = node.get('callee') or {}
        args = node.get('arguments') or []
        text = _dotted(callee)
        if not text and callee.get('type') == 'MemberExpression':
            text = '.' + str((callee.get('property') or {}).get('name', ''))
        if text == 'require' and args and isinstance(args[0].get('value'), str):
            self.facts.digest.append("require('%s')" % args[0]['value'])
        self.facts.digest.append(text + ('(' if args else '()'))

        if current is None:
            return
        if callee.get('type') == 'Identifier':
            current.calls.add(callee.get('name'))
        elif (callee.get('type') == 'MemberExpression'
              and (callee.get('object') or {}).get('type') == 'ThisExpression'
              and not callee.get('computed')):
            current.calls.add((callee.get('property') or {}).get('name'))


def collect_facts(program: dict) -> ProgramFacts:
    return EstreeCollector().collect(program)
