"""
Raw facts gathered by an extractor, and their assembly into a FeatureVector.

Every extraction strategy (the esprima walker, the tree-sitter walker and
the regex fallback) reduces a submission to the same ProgramFacts, which
assemble() then turns into a feature vector. Keeping the derivation in one
place is what makes the strategies agree with each other.
"""
import re
import threading
from dataclasses import dataclass, field

from .. import config
from .. import languages
from .. import logger
from ..complexity import estimate_space, estimate_time
from ..features import FeatureVector, detect_paradigm
from ..source import count_lines

log = logger.get('extract')

NAME_KEYS = [
    'sorting', 'hash_map', 'stack', 'queue', 'array_manipulation', 'graph',
    'dynamic_programming', 'memoization', 'two_pointers', 'window', 'input_read',
]
STRUCTURE_KEYS = ['loop', 'function', 'conditional', 'halving']

# Above this many literals a program without any control flow is
# treated as a lookup table of answers.
MAX_LITERALS_WITHOUT_LOGIC = 10


@dataclass
class FunctionFacts:
    name: str
    calls: set[str] = field(default_factory=set)
    has_loop: bool = False
    halving: bool = False

    @property
    def recursive(self) -> bool:
        return self.name in self.calls


@dataclass
class ProgramFacts:
    loop_count: int = 0
    nested_loop_count: int = 0
    conditional_count: int = 0
    literal_count: int = 0
    halving_in_loop: bool = False
    functions: dict[str, FunctionFacts] = field(default_factory=dict)
    digest: list[str] = field(default_factory=list)

    def function(self, name: str) -> FunctionFacts:
        if name not in self.functions:
            self.functions[name] = FunctionFacts(name)
        return self.functions[name]


class SyntaxTable(object):
    """Compiled keyword tables for one language."""

    def __init__(self, lang_id: str, spec: dict):
        self.lang_id = lang_id
        try:
            names = spec['names']
            structure = spec['structure']
            self.names = {key: re.compile(names[key]) for key in NAME_KEYS}
            self.structure = {key: re.compile(structure[key]) for key in STRUCTURE_KEYS}
            self.constant_output = re.compile(spec['constant_output'])
            self.long_literal = re.compile(spec['long_literal'])
        except (KeyError, TypeError) as err:
            raise config.ConfigError(f'patterns.yaml: language {lang_id} lacks {err}') from err
        except re.error as err:
            raise config.ConfigError(f'patterns.yaml: bad regex for language {lang_id}: {err}') from err

    def has(self, key: str, text: str) -> bool:
        return self.names[key].search(text) is not None


_tables: dict[str, SyntaxTable] | None = None
_tables_lock = threading.Lock()


def _build_tables(data: dict) -> dict[str, SyntaxTable]:
    return {lang_id: SyntaxTable(lang_id, spec) for lang_id, spec in data.items()}


def get_table(language) -> SyntaxTable:
    """Keyword tables for a language, compiled once per process.

    Raises:
        ConfigError: if patterns.yaml has no table for the language.
    """
    global _tables
    with _tables_lock:
        if _tables is None:
            try:
                _tables = _build_tables(config.load_config('patterns.yaml'))
            except config.ConfigError as err:
                log.warning('%s; using the bundled keyword tables', err)
                _tables = _build_tables(config.load_bundled('patterns.yaml'))
    lang_id = languages.normalize(language)
    if lang_id not in _tables:
        raise config.ConfigError(f'patterns.yaml has no table for {lang_id}')
    return _tables[lang_id]


def assemble(facts: ProgramFacts, code: str, source: str, table: SyntaxTable) -> FeatureVector:
    """Derive the feature vector from extracted facts.

    Args:
        facts: what the extractor found.
        code: the submission as received, used for line and character counts.
        source: the submission without comments, searched for constant
            output and literal tables.
        table: keyword tables of the submission's language.
    """
    digest = '\n'.join(facts.digest)
    loops = facts.loop_count
    nested = facts.nested_loop_count
    conditionals = facts.conditional_count

    recursive = [fn for fn in facts.functions.values() if fn.recursive]
    recursion = bool(recursive)
    looping = {fn.name for fn in facts.functions.values() if fn.has_loop}
    linear_work = any(fn.has_loop or (fn.calls & (looping - {fn.name})) for fn in recursive)
    divides = facts.halving_in_loop or any(fn.halving for fn in recursive)

    reads_input = table.has('input_read', digest)
    constant_output = table.constant_output.search(source) is not None
    has_logic = loops > 0 or conditionals > 0 or recursion
    dynamic_programming = table.has('dynamic_programming', digest)
    two_pointer_names = table.has('two_pointers', digest)

    features = FeatureVector(
        loop_count=loops,
        nested_loop_count=nested,
        conditional_count=conditionals,
        line_count=count_lines(code),
        character_count=len(code),
        recursion_detected=recursion,
        uses_hash_map=table.has('hash_map', digest),
        uses_sorting=table.has('sorting', digest),
        uses_stack=table.has('stack', digest),
        uses_queue=table.has('queue', digest),
        has_log_loop=facts.halving_in_loop,
        divides_input=divides,
        memoization_or_dp=dynamic_programming or table.has('memoization', digest),
        has_linear_work_inside_recursion=linear_work,
        input_dependent_logic=reads_input and (loops > 0 or conditionals > 0),
        constant_only_output=constant_output,
        hardcoding_detected=(
            (constant_output and not reads_input and not has_logic)
            or (facts.literal_count > MAX_LITERALS_WITHOUT_LOGIC and not has_logic)
            or table.long_literal.search(source) is not None
        ),
        array_manipulation=table.has('array_manipulation', digest),
        two_pointers=two_pointer_names and loops == 1,
        sliding_window=(two_pointer_names or table.has('window', digest)) and loops >= 1,
        dynamic_programming=dynamic_programming,
        graph_traversal=table.has('graph', digest),
    )
    return features.model_copy(update={
        'estimated_time_complexity': estimate_time(features),
        'estimated_space_complexity': estimate_space(features),
        'paradigm': detect_paradigm(features),
    })
