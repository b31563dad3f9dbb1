"""
The feature vector: a language-independent description of the structure
of one submission.
"""
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .complexity import Complexity, normalize


class Paradigm(StrEnum):
    DYNAMIC_PROGRAMMING = 'Dynamic Programming'
    RECURSION = 'Recursion'
    GRAPH_TRAVERSAL = 'Graph Traversal'
    STACK_BASED = 'Stack-based'
    QUEUE_BASED = 'Queue-based'
    SORTING = 'Sorting'
    HASH_MAP = 'Hash Map'
    TWO_POINTERS = 'Two Pointers'
    SLIDING_WINDOW = 'Sliding Window'
    BRUTE_FORCE = 'Brute Force'
    ITERATIVE = 'Iterative'
    SIMPLE_LOGIC = 'Simple Logic'


COUNT_FIELDS = ('loop_count', 'nested_loop_count', 'conditional_count', 'line_count', 'character_count')


class FeatureVector(BaseModel):
    """
    Structural features of a submission.

    Every field has a safe default, so FeatureVector() is the vector for
    code that could not be analysed. Field names are snake_case; the
    camelCase wire names (loopCount, memoizationOrDP, ...) are accepted on
    input and produced by model_dump(by_alias=True).
    """

    model_config = ConfigDict(
        frozen=True,
        extra='ignore',
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=False,
    )

    loop_count: int = 0
    nested_loop_count: int = 0
    conditional_count: int = 0
    line_count: int = 0
    character_count: int = 0

    recursion_detected: bool = False
    uses_hash_map: bool = False
    uses_sorting: bool = False
    uses_stack: bool = False
    uses_queue: bool = False
    has_log_loop: bool = False
    divides_input: bool = False
    memoization_or_dp: bool = Field(default=False, alias='memoizationOrDP')
    has_linear_work_inside_recursion: bool = False
    input_dependent_logic: bool = False
    constant_only_output: bool = False
    hardcoding_detected: bool = False
    array_manipulation: bool = False
    two_pointers: bool = False
    sliding_window: bool = False
    dynamic_programming: bool = False
    graph_traversal: bool = False

    estimated_time_complexity: Complexity = Complexity.CONSTANT
    estimated_space_complexity: Complexity = Complexity.CONSTANT
    paradigm: Paradigm = Paradigm.SIMPLE_LOGIC

    @field_validator(*COUNT_FIELDS, mode='before')
    @classmethod
    def _non_negative_count(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return 0
        return value

    @field_validator(
        'recursion_detected', 'uses_hash_map', 'uses_sorting', 'uses_stack', 'uses_queue',
        'has_log_loop', 'divides_input', 'memoization_or_dp', 'has_linear_work_inside_recursion',
        'input_dependent_logic', 'constant_only_output', 'hardcoding_detected',
        'array_manipulation', 'two_pointers', 'sliding_window', 'dynamic_programming',
        'graph_traversal',
        mode='before',
    )
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return bool(value)

    @field_validator('estimated_time_complexity', mode='before')
    @classmethod
    def _time_class(cls, value: Any) -> Complexity:
        return normalize(value)

    @field_validator('estimated_space_complexity', mode='before')
    @classmethod
    def _space_class(cls, value: Any) -> Complexity:
        return normalize(value, space=True)

    @field_validator('paradigm', mode='before')
    @classmethod
    def _known_paradigm(cls, value: Any) -> Paradigm:
        try:
            return Paradigm(value)
        except ValueError:
            return Paradigm.SIMPLE_LOGIC

    @classmethod
    def default(cls) -> Self:
        return cls()

    def to_dict(self) -> dict:
        """Wire form with camelCase keys and plain-string enum values."""
        return self.model_dump(mode='json', by_alias=True)


def detect_paradigm(features: FeatureVector) -> Paradigm:
    """Pick the dominant paradigm; earlier entries take priority."""
    rules = [
        (features.dynamic_programming or features.memoization_or_dp, Paradigm.DYNAMIC_PROGRAMMING),
        (features.recursion_detected, Paradigm.RECURSION),
        (features.graph_traversal, Paradigm.GRAPH_TRAVERSAL),
        (features.uses_stack, Paradigm.STACK_BASED),
        (features.uses_queue, Paradigm.QUEUE_BASED),
        (features.uses_sorting, Paradigm.SORTING),
        (features.uses_hash_map, Paradigm.HASH_MAP),
        (features.two_pointers, Paradigm.TWO_POINTERS),
        (features.sliding_window, Paradigm.SLIDING_WINDOW),
        (features.nested_loop_count >= 2, Paradigm.BRUTE_FORCE),
        (features.loop_count > 0, Paradigm.ITERATIVE),
    ]
    for matched, paradigm in rules:
        if matched:
            return paradigm
    return Paradigm.SIMPLE_LOGIC
