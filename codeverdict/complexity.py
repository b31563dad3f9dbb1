"""
Asymptotic complexity classes and a rule-based estimator mapping a
feature vector to worst-case time and auxiliary space complexity.

Time estimation collects every class whose rule fires and returns the
worst of them, so adding a loop or a recursive call to a program can
only keep or raise the estimate.
"""
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any


class Complexity(StrEnum):
    CONSTANT = 'O(1)'
    LOGARITHMIC = 'O(log n)'
    LINEAR = 'O(n)'
    LINEARITHMIC = 'O(n log n)'
    QUADRATIC = 'O(n²)'
    EXPONENTIAL = 'O(2ⁿ)'


TIME_ORDER = (
    Complexity.CONSTANT,
    Complexity.LOGARITHMIC,
    Complexity.LINEAR,
    Complexity.LINEARITHMIC,
    Complexity.QUADRATIC,
    Complexity.EXPONENTIAL,
)

SPACE_CLASSES = (
    Complexity.CONSTANT,
    Complexity.LOGARITHMIC,
    Complexity.LINEAR,
)

# Ordered from most to least specific; the first match wins.
_LOOSE_FORMS = [
    (re.compile(r'2\s*\^\s*n|2ⁿ|\bn\s*!|\bn\s*\^\s*n|nⁿ|exponential|factorial', re.IGNORECASE),
     Complexity.EXPONENTIAL),
    (re.compile(r'n\s*\^\s*(?:[2-9]|\d{2,})|n[²³⁴⁵⁶⁷⁸⁹]|\bn\s*\*\s*n\b|quadratic|cubic|polynomial', re.IGNORECASE),
     Complexity.QUADRATIC),
    (re.compile(r'n\s*\*?\s*log|log\w*\s*n?\s*\*\s*n\b|linearithmic', re.IGNORECASE),
     Complexity.LINEARITHMIC),
    (re.compile(r'log', re.IGNORECASE),
     Complexity.LOGARITHMIC),
    (re.compile(r'\bn\b|linear', re.IGNORECASE),
     Complexity.LINEAR),
]


def rank(value: Complexity) -> int:
    return TIME_ORDER.index(value)


def worst(values) -> Complexity:
    """The highest-ranked class among values (O(1) for an empty collection)."""
    return max(values, key=rank, default=Complexity.CONSTANT)


def normalize(value: Any, space: bool = False) -> Complexity:
    """Map a free-form complexity string onto the canonical vocabulary.

    Anything that cannot be recognised becomes O(1). When space is true the
    result is collapsed onto the three space classes, rounding down to O(n)
    for anything super-linear. Applying normalize to its own output returns
    the same value.
    """
    if isinstance(value, Complexity):
        text = value.value
    elif isinstance(value, str):
        text = value.strip()
    else:
        return Complexity.CONSTANT

    text = text.replace('^2', '²').replace('2^n', '2ⁿ').replace('n^2', 'n²')
    try:
        result = Complexity(text)
    except ValueError:
        result = Complexity.CONSTANT
        for regex, complexity in _LOOSE_FORMS:
            if regex.search(text):
                result = complexity
                break

    if space and result not in SPACE_CLASSES:
        return Complexity.LINEAR
    return result


def _flag(features, name: str, alias: str | None = None):
    if isinstance(features, Mapping):
        if name in features:
            return features[name]
        if alias is not None:
            return features.get(alias)
        return None
    return getattr(features, name, None)


def _count(features, name, alias) -> int:
    value = _flag(features, name, alias)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def _bool(features, name, alias) -> bool:
    return bool(_flag(features, name, alias))


def time_candidates(features) -> list[Complexity]:
    """All time classes whose rule fires for the feature vector."""
    loops = _count(features, 'loop_count', 'loopCount')
    nested = _count(features, 'nested_loop_count', 'nestedLoopCount')
    recursion = _bool(features, 'recursion_detected', 'recursionDetected')
    divides = _bool(features, 'divides_input', 'dividesInput')
    memo = _bool(features, 'memoization_or_dp', 'memoizationOrDP')
    sorting = _bool(features, 'uses_sorting', 'usesSorting')
    log_loop = _bool(features, 'has_log_loop', 'hasLogLoop')
    linear_work = _bool(features, 'has_linear_work_inside_recursion', 'hasLinearWorkInsideRecursion')

    candidates = []
    if recursion and not divides and not memo:
        candidates.append(Complexity.EXPONENTIAL)
    if recursion and divides and not linear_work and loops <= 1:
        candidates.append(Complexity.LOGARITHMIC)
    if sorting:
        candidates.append(Complexity.LINEARITHMIC)
    if nested >= 1:
        candidates.append(Complexity.QUADRATIC)
    if log_loop and nested == 0 and not recursion:
        candidates.append(Complexity.LOGARITHMIC)
    # flat loops over the input cost O(n) whatever the recursion does
    if loops >= 1 and nested == 0 and not log_loop:
        candidates.append(Complexity.LINEAR)

    # Combinations
    if sorting and nested >= 1:
        candidates.append(Complexity.QUADRATIC)
    if recursion and divides and linear_work:
        candidates.append(Complexity.LINEARITHMIC)
    if recursion and memo:
        candidates.append(Complexity.LINEAR)
    if log_loop and loops > 1 and nested == 0:
        candidates.append(Complexity.LINEARITHMIC)

    if not candidates and not recursion and loops == 0:
        candidates.append(Complexity.CONSTANT)
    return candidates


def estimate_time(features) -> Complexity:
    """Worst-case time complexity for a feature vector or a mapping of features.

    Mappings may use either snake_case or camelCase keys; missing keys
    count as zero or false.
    """
    return worst(time_candidates(features))


def estimate_space(features) -> Complexity:
    """Auxiliary space complexity for a feature vector or a mapping of features."""
    recursion = _bool(features, 'recursion_detected', 'recursionDetected')
    if (_bool(features, 'memoization_or_dp', 'memoizationOrDP')
            or _bool(features, 'uses_hash_map', 'usesHashMap')
            or _bool(features, 'uses_stack', 'usesStack')
            or _bool(features, 'uses_queue', 'usesQueue')):
        return Complexity.LINEAR
    if recursion and _bool(features, 'divides_input', 'dividesInput'):
        return Complexity.LOGARITHMIC
    return Complexity.CONSTANT
