"""
Similarity of two instruction streams.

Both streams are normalized and compared line by line: the score is the
mean of the Jaccard index of the two line sets and the LCS ratio
2 * LCS / (|A| + |B|) of the two line sequences.
"""
from dataclasses import dataclass, field

from .normalizer import normalize_tac

MAX_SAMPLES = 5


@dataclass
class TACComparison:
    tac_match: bool
    similarity: float
    mismatch_reasons: list[dict] = field(default_factory=list)
    student_lines: list[str] = field(default_factory=list)
    reference_lines: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'tacMatch': self.tac_match,
            'similarity': self.similarity,
            'mismatchReasons': self.mismatch_reasons,
        }


def lcs_length(a: list[str], b: list[str]) -> int:
    """Length of the longest common subsequence.

    A shared prefix and suffix are matched directly; only what lies between
    them goes through the DP table.
    """
    start = 0
    while start < len(a) and start < len(b) and a[start] == b[start]:
        start += 1
    end = 0
    while end < min(len(a), len(b)) - start and a[-1 - end] == b[-1 - end]:
        end += 1
    a, b = a[start:len(a) - end], b[start:len(b) - end]

    previous = [0] * (len(b) + 1)
    for x in a:
        current = [0] * (len(b) + 1)
        for j, y in enumerate(b, start=1):
            if x == y:
                current[j] = previous[j - 1] + 1
            else:
                current[j] = max(previous[j], current[j - 1])
        previous = current
    return start + end + previous[-1]


def _lines(program) -> list[str]:
    return [str(instruction) for instruction in normalize_tac(program)]


def compare_tac(a, b) -> TACComparison:
    """Compare a student stream a with a reference stream b.

    Args:
        a, b: TACProgram objects or lists of instructions.
    """
    a_lines = _lines(a)
    b_lines = _lines(b)
    a_set, b_set = set(a_lines), set(b_lines)

    union = a_set | b_set
    jaccard = len(a_set & b_set) / len(union) if union else 1.0
    total = len(a_lines) + len(b_lines)
    lcs_ratio = 2 * lcs_length(a_lines, b_lines) / total if total else 1.0
    identical = a_lines == b_lines
    similarity = round(0.5 * jaccard + 0.5 * lcs_ratio, 4)
    if not identical:
        similarity = min(similarity, 0.9999)

    reasons = []
    student_only = [line for line in a_lines if line not in b_set]
    reference_only = [line for line in b_lines if line not in a_set]
    if student_only:
        reasons.append({'side': 'studentOnly', 'count': len(student_only), 'sample': student_only[:MAX_SAMPLES]})
    if reference_only:
        reasons.append({'side': 'referenceOnly', 'count': len(reference_only), 'sample': reference_only[:MAX_SAMPLES]})

    return TACComparison(
        tac_match=identical,
        similarity=similarity,
        mismatch_reasons=reasons,
        student_lines=a_lines,
        reference_lines=b_lines,
    )
