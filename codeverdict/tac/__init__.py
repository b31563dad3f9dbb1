"""
Three-address code: lowering, canonicalization and comparison.
"""
from .comparator import TACComparison, compare_tac
from .generator import TACGenerator, generate_tac
from .instructions import Assign, BinOp, CJump, Call, Goto, Instruction, Label, Return, TACProgram
from .normalizer import normalize_tac

__all__ = [
    'Assign', 'BinOp', 'CJump', 'Call', 'Goto', 'Instruction', 'Label', 'Return', 'TACProgram',
    'TACComparison', 'TACGenerator', 'compare_tac', 'generate_tac', 'normalize_tac',
]
