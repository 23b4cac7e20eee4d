"""Build contracts: fail-fast enforcement of row and record invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate result-set and decoded-record shape
- Builders turn every failure into a logged False result
"""

from calibtree.contracts.failure import ContractViolation
from calibtree.contracts.base import require
from calibtree.contracts.artifact import assert_row_width, assert_strip_record

__all__ = [
    "ContractViolation",
    "require",
    "assert_row_width",
    "assert_strip_record",
]
