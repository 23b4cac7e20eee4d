"""Centralized failure type for contract violations.

Contracts fail fast and loud. All violations raise the same exception type,
so builders can turn internal bugs into one logged failure uniformly.
"""


class ContractViolation(RuntimeError):
    """Raised when an artifact build contract is violated.

    This indicates a bug or a broken upstream schema, not a missing analysis
    or an unreachable database (those are reported as failed builds).

    Key distinction:
    - ValueError: Bad user/config input (handled by Pydantic)
    - ContractViolation: Result set or decoded data does not match the schema
    """
    pass
