"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from calibtree.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a build contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require(len(row) >= len(columns), "Row contract: row narrower than schema")
    """
    if not condition:
        raise ContractViolation(message)
