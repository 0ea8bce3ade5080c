"""
Precondition assertion helper.

Unlike a bare ``assert``, invariant() is not stripped under ``python -O``.
"""
from typing import Any, Callable, Optional, Union

from deepproxy.exceptions import InvariantViolation

_PREFIX = "Invariant failed"


def invariant(condition: Any, message: Optional[Union[str, Callable[[], str]]] = None) -> None:
    """Raise InvariantViolation unless condition is truthy.

    Args:
        condition: Value checked for truthiness
        message: Extra detail, or a zero-argument callable producing it lazily

    Raises:
        InvariantViolation: "Invariant failed" or "Invariant failed: <message>"
    """
    if condition:
        return
    detail = message() if callable(message) else message
    raise InvariantViolation(f"{_PREFIX}: {detail}" if detail else _PREFIX)
