"""
Mutation handlers.

A handler is whatever the caller passes to wrap(): an object with optional
``set`` / ``delete_property`` methods, a mapping with those keys, or None.

    set(root, node, path, value, receiver) -> bool
        Called before a write is committed. Return a falsy value to reject it.

    delete_property(root, node, path) -> bool
        Called after a key has been removed. The result is ignored.

``root`` and ``node`` are raw containers, ``path`` is a fresh list of keys
from the root to the mutated key, ``receiver`` is the wrapper the write went
through.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, List, Mapping, Optional, Tuple

from deepproxy.exceptions import InvalidArgument

SetTrap = Callable[[Any, Any, List[Hashable], Any, Any], bool]
DeleteTrap = Callable[[Any, Any, List[Hashable]], Any]


def resolve_trap(handler: Any, name: str) -> Optional[Callable[..., Any]]:
    """Look up one handler operation.

    Args:
        handler: Handler object, mapping, or None
        name: 'set' or 'delete_property'

    Returns:
        The callable, or None when the handler does not supply it

    Raises:
        InvalidArgument: If the operation exists but is not callable
    """
    if handler is None:
        return None
    if isinstance(handler, Mapping):
        trap = handler.get(name)
    else:
        trap = getattr(handler, name, None)
    if trap is not None and not callable(trap):
        raise InvalidArgument(f"Handler operation '{name}' must be callable, got {type(trap).__name__}")
    return trap


@dataclass
class CallbackHandler:
    """Handler built from plain callables; either may be omitted."""
    set: Optional[SetTrap] = None
    delete_property: Optional[DeleteTrap] = None


@dataclass(frozen=True)
class MutationEvent:
    """Record of one observed mutation."""
    operation: str  # "set" or "delete"
    path: Tuple[Hashable, ...]
    value: Any = None
    timestamp: float = field(default_factory=time.time)


class RecordingHandler:
    """Handler that keeps a MutationEvent for every trap call.

    Writes are accepted unless ``accept`` is given and returns False for the
    (path, value) pair. Rejected writes are recorded too, with
    ``operation="reject"``.

    Example:
        recorder = RecordingHandler()
        tracked = wrap({"a": 1}, recorder)
        tracked["a"] = 2
        recorder.paths()  # [('a',)]
    """

    def __init__(self, accept: Optional[Callable[[List[Hashable], Any], bool]] = None):
        self._accept = accept
        self.events: List[MutationEvent] = []

    def set(self, root: Any, node: Any, path: List[Hashable], value: Any, receiver: Any) -> bool:
        accepted = self._accept is None or bool(self._accept(path, value))
        self.events.append(MutationEvent("set" if accepted else "reject", tuple(path), value))
        return accepted

    def delete_property(self, root: Any, node: Any, path: List[Hashable]) -> bool:
        self.events.append(MutationEvent("delete", tuple(path)))
        return True

    def paths(self, operation: Optional[str] = None) -> List[Tuple[Hashable, ...]]:
        """Paths of recorded events, optionally filtered by operation."""
        return [e.path for e in self.events if operation is None or e.operation == operation]

    def clear(self) -> None:
        self.events.clear()
