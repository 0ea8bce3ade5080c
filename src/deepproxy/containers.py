"""
Tracked container wrappers.

TrackedDict and TrackedList front a raw dict or list owned by a tracked tree.
Reads go straight to the raw node. Writes and deletes go through two traps:

- set: wrap a container value, ask the tree's handler, then commit
- delete: vacate the slot (restoring the subtree to raw form once no other
  slot holds it), remove, then notify

A wrapper may sit in several slots of its tree at once (``t['b'] = t['a']``).
It records every slot holding it and stays tracked until the last one is
vacated. Paths are reported through the oldest slot still held.

Every list mutation is expressed as single-key operations in a fixed order:
index writes (ascending), trailing index deletes (descending), then one write
of the length key when the size changed.

Reentrancy: a handler must not mutate the node whose trap is currently
running. This is not detected; the outcome of such a mutation is undefined.
"""
import logging
import operator
import weakref
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import TYPE_CHECKING, AbstractSet, Any, Hashable, Iterable, Iterator, List, Optional, Tuple

if TYPE_CHECKING:
    from deepproxy.proxy import Tracker

logger = logging.getLogger(__name__)

_MISSING = object()


class TrackedContainer:
    """Common state and trap plumbing for tracked wrappers.

    A wrapper knows its raw node, the Tracker of the tree it belongs to, and
    the slots (parent wrapper and key) that hold it. The path reported to the
    handler is rebuilt from these links on every trap call, so a wrapper that
    moves (e.g. shifts inside a list) always reports its current location.
    """

    def __init__(self, raw: Any, tracker: 'Tracker'):
        self._raw = raw
        self._tracker: Optional['Tracker'] = tracker
        self._homes: List[Tuple[weakref.ref, Hashable]] = []

    @property
    def raw(self) -> Any:
        """The unwrapped container this wrapper fronts."""
        return self._raw

    @property
    def detached(self) -> bool:
        """True once the wrapper has been removed from its tree."""
        return self._tracker is None

    @property
    def path(self) -> List[Hashable]:
        """Keys from the tracked root down to this node ([] for the root)."""
        keys = []
        node = self
        while True:
            homes = node._live_homes()
            if not homes:
                break
            parent, key = homes[0]
            keys.append(key)
            node = parent
        keys.reverse()
        return keys

    def _live_homes(self) -> List[Tuple['TrackedContainer', Hashable]]:
        """(parent, key) slots holding this wrapper inside a live tree."""
        homes = []
        for ref, key in self._homes:
            parent = ref()
            if parent is not None and not parent.detached:
                homes.append((parent, key))
        return homes

    def _attach(self, parent: 'TrackedContainer', key: Hashable) -> None:
        self._homes = [(weakref.ref(p), k) for p, k in self._live_homes() if not (p is parent and k == key)]
        self._homes.append((weakref.ref(parent), key))

    def _release(self, parent: 'TrackedContainer', key: Hashable) -> bool:
        """Forget the slot ``parent[key]``; True if another slot still holds this wrapper."""
        self._homes = [(weakref.ref(p), k) for p, k in self._live_homes() if not (p is parent and k == key)]
        return bool(self._homes)

    def _detach(self) -> None:
        self._tracker = None
        self._homes = []

    # ========== TRAPS ==========

    def _has_key(self, key: Hashable) -> bool:
        raise NotImplementedError

    def _store(self, key: Hashable, value: Any) -> None:
        raise NotImplementedError

    def _remove(self, key: Hashable) -> None:
        raise NotImplementedError

    def _trap_set(self, key: Hashable, value: Any, kept: Optional[AbstractSet[int]] = None) -> bool:
        """Route one key write through the handler.

        Args:
            key: Key (or index) being written
            value: New value, wrapped first if it is a container
            kept: ids of wrappers that stay in this node after the current
                operation; a displaced wrapper listed here is moved, not torn down

        Returns:
            True if the handler accepted and the write was committed
        """
        tracker = self._tracker
        if tracker is None:
            logger.debug(f"Untracked write to detached {type(self).__name__} at key {key!r}")
            self._store(key, value)
            return True

        value, created = tracker.adopt(value)
        try:
            accepted = tracker.notify_set(self._raw, self._child_path(key), value, self)
        except Exception:
            tracker.discard(created)
            raise
        if not accepted:
            logger.debug(f"Handler rejected write at {self._child_path(key)}")
            tracker.discard(created)
            return False

        if self._has_key(key):
            old = self._raw[key]
            if old is not value and isinstance(old, TrackedContainer):
                tracker.registry.unwrap(self._raw, key, owner=self, kept=kept)
        self._store(key, value)
        if isinstance(value, TrackedContainer):
            value._attach(self, key)
        return True

    def _trap_delete(self, key: Hashable, kept: Optional[AbstractSet[int]] = None) -> bool:
        """Remove one key, notifying the handler afterwards.

        Returns:
            False (and no handler call) when the key does not exist
        """
        if not self._has_key(key):
            return False
        tracker = self._tracker
        if tracker is None:
            self._remove(key)
            return True

        if isinstance(self._raw[key], TrackedContainer):
            tracker.registry.unwrap(self._raw, key, owner=self, kept=kept)
        self._remove(key)
        tracker.notify_delete(self._raw, self._child_path(key))
        return True

    def _child_path(self, key: Hashable) -> List[Hashable]:
        return [*self.path, key]


def _as_raw(value: Any) -> Any:
    """Hand a removed value back without leaking a detached wrapper."""
    if isinstance(value, TrackedContainer) and value.detached:
        return value.raw
    return value


def _unwrapped(value: Any, wrapper_type: type) -> Any:
    return value.raw if isinstance(value, wrapper_type) else value


class TrackedDict(TrackedContainer, MutableMapping):
    """Tracked view of a dict.

    Item access, iteration, len, ``in``, equality and repr behave like the
    raw dict. ``set()`` and ``delete()`` return the trap outcome; item
    assignment and ``del`` are the same operations with dict conventions
    (``del`` of a missing key raises KeyError). ``copy()`` and ``|`` return
    plain dicts.
    """

    __hash__ = None

    def __getitem__(self, key: Hashable) -> Any:
        return self._raw[key]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def __contains__(self, key: object) -> bool:
        return key in self._raw

    def __repr__(self) -> str:
        return repr(self._raw)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TrackedDict):
            return self._raw == other._raw
        if isinstance(other, dict):
            return self._raw == other
        if isinstance(other, Mapping):
            return self._raw == dict(other.items())
        return NotImplemented

    def __reversed__(self) -> Iterator[Hashable]:
        return reversed(self._raw)

    def copy(self) -> dict:
        """Shallow copy as a plain dict; nested values are shared, as with dict.copy()."""
        return dict(self._raw)

    def __or__(self, other: Any) -> dict:
        other = _unwrapped(other, TrackedDict)
        if not isinstance(other, dict):
            return NotImplemented
        return self._raw | other

    def __ror__(self, other: Any) -> dict:
        if not isinstance(other, dict):
            return NotImplemented
        return other | self._raw

    def __ior__(self, other: Any) -> 'TrackedDict':
        self.update(other)
        return self

    def set(self, key: Hashable, value: Any) -> bool:
        """Write ``value`` at ``key``; False if the handler rejected it."""
        return self._trap_set(key, value)

    def delete(self, key: Hashable) -> bool:
        """Remove ``key``; False if it was not present."""
        return self._trap_delete(key)

    def __setitem__(self, key: Hashable, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: Hashable) -> None:
        if not self.delete(key):
            raise KeyError(key)

    def pop(self, key: Hashable, default: Any = _MISSING) -> Any:
        if key not in self._raw:
            if default is _MISSING:
                raise KeyError(key)
            return default
        value = self._raw[key]
        self.delete(key)
        return _as_raw(value)

    def popitem(self) -> tuple:
        if not self._raw:
            raise KeyError('popitem(): dictionary is empty')
        key = next(reversed(self._raw))
        return key, self.pop(key)

    def setdefault(self, key: Hashable, default: Any = None) -> Any:
        if key not in self._raw:
            self.set(key, default)
        return self._raw.get(key, default)

    def _has_key(self, key: Hashable) -> bool:
        return key in self._raw

    def _store(self, key: Hashable, value: Any) -> None:
        self._raw[key] = value

    def _remove(self, key: Hashable) -> None:
        del self._raw[key]


class TrackedList(TrackedContainer, MutableSequence):
    """Tracked view of a list.

    Keys are int indices plus the tree's length key. Every mutating list
    method is rewritten into index writes, trailing index deletes and a final
    length write, each routed through the traps. A rejected step ends the
    operation; steps already accepted stay committed. ``+``, ``*`` and
    ``copy()`` return plain lists.
    """

    __hash__ = None

    def __getitem__(self, index: Any) -> Any:
        return self._raw[index]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._raw)

    def __reversed__(self) -> Iterator[Any]:
        return reversed(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def __contains__(self, value: object) -> bool:
        return value in self._raw

    def __repr__(self) -> str:
        return repr(self._raw)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TrackedList):
            return self._raw == other._raw
        if isinstance(other, list):
            return self._raw == other
        if isinstance(other, Sequence) and not isinstance(other, (str, bytes, bytearray)):
            return self._raw == list(other)
        return NotImplemented

    def __lt__(self, other: Any) -> bool:
        other = _unwrapped(other, TrackedList)
        return self._raw < other if isinstance(other, list) else NotImplemented

    def __le__(self, other: Any) -> bool:
        other = _unwrapped(other, TrackedList)
        return self._raw <= other if isinstance(other, list) else NotImplemented

    def __gt__(self, other: Any) -> bool:
        other = _unwrapped(other, TrackedList)
        return self._raw > other if isinstance(other, list) else NotImplemented

    def __ge__(self, other: Any) -> bool:
        other = _unwrapped(other, TrackedList)
        return self._raw >= other if isinstance(other, list) else NotImplemented

    def __add__(self, other: Any) -> list:
        other = _unwrapped(other, TrackedList)
        if not isinstance(other, list):
            return NotImplemented
        return self._raw + other

    def __radd__(self, other: Any) -> list:
        if not isinstance(other, list):
            return NotImplemented
        return other + self._raw

    def __mul__(self, count: int) -> list:
        return self._raw * count

    __rmul__ = __mul__

    def copy(self) -> list:
        """Shallow copy as a plain list; nested values are shared, as with list.copy()."""
        return list(self._raw)

    def index(self, value: Any, *args: int) -> int:
        return self._raw.index(value, *args)

    def count(self, value: Any) -> int:
        return self._raw.count(value)

    # ========== KEY OPERATIONS ==========

    def set(self, index: int, value: Any) -> bool:
        """Write ``value`` at an existing index; False if the handler rejected it."""
        return self._trap_set(self._normalize(index), value)

    def delete(self, index: int) -> bool:
        """Remove the item at ``index``, shifting later items down.

        Returns:
            False if the index is out of range or a step was rejected
        """
        try:
            index = self._normalize(index)
        except IndexError:
            return False
        items = list(self._raw)
        del items[index]
        return self._rewrite(items)

    # ========== LIST PROTOCOL ==========

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            items = list(self._raw)
            items[index] = list(value)
            self._rewrite(items)
        else:
            self.set(index, value)

    def __delitem__(self, index: Any) -> None:
        if isinstance(index, slice):
            items = list(self._raw)
            del items[index]
            self._rewrite(items)
        else:
            self.delete(self._normalize(index))

    def insert(self, index: int, value: Any) -> None:
        items = list(self._raw)
        items.insert(index, value)
        self._rewrite(items)

    def append(self, value: Any) -> None:
        self._rewrite([*self._raw, value])

    def extend(self, values: Iterable[Any]) -> None:
        self._rewrite([*self._raw, *list(values)])

    def __iadd__(self, values: Iterable[Any]) -> 'TrackedList':
        self.extend(values)
        return self

    def __imul__(self, count: int) -> 'TrackedList':
        self._rewrite(self._raw * operator.index(count))
        return self

    def pop(self, index: int = -1) -> Any:
        if not self._raw:
            raise IndexError('pop from empty list')
        index = self._normalize(index)
        value = self._raw[index]
        self.delete(index)
        return _as_raw(value)

    def clear(self) -> None:
        self._rewrite([])

    def reverse(self) -> None:
        self._rewrite(self._raw[::-1])

    def sort(self, *, key: Any = None, reverse: bool = False) -> None:
        items = list(self._raw)
        items.sort(key=key, reverse=reverse)
        self._rewrite(items)

    # ========== INTERNALS ==========

    def _normalize(self, index: Any) -> int:
        index = operator.index(index)
        if index < 0:
            index += len(self._raw)
        if not 0 <= index < len(self._raw):
            raise IndexError('list index out of range')
        return index

    def _rewrite(self, items: List[Any]) -> bool:
        """Turn the raw list into ``items`` one key operation at a time."""
        raw = self._raw
        if self._tracker is None:
            raw[:] = items
            return True

        original_length = len(raw)
        moving = [item for item in items if isinstance(item, TrackedContainer)]
        kept = frozenset(id(item) for item in moving)
        for index, value in enumerate(items):
            if index < len(raw) and raw[index] is value:
                continue
            if not self._trap_set(index, value, kept):
                self._settle(moving)
                return False
        for index in range(len(raw) - 1, len(items) - 1, -1):
            if not self._trap_delete(index, kept):
                self._settle(moving)
                return False
        if len(items) != original_length:
            return self._trap_set(self._tracker.config.length_key, len(items))
        return True

    def _settle(self, moving: List[TrackedContainer]) -> None:
        """Tear down wrappers an aborted rewrite displaced and never put back."""
        registry = self._tracker.registry
        for wrapper in moving:
            if not wrapper.detached and not wrapper._live_homes():
                registry.release(wrapper)

    def _has_key(self, key: Hashable) -> bool:
        return isinstance(key, int) and 0 <= key < len(self._raw)

    def _store(self, key: Hashable, value: Any) -> None:
        raw = self._raw
        if isinstance(key, str):
            self._resize(value)
        elif key < len(raw):
            raw[key] = value
        else:
            raw.extend([None] * (key - len(raw)))
            raw.append(value)

    def _remove(self, key: Hashable) -> None:
        del self._raw[key]

    def _resize(self, length: int) -> None:
        raw = self._raw
        if length < len(raw):
            if self._tracker is not None:
                for index in range(len(raw) - 1, length - 1, -1):
                    if isinstance(raw[index], TrackedContainer):
                        self._tracker.registry.unwrap(raw, index, owner=self)
            del raw[length:]
        elif length > len(raw):
            raw.extend([None] * (length - len(raw)))
