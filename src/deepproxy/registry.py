"""
Wrapper/raw identity bookkeeping for one tracked tree.

ProxyRegistry maps each live wrapper to the raw container it fronts, and each
fronted raw container back to its wrapper. Entries are keyed by object identity
and hold the wrapper only through a weakref, so the registry never keeps a
wrapper alive: an entry disappears either when the reconciler detaches the
wrapper or when the wrapper is garbage collected.

Raw dicts and lists cannot be weakly referenced, so the raw side is stored
directly. That adds no lifetime: every wrapper already holds its raw node.
"""
import logging
import weakref
from typing import AbstractSet, Any, Dict, Hashable, Iterator, List, Optional, Tuple

from deepproxy.config import DeepProxyConfig
from deepproxy.containers import TrackedContainer

logger = logging.getLogger(__name__)


class ProxyRegistry:
    """Non-owning wrapper <-> raw association table.

    Scoped to a single root: each wrap() call creates its own registry, so
    wrappers of unrelated trees are never found here.
    """

    def __init__(self, config: DeepProxyConfig):
        self._config = config
        # id(wrapper) -> (weakref to wrapper, raw node)
        self._by_wrapper: Dict[int, Tuple[weakref.ref, Any]] = {}
        # id(raw node) -> weakref to wrapper
        self._by_raw: Dict[int, weakref.ref] = {}

    def __len__(self) -> int:
        return len(self._by_wrapper)

    def __contains__(self, wrapper: object) -> bool:
        return self.raw_for(wrapper) is not None

    def register(self, wrapper: TrackedContainer, raw: Any) -> None:
        """Associate a freshly built wrapper with the raw node it fronts."""
        wrapper_id, raw_id = id(wrapper), id(raw)

        def _purge(ref: weakref.ref) -> None:
            entry = self._by_wrapper.get(wrapper_id)
            if entry is not None and entry[0] is ref:
                del self._by_wrapper[wrapper_id]
            if self._by_raw.get(raw_id) is ref:
                del self._by_raw[raw_id]

        ref = weakref.ref(wrapper, _purge)
        self._by_wrapper[wrapper_id] = (ref, raw)
        self._by_raw[raw_id] = ref

    def raw_for(self, wrapper: object) -> Optional[Any]:
        """Return the raw node behind a wrapper registered here, else None."""
        entry = self._by_wrapper.get(id(wrapper))
        if entry is None or entry[0]() is not wrapper:
            return None
        return entry[1]

    def wrapper_for(self, raw: object) -> Optional[TrackedContainer]:
        """Return the live wrapper already fronting a raw node, else None."""
        ref = self._by_raw.get(id(raw))
        if ref is None:
            return None
        wrapper = ref()
        if wrapper is None or wrapper.raw is not raw:
            return None
        return wrapper

    def owns(self, wrapper: object) -> bool:
        return isinstance(wrapper, TrackedContainer) and wrapper in self

    def forget(self, wrapper: TrackedContainer) -> Optional[Any]:
        """Drop the entry for a wrapper, returning its raw node (None if unknown)."""
        raw = self.raw_for(wrapper)
        if raw is None:
            return None
        del self._by_wrapper[id(wrapper)]
        if self._by_raw.get(id(raw)) is not None and self._by_raw[id(raw)]() is wrapper:
            del self._by_raw[id(raw)]
        return raw

    def live_wrappers(self) -> List[TrackedContainer]:
        """All wrappers currently registered (mainly for diagnostics and tests)."""
        return [w for w in (ref() for ref, _ in self._by_wrapper.values()) if w is not None]

    # ========== IDENTITY RECONCILER ==========

    def unwrap(
        self,
        node: Any,
        key: Hashable,
        owner: Optional[TrackedContainer] = None,
        kept: Optional[AbstractSet[int]] = None,
    ) -> None:
        """Vacate the slot ``node[key]`` and restore its raw form.

        ``node`` is a raw container (a dict or a list) and ``owner`` the
        wrapper fronting it, looked up here when omitted. A registered wrapper
        in the slot gives up that slot and the slot gets its raw node back. If
        no other slot of the tree holds the wrapper (and its id is not in
        ``kept``), it is released: entry dropped, wrapper detached, and the
        same pass run over its children. Already-raw values are descended
        into unless a live wrapper still fronts them.

        Never calls the mutation handler.
        """
        value = node[key]
        if isinstance(value, TrackedContainer):
            if value not in self:
                # Not ours (or already detached): leave it alone
                return
            if owner is None:
                owner = self.wrapper_for(node)
            still_held = owner is not None and value._release(owner, key)
            node[key] = value.raw
            if still_held or (owner is None and value._live_homes()):
                return
            if kept is not None and id(value) in kept:
                return
            logger.debug(f"Restored raw {type(value.raw).__name__} at key {key!r}")
            self.release(value)
            return

        if self.wrapper_for(value) is not None:
            return
        for child_key in self._child_keys(value):
            self._unwrap_child(value, child_key, None)

    def release(self, wrapper: TrackedContainer) -> None:
        """Detach a wrapper no slot holds any more, then vacate its children."""
        raw = self.forget(wrapper)
        if raw is None:
            return
        wrapper._detach()
        self.unwrap_all(raw, owner=wrapper)

    def unwrap_all(self, node: Any, owner: Optional[TrackedContainer] = None) -> None:
        """Restore every container child of a raw node (the node itself stays as is)."""
        for child_key in self._child_keys(node):
            self._unwrap_child(node, child_key, owner)

    def _unwrap_child(self, node: Any, key: Hashable, owner: Optional[TrackedContainer]) -> None:
        child = node[key]
        if isinstance(child, TrackedContainer) or self._config.is_container(child):
            self.unwrap(node, key, owner=owner)

    def _child_keys(self, value: Any) -> Iterator[Hashable]:
        if self._config.is_mapping(value):
            return iter(list(value.keys()))
        if self._config.is_sequence(value):
            return iter(range(len(value)))
        return iter(())
