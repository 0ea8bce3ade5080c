"""
Deep proxy construction.

wrap() turns a tree of dicts and lists into a tree of tracked wrappers.
Children are wrapped before their parent and replace the raw children in
place, so the raw root ends up holding wrappers too: mutations made through
either the returned wrapper or the original root's nested containers are
observed.

Every tree gets its own Tracker, which owns the handler, the config and the
ProxyRegistry shared by all wrappers of that tree.
"""
import logging
from typing import Any, List, Optional, Tuple, Union

from deepproxy.config import DeepProxyConfig, get_default_config
from deepproxy.containers import TrackedContainer, TrackedDict, TrackedList
from deepproxy.exceptions import InvalidArgument
from deepproxy.handler import resolve_trap
from deepproxy.registry import ProxyRegistry

logger = logging.getLogger(__name__)


class Tracker:
    """Per-tree state shared by every wrapper of one tracked root."""

    def __init__(self, root: Any, handler: Any, config: DeepProxyConfig):
        self.root = root
        self.handler = handler
        self.config = config
        self.registry = ProxyRegistry(config)
        self._set_trap = resolve_trap(handler, 'set')
        self._delete_trap = resolve_trap(handler, 'delete_property')

    # ========== PROXY BUILDER ==========

    def build(self, raw: Any, created: Optional[List[TrackedContainer]] = None) -> TrackedContainer:
        """Wrap ``raw`` and every container below it, children first.

        Container children are replaced in place with their wrappers before
        the wrapper for ``raw`` itself is created. Every wrapper built here is
        appended to ``created`` (post-order). If building fails part way, the
        replaced children of ``raw`` are put back.
        """
        if created is None:
            created = []
        replaced = {}
        try:
            for key in self._child_keys(raw):
                child = raw[key]
                adopted = self._adopt(child, created)
                if adopted is not child:
                    raw[key] = adopted
                    replaced[key] = child
        except Exception:
            for key, child in replaced.items():
                raw[key] = child
            raise

        wrapper_type = TrackedDict if self.config.is_mapping(raw) else TrackedList
        wrapper = wrapper_type(raw, self)
        self.registry.register(wrapper, raw)
        created.append(wrapper)
        for key in self._child_keys(raw):
            if isinstance(raw[key], TrackedContainer):
                raw[key]._attach(wrapper, key)
        return wrapper

    def adopt(self, value: Any) -> Tuple[Any, List[TrackedContainer]]:
        """Prepare a value for storage in this tree.

        Returns:
            (value to store, wrappers newly built for it)

        Raises:
            InvalidArgument: If value holds a wrapper still attached to another tree
        """
        created: List[TrackedContainer] = []
        try:
            value = self._adopt(value, created)
        except Exception:
            self.discard(created)
            raise
        return value, created

    def _adopt(self, value: Any, created: List[TrackedContainer]) -> Any:
        if isinstance(value, TrackedContainer):
            if self.registry.owns(value):
                return value
            if not value.detached:
                raise InvalidArgument("Value is tracked by another deep proxy; assign its .raw instead")
            value = value.raw
        if not self.config.is_container(value):
            return value
        existing = self.registry.wrapper_for(value)
        if existing is not None:
            return existing
        return self.build(value, created)

    def discard(self, created: List[TrackedContainer]) -> None:
        """Drop wrappers built for a write that was never committed.

        Wrappers that were already live in the tree only give up the slots
        the uncommitted value had them in.
        """
        # post-order: walking it backwards reaches parents before their children
        for wrapper in reversed(created):
            if self.config.restore_rejected:
                self.registry.release(wrapper)
            elif self.registry.forget(wrapper) is not None:
                wrapper._detach()

    def _child_keys(self, raw: Any) -> list:
        if self.config.is_mapping(raw):
            return list(raw.keys())
        return list(range(len(raw)))

    # ========== HANDLER DISPATCH ==========

    def notify_set(self, node: Any, path: list, value: Any, receiver: TrackedContainer) -> bool:
        if self._set_trap is None:
            return True
        return bool(self._set_trap(self.root, node, path, value, receiver))

    def notify_delete(self, node: Any, path: list) -> None:
        if self._delete_trap is not None:
            self._delete_trap(self.root, node, path)


def wrap(root: Any, handler: Any = None, config: Optional[DeepProxyConfig] = None) -> Union[TrackedDict, TrackedList]:
    """Create a deep proxy of a dict or list.

    Args:
        root: Non-null container to track; nested dicts and lists are wrapped
            in place
        handler: Object or mapping with optional ``set`` and
            ``delete_property`` operations (see deepproxy.handler)
        config: Construction options; defaults to get_default_config()

    Returns:
        TrackedDict or TrackedList fronting ``root``

    Raises:
        InvalidArgument: If root is not a container or handler is malformed
    """
    config = config or get_default_config()
    if isinstance(root, TrackedContainer):
        if not root.detached:
            raise InvalidArgument("Root is already tracked by a deep proxy")
        root = root.raw
    if root is None or not config.is_container(root):
        raise InvalidArgument(f"Deep proxy root must be a mapping or sequence container, got {type(root).__name__}")

    tracker = Tracker(root, handler, config)
    wrapper = tracker.build(root)
    logger.debug(f"Wrapped {type(root).__name__} root: {len(tracker.registry)} container(s) tracked")
    return wrapper


def is_tracked(value: Any) -> bool:
    """True if value is a wrapper still attached to a tracked tree."""
    return isinstance(value, TrackedContainer) and not value.detached
