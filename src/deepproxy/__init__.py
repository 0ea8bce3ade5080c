"""
Deep mutation-interception proxies for plain dict/list trees.

wrap() returns a wrapper that reads exactly like the original container but
routes every write and delete, at any depth, through a caller-supplied
handler together with the path from the root to the mutated key.

Quick Start:
    >>> from deepproxy import wrap
    >>>
    >>> def on_set(root, node, path, value, receiver):
    ...     print("set", path, value)
    ...     return True
    >>>
    >>> state = wrap({"user": {"tags": ["a"]}}, {"set": on_set})
    >>> state["user"]["tags"].append("b")
    set ['user', 'tags', 1] b
    set ['user', 'tags', 'length'] 2

Architecture:
    Proxy Builder (proxy.wrap / Tracker):
        Walks the tree depth-first, wraps children before parents, and
        replaces raw children in place with their wrappers.

    Mutation traps (containers.TrackedDict / TrackedList):
        set: wrap container values, ask the handler, commit if accepted.
        delete: restore the removed subtree, remove the key, notify.

    Identity reconciler (registry.ProxyRegistry):
        Weak wrapper <-> raw association used to restore plain containers
        when a subtree is deleted or overwritten. Detached wrappers stop
        reporting mutations.

Modules:
    - proxy: wrap() and the per-tree Tracker
    - containers: TrackedDict, TrackedList
    - registry: ProxyRegistry and the unwrap pass
    - handler: handler resolution, CallbackHandler, RecordingHandler
    - config: DeepProxyConfig and default-config scoping
    - invariant: invariant() precondition helper
    - exceptions: DeepProxyError, InvalidArgument, InvariantViolation
"""

# Proxy builder
from deepproxy.proxy import wrap, is_tracked

# Wrappers
from deepproxy.containers import TrackedContainer, TrackedDict, TrackedList

# Identity reconciler
from deepproxy.registry import ProxyRegistry

# Handlers
from deepproxy.handler import CallbackHandler, RecordingHandler, MutationEvent

# Configuration
from deepproxy.config import (
    DeepProxyConfig,
    get_default_config,
    set_default_config,
    config_override,
)

# Errors
from deepproxy.exceptions import DeepProxyError, InvalidArgument, InvariantViolation
from deepproxy.invariant import invariant

__all__ = [
    # Proxy builder
    'wrap',
    'is_tracked',
    # Wrappers
    'TrackedContainer',
    'TrackedDict',
    'TrackedList',
    # Identity reconciler
    'ProxyRegistry',
    # Handlers
    'CallbackHandler',
    'RecordingHandler',
    'MutationEvent',
    # Configuration
    'DeepProxyConfig',
    'get_default_config',
    'set_default_config',
    'config_override',
    # Errors
    'DeepProxyError',
    'InvalidArgument',
    'InvariantViolation',
    'invariant',
]

__version__ = '1.0.0'
__description__ = 'Deep mutation-interception proxies for nested dicts and lists'
