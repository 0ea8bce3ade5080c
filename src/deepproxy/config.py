"""
Configuration for deep proxy construction.

A tracked tree captures the DeepProxyConfig that was current when wrap() was
called and keeps it for its whole lifetime. The process-wide default lives in
a ContextVar so tests and callers can scope overrides with config_override().
"""
import contextvars
import dataclasses
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeepProxyConfig:
    """Which values count as containers and how sequence size changes are reported.

    Attributes:
        mapping_types: Types wrapped as TrackedDict (keyed records)
        sequence_types: Types wrapped as TrackedList (index-addressable sequences)
        length_key: Path key used when a sequence's size changes
        restore_rejected: Restore a rejected container value to its raw form
            instead of leaving wrappers in the caller's object
    """
    mapping_types: Tuple[type, ...] = (dict,)
    sequence_types: Tuple[type, ...] = (list,)
    length_key: str = "length"
    restore_rejected: bool = True

    def is_mapping(self, value: Any) -> bool:
        return isinstance(value, self.mapping_types)

    def is_sequence(self, value: Any) -> bool:
        # str and bytes are sequences too, but always leaves
        return isinstance(value, self.sequence_types) and not isinstance(value, (str, bytes, bytearray))

    def is_container(self, value: Any) -> bool:
        return self.is_mapping(value) or self.is_sequence(value)


_default_config: contextvars.ContextVar[DeepProxyConfig] = contextvars.ContextVar(
    'deepproxy_default_config', default=DeepProxyConfig()
)


def get_default_config() -> DeepProxyConfig:
    """Get the config wrap() uses when none is passed."""
    return _default_config.get()


def set_default_config(config: DeepProxyConfig) -> None:
    """Replace the default config for the current context.

    Trees that are already wrapped keep the config they were built with.
    """
    if not isinstance(config, DeepProxyConfig):
        raise TypeError(f"Expected DeepProxyConfig, got {type(config).__name__}")
    _default_config.set(config)
    logger.debug(f"Default deepproxy config set: {config}")


@contextmanager
def config_override(**changes: Any) -> Generator[DeepProxyConfig, None, None]:
    """Temporarily replace fields of the default config.

    Example:
        with config_override(length_key="size"):
            tracked = wrap({"items": []}, handler)
    """
    config = dataclasses.replace(get_default_config(), **changes)
    token = _default_config.set(config)
    try:
        yield config
    finally:
        _default_config.reset(token)
