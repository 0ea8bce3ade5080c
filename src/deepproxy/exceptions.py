"""Exception types raised by deepproxy."""


class DeepProxyError(Exception):
    """Base class for deepproxy errors."""


class InvalidArgument(DeepProxyError, TypeError):
    """A value passed to the proxy layer cannot be tracked or used as a handler."""


class InvariantViolation(DeepProxyError, AssertionError):
    """Raised by invariant() when its condition does not hold."""
