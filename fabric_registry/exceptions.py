"""
Custom exceptions used by the fabric registry coordination layer.

Keeping library-specific errors in one module gives users a predictable
import surface for catching and handling coordination-store edge cases.

Two families live here:

* store-level conditions (:class:`StoreError` subclasses) raised by
  coordination clients, mirroring the conditions a hierarchical store reports
* caller-facing errors raised by registry operations such as token issuance
"""


class RegistryError(Exception):
    """Base error type for all library-level exceptions."""


class InvalidArgumentError(RegistryError, ValueError):
    """
    Raised when a path or input value is malformed.

    The check always happens before any store call is made, so no partial
    state is left behind.
    """


class DigestUnavailableError(RegistryError):
    """
    Raised when the configured cryptographic digest is not available.

    This indicates a broken runtime environment and is never retried.
    """


class StoreError(RegistryError):
    """
    Base class for conditions reported by a coordination store client.

    Attributes
    ----------
    path:
        Node path the failing call targeted, when known.
    """

    def __init__(self, message: str = "", *, path: str | None = None) -> None:
        super().__init__(message or (path or ""))
        self.path = path


class NoNodeError(StoreError):
    """Raised when a call targets a node (or parent) that does not exist."""


class NodeExistsError(StoreError):
    """
    Raised when creating a node that already exists.

    Check-then-create sequences treat this as success: another caller won the
    race and the node is present either way.
    """


class NotEmptyError(StoreError):
    """
    Raised when deleting a node that still has children.

    Recursive deletion retries on this condition because a concurrent writer
    may add a child between enumeration and deletion.
    """


class ReadOnlyError(StoreError):
    """
    Raised when the store only accepts reads.

    Coordination ensembles typically enter this mode when partitioned from
    their quorum.
    """


class ConnectionLossError(StoreError):
    """
    Raised when the connection to the store was lost or timed out.

    The outcome of the interrupted call is unknown; callers may retry.
    """


class StoreUnavailableError(RegistryError):
    """
    Raised when an operation cannot proceed because the store is partitioned.

    Surfaced distinctly so callers can apply their own backoff policy.
    """


class StoreOperationError(RegistryError):
    """Raised when a store call fails for any other reason, with context."""


class BackendConfigurationError(RegistryError):
    """Raised when a client backend name or its options are invalid."""


class BackendNotAvailableError(RegistryError):
    """Raised when an optional client backend package is not installed."""
