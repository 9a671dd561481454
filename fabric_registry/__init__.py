"""
fabric_registry
===============

Shared configuration and authentication secrets for cluster members, kept in a
hierarchical coordination store that acts as the single source of truth.

The package provides:

* :func:`fabric_registry.tree.copy` / :func:`fabric_registry.tree.copy_within`
  to seed one subtree from another, skipping ephemeral nodes and never
  overwriting existing ones
* :func:`fabric_registry.tree.delete_safe` and
  :func:`fabric_registry.tree.delete_safe_up_to` for race-tolerant recursive
  deletion with optional pruning of emptied ancestors
* :func:`fabric_registry.properties.get_properties` /
  :func:`fabric_registry.properties.set_properties`, a key/value store that
  keeps operator comments and formatting intact
* :mod:`fabric_registry.values` for space-delimited value lists
* :class:`fabric_registry.substitution.SubstitutionResolver` for
  ``${zk:/path#key}`` references between nodes
* :class:`fabric_registry.tokens.TokenIssuer` for rate-limited per-identity
  secrets
* :func:`fabric_registry.peer.derive_peer_password`, a deterministic shared
  secret every member computes independently

Store switching is done with one parameter:

    from fabric_registry import create_client

    client = create_client("memory")
    client = create_client("redis", redis_url="redis://127.0.0.1:6379/0")

Typical usage::

    from fabric_registry import TokenIssuer, create_client, set_properties

    client = create_client("memory")
    set_properties(client, "/fabric/configs/ensemble", {"tickTime": "2000"})
    secret = TokenIssuer(client).generate_token("root")
    client.close()
"""

from .backends import ClientBackend, available_backends, create_client
from .client_protocol import (
    CoordinationClient,
    CreateMode,
    EventType,
    NodeStat,
    WatchedEvent,
)
from .config import (
    PeerPasswordConfig,
    RegistryConfig,
    SubstitutionConfig,
    TokenConfig,
)
from .memory import InMemoryCoordinationClient, MemoryTree
from .paths import get_parent, make_path, validate_path
from .peer import PeerPasswordInput, canonicalize, derive_peer_password
from .properties import PropertiesDocument, get_properties, set_properties
from .substitution import SubstitutionResolver, get_substituted_path, resolve
from .tokens import (
    AuthToken,
    RateLimiter,
    TokenIssuer,
    container_login,
    generate_password,
    get_container_tokens,
    is_container_login,
)
from .tree import copy, copy_within, delete_safe, delete_safe_up_to, get_all_children, last_modified

__all__ = [
    "AuthToken",
    "ClientBackend",
    "CoordinationClient",
    "CreateMode",
    "EventType",
    "InMemoryCoordinationClient",
    "MemoryTree",
    "NodeStat",
    "PeerPasswordConfig",
    "PeerPasswordInput",
    "PropertiesDocument",
    "RateLimiter",
    "RegistryConfig",
    "SubstitutionConfig",
    "SubstitutionResolver",
    "TokenConfig",
    "TokenIssuer",
    "WatchedEvent",
    "available_backends",
    "canonicalize",
    "container_login",
    "copy",
    "copy_within",
    "create_client",
    "delete_safe",
    "delete_safe_up_to",
    "derive_peer_password",
    "generate_password",
    "get_all_children",
    "get_container_tokens",
    "get_parent",
    "get_properties",
    "get_substituted_path",
    "is_container_login",
    "last_modified",
    "make_path",
    "resolve",
    "set_properties",
    "validate_path",
]
