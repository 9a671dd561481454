"""
Backend factory helpers for easy client switching.

This module gives application developers a uniform way to pick a coordination
store backend by name without rewriting bootstrap logic.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .client_protocol import CoordinationClient
from .exceptions import BackendConfigurationError, BackendNotAvailableError
from .memory import InMemoryCoordinationClient, MemoryTree


class ClientBackend(str, Enum):
    """
    Built-in backend names supported by the factory helpers.

    MEMORY
        In-process in-memory tree.
    REDIS
        Shared Redis-backed tree provided by the optional plugin package.
    """

    MEMORY = "memory"
    REDIS = "redis"


def _normalize_backend(backend: str | ClientBackend) -> ClientBackend:
    """
    Normalize backend name into :class:`ClientBackend` enum value.
    """
    if isinstance(backend, ClientBackend):
        return backend
    lowered = str(backend).strip().lower()
    try:
        return ClientBackend(lowered)
    except ValueError as exc:
        valid = ", ".join(item.value for item in ClientBackend)
        raise BackendConfigurationError(
            f"Unknown backend {backend!r}. Supported values: {valid}."
        ) from exc


def available_backends() -> tuple[str, ...]:
    """
    Return backend names available in the current environment.

    The Redis backend appears only when the optional plugin package imports.
    """
    backends = [ClientBackend.MEMORY.value]
    try:
        __import__("fabric_registry_redis")
    except Exception:  # noqa: BLE001 - optional dependency probing
        pass
    else:
        backends.append(ClientBackend.REDIS.value)
    return tuple(backends)


def create_client(
    backend: str | ClientBackend = ClientBackend.MEMORY,
    **backend_options: Any,
) -> CoordinationClient:
    """
    Create a coordination client from a short backend name.

    Parameters
    ----------
    backend:
        Backend selector string (``"memory"`` or ``"redis"``).
    backend_options:
        Backend-specific options.

        Memory options:
            ``tree`` (shared :class:`MemoryTree`) and ``session_id``.
        Redis options:
            ``redis_url`` (str), ``namespace`` (str), ``redis_client``
            and optional plugin-native ``config`` object.
    """
    selected = _normalize_backend(backend)
    if selected is ClientBackend.MEMORY:
        tree = backend_options.pop("tree", None)
        session_id = backend_options.pop("session_id", None)
        if backend_options:
            unknown = ", ".join(sorted(str(key) for key in backend_options))
            raise BackendConfigurationError(f"Unknown memory backend options: {unknown}.")
        if tree is not None and not isinstance(tree, MemoryTree):
            raise BackendConfigurationError("Memory backend 'tree' must be a MemoryTree.")
        return InMemoryCoordinationClient(tree, session_id=session_id)
    if selected is ClientBackend.REDIS:
        try:
            from fabric_registry_redis import RedisClientConfig, RedisCoordinationClient
        except Exception as exc:  # noqa: BLE001 - optional dependency may be absent
            raise BackendNotAvailableError(
                "Redis backend requires the 'redis' package and the fabric_registry_redis plugin."
            ) from exc

        config = backend_options.pop("config", None)
        redis_client = backend_options.pop("redis_client", None)
        if config is None:
            redis_url = str(backend_options.pop("redis_url", "redis://127.0.0.1:6379/0"))
            namespace = str(backend_options.pop("namespace", "fabric-registry"))
            config = RedisClientConfig(redis_url=redis_url, namespace=namespace)
        if backend_options:
            unknown = ", ".join(sorted(str(key) for key in backend_options))
            raise BackendConfigurationError(f"Unknown Redis backend options: {unknown}.")
        return RedisCoordinationClient(config=config, redis_client=redis_client)
    raise BackendConfigurationError(f"Unhandled backend: {selected!r}")
