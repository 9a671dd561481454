"""
Rate-limited issuance of per-identity authentication secrets.

Each identity owns one node ``<root>/<identity>`` holding its current secret.
:class:`TokenIssuer` reuses a stored secret while the rate-limit window since
its own last issuance is open and generates a fresh one otherwise.

The window is tracked by a process-local :class:`RateLimiter`. It is not
coordinated across the cluster: two processes, or one process after a restart,
can each issue a fresh secret inside the same nominal window. Rate limiting is
therefore best-effort, not a distributed guarantee.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from . import nodes
from .client_protocol import CoordinationClient
from .config import CONTAINER_LOGIN_PREFIX, DEFAULT_TOKEN_ALPHABET, DEFAULT_TOKEN_ROOT, TokenConfig
from .exceptions import (
    InvalidArgumentError,
    ReadOnlyError,
    StoreError,
    StoreOperationError,
    StoreUnavailableError,
)
from .paths import make_path

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthToken:
    """Secret currently associated with one identity."""

    identity: str
    secret: str
    issued_at: float


class RateLimiter:
    """
    Process-local cooldown between two issuances.

    Parameters
    ----------
    window_seconds:
        Length of the cooldown window.
    clock:
        Time source in seconds; inject a fake clock to control elapsed time.
    """

    def __init__(self, window_seconds: float, *, clock: Callable[[], float] = time.time) -> None:
        if window_seconds < 0:
            raise ValueError("RateLimiter.window_seconds must be >= 0.")
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._last: float | None = None

    def now(self) -> float:
        """Return the current clock reading."""
        return self._clock()

    def within_window(self, now: float | None = None) -> bool:
        """Return true when the last issuance is younger than the window."""
        current = self._clock() if now is None else now
        with self._lock:
            if self._last is None:
                return False
            return current - self._last < self.window_seconds

    def mark(self, now: float | None = None) -> None:
        """Record an issuance at ``now`` (defaults to the clock)."""
        with self._lock:
            self._last = self._clock() if now is None else now

    def reset(self) -> None:
        """Forget the last issuance."""
        with self._lock:
            self._last = None


def generate_password(length: int = 16, alphabet: str = DEFAULT_TOKEN_ALPHABET) -> str:
    """Return a random secret drawn uniformly from ``alphabet``."""
    if length <= 0:
        raise InvalidArgumentError("Password length must be >= 1.")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def container_login(runtime_identity: str) -> str:
    """Return the login name used by a container runtime identity."""
    return CONTAINER_LOGIN_PREFIX + runtime_identity


def is_container_login(login: str) -> bool:
    """Return true when ``login`` names a container login."""
    return login.startswith(CONTAINER_LOGIN_PREFIX)


def get_container_tokens(
    client: CoordinationClient,
    root: str = DEFAULT_TOKEN_ROOT,
) -> dict[str, str]:
    """
    Return every stored secret keyed by its container login name.
    """
    tokens: dict[str, str] = {}
    for name in nodes.get_children_safe(client, root):
        secret = nodes.get_string_data(client, make_path(root, name))
        if secret:
            tokens[container_login(name)] = secret
    return tokens


def _validate_identity(identity: str) -> str:
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidArgumentError("Token identity must be a non-empty string.")
    if "/" in identity or identity in {".", ".."}:
        raise InvalidArgumentError(f"Token identity is not a valid node name: {identity!r}")
    return identity


class TokenIssuer:
    """
    Issues and caches per-identity secrets under a fixed root node.

    Parameters
    ----------
    client:
        Coordination store holding the secrets.
    config:
        Token root, window, and secret shape.
    rate_limiter:
        Owner of the last issuance time. Defaults to a limiter private to this
        issuer using ``config.rate_limit_seconds``.
    """

    def __init__(
        self,
        client: CoordinationClient,
        config: TokenConfig | None = None,
        *,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._client = client
        self.config = config or TokenConfig()
        self.rate_limiter = rate_limiter or RateLimiter(self.config.rate_limit_seconds)

    def token_path(self, identity: str) -> str:
        """Return the node path holding ``identity``'s secret."""
        return make_path(self.config.root, _validate_identity(identity))

    def generate_token(self, identity: str) -> str:
        """
        Return a secret for ``identity``, reusing the stored one inside the window.

        Raises
        ------
        InvalidArgumentError
            When ``identity`` cannot be used as a node name.
        StoreUnavailableError
            When the store is partitioned and read-only.
        StoreOperationError
            When any other store call fails.
        """
        return self.issue(identity).secret

    def issue(self, identity: str) -> AuthToken:
        """Like :meth:`generate_token` but returns the full :class:`AuthToken`."""
        path = self.token_path(identity)
        now = self.rate_limiter.now()
        try:
            if self.rate_limiter.within_window(now):
                existing = self._read(identity, path)
                if existing is not None:
                    return existing
            secret = generate_password(self.config.length, self.config.alphabet)
            nodes.set_data(self._client, path, secret)
            self.rate_limiter.mark(now)
        except ReadOnlyError as exc:
            raise StoreUnavailableError(
                "Coordination store is partitioned. Currently working in read-only mode!"
            ) from exc
        except StoreError as exc:
            raise StoreOperationError(f"Cannot generate token for {identity!r}") from exc
        _LOGGER.info("Issued new token for identity %s", identity)
        return AuthToken(identity=identity, secret=secret, issued_at=now)

    def _read(self, identity: str, path: str) -> AuthToken | None:
        stat = self._client.exists(path)
        if stat is None:
            return None
        secret = nodes.get_string_data(self._client, path)
        if not secret or not secret.strip():
            return None
        return AuthToken(identity=identity, secret=secret, issued_at=stat.mtime / 1000.0)

    def get_token(self, identity: str) -> AuthToken | None:
        """Return the stored token for ``identity`` without issuing one."""
        path = self.token_path(identity)
        try:
            return self._read(identity, path)
        except StoreError as exc:
            raise StoreOperationError(f"Cannot read token for {identity!r}") from exc
