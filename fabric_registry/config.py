"""
Configuration models for the fabric registry coordination layer.

This module centralizes every tunable used by registry operations:

* token storage root, rate-limit window, and secret shape
* peer password canonicalization exclusions and digest algorithm
* substitution schemes and recursion limits

Defaults match the conventions cluster members already rely on, so every member
derives the same peer password and reads tokens from the same root without any
explicit configuration.
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass, field

DEFAULT_TOKEN_ROOT = "/fabric/authentication/containers"
DEFAULT_TOKEN_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
CONTAINER_LOGIN_PREFIX = "container#"

_ENV_PREFIX = "FABRIC_REGISTRY_"


@dataclass(slots=True)
class TokenConfig:
    """
    Settings for per-identity token issuance.

    Parameters
    ----------
    root:
        Node under which one child per identity stores the current secret.
    rate_limit_seconds:
        Window during which an existing secret is reused instead of replaced.
    length:
        Number of characters in a generated secret.
    alphabet:
        Characters a secret is drawn from, uniformly.
    """

    root: str = DEFAULT_TOKEN_ROOT
    rate_limit_seconds: float = 60.0
    length: int = 16
    alphabet: str = DEFAULT_TOKEN_ALPHABET

    def __post_init__(self) -> None:
        """Validate values that affect secret strength and storage layout."""
        if not self.root.startswith("/"):
            raise ValueError("TokenConfig.root must be an absolute node path.")
        if self.rate_limit_seconds < 0:
            raise ValueError("TokenConfig.rate_limit_seconds must be >= 0.")
        if self.length <= 0:
            raise ValueError("TokenConfig.length must be >= 1.")
        if len(set(self.alphabet)) < 2:
            raise ValueError("TokenConfig.alphabet must contain at least two characters.")


@dataclass(slots=True)
class PeerPasswordConfig:
    """
    Canonicalization and digest settings for peer password derivation.

    Every cluster member must use identical values, otherwise members derive
    different passwords from the same property set.

    Parameters
    ----------
    excluded_keys:
        Volatile keys dropped before hashing (member-specific values).
    excluded_prefixes:
        Key prefixes dropped before hashing (listening ports and similar).
    marker:
        Literal fed to the digest right before the peer id.
    algorithm:
        :mod:`hashlib` algorithm name.
    """

    excluded_keys: frozenset[str] = frozenset(
        {
            "component.id",
            "server.id",
            "dataDir",
            "service.pid",
            "felix.fileinstall.filename",
        }
    )
    excluded_prefixes: tuple[str, ...] = ("clientPort",)
    marker: str = "server.id"
    algorithm: str = "sha1"

    def __post_init__(self) -> None:
        if not self.algorithm:
            raise ValueError("PeerPasswordConfig.algorithm must be non-empty.")
        self.excluded_keys = frozenset(self.excluded_keys)
        self.excluded_prefixes = tuple(self.excluded_prefixes)

    def is_excluded(self, key: str) -> bool:
        """Return true when ``key`` is volatile and must not be hashed."""
        return key in self.excluded_keys or key.startswith(self.excluded_prefixes)


@dataclass(slots=True)
class SubstitutionConfig:
    """
    Settings for ``${scheme:location}`` reference resolution.

    Parameters
    ----------
    schemes:
        Reference schemes resolved against the store. Others are left as-is.
    max_depth:
        Maximum nesting of references resolved through loaded content.
    """

    schemes: tuple[str, ...] = ("zk",)
    max_depth: int = 16

    def __post_init__(self) -> None:
        if not self.schemes:
            raise ValueError("SubstitutionConfig.schemes must not be empty.")
        if self.max_depth <= 0:
            raise ValueError("SubstitutionConfig.max_depth must be >= 1.")
        self.schemes = tuple(self.schemes)


@dataclass(slots=True)
class RegistryConfig:
    """
    Top-level configuration aggregating every registry component setting.
    """

    tokens: TokenConfig = field(default_factory=TokenConfig)
    peer: PeerPasswordConfig = field(default_factory=PeerPasswordConfig)
    substitution: SubstitutionConfig = field(default_factory=SubstitutionConfig)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RegistryConfig":
        """
        Build configuration from ``FABRIC_REGISTRY_*`` environment variables.

        Recognized variables: ``TOKEN_ROOT``, ``TOKEN_RATE_LIMIT_SECONDS``,
        ``TOKEN_LENGTH``, ``PEER_DIGEST``, ``SUBSTITUTION_MAX_DEPTH``. Unset
        variables keep their defaults.
        """
        env = os.environ if environ is None else environ

        def read(name: str) -> str | None:
            value = env.get(_ENV_PREFIX + name, "").strip()
            return value or None

        defaults = TokenConfig()
        root = read("TOKEN_ROOT")
        window = read("TOKEN_RATE_LIMIT_SECONDS")
        length = read("TOKEN_LENGTH")
        tokens = TokenConfig(
            root=root if root is not None else defaults.root,
            rate_limit_seconds=(
                float(window) if window is not None else defaults.rate_limit_seconds
            ),
            length=int(length) if length is not None else defaults.length,
        )

        algorithm = read("PEER_DIGEST")
        peer = PeerPasswordConfig(algorithm=algorithm) if algorithm else PeerPasswordConfig()

        depth = read("SUBSTITUTION_MAX_DEPTH")
        substitution = (
            SubstitutionConfig(max_depth=int(depth)) if depth else SubstitutionConfig()
        )
        return cls(tokens=tokens, peer=peer, substitution=substitution)
