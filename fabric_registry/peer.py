"""
Deterministic derivation of a shared peer password.

Every cluster member holds the same ensemble configuration apart from a few
member-specific entries (listening ports, data directory, component ids). After
those volatile entries are removed, members hash the remaining configuration
together with a peer id and all arrive at the same secret without exchanging
it over the network.

The derivation is a pure function of the canonical property set and the peer
id: it never depends on input ordering, time, or the machine it runs on.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from .config import PeerPasswordConfig
from .exceptions import DigestUnavailableError, InvalidArgumentError

_LOGGER = logging.getLogger(__name__)
_ENCODING = "utf-8"
# String.trim() semantics: strip every character up to and including U+0020.
_TRIM_CHARS = "".join(chr(code) for code in range(0x21))


@dataclass(frozen=True, slots=True)
class PeerPasswordInput:
    """Canonical property entries (sorted by key) plus the peer id."""

    properties: tuple[tuple[str, str], ...]
    peer_id: int


def canonicalize(
    properties: Mapping[str, object],
    config: PeerPasswordConfig | None = None,
) -> dict[str, str]:
    """
    Return the canonical property set.

    Volatile keys are removed, ``None`` values are skipped, remaining values are
    trimmed, and the result is ordered by key (UTF-16 code unit order).
    """
    settings = config or PeerPasswordConfig()
    canonical: dict[str, str] = {}
    entries = sorted(
        ((str(name), value) for name, value in properties.items()),
        # UTF-16 code unit order, as Java sorted maps compare keys.
        key=lambda item: item[0].encode("utf-16-be", "surrogatepass"),
    )
    for key, value in entries:
        if settings.is_excluded(key):
            continue
        if value is None:
            continue
        canonical[key] = str(value).strip(_TRIM_CHARS)
    return canonical


def _new_digest(algorithm: str):
    try:
        return hashlib.new(algorithm)
    except (ValueError, TypeError) as exc:
        raise DigestUnavailableError(f"Digest algorithm {algorithm!r} is not available") from exc


def derive(password_input: PeerPasswordInput, config: PeerPasswordConfig | None = None) -> str:
    """Hash a prepared :class:`PeerPasswordInput` into a lowercase hex string."""
    settings = config or PeerPasswordConfig()
    digest = _new_digest(settings.algorithm)
    for key, value in password_input.properties:
        digest.update(key.encode(_ENCODING))
        digest.update(value.encode(_ENCODING))
    digest.update(settings.marker.encode(_ENCODING))
    digest.update(str(password_input.peer_id).encode(_ENCODING))
    return digest.hexdigest()


def derive_peer_password(
    properties: Mapping[str, object],
    peer_id: int,
    config: PeerPasswordConfig | None = None,
) -> str:
    """
    Derive the password of peer ``peer_id`` from ensemble ``properties``.

    Raises
    ------
    InvalidArgumentError
        When ``peer_id`` is not an integer.
    DigestUnavailableError
        When the configured digest algorithm is missing.
    """
    if isinstance(peer_id, bool) or not isinstance(peer_id, int):
        raise InvalidArgumentError(f"Peer id must be an integer, got {peer_id!r}")
    settings = config or PeerPasswordConfig()
    password_input = PeerPasswordInput(
        properties=tuple(canonicalize(properties, settings).items()),
        peer_id=peer_id,
    )
    _LOGGER.info("Deriving password for peer %d", peer_id)
    return derive(password_input, settings)
