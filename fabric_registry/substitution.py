"""
Resolution of ``${scheme:location}`` references embedded in node content.

A node's content can point at another node and embed its data::

    jdbc.url=${zk:/fabric/configs/db#url}

``location`` is an absolute node path, optionally followed by ``#key`` to pick
one entry of the referenced node's property blob. Loaded content is resolved
again, so references can chain; nested references such as
``${zk:${zk:/current}}`` resolve innermost first.

A reference that cannot be resolved (missing node, missing key, a cycle, or a
chain deeper than the configured limit) is replaced with an empty string rather
than failing the whole resolution. References with an unrecognized scheme are
left untouched.
"""

from __future__ import annotations

import logging
import re

from . import nodes
from .client_protocol import CoordinationClient
from .config import SubstitutionConfig
from .exceptions import InvalidArgumentError, StoreError
from .paths import validate_path
from .properties import PropertiesDocument

_LOGGER = logging.getLogger(__name__)
_REFERENCE = re.compile(r"\$\{([^${}]*)\}")
_ENCODING = "utf-8"


def _split_url(url: str) -> tuple[str, str | None]:
    location = url
    if not location.startswith("/") and ":" in location:
        _, location = location.split(":", 1)
    path, separator, fragment = location.partition("#")
    path = path.strip()
    validate_path(path)
    return path, (fragment if separator else None)


def load_url(client: CoordinationClient, url: str) -> bytes | None:
    """
    Load the data a ``scheme:/path[#key]`` reference points at.

    Returns
    -------
    bytes | None
        Node data, the selected property value when ``#key`` is given, or
        ``None`` when the node or key does not exist.
    """
    path, key = _split_url(url)
    data = nodes.get_data(client, path)
    if data is None or key is None:
        return data
    value = PropertiesDocument.parse(data.decode(_ENCODING)).get(key)
    return None if value is None else value.encode(_ENCODING)


class SubstitutionResolver:
    """
    Resolves references in text against a coordination store.

    Parameters
    ----------
    client:
        Store the referenced nodes are loaded from.
    config:
        Recognized schemes and maximum reference chain depth.
    """

    def __init__(self, client: CoordinationClient, config: SubstitutionConfig | None = None) -> None:
        self._client = client
        self._config = config or SubstitutionConfig()

    def resolve(self, text: str | None) -> str | None:
        """Return ``text`` with every recognized reference substituted."""
        if text is None:
            return None
        return self._resolve(text, ())

    def _resolve(self, text: str, chain: tuple[str, ...]) -> str:
        for _ in range(self._config.max_depth):
            substituted = _REFERENCE.sub(lambda match: self._replace(match, chain), text)
            if substituted == text:
                break
            text = substituted
        return text

    def _replace(self, match: re.Match[str], chain: tuple[str, ...]) -> str:
        reference = match.group(1)
        scheme, separator, _ = reference.partition(":")
        if not separator or scheme not in self._config.schemes:
            return match.group(0)
        if reference in chain:
            _LOGGER.warning("Cyclic reference %s via %s", reference, " -> ".join(chain))
            return ""
        if len(chain) >= self._config.max_depth:
            _LOGGER.warning("Reference chain too deep at %s", reference)
            return ""
        try:
            data = load_url(self._client, reference)
            if data is None:
                return ""
            content = data.decode(_ENCODING)
        except (InvalidArgumentError, StoreError, UnicodeDecodeError) as exc:
            _LOGGER.debug("Cannot resolve %s: %s", reference, exc)
            return ""
        return self._resolve(content, chain + (reference,))


def resolve(
    client: CoordinationClient,
    text: str | None,
    config: SubstitutionConfig | None = None,
) -> str | None:
    """Resolve references in ``text``; see :class:`SubstitutionResolver`."""
    return SubstitutionResolver(client, config).resolve(text)


def get_substituted_path(
    client: CoordinationClient,
    path: str,
    config: SubstitutionConfig | None = None,
) -> str | None:
    """
    Load the content ``path`` (optionally ``path#key``) points at, resolved.

    Returns ``None`` when the node does not exist or the content is empty.
    """
    node_path, _ = _split_url(path)
    if client.exists(node_path) is None:
        return None
    data = load_url(client, path)
    if not data:
        return None
    return resolve(client, data.decode(_ENCODING), config)
