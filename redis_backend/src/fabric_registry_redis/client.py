"""
Redis-backed coordination client implementation.

The client implements the core ``CoordinationClient`` protocol and can be used
anywhere :mod:`fabric_registry` expects a store client.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any

from fabric_registry.client_protocol import (
    CreateMode,
    EventType,
    NodeStat,
    WatchedEvent,
    Watcher,
)
from fabric_registry.exceptions import (
    ConnectionLossError,
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    ReadOnlyError,
    StoreError,
)
from fabric_registry.paths import ROOT, get_parent, make_path, split_path, validate_path
from redis import Redis
from redis import exceptions as redis_exceptions

_LOGGER = logging.getLogger(__name__)

_CREATE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 'exists'
end
if redis.call('EXISTS', KEYS[2]) == 0 then
  return 'noparent'
end
local parent_owner = redis.call('HGET', KEYS[2], 'owner')
if parent_owner and parent_owner ~= '' then
  return 'ephemeral_parent'
end
redis.call('HSET', KEYS[1],
  'data', ARGV[2], 'has_data', ARGV[3], 'owner', ARGV[4],
  'ctime', ARGV[5], 'mtime', ARGV[5], 'version', 0)
redis.call('SADD', KEYS[3], ARGV[1])
if ARGV[4] ~= '' then
  redis.call('SADD', KEYS[4], ARGV[6])
end
return 'ok'
"""

_SET_LUA = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 'nonode'
end
redis.call('HSET', KEYS[1], 'data', ARGV[1], 'has_data', ARGV[2], 'mtime', ARGV[3])
redis.call('HINCRBY', KEYS[1], 'version', 1)
return 'ok'
"""

_DELETE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return {'nonode', ''}
end
if redis.call('SCARD', KEYS[2]) > 0 then
  return {'notempty', ''}
end
local owner = redis.call('HGET', KEYS[1], 'owner') or ''
redis.call('DEL', KEYS[1], KEYS[2])
redis.call('SREM', KEYS[3], ARGV[1])
return {'ok', owner}
"""


@dataclass(slots=True)
class RedisClientConfig:
    """
    Configuration for :class:`RedisCoordinationClient`.

    Parameters
    ----------
    redis_url:
        Redis connection URL used when a client is not directly supplied.
    namespace:
        Prefix for all redis keys created by this client.
    session_id:
        Owner identity for ephemeral nodes; random when omitted.
    """

    redis_url: str = "redis://127.0.0.1:6379/0"
    namespace: str = "fabric-registry"
    session_id: str | None = None


@contextmanager
def _translate_errors(path: str) -> Iterator[None]:
    try:
        yield
    except redis_exceptions.ReadOnlyError as exc:
        raise ReadOnlyError(str(exc), path=path) from exc
    except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
        raise ConnectionLossError(str(exc), path=path) from exc
    except redis_exceptions.RedisError as exc:
        raise StoreError(str(exc), path=path) from exc


class RedisCoordinationClient:
    """
    Hierarchical coordination store client persisted in Redis.

    Data model
    ----------
    * each node is a Redis hash ``<ns>:node:<path>`` with ``data``,
      ``has_data``, ``owner``, ``ctime``, ``mtime`` and ``version`` fields
    * child names of a node are a Redis set ``<ns>:children:<path>``
    * ephemeral node paths of a session are a Redis set ``<ns>:session:<id>``
    * data watches are delivered over pub/sub channels ``<ns>:watch:<path>``

    Create, write and delete run as Lua scripts so existence, parent and
    emptiness checks are atomic with the mutation.

    Notes
    -----
    Ephemeral nodes are removed by :meth:`close`. A process that dies without
    closing leaves them behind, since Redis has no session liveness tracking.
    """

    def __init__(
        self,
        *,
        config: RedisClientConfig | None = None,
        redis_client: Redis | None = None,
    ) -> None:
        self.config = config or RedisClientConfig()
        self.session_id = self.config.session_id or uuid.uuid4().hex
        self._redis = redis_client or Redis.from_url(self.config.redis_url)
        self._lock = RLock()
        self._create_script = self._redis.register_script(_CREATE_LUA)
        self._set_script = self._redis.register_script(_SET_LUA)
        self._delete_script = self._redis.register_script(_DELETE_LUA)
        self._watchers: dict[str, list[Watcher]] = {}
        self._pubsub = None
        self._pubsub_thread = None
        self._closed = False
        self._ensure_root()

    # ------------------------------------------------------------------ #
    # Key helpers
    # ------------------------------------------------------------------ #

    def _key_node(self, path: str) -> str:
        return f"{self.config.namespace}:node:{path}"

    def _key_children(self, path: str) -> str:
        return f"{self.config.namespace}:children:{path}"

    def _key_session(self) -> str:
        return f"{self.config.namespace}:session:{self.session_id}"

    def _channel(self, path: str) -> str:
        return f"{self.config.namespace}:watch:{path}"

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def _now_ms(self) -> int:
        return int(time.time() * 1000)

    def _ensure_root(self) -> None:
        now = self._now_ms()
        key = self._key_node(ROOT)
        with _translate_errors(ROOT):
            if self._redis.exists(key):
                return
            pipe = self._redis.pipeline(transaction=True)
            for field, value in (
                ("data", b""),
                ("has_data", "0"),
                ("owner", ""),
                ("ctime", now),
                ("mtime", now),
                ("version", 0),
            ):
                pipe.hsetnx(key, field, value)
            pipe.execute()

    # ------------------------------------------------------------------ #
    # Read API
    # ------------------------------------------------------------------ #

    def exists(self, path: str) -> NodeStat | None:
        validate_path(path)
        with _translate_errors(path):
            pipe = self._redis.pipeline(transaction=True)
            pipe.hgetall(self._key_node(path))
            pipe.scard(self._key_children(path))
            raw, num_children = pipe.execute()
        if not raw:
            return None
        fields = {self._text(key): value for key, value in raw.items()}
        owner = self._text(fields.get("owner", b""))
        data = fields.get("data", b"") if self._text(fields.get("has_data", b"0")) == "1" else b""
        return NodeStat(
            ctime=int(self._text(fields.get("ctime", b"0"))),
            mtime=int(self._text(fields.get("mtime", b"0"))),
            version=int(self._text(fields.get("version", b"0"))),
            ephemeral_owner=owner or None,
            num_children=int(num_children),
            data_length=len(data),
        )

    def get_data(self, path: str, watch: Watcher | None = None) -> bytes | None:
        validate_path(path)
        if watch is not None:
            # Subscribe before reading so a change right after the read is seen.
            self._add_watch(path, watch)
        with _translate_errors(path):
            raw = self._redis.hmget(self._key_node(path), "has_data", "data")
        has_data, data = raw
        if has_data is None:
            if watch is not None:
                self._drop_watch(path, watch)
            raise NoNodeError(f"No node at {path}", path=path)
        if self._text(has_data) != "1":
            return None
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data or b"")

    def get_children(self, path: str) -> list[str]:
        validate_path(path)
        with _translate_errors(path):
            pipe = self._redis.pipeline(transaction=True)
            pipe.exists(self._key_node(path))
            pipe.smembers(self._key_children(path))
            present, members = pipe.execute()
        if not present:
            raise NoNodeError(f"No node at {path}", path=path)
        return sorted(self._text(member) for member in members)

    # ------------------------------------------------------------------ #
    # Mutation API
    # ------------------------------------------------------------------ #

    def set_data(self, path: str, data: bytes | None) -> None:
        validate_path(path)
        with _translate_errors(path):
            result = self._set_script(
                keys=[self._key_node(path)],
                args=[data or b"", "0" if data is None else "1", self._now_ms()],
            )
        if self._text(result) == "nonode":
            raise NoNodeError(f"No node at {path}", path=path)
        self._publish(path, EventType.CHANGED)

    def create(
        self,
        path: str,
        data: bytes | None = None,
        *,
        mode: CreateMode = CreateMode.PERSISTENT,
        make_parents: bool = False,
    ) -> str:
        validate_path(path)
        if path == ROOT:
            raise NodeExistsError("Root node always exists.", path=path)
        if make_parents:
            current = ROOT
            for segment in split_path(get_parent(path)):
                current = make_path(current, segment)
                try:
                    self._create_one(current, None, owner="")
                except NodeExistsError:
                    continue
        owner = self.session_id if CreateMode(mode) is CreateMode.EPHEMERAL else ""
        self._create_one(path, data, owner=owner)
        return path

    def _create_one(self, path: str, data: bytes | None, *, owner: str) -> None:
        parent = get_parent(path)
        with _translate_errors(path):
            result = self._text(
                self._create_script(
                    keys=[
                        self._key_node(path),
                        self._key_node(parent),
                        self._key_children(parent),
                        self._key_session(),
                    ],
                    args=[
                        path.rsplit("/", 1)[1],
                        data or b"",
                        "0" if data is None else "1",
                        owner,
                        self._now_ms(),
                        path,
                    ],
                )
            )
        if result == "exists":
            raise NodeExistsError(f"Node already exists: {path}", path=path)
        if result == "noparent":
            raise NoNodeError(f"Parent node missing: {parent}", path=parent)
        if result == "ephemeral_parent":
            raise NoNodeError(f"Ephemeral nodes cannot have children: {path}", path=path)

    def delete(self, path: str) -> None:
        validate_path(path)
        if path == ROOT:
            raise NoNodeError("Root node cannot be deleted.", path=path)
        parent = get_parent(path)
        with _translate_errors(path):
            status, owner = self._delete_script(
                keys=[
                    self._key_node(path),
                    self._key_children(path),
                    self._key_children(parent),
                ],
                args=[path.rsplit("/", 1)[1]],
            )
            status = self._text(status)
            owner = self._text(owner)
            if status == "ok" and owner:
                self._redis.srem(f"{self.config.namespace}:session:{owner}", path)
        if status == "nonode":
            raise NoNodeError(f"No node at {path}", path=path)
        if status == "notempty":
            raise NotEmptyError(f"Node has children: {path}", path=path)
        self._publish(path, EventType.DELETED)

    # ------------------------------------------------------------------ #
    # Watches
    # ------------------------------------------------------------------ #

    def _publish(self, path: str, event: EventType) -> None:
        with _translate_errors(path):
            self._redis.publish(self._channel(path), event.value)

    def _add_watch(self, path: str, watch: Watcher) -> None:
        with self._lock:
            watchers = self._watchers.setdefault(path, [])
            watchers.append(watch)
            if len(watchers) > 1:
                return
            if self._pubsub is None:
                self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
            with _translate_errors(path):
                self._pubsub.subscribe(**{self._channel(path): self._on_watch_message})
            if self._pubsub_thread is None:
                self._pubsub_thread = self._pubsub.run_in_thread(
                    sleep_time=0.05,
                    daemon=True,
                )

    def _drop_watch(self, path: str, watch: Watcher) -> None:
        with self._lock:
            watchers = self._watchers.get(path, [])
            if watch in watchers:
                watchers.remove(watch)
            if not watchers:
                self._watchers.pop(path, None)
                if self._pubsub is not None:
                    self._pubsub.unsubscribe(self._channel(path))

    def _on_watch_message(self, message: dict[str, Any]) -> None:
        channel = self._text(message["channel"])
        path = channel[len(f"{self.config.namespace}:watch:"):]
        with self._lock:
            watchers = self._watchers.pop(path, [])
            if self._pubsub is not None:
                self._pubsub.unsubscribe(channel)
        event = WatchedEvent(EventType(self._text(message["data"])), path)
        for watcher in watchers:
            try:
                watcher(event)
            except Exception:  # noqa: BLE001 - keep the pub/sub thread alive
                _LOGGER.exception("Watch callback for %s failed", path)

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Delete this session's ephemeral nodes and stop watch delivery."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        with _translate_errors(self._key_session()):
            owned = sorted(
                (self._text(item) for item in self._redis.smembers(self._key_session())),
                key=len,
                reverse=True,
            )
        for path in owned:
            try:
                self.delete(path)
            except (NoNodeError, NotEmptyError):
                continue
        with _translate_errors(self._key_session()):
            self._redis.delete(self._key_session())
        with self._lock:
            if self._pubsub_thread is not None:
                self._pubsub_thread.stop()
                self._pubsub_thread = None
            if self._pubsub is not None:
                self._pubsub.close()
                self._pubsub = None
