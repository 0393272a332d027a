"""Connections and a pool that keeps idle ones for reuse."""

from __future__ import annotations

import logging
import socket as _socket
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable, Optional

from restcore.errors import ConstraintError, ObjectExpiredError

log = logging.getLogger(__name__)

SocketFactory = Callable[["ConnectionType"], Any]
Clock = Callable[[], float]


class ConnectionType(Enum):
    HTTP = "http"
    HTTPS = "https"


class Connection:
    """A socket with a unique identity."""

    def __init__(self, socket: Any) -> None:
        self.socket = socket
        self.id = uuid.uuid4()
        log.debug("%r is constructed", self)

    def __repr__(self) -> str:
        return f"{{Connection {self.id} {self.socket!r}}}"


@dataclass
class PoolProperties:
    """Limits and timings for a ConnectionPool.

    A cleanup interval of zero or less disables the background cleanup timer.
    """

    cache_ttl_seconds: int = 60
    cache_cleanup_interval_seconds: float = 3
    cache_max_connections: int = 128
    cache_max_connections_per_endpoint: int = 16


_Key = tuple


@dataclass(eq=False)
class _Entry:
    key: _Key
    connection: Connection
    ttl: int
    last_used: float
    created: float = field(default_factory=time.time)

    def __repr__(self) -> str:
        ctype, endpoint = self.key
        return f"{{Entry {ctype.value}://{endpoint} {self.connection!r}}}"


class PooledConnection:
    """A connection borrowed from the pool; release it to give it back."""

    def __init__(self, entry: _Entry, on_release: Callable[[_Entry], None]) -> None:
        self._entry = entry
        self._on_release = on_release
        self._released = False

    @property
    def connection(self) -> Connection:
        return self._entry.connection

    @property
    def socket(self) -> Any:
        return self._entry.connection.socket

    @property
    def id(self) -> uuid.UUID:
        return self._entry.connection.id

    def release(self) -> None:
        """Hand the connection back to the pool; later calls do nothing."""
        if self._released:
            return
        self._released = True
        self._on_release(self._entry)

    def __enter__(self) -> "PooledConnection":
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return repr(self._entry.connection)


def _default_socket_factory(connection_type: ConnectionType) -> Any:
    if connection_type is ConnectionType.HTTP:
        return _socket.socket(_socket.AF_INET, _socket.SOCK_STREAM)
    raise NotImplementedError("No TLS support configured; pass a socket_factory")


def _is_open(sock: Any) -> bool:
    try:
        return sock.fileno() != -1
    except (OSError, AttributeError):
        return False


class ConnectionPool:
    """Caches idle connections per endpoint and enforces connection limits."""

    def __init__(self, properties: Optional[PoolProperties] = None,
                 socket_factory: Optional[SocketFactory] = None,
                 clock: Optional[Clock] = None) -> None:
        self._properties = properties or PoolProperties()
        self._socket_factory = socket_factory or _default_socket_factory
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._idle: dict[_Key, list[_Entry]] = {}
        self._in_use: dict[_Key, list[_Entry]] = {}
        self._closed = False
        self._timer: Optional[threading.Timer] = None
        self._schedule_cleanup()

    def get_connection(self, endpoint: Hashable,
                       connection_type: ConnectionType = ConnectionType.HTTP,
                       new_connection_please: bool = False) -> PooledConnection:
        """Return a cached connection to endpoint, or a new one if limits allow."""
        if not new_connection_please:
            conn = self._get_from_cache(endpoint, connection_type)
            if conn is not None:
                log.debug("Reusing connection from cache %r", conn)
                return conn
            if not self._can_create_new(endpoint, connection_type):
                raise ConstraintError(
                    "Cannot create connection - too many connections")
        return self._create_new(endpoint, connection_type)

    def idle_connections(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._idle.values())

    def close(self) -> None:
        """Stop the cleanup timer and drop all idle connections."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            idle = [e for entries in self._idle.values() for e in entries]
            self._idle.clear()
        for entry in idle:
            entry.connection.socket.close()

    def cleanup(self) -> int:
        """Drop idle connections whose time to live has passed; return how many."""
        if self._closed:
            return 0
        now = self._clock()
        expired = []
        with self._lock:
            for key in list(self._idle):
                keep = []
                for entry in self._idle[key]:
                    if entry.last_used + entry.ttl < now:
                        log.debug("Expiring %r", entry)
                        expired.append(entry)
                    else:
                        keep.append(entry)
                if keep:
                    self._idle[key] = keep
                else:
                    del self._idle[key]
        for entry in expired:
            entry.connection.socket.close()
        return len(expired)

    def _schedule_cleanup(self) -> None:
        interval = self._properties.cache_cleanup_interval_seconds
        if interval <= 0:
            return
        with self._lock:
            if self._closed:
                return
            timer = threading.Timer(interval, self._on_cleanup_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _on_cleanup_timer(self) -> None:
        if self._closed:
            return
        self.cleanup()
        self._schedule_cleanup()

    def _on_release(self, entry: _Entry) -> None:
        with self._lock:
            in_use = self._in_use.get(entry.key, [])
            if entry in in_use:
                in_use.remove(entry)
                if not in_use:
                    del self._in_use[entry.key]
        if self._closed or not _is_open(entry.connection.socket):
            log.debug("Discarding %r after use", entry)
            return
        log.debug("Recycling %r after use", entry)
        entry.last_used = self._clock()
        with self._lock:
            self._idle.setdefault(entry.key, []).append(entry)

    def _count(self, table: dict[_Key, list[_Entry]], key: Optional[_Key] = None) -> int:
        if key is not None:
            return len(table.get(key, ()))
        return sum(len(entries) for entries in table.values())

    def _can_create_new(self, endpoint: Hashable,
                        connection_type: ConnectionType) -> bool:
        if self._closed:
            raise ObjectExpiredError("The connection-pool is closed.")
        key = (connection_type, endpoint)
        props = self._properties
        with self._lock:
            per_endpoint = self._count(self._idle, key) + self._count(self._in_use, key)
            if per_endpoint >= props.cache_max_connections_per_endpoint:
                log.debug("No more available slots for %s://%s",
                          connection_type.value, endpoint)
                return False
            total = self._count(self._idle) + self._count(self._in_use)
            if total >= props.cache_max_connections and not self._purge_oldest_idle():
                log.debug("No more available slots (max=%d, used=%d)",
                          props.cache_max_connections, total)
                return False
        return True

    def _purge_oldest_idle(self) -> bool:
        with self._lock:
            candidates = [e for entries in self._idle.values() for e in entries]
            if not candidates:
                return False
            oldest = min(candidates, key=lambda e: e.last_used)
            entries = self._idle[oldest.key]
            entries.remove(oldest)
            if not entries:
                del self._idle[oldest.key]
        log.debug("LRU-Purging %r", oldest)
        oldest.connection.socket.close()
        return True

    def _get_from_cache(self, endpoint: Hashable,
                        connection_type: ConnectionType) -> Optional[PooledConnection]:
        if self._closed:
            raise ObjectExpiredError("The connection-pool is closed.")
        key = (connection_type, endpoint)
        with self._lock:
            entries = self._idle.get(key)
            if not entries:
                return None
            entry = entries.pop(0)
            if not entries:
                del self._idle[key]
            self._in_use.setdefault(key, []).append(entry)
        return PooledConnection(entry, self._on_release)

    def _create_new(self, endpoint: Hashable,
                    connection_type: ConnectionType) -> PooledConnection:
        sock = self._socket_factory(connection_type)
        entry = _Entry(key=(connection_type, endpoint),
                       connection=Connection(sock),
                       ttl=self._properties.cache_ttl_seconds,
                       last_used=self._clock())
        log.debug("Created new connection %r", entry)
        with self._lock:
            self._in_use.setdefault(entry.key, []).append(entry)
        return PooledConnection(entry, self._on_release)