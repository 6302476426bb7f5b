"""Connection metadata and the pool of idle client connections."""

from __future__ import annotations

import dataclasses
import enum
import sys
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any, Protocol


class Ver(enum.Enum):
    """Which HTTP version a client insists on for its connections."""

    AUTO = "Auto"
    HTTP2 = "Http2"


class Alpn(enum.Enum):
    """The protocol negotiated through ALPN, if any."""

    H2 = "h2"
    NONE = "none"


class _PoisonPill:
    """A flag shared by every copy of one connection's metadata."""

    def __init__(self) -> None:
        self._flag = threading.Event()

    def poison(self) -> None:
        self._flag.set()

    def poisoned(self) -> bool:
        return self._flag.is_set()


@dataclass(frozen=True)
class Connected:
    """Metadata a connector reports about an established connection.

    Copies made with :meth:`proxy` or :meth:`negotiated_h2` share the
    poisoned state of the original, so poisoning any of them marks the
    underlying connection as unusable for reuse.
    """

    alpn: Alpn = Alpn.NONE
    is_proxied: bool = False
    extra: Any = None
    _poison: _PoisonPill = field(default_factory=_PoisonPill, repr=False, compare=False)

    def proxy(self, is_proxied: bool) -> Connected:
        """Return metadata saying whether the connection goes through a proxy."""
        return dataclasses.replace(self, is_proxied=is_proxied)

    def negotiated_h2(self) -> Connected:
        """Return metadata saying that HTTP/2 was negotiated."""
        return dataclasses.replace(self, alpn=Alpn.H2)

    def poison(self) -> None:
        """Mark the connection so the pool will not hand it out again."""
        self._poison.poison()

    def is_poisoned(self) -> bool:
        """True once :meth:`poison` was called on this or a related copy."""
        return self._poison.poisoned()


class Poolable(Protocol):
    """What the pool needs from a connection."""

    def is_open(self) -> bool: ...

    def can_share(self) -> bool: ...


@dataclass
class PoolConfig:
    """Idle timeout in seconds (``None`` for none) and idle limit per host."""

    idle_timeout: float | None = 90.0
    max_idle_per_host: int = sys.maxsize

    def is_enabled(self) -> bool:
        """Pooling is on unless no idle connection may be kept."""
        return self.max_idle_per_host > 0


def _close_quietly(conn: Any) -> None:
    closer = getattr(conn, "close", None)
    if callable(closer):
        closer()


@dataclass
class _Idle:
    conn: Any
    since: float


class Pool:
    """Idle connections kept per key, for reuse by later requests.

    Unique (HTTP/1) connections leave the pool when checked out; shared
    (HTTP/2) connections stay in it and may serve many requests at once.
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config if config is not None else PoolConfig()
        self._clock = clock if clock is not None else time.monotonic
        self._idle: dict[Hashable, list[_Idle]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def is_enabled(self) -> bool:
        """True if this pool keeps idle connections at all."""
        return self.config.is_enabled()

    def _expired(self, entry: _Idle, now: float) -> bool:
        timeout = self.config.idle_timeout
        return timeout is not None and now - entry.since > timeout

    def checkout(self, key: Hashable) -> Any | None:
        """Return a usable idle connection for ``key``, or ``None``.

        The most recently returned connection is preferred. Expired and
        closed connections met on the way are dropped and closed.
        """
        discarded = []
        found = None
        with self._lock:
            entries = self._idle.get(key, [])
            now = self._clock()
            while entries:
                entry = entries[-1]
                if self._expired(entry, now) or not entry.conn.is_open():
                    entries.pop()
                    discarded.append(entry.conn)
                    continue
                if entry.conn.can_share():
                    entry.since = now
                else:
                    entries.pop()
                found = entry.conn
                break
            if not entries:
                self._idle.pop(key, None)
        for conn in discarded:
            _close_quietly(conn)
        return found

    def put(self, key: Hashable, conn: Any) -> bool:
        """Offer ``conn`` back to the pool; return whether it was kept.

        A connection that is not kept is closed.
        """
        kept = False
        with self._lock:
            if not self._closed and self.is_enabled() and conn.is_open():
                entries = self._idle.setdefault(key, [])
                already = any(entry.conn is conn for entry in entries)
                shared_present = conn.can_share() and any(
                    entry.conn.can_share() for entry in entries
                )
                if already:
                    kept = True
                elif not shared_present and len(entries) < self.config.max_idle_per_host:
                    entries.append(_Idle(conn, self._clock()))
                    kept = True
                if not entries:
                    self._idle.pop(key, None)
        if not kept:
            _close_quietly(conn)
        return kept

    def close(self) -> None:
        """Close every idle connection and refuse new ones."""
        with self._lock:
            self._closed = True
            idle = [entry.conn for entries in self._idle.values() for entry in entries]
            self._idle.clear()
        for conn in idle:
            _close_quietly(conn)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._idle.values())