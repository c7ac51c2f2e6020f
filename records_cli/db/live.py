"""
Live queries over committed database changes.

A ChangeHub hooks into a session factory's events and, after every
successful commit, tells its subscribers which tables were written. A
LiveQuery re-runs its fetch function whenever one of its tables changes and
hands out the full current result each time, like a snapshot listener.
"""

import queue
import threading
from itertools import chain
from typing import Any, Callable, Dict, Generic, Iterable, Optional, Set, TypeVar

from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker

from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ChangeListener = Callable[[Set[str]], None]

_CHANGED_TABLES_KEY = "changed_tables"


class ChangeHub:
    """Publishes the names of tables touched by each committed transaction."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[int, ChangeListener] = {}
        self._next_token = 0

    def attach(self, session_factory: sessionmaker) -> None:
        event.listen(session_factory, "after_flush", self._collect_changes)
        event.listen(session_factory, "after_commit", self._publish_changes)
        event.listen(session_factory, "after_rollback", self._discard_changes)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, tables: Set[str]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(tables)

    def _collect_changes(self, session: Session, flush_context) -> None:
        tables = session.info.setdefault(_CHANGED_TABLES_KEY, set())
        for obj in chain(session.new, session.dirty, session.deleted):
            table = getattr(obj, "__tablename__", None)
            if table:
                tables.add(table)

    def _publish_changes(self, session: Session) -> None:
        tables = session.info.pop(_CHANGED_TABLES_KEY, None)
        if tables:
            logger.debug(f"Committed changes to {sorted(tables)}")
            self.publish(tables)

    def _discard_changes(self, session: Session) -> None:
        session.info.pop(_CHANGED_TABLES_KEY, None)


_CHANGED = object()
_CLOSED = object()
_UNSET = object()


class LiveQuery(Generic[T]):
    """
    A cancellable, live-updating result.

    Iterating yields the current result immediately and then again after each
    commit that touches one of ``tables``. Changes that arrive before the
    consumer asks for the next result are coalesced into a single re-fetch.
    The subscription stays registered until ``cancel()`` is called or the
    ``with`` block exits.

    Commits made by other processes never reach the hub. With
    ``poll_interval`` set, the query is also re-run on that interval and
    emitted when its ``fingerprint`` differs from the last emitted result.
    """

    def __init__(
        self,
        hub: ChangeHub,
        tables: Iterable[str],
        fetch: Callable[[], T],
        poll_interval: Optional[float] = None,
        fingerprint: Callable[[T], Any] = lambda result: result,
    ):
        self._tables = frozenset(tables)
        self._fetch = fetch
        self._poll_interval = poll_interval
        self._fingerprint = fingerprint
        self._last: Any = _UNSET
        self._signals: "queue.Queue[object]" = queue.Queue()
        self._signals.put(_CHANGED)
        self._cancelled = False
        self._unsubscribe = hub.subscribe(self._on_change)

    def _on_change(self, tables: Set[str]) -> None:
        if self._tables & tables:
            self._signals.put(_CHANGED)

    def __iter__(self) -> "LiveQuery[T]":
        return self

    def __next__(self) -> T:
        while not self._cancelled:
            try:
                signal = self._signals.get(timeout=self._poll_interval)
            except queue.Empty:
                result = self._fetch()
                if self._fingerprint(result) != self._last:
                    return self._emit(result)
                continue
            if signal is _CLOSED:
                break
            self._drain()
            return self._emit(self._fetch())
        raise StopIteration

    def poll(self, timeout: Optional[float] = None) -> Optional[T]:
        """Return the next result, or None if nothing changed within ``timeout``."""
        if self._cancelled:
            return None
        try:
            signal = self._signals.get(timeout=timeout) if timeout else self._signals.get_nowait()
        except queue.Empty:
            return None
        if signal is _CLOSED:
            return None
        self._drain()
        return self._emit(self._fetch())

    def _emit(self, result: T) -> T:
        self._last = self._fingerprint(result)
        return result

    def _drain(self) -> None:
        while True:
            try:
                signal = self._signals.get_nowait()
            except queue.Empty:
                return
            if signal is _CLOSED:
                self._signals.put(_CLOSED)
                return

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._unsubscribe()
        self._signals.put(_CLOSED)

    def __enter__(self) -> "LiveQuery[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
