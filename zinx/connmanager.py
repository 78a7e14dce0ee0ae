"""Registry of live connections keyed by connection id."""

from __future__ import annotations

import threading
from typing import Any

from zinx import zlog


class ConnectionNotFoundError(KeyError):
    """No connection is registered under the requested id."""


class ConnManager:
    """Thread-safe map from connection id to connection.

    A connection is anything with a ``conn_id`` attribute and a ``stop()`` method.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._connections: dict[int, Any] = {}

    def add(self, conn: Any) -> None:
        """Register a connection, replacing any other with the same id."""
        with self._lock:
            self._connections[conn.conn_id] = conn
        zlog.info("connection add to ConnManager successfully: conn num = ", len(self))

    def remove(self, conn: Any) -> None:
        """Forget a connection; unknown connections are ignored."""
        with self._lock:
            self._connections.pop(conn.conn_id, None)
        zlog.info("connection Remove ConnID=", conn.conn_id,
                  " successfully: conn num = ", len(self))

    def get(self, conn_id: int) -> Any:
        """The connection registered under conn_id."""
        with self._lock:
            try:
                return self._connections[conn_id]
            except KeyError:
                raise ConnectionNotFoundError("connection not found") from None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn_id: object) -> bool:
        with self._lock:
            return conn_id in self._connections

    def clear_conn(self) -> None:
        """Stop and forget every connection."""
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        # Stopping happens outside the lock: a stopping connection may call remove().
        for conn in connections:
            conn.stop()
        zlog.info("Clear All Connections successfully: conn num = ", len(self))

    def clear_one_conn(self, conn_id: int) -> None:
        """Stop and forget one connection; an unknown id is only logged."""
        with self._lock:
            conn = self._connections.pop(conn_id, None)
        if conn is None:
            zlog.info("Clear Connections ID:  ", conn_id, "err")
            return
        conn.stop()
        zlog.info("Clear Connections ID:  ", conn_id, "succeed")