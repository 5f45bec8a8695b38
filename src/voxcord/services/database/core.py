"""Connection management for the Turso/libSQL store.

With ``TURSO_DATABASE_URL`` and ``TURSO_AUTH_TOKEN`` the database is an
embedded replica synced to Turso after every write. Without them, or after a
Turso failure, it is a plain local SQLite file.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import os
from typing import TYPE_CHECKING, Any, Concatenate, Protocol, cast

import libsql as libsql_module

from voxcord.core.error_handling import log_exception

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

logger = logging.getLogger(__name__)
libsql: Any = libsql_module
LibsqlConnection = Any
type Params = Sequence[object]

LIBSQL_ERROR = cast(
    "type[BaseException]",
    getattr(libsql, "LibsqlError", getattr(libsql, "Error", ValueError)),
)
DATABASE_ERRORS = (ValueError, LIBSQL_ERROR)
# Hrana stream errors mean the remote connection went stale.
_STALE_CONNECTION_MARKERS = ("stream not found", "Hrana")


class DatabaseProtocol(Protocol):
    """What the table mixins need from the connection owner."""

    def _get_connection(self) -> LibsqlConnection: ...
    def _sync(self) -> None: ...
    def _write(self, sql: str, params: Params = ()) -> None: ...
    def _write_many(self, sql: str, rows: Iterable[Params]) -> None: ...
    def _read(self, sql: str, params: Params = ()) -> list[tuple]: ...
    def _create_schema(self, *statements: str) -> None: ...


def _is_stale_connection(exc: BaseException) -> bool:
    text = str(exc)
    return any(marker in text for marker in _STALE_CONNECTION_MARKERS)


def _with_reconnect[T_Database: DatabaseProtocol, **P, T](
    method: Callable[Concatenate[T_Database, P], T],
) -> Callable[Concatenate[T_Database, P], T]:
    """Retry a store operation once on a fresh connection if Turso went stale."""

    @functools.wraps(method)
    def wrapper(self: T_Database, *args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return method(self, *args, **kwargs)
        except DATABASE_ERRORS as exc:
            if not _is_stale_connection(exc):
                raise
            logger.warning("Turso connection went stale, reconnecting: %s", exc)
            if hasattr(self, "_reconnect"):
                self._reconnect()
            try:
                return method(self, *args, **kwargs)
            except DATABASE_ERRORS as retry_exc:
                log_exception(
                    logger=logger,
                    message="Database operation failed after reconnecting",
                    error=retry_exc,
                    context={"operation": method.__name__},
                )
                raise

    return wrapper


class DatabaseCore:
    """Owns the libSQL connection and the write-then-sync discipline."""

    def __init__(
        self,
        db_url: str | None = None,
        auth_token: str | None = None,
        local_db_path: str = "voxcord.db",
    ) -> None:
        """Store connection settings; the connection itself opens lazily.

        Args:
            db_url: Turso database URL, e.g. ``libsql://voxcord.turso.io``
            auth_token: Turso authentication token
            local_db_path: Embedded replica path, or the plain SQLite file

        """
        self.db_url = db_url or os.getenv("TURSO_DATABASE_URL")
        self.auth_token = auth_token or os.getenv("TURSO_AUTH_TOKEN")
        self.local_db_path = local_db_path
        self._conn: LibsqlConnection | None = None

    @property
    def backend(self) -> str:
        """``"turso"`` while syncing to a remote, otherwise ``"local"``."""
        return "turso" if self.db_url and self.auth_token else "local"

    def _close_quietly(self) -> None:
        if self._conn is not None:
            with contextlib.suppress(*DATABASE_ERRORS):
                self._conn.close()
            self._conn = None

    def _reconnect(self) -> None:
        self._close_quietly()
        self._get_connection()

    def _fall_back_to_local(self, reason: BaseException) -> None:
        logger.warning(
            "Turso unavailable (%s); continuing with local database %s",
            reason,
            self.local_db_path,
        )
        self._close_quietly()
        self.db_url = None
        self.auth_token = None
        self._conn = libsql.connect(self.local_db_path)

    def _get_connection(self) -> LibsqlConnection:
        if self._conn is not None:
            return self._conn

        if self.backend == "local":
            self._conn = libsql.connect(self.local_db_path)
            logger.info("Using local database at %s", self.local_db_path)
            return self._conn

        try:
            self._conn = libsql.connect(
                self.local_db_path,
                sync_url=self.db_url,
                auth_token=self.auth_token,
            )
            self._conn.sync()
            logger.info("Connected to Turso database %s", self.db_url)
        except DATABASE_ERRORS as exc:
            self._fall_back_to_local(exc)
        return self._conn

    def _sync(self) -> None:
        if self._conn is None or self.backend == "local":
            return
        try:
            self._conn.sync()
        except DATABASE_ERRORS as exc:
            self._fall_back_to_local(exc)

    # Helpers shared by the table mixins

    def _create_schema(self, *statements: str) -> None:
        conn = self._get_connection()
        for statement in statements:
            conn.execute(statement)
        conn.commit()

    def _write(self, sql: str, params: Params = ()) -> None:
        conn = self._get_connection()
        conn.execute(sql, tuple(params))
        conn.commit()
        self._sync()

    def _write_many(self, sql: str, rows: Iterable[Params]) -> None:
        batch = [tuple(row) for row in rows]
        if not batch:
            return
        conn = self._get_connection()
        conn.executemany(sql, batch)
        conn.commit()
        self._sync()

    def _read(self, sql: str, params: Params = ()) -> list[tuple]:
        return list(self._get_connection().execute(sql, tuple(params)).fetchall())

    def close(self) -> None:
        """Close the connection; the next operation reconnects."""
        self._close_quietly()
