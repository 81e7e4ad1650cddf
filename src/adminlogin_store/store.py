"""SQLite-backed credential store.

One connection per store handle, serialized by a lock. Every public
operation runs inside `transaction()`, so multi-row writes made through a
single transaction are committed together or not at all.
"""
import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

import config as cfg

from adminlogin_common.logutil import get_logger, kv

from .records import CredentialRecord

log = get_logger("store")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS credentials(
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        admin_type TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        UNIQUE(username, admin_type)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_credentials_username ON credentials(username);",
)


class StoreError(Exception):
    """The underlying database failed."""


class DuplicateRecord(StoreError):
    """A (username, admin_type) pair already exists."""


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class StoreTransaction:
    """Row-level operations bound to one open transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, username: str, admin_type: str) -> Optional[CredentialRecord]:
        row = self._conn.execute(
            "SELECT * FROM credentials WHERE username=? AND admin_type=?",
            (username, admin_type),
        ).fetchone()
        return CredentialRecord.from_row(row) if row else None

    def find_by_username(self, username: str) -> List[CredentialRecord]:
        rows = self._conn.execute(
            "SELECT * FROM credentials WHERE username=? ORDER BY id", (username,)
        ).fetchall()
        return [CredentialRecord.from_row(r) for r in rows]

    def all(self) -> List[CredentialRecord]:
        rows = self._conn.execute("SELECT * FROM credentials ORDER BY id").fetchall()
        return [CredentialRecord.from_row(r) for r in rows]

    def insert(self, username: str, password_hash: str, admin_type: str) -> CredentialRecord:
        now = int(time.time())
        self._conn.execute(
            "INSERT INTO credentials(username,password_hash,admin_type,created_at,updated_at) VALUES(?,?,?,?,?)",
            (username, password_hash, admin_type, now, now),
        )
        return CredentialRecord(username, password_hash, admin_type, now, now)

    def update(
        self,
        username: str,
        admin_type: str,
        *,
        new_username: Optional[str] = None,
        new_password_hash: Optional[str] = None,
        new_admin_type: Optional[str] = None,
    ) -> int:
        sets, params = [], []
        if new_username is not None:
            sets.append("username=?")
            params.append(new_username)
        if new_password_hash is not None:
            sets.append("password_hash=?")
            params.append(new_password_hash)
        if new_admin_type is not None:
            sets.append("admin_type=?")
            params.append(new_admin_type)
        if not sets:
            return 0
        sets.append("updated_at=?")
        params.append(int(time.time()))
        params += [username, admin_type]
        cur = self._conn.execute(
            f"UPDATE credentials SET {', '.join(sets)} WHERE username=? AND admin_type=?",
            params,
        )
        return cur.rowcount

    def delete_one(self, username: str, admin_type: str) -> int:
        cur = self._conn.execute(
            "DELETE FROM credentials WHERE username=? AND admin_type=?", (username, admin_type)
        )
        return cur.rowcount

    def delete_all(self, username: str) -> int:
        cur = self._conn.execute("DELETE FROM credentials WHERE username=?", (username,))
        return cur.rowcount


class CredentialStore:
    """Handle to the credentials database.

    Use ":memory:" as `path` for a throwaway store (tests).
    """

    def __init__(self, path: Optional[str] = None, timeout: float = 5.0):
        self.path = path or cfg.DB_PATH
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "CredentialStore":
        with self._lock:
            if self._conn is not None:
                return self
            if self.path != ":memory:":
                parent = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(parent, exist_ok=True)
            try:
                conn = sqlite3.connect(
                    self.path,
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                conn.row_factory = sqlite3.Row
                if self.path != ":memory:":
                    conn.execute("PRAGMA journal_mode=WAL;")
                    conn.execute("PRAGMA synchronous=NORMAL;")
                for stmt in _SCHEMA:
                    conn.execute(stmt)
            except sqlite3.Error as e:
                log.error(kv("open failed", path=self.path, err=repr(e)))
                raise StoreError("could not open credential store") from e
            self._conn = conn
            log.info(kv("store opened", path=self.path))
            return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            log.info(kv("store closed", path=self.path))

    def __enter__(self) -> "CredentialStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """BEGIN IMMEDIATE ... COMMIT, or ROLLBACK if the block raises."""
        with self._lock:
            if self._conn is None:
                raise StoreError("credential store is not open")
            conn = self._conn
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreError("could not start transaction") from e
            try:
                yield StoreTransaction(conn)
            except sqlite3.IntegrityError as e:
                _rollback(conn)
                raise DuplicateRecord(str(e)) from e
            except sqlite3.Error as e:
                _rollback(conn)
                log.error(kv("transaction failed", err=repr(e)))
                raise StoreError("credential store failure") from e
            except BaseException:
                _rollback(conn)
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    log.error(kv("commit failed", err=repr(e)))
                    # a failed COMMIT leaves the transaction open
                    _rollback(conn)
                    raise StoreError("credential store failure") from e

    # Convenience single-shot reads.

    def get(self, username: str, admin_type: str) -> Optional[CredentialRecord]:
        with self.transaction() as tx:
            return tx.get(username, admin_type)

    def find_by_username(self, username: str) -> List[CredentialRecord]:
        with self.transaction() as tx:
            return tx.find_by_username(username)

    def all(self) -> List[CredentialRecord]:
        with self.transaction() as tx:
            return tx.all()
