import collections
import ctypes
import logging
import os
import weakref

from ._handles import Handle, attach_finalizer
from .blob import BlobOpenFlags, open_blob
from .errors import DatabaseError, Error, OpenError, PrepareError, error_from_code, error_from_connection
from .native import (
    SQLITE_OK,
    SQLITE_OPEN_CREATE,
    SQLITE_OPEN_READWRITE,
    SQLITE_ROW,
    errstr,
    load_library,
)
from .rows import Row, Rows
from .statement import Statement
from .transaction import Transaction

logger = logging.getLogger(__name__)

DEFAULT_OPEN_FLAGS = SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE


class Connection:
    """An open database.

    Not safe for concurrent use: a connection and everything derived from it
    (statements, rows, blobs, transactions) must be driven by one thread of
    control at a time. ``last_error_code``/``last_error_message`` describe the
    most recent failing call and are overwritten by the next one.
    """

    def __init__(self, path, flags=DEFAULT_OPEN_FLAGS, stmt_cache_size=128, vfs=None):
        self._lib = load_library()
        self._path = os.fspath(path)

        db = ctypes.c_void_p()
        rc = self._lib.sqlite3_open_v2(
            self._path.encode('utf-8'),
            ctypes.byref(db),
            flags,
            vfs.encode('utf-8') if vfs else None,
        )
        if rc != SQLITE_OK:
            # The engine usually allocates a handle even when open fails; it
            # carries the message and still has to be closed.
            msg = self._lib.sqlite3_errmsg(db) if db else None
            msg_str = msg.decode('utf-8', errors='replace') if msg else errstr(rc)
            if db:
                self._lib.sqlite3_close_v2(db)
            raise OpenError(
                f"Failed to open database {self._path!r}: {msg_str}", code=rc, message=msg_str
            )

        self._handle = Handle(db, self._lib.sqlite3_close_v2, "connection")
        self._finalizer = attach_finalizer(self, self._handle)

        # Live statements and blobs, released before the connection closes.
        self._children = weakref.WeakSet()

        # Prepared statement cache
        self._stmt_cache = collections.OrderedDict()
        self._stmt_cache_size = stmt_cache_size

        # Statistics for testing
        self._stats = collections.Counter()
        logger.debug("Opened database %s", self._path)

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<Connection {self._path!r} {state}>"

    @property
    def path(self):
        return self._path

    @property
    def closed(self):
        return self._handle.released

    @property
    def stats(self):
        return self._stats

    def _db_ptr(self):
        return self._handle.get()

    def _track(self, child):
        self._children.add(child)

    # Engine state snapshots; read them right after the call they describe.

    @property
    def last_error_code(self):
        return self._lib.sqlite3_errcode(self._db_ptr())

    @property
    def last_error_message(self):
        msg = self._lib.sqlite3_errmsg(self._db_ptr())
        return msg.decode('utf-8', errors='replace') if msg else ""

    @property
    def changes(self):
        """Rows modified by the most recent INSERT, UPDATE or DELETE."""
        if hasattr(self._lib, "sqlite3_changes64"):
            return self._lib.sqlite3_changes64(self._db_ptr())
        return self._lib.sqlite3_changes(self._db_ptr())

    @property
    def last_insert_rowid(self):
        return self._lib.sqlite3_last_insert_rowid(self._db_ptr())

    @property
    def in_transaction(self):
        return self._lib.sqlite3_get_autocommit(self._db_ptr()) == 0

    # Statements

    def prepare(self, sql):
        """Compile ``sql`` into a :class:`Statement` owned by the caller.

        Only the first statement of ``sql`` is compiled.
        """
        db = self._db_ptr()
        stmt_ptr = ctypes.c_void_p()
        self._stats['prepare_count'] += 1
        b = sql.encode('utf-8')
        rc = self._lib.sqlite3_prepare_v2(db, b, len(b), ctypes.byref(stmt_ptr), None)
        if rc != SQLITE_OK:
            raise error_from_connection(db, PrepareError, code=rc, sql=sql)
        if not stmt_ptr:
            # Empty input or only comments/whitespace
            raise PrepareError("No SQL statement to prepare", sql=sql)
        return Statement(self, stmt_ptr, sql)

    def _acquire_statement(self, sql):
        # Taken out of the cache while in use, so two open queries on the
        # same SQL never share a cursor.
        stmt = self._stmt_cache.pop(sql, None)
        if stmt is not None:
            self._stats['cache_hit'] += 1
            return stmt
        self._stats['cache_miss'] += 1
        return self.prepare(sql)

    def _recycle_statement(self, stmt):
        """Park ``stmt`` in the cache, unbound and back in READY."""
        if self.closed or stmt.closed:
            return

        # If cache is disabled (size 0), finalize immediately
        if self._stmt_cache_size <= 0:
            stmt.close()
            return

        stmt.clear_bindings()

        sql = stmt.sql
        if sql in self._stmt_cache:
            displaced = self._stmt_cache.pop(sql)
            if displaced is not stmt:
                displaced.close()

        self._stmt_cache[sql] = stmt

        # Evict if full
        while len(self._stmt_cache) > self._stmt_cache_size:
            _, old_stmt = self._stmt_cache.popitem(last=False)
            old_stmt.close()

    def exec(self, sql, *args):
        """Run ``sql`` to completion, discarding any rows it produces.

        ``args`` are bound positionally; on a statement with named parameters
        a single mapping binds by name.
        """
        stmt = self._acquire_statement(sql)
        try:
            stmt.bind(*args)
            while stmt.step() == SQLITE_ROW:
                pass
        finally:
            self._recycle_statement(stmt)

    def query(self, sql, *args):
        stmt = self._acquire_statement(sql)
        try:
            stmt.bind(*args)
        except Exception:
            self._recycle_statement(stmt)
            raise
        return Rows(stmt, on_close=self._recycle_statement)

    def query_row(self, sql, *args):
        """Single-row query; errors surface from :meth:`Row.scan`."""
        try:
            rows = self.query(sql, *args)
        except Error as e:
            return Row(error=e)
        return Row(rows=rows)

    # Transactions and blobs

    def begin(self, mode=None):
        return Transaction.begin(self, mode)

    def transaction(self, mode=None):
        """Alias of :meth:`begin`, reads better as ``with conn.transaction():``."""
        return self.begin(mode)

    def blob_open(self, database, table, column, rowid, flags=BlobOpenFlags.READ_ONLY):
        """Open one blob cell for incremental I/O; see :class:`~embedlite.blob.Blob`."""
        return open_blob(self, database, table, column, rowid, flags)

    # Lifecycle

    def close(self):
        if self.closed:
            return
        # Finalize all cached statements
        for stmt in self._stmt_cache.values():
            stmt.close()
        self._stmt_cache.clear()

        for child in list(self._children):
            child.close()

        rc = self._handle.release()
        if rc != SQLITE_OK:
            raise error_from_code(rc, DatabaseError, "Failed to close database")
        self._finalizer.detach()
        logger.debug("Closed database %s", self._path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def connect(path, **kwargs):
    """Open ``path`` (``":memory:"`` for a private in-memory database).

    Keyword arguments: ``flags`` (``sqlite3_open_v2`` flags),
    ``stmt_cache_size`` (0 disables the statement cache) and ``vfs``.
    """
    return Connection(path, **kwargs)
