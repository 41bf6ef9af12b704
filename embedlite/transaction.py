import logging
import weakref

from .errors import Error

logger = logging.getLogger(__name__)

_MODES = ("DEFERRED", "IMMEDIATE", "EXCLUSIVE")


class _TransactionState:
    __slots__ = ("finished",)

    def __init__(self):
        self.finished = False


def _rollback_abandoned(connection, state):
    if state.finished or connection.closed:
        return
    state.finished = True
    logger.debug("Rolling back abandoned transaction on %s", connection.path)
    try:
        connection.exec("ROLLBACK;")
    except Error as e:
        # Nobody is left to receive this.
        logger.debug("Rollback of abandoned transaction failed: %s", e)


class Transaction:
    """Explicit transaction scope on a connection.

    Single use: call :meth:`commit` or :meth:`rollback` once, or use it as a
    context manager (commit on success, rollback on exception). A
    transaction dropped unfinished is rolled back when it is collected, but
    that is a backstop only and its outcome is never reported.

    The backstop runs whenever the collector gets to it, which may be in the
    middle of another call on the same connection (and through its statement
    cache). It also overwrites the connection's last error code and message,
    so an error snapshot taken after a collection may describe the ROLLBACK.
    Finish transactions explicitly, or use ``with``.

    Examples
        with conn.begin():
            conn.exec('insert into ...', args)
            conn.exec('update ...', args)
    """

    def __init__(self, connection, state):
        self._connection = connection
        self._state = state
        # Holds the connection and the shared state, never the transaction.
        self._finalizer = weakref.finalize(self, _rollback_abandoned, connection, state)

    @classmethod
    def begin(cls, connection, mode=None):
        if mode is None:
            sql = "BEGIN TRANSACTION;"
        else:
            mode = mode.upper()
            if mode not in _MODES:
                raise ValueError(f"Invalid transaction mode {mode!r}; expected one of {_MODES}")
            sql = f"BEGIN {mode} TRANSACTION;"
        connection.exec(sql)
        return cls(connection, _TransactionState())

    def __repr__(self):
        return f"<Transaction finished={self.finished}>"

    @property
    def finished(self):
        return self._state.finished

    def _finish(self, sql):
        self._state.finished = True
        self._finalizer.detach()
        self._connection.exec(sql)

    def commit(self):
        self._finish("COMMIT;")

    def rollback(self):
        self._finish("ROLLBACK;")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.finished:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
