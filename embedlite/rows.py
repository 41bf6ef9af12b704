from .errors import MisuseError, NoRowsError, StepError
from .native import SQLITE_ROW


class Rows:
    """Iterator over the rows of one query.

    Two styles are supported::

        while rows.next():
            name, age = rows.scan(str, int)

        for name, age in rows:
            ...

    A step failure is latched in :attr:`error` and ends the iteration; the
    normal end of rows sets :attr:`done` instead, so the two stay
    distinguishable afterwards.
    """

    def __init__(self, stmt, on_close=None):
        self._stmt = stmt
        self._on_close = on_close
        self._has_row = False
        self.error = None
        self.done = False

    def __repr__(self):
        return f"<Rows done={self.done} error={self.error is not None}>"

    @property
    def closed(self):
        return self._stmt is None

    @property
    def columns(self):
        return self._live_stmt().column_names

    def _live_stmt(self):
        if self._stmt is None:
            raise MisuseError("Rows is closed")
        return self._stmt

    def next(self):
        """Advance to the next row; False once rows ran out or stepping failed."""
        stmt = self._live_stmt()
        if self.done or self.error is not None:
            self._has_row = False
            return False
        try:
            rc = stmt.step()
        except StepError as e:
            self.error = e
            self._has_row = False
            return False
        if rc == SQLITE_ROW:
            self._has_row = True
            return True
        self.done = True
        self._has_row = False
        return False

    def scan(self, *dests):
        """Convert the current row; see :func:`embedlite.values.extract`.

        Raises the latched step failure if there is one, and
        :class:`NoRowsError` when :meth:`next` has not just produced a row.
        """
        stmt = self._live_stmt()
        if self.error is not None:
            raise self.error
        if not self._has_row:
            raise NoRowsError("No row available to scan")
        return stmt.columns(*dests)

    def __iter__(self):
        return self

    def __next__(self):
        if self.next():
            return self._stmt.row()
        if self.error is not None:
            raise self.error
        raise StopIteration

    def close(self):
        if self._stmt is None:
            return
        stmt, self._stmt = self._stmt, None
        self._has_row = False
        if self._on_close is not None:
            self._on_close(stmt)
        else:
            stmt.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Row:
    """Result of :meth:`Connection.query_row`: at most one row, scanned once."""

    def __init__(self, rows=None, error=None):
        self._rows = rows
        self._error = error

    def scan(self, *dests):
        if self._error is not None:
            raise self._error
        with self._rows as rows:
            if rows.next():
                return rows.scan(*dests)
            if rows.error is not None:
                raise NoRowsError("Query produced no row: stepping failed") from rows.error
            raise NoRowsError("Query produced no row")
