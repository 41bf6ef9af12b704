import collections.abc
import enum

from ._handles import Handle, attach_finalizer
from .errors import (
    BindArityError,
    BindError,
    DatabaseError,
    ExtractArityError,
    ExtractError,
    MisuseError,
    StepError,
    error_from_connection,
)
from .native import SQLITE_DONE, SQLITE_OK, SQLITE_ROW
from .values import ColumnValue, bind_value, extract, extract_row


class StatementState(enum.Enum):
    READY = "ready"
    HAS_ROW = "has_row"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


def _finalizer_for(lib):
    def release(ptr):
        # finalize() replays the last step error, but the handle is freed
        # regardless, so there is nothing to retry.
        lib.sqlite3_finalize(ptr)

    return release


class Statement:
    """One prepared statement handle and its execution cursor.

    The cursor moves READY -> HAS_ROW/EXHAUSTED/FAILED through :meth:`step`;
    only :meth:`reset` (or :meth:`clear_bindings`) brings it back to READY.
    """

    def __init__(self, connection, ptr, sql):
        self._connection = connection
        self._lib = connection._lib
        self._sql = sql
        self._handle = Handle(ptr, _finalizer_for(self._lib), "statement")
        self._finalizer = attach_finalizer(self, self._handle)
        self._state = StatementState.READY
        self._error = None
        self._bound_params = None
        # Bumped on every cursor move; ColumnValue uses it to detect staleness.
        self._generation = 0
        connection._track(self)

    def __repr__(self):
        return f"<Statement state={self._state.value} sql={self._sql!r}>"

    @property
    def sql(self):
        return self._sql

    @property
    def state(self):
        return self._state

    @property
    def closed(self):
        return self._handle.released

    @property
    def connection(self):
        return self._connection

    def _engine_error(self, exc_class, *, code=None):
        return error_from_connection(
            self._connection._handle.ptr, exc_class, code=code, sql=self._sql, params=self._bound_params
        )

    # Introspection

    @property
    def bind_count(self):
        return self._lib.sqlite3_bind_parameter_count(self._handle.get())

    @property
    def column_count(self):
        return self._lib.sqlite3_column_count(self._handle.get())

    def column_name(self, index):
        name_ptr = self._lib.sqlite3_column_name(self._handle.get(), index)
        return name_ptr.decode('utf-8') if name_ptr else ""

    @property
    def column_names(self):
        return [self.column_name(i) for i in range(self.column_count)]

    # Binding

    def _check_ready_for_bind(self):
        if self._state is not StatementState.READY:
            raise MisuseError(
                f"Cannot bind a statement in state {self._state.value!r}; call reset() first"
            )

    def _parameter_name(self, ptr, index):
        """Name of a ``:``/``@``/``$`` parameter without its prefix, else None."""
        raw = self._lib.sqlite3_bind_parameter_name(ptr, index)
        # Anonymous '?' has no name; '?NNN' is numbered, still positional.
        if raw is None or raw.startswith(b'?'):
            return None
        return raw.decode('utf-8')[1:]

    def bind(self, *values):
        """Bind every parameter at once.

        Positional values map to parameters 1..N. When the statement uses
        named parameters (``:name``, ``@name``, ``$name``) a single mapping
        binds them by name; on a positional statement a mapping is just a
        value like any other.
        """
        if len(values) == 1 and isinstance(values[0], collections.abc.Mapping):
            ptr = self._handle.get()
            if self.bind_count and self._parameter_name(ptr, 1) is not None:
                return self.bind_named(values[0])

        self._check_ready_for_bind()
        count = self.bind_count
        if len(values) != count:
            raise BindArityError(
                f"Wrong number of values {len(values)} != {count}", sql=self._sql, params=values
            )
        self._bound_params = values
        for i, value in enumerate(values):
            bind_value(self, i + 1, value)

    def bind_named(self, params):
        self._check_ready_for_bind()
        ptr = self._handle.get()
        count = self.bind_count
        if len(params) != count:
            raise BindArityError(
                f"Wrong number of values {len(params)} != {count}", sql=self._sql, params=params
            )

        names = []
        for i in range(1, count + 1):
            name = self._parameter_name(ptr, i)
            if name is None:
                raise BindError(
                    f"Parameter {i} is positional; named values need named placeholders",
                    sql=self._sql,
                    params=params,
                )
            names.append(name)

        for name in names:
            if name not in params:
                raise BindError(f"Missing parameter '{name}'", sql=self._sql, params=params)

        self._bound_params = params
        for i, name in enumerate(names):
            bind_value(self, i + 1, params[name])

    def bind_value(self, index, value):
        """Bind a single 1-based parameter."""
        self._check_ready_for_bind()
        bind_value(self, index, value)

    # Cursor

    def step(self):
        """Advance the cursor once; returns ``SQLITE_ROW`` or ``SQLITE_DONE``.

        Any other engine result raises :class:`StepError` and leaves the
        statement FAILED; further steps raise the same error until reset.
        """
        ptr = self._handle.get()
        if self._state is StatementState.EXHAUSTED:
            return SQLITE_DONE
        if self._state is StatementState.FAILED:
            raise self._error

        self._generation += 1
        rc = self._lib.sqlite3_step(ptr)
        if rc == SQLITE_ROW:
            self._state = StatementState.HAS_ROW
            return rc
        if rc == SQLITE_DONE:
            self._state = StatementState.EXHAUSTED
            return rc

        self._state = StatementState.FAILED
        self._error = self._engine_error(StepError, code=rc)
        raise self._error

    def reset(self):
        ptr = self._handle.get()
        if self._state is StatementState.READY:
            return
        previous = self._state
        rc = self._lib.sqlite3_reset(ptr)
        self._state = StatementState.READY
        self._error = None
        self._generation += 1
        # After a failed step reset() hands the same error back; it was
        # already raised by step().
        if rc != SQLITE_OK and previous is not StatementState.FAILED:
            raise self._engine_error(DatabaseError, code=rc)

    def clear_bindings(self):
        self.reset()
        rc = self._lib.sqlite3_clear_bindings(self._handle.get())
        self._bound_params = None
        if rc != SQLITE_OK:
            raise self._engine_error(BindError, code=rc)

    # Extraction

    def _check_has_row(self):
        if self._state is not StatementState.HAS_ROW:
            raise MisuseError(
                f"No current row (statement is {self._state.value!r}); step() must return SQLITE_ROW first"
            )

    def columns(self, *dests):
        """Read the current row, one destination kind per column."""
        count = self.column_count
        if len(dests) != count:
            raise ExtractArityError(f"Wrong number of values {len(dests)} != {count}", sql=self._sql)
        self._check_has_row()
        return tuple(extract(self, i, dest) for i, dest in enumerate(dests))

    def row(self):
        """The current row as natural Python values."""
        self._check_has_row()
        return extract_row(self)

    def column_value(self, index):
        self._check_has_row()
        if not 0 <= index < self.column_count:
            raise ExtractError(f"Column index {index} out of range", sql=self._sql)
        ptr = self._handle.get()
        return ColumnValue(self._lib.sqlite3_column_type(ptr, index), self, index)

    # Lifecycle

    def close(self):
        self._handle.release()
        self._finalizer.detach()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
