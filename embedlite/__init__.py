from .native import (
    load_library, sqlite_version,
    SQLITE_OK, SQLITE_ERROR, SQLITE_BUSY, SQLITE_LOCKED, SQLITE_READONLY,
    SQLITE_CANTOPEN, SQLITE_CONSTRAINT, SQLITE_MISMATCH, SQLITE_MISUSE,
    SQLITE_RANGE, SQLITE_ROW, SQLITE_DONE,
    SQLITE_INTEGER, SQLITE_FLOAT, SQLITE_TEXT, SQLITE_BLOB, SQLITE_NULL,
    SQLITE_OPEN_READONLY, SQLITE_OPEN_READWRITE, SQLITE_OPEN_CREATE,
    SQLITE_OPEN_URI, SQLITE_OPEN_MEMORY,
)
from .errors import (
    Error, InterfaceError, MisuseError, DatabaseError, OpenError, BlobOpenError,
    PrepareError, StepError, ProgrammingError, ArityError, UnsupportedTypeError,
    BindError, BindArityError, UnsupportedBindTypeError, ExtractError,
    ExtractArityError, UnsupportedExtractTypeError, TypeMismatchError,
    BlobRangeError, NoRowsError,
)
from .values import BindKind, BindValue, ColumnValue, ZeroBlob
from .statement import Statement, StatementState
from .rows import Row, Rows
from .blob import Blob, BlobOpenFlags, BlobReader, DatabaseName
from .transaction import Transaction
from .connection import Connection, connect

__version__ = "0.1.0"

threadsafety = 1  # Threads may share the module, but not connections

open = connect
