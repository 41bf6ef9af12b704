"""Conversion between Python values and the engine's dynamic column types.

Binding accepts ``None``, ``bool``, ``int``, ``float``, ``str``, bytes-like
objects, :class:`ZeroBlob` and :class:`BindValue`. Any other object may take
part by implementing ``to_bind_value()``, returning something bindable
(usually a :class:`BindValue`).

Extraction is driven by a destination per column: ``int``, ``bool``,
``float``, ``str``, ``bytes``, ``object`` (natural value by dynamic type), or
anything with a ``from_column_value(value)`` method, which receives a
:class:`ColumnValue` and returns the converted value.
"""

import ctypes
import enum
from dataclasses import dataclass

from .errors import (
    BindError,
    ExtractError,
    MisuseError,
    TypeMismatchError,
    UnsupportedBindTypeError,
    UnsupportedExtractTypeError,
)
from .native import (
    SQLITE_BLOB,
    SQLITE_FLOAT,
    SQLITE_INTEGER,
    SQLITE_NULL,
    SQLITE_OK,
    SQLITE_TEXT,
    SQLITE_TRANSIENT,
)

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_TYPE_NAMES = {
    SQLITE_INTEGER: "integer",
    SQLITE_FLOAT: "float",
    SQLITE_TEXT: "text",
    SQLITE_BLOB: "blob",
    SQLITE_NULL: "null",
}


@dataclass(frozen=True)
class ZeroBlob:
    """A blob of ``size`` zero bytes allocated by the engine at bind time."""

    size: int

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"ZeroBlob size must be >= 0, got {self.size}")


class BindKind(enum.Enum):
    NULL = "null"
    INTEGER = "integer"
    INT64 = "int64"
    DOUBLE = "double"
    TEXT = "text"
    BLOB = "blob"
    ZEROBLOB = "zeroblob"


@dataclass(frozen=True)
class BindValue:
    """An explicitly tagged value, as produced by ``to_bind_value()`` hooks."""

    kind: BindKind
    value: object = None

    @classmethod
    def null(cls):
        return cls(BindKind.NULL)

    @classmethod
    def integer(cls, value):
        return cls(BindKind.INTEGER, int(value))

    @classmethod
    def int64(cls, value):
        return cls(BindKind.INT64, int(value))

    @classmethod
    def double(cls, value):
        return cls(BindKind.DOUBLE, float(value))

    @classmethod
    def text(cls, value):
        return cls(BindKind.TEXT, str(value))

    @classmethod
    def blob(cls, value):
        return cls(BindKind.BLOB, bytes(value))

    @classmethod
    def zeroblob(cls, size):
        return cls(BindKind.ZEROBLOB, ZeroBlob(size))


def _check_range(value, lo, hi, index, what):
    if not lo <= value <= hi:
        raise BindError(f"Parameter {index}: {value} does not fit in a {what} integer")


def _bind_blob(lib, ptr, index, value):
    n = len(value)
    if n == 0:
        # A NULL data pointer would bind SQL NULL; keep it a zero-length blob.
        return lib.sqlite3_bind_zeroblob(ptr, index, 0)
    ArrayType = ctypes.c_uint8 * n
    b_arr = ArrayType.from_buffer_copy(value)
    return lib.sqlite3_bind_blob(ptr, index, b_arr, n, SQLITE_TRANSIENT)


def _bind_text(lib, ptr, index, value):
    b = value.encode('utf-8')
    return lib.sqlite3_bind_text(ptr, index, b, len(b), SQLITE_TRANSIENT)


def _bind_zeroblob(lib, ptr, index, size):
    if hasattr(lib, "sqlite3_bind_zeroblob64"):
        return lib.sqlite3_bind_zeroblob64(ptr, index, size)
    _check_range(size, 0, _INT32_MAX, index, "32-bit zeroblob size")
    return lib.sqlite3_bind_zeroblob(ptr, index, size)


def _bind_tagged(lib, ptr, index, bv):
    kind = bv.kind
    if kind is BindKind.NULL:
        return lib.sqlite3_bind_null(ptr, index)
    if kind is BindKind.INTEGER:
        _check_range(bv.value, _INT32_MIN, _INT32_MAX, index, "32-bit")
        return lib.sqlite3_bind_int(ptr, index, bv.value)
    if kind is BindKind.INT64:
        _check_range(bv.value, _INT64_MIN, _INT64_MAX, index, "64-bit")
        return lib.sqlite3_bind_int64(ptr, index, bv.value)
    if kind is BindKind.DOUBLE:
        return lib.sqlite3_bind_double(ptr, index, bv.value)
    if kind is BindKind.TEXT:
        return _bind_text(lib, ptr, index, bv.value)
    if kind is BindKind.BLOB:
        return _bind_blob(lib, ptr, index, bv.value)
    if kind is BindKind.ZEROBLOB:
        return _bind_zeroblob(lib, ptr, index, bv.value.size)
    raise UnsupportedBindTypeError(f"Parameter {index}: unknown bind kind {kind!r}")


def bind_value(stmt, index, value):
    """Bind ``value`` to the 1-based parameter ``index`` of ``stmt``."""
    lib = stmt._lib
    ptr = stmt._handle.get()

    if value is None:
        rc = lib.sqlite3_bind_null(ptr, index)
    elif isinstance(value, BindValue):
        rc = _bind_tagged(lib, ptr, index, value)
    elif isinstance(value, bool):
        rc = lib.sqlite3_bind_int(ptr, index, 1 if value else 0)
    elif isinstance(value, int):
        _check_range(value, _INT64_MIN, _INT64_MAX, index, "64-bit")
        rc = lib.sqlite3_bind_int64(ptr, index, value)
    elif isinstance(value, float):
        rc = lib.sqlite3_bind_double(ptr, index, value)
    elif isinstance(value, str):
        rc = _bind_text(lib, ptr, index, value)
    elif isinstance(value, (bytes, bytearray)):
        rc = _bind_blob(lib, ptr, index, value)
    elif isinstance(value, memoryview):
        rc = _bind_blob(lib, ptr, index, value.tobytes())
    elif isinstance(value, ZeroBlob):
        rc = _bind_zeroblob(lib, ptr, index, value.size)
    else:
        to_bind = getattr(value, "to_bind_value", None)
        if to_bind is None:
            raise UnsupportedBindTypeError(
                f"Parameter {index}: unsupported type {type(value).__name__}"
            )
        produced = to_bind()
        if produced is value:
            raise UnsupportedBindTypeError(
                f"Parameter {index}: {type(value).__name__}.to_bind_value() returned itself"
            )
        bind_value(stmt, index, produced)
        return

    if rc != SQLITE_OK:
        raise stmt._engine_error(BindError, code=rc)


def _column_text(lib, ptr, index):
    # column_text before column_bytes: the length must describe the UTF-8 form.
    text_ptr = lib.sqlite3_column_text(ptr, index)
    if not text_ptr:
        return ""
    n = lib.sqlite3_column_bytes(ptr, index)
    raw = ctypes.string_at(text_ptr, n)
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        # Read it with a bytes destination to get the stored value as is.
        raise ExtractError(f"Column {index}: text is not valid UTF-8 ({e.reason} at byte {e.start})") from e


def _column_blob(lib, ptr, index):
    data = lib.sqlite3_column_blob(ptr, index)
    n = lib.sqlite3_column_bytes(ptr, index)
    if not data or n == 0:
        return b""
    return ctypes.string_at(data, n)


def _column_natural(lib, ptr, index):
    kind = lib.sqlite3_column_type(ptr, index)
    if kind == SQLITE_INTEGER:
        return lib.sqlite3_column_int64(ptr, index)
    if kind == SQLITE_FLOAT:
        return lib.sqlite3_column_double(ptr, index)
    if kind == SQLITE_TEXT:
        return _column_text(lib, ptr, index)
    if kind == SQLITE_BLOB:
        return _column_blob(lib, ptr, index)
    return None


def extract(stmt, index, dest):
    """Read the 0-based column ``index`` of the current row as ``dest``."""
    lib = stmt._lib
    ptr = stmt._handle.get()

    # Native kinds use their accessor directly; the engine converts any
    # dynamic type for these, so no tag check is needed.
    if dest is bool:
        return lib.sqlite3_column_int64(ptr, index) != 0
    if dest is int:
        return lib.sqlite3_column_int64(ptr, index)
    if dest is float:
        return lib.sqlite3_column_double(ptr, index)
    if dest is str:
        return _column_text(lib, ptr, index)
    if dest is bytes:
        return _column_blob(lib, ptr, index)
    if dest is None or dest is object:
        return _column_natural(lib, ptr, index)
    if dest is ctypes.c_float or isinstance(dest, ctypes.c_float):
        raise UnsupportedExtractTypeError(
            f"Column {index}: use float (64-bit) instead of ctypes.c_float"
        )

    handler = getattr(dest, "from_column_value", None)
    if handler is None:
        raise UnsupportedExtractTypeError(
            f"Column {index}: unsupported destination {dest!r}"
        )
    return handler(ColumnValue(lib.sqlite3_column_type(ptr, index), stmt, index))


def extract_row(stmt):
    lib = stmt._lib
    ptr = stmt._handle.get()
    return tuple(_column_natural(lib, ptr, i) for i in range(lib.sqlite3_column_count(ptr)))


class ColumnValue:
    """Read-only view of one column of the statement's current row.

    Valid only until the statement steps or resets; after that every
    accessor raises :class:`MisuseError`.
    """

    __slots__ = ("datatype", "index", "_stmt", "_generation")

    def __init__(self, datatype, stmt, index):
        self.datatype = datatype
        self.index = index
        self._stmt = stmt
        self._generation = stmt._generation

    def __repr__(self):
        return f"<ColumnValue index={self.index} type={_TYPE_NAMES.get(self.datatype, self.datatype)}>"

    @property
    def type_name(self):
        return _TYPE_NAMES.get(self.datatype, str(self.datatype))

    def is_null(self):
        return self.datatype == SQLITE_NULL

    def is_integer(self):
        return self.datatype == SQLITE_INTEGER

    def is_float(self):
        return self.datatype == SQLITE_FLOAT

    def is_text(self):
        return self.datatype == SQLITE_TEXT

    def is_blob(self):
        return self.datatype == SQLITE_BLOB

    def _live_ptr(self):
        stmt = self._stmt
        if stmt._generation != self._generation:
            raise MisuseError(
                f"Column value {self.index} is stale: the statement moved past its row"
            )
        return stmt._handle.get()

    def _mismatch(self, wanted):
        return TypeMismatchError(f"Column {self.index} is {self.type_name}, not {wanted}")

    def to_float(self):
        ptr = self._live_ptr()
        if not self.is_float():
            raise self._mismatch("a float")
        return self._stmt._lib.sqlite3_column_double(ptr, self.index)

    def integer(self):
        ptr = self._live_ptr()
        if not self.is_integer():
            raise self._mismatch("an integer")
        return self._stmt._lib.sqlite3_column_int64(ptr, self.index)

    def text(self):
        ptr = self._live_ptr()
        if self.is_null():
            return ""
        if not self.is_text():
            raise self._mismatch("text")
        return _column_text(self._stmt._lib, ptr, self.index)

    def blob(self):
        ptr = self._live_ptr()
        if self.is_null():
            return b""
        if not self.is_blob():
            raise self._mismatch("a blob")
        return _column_blob(self._stmt._lib, ptr, self.index)
