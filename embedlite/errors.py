import collections.abc
import json

from .native import load_library, errstr


# Exceptions
class Error(Exception):
    pass


class InterfaceError(Error):
    pass


class MisuseError(InterfaceError):
    """Operation on a released handle, or on a statement in the wrong state."""


class DatabaseError(Error):
    """A failure reported by the engine, or detected on its behalf.

    ``code`` is the engine's numeric result code (``None`` when the failure
    was detected by this package before reaching the engine) and ``message``
    the engine's error text captured right after the failing call.
    """

    def __init__(self, text, *, code=None, message=None, sql=None, params=None):
        super().__init__(text)
        self.code = code
        self.message = text if message is None else message
        self.sql = sql
        self.params = params


class OpenError(DatabaseError):
    pass


class BlobOpenError(OpenError):
    pass


class PrepareError(DatabaseError):
    pass


class StepError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class ArityError(ProgrammingError):
    """Number of supplied values does not match the statement."""


class UnsupportedTypeError(ProgrammingError):
    pass


class BindError(ProgrammingError):
    pass


class BindArityError(BindError, ArityError):
    pass


class UnsupportedBindTypeError(BindError, UnsupportedTypeError):
    pass


class ExtractError(ProgrammingError):
    pass


class ExtractArityError(ExtractError, ArityError):
    pass


class UnsupportedExtractTypeError(ExtractError, UnsupportedTypeError):
    pass


class TypeMismatchError(ExtractError):
    pass


class BlobRangeError(ProgrammingError, ValueError):
    pass


class NoRowsError(Error, LookupError):
    """The query produced no row to scan.

    Deliberately outside :class:`DatabaseError`: an empty result is an
    answer, not an engine failure. When a step failure ended the iteration
    early it is available as ``__cause__``.
    """


_MAX_TEXT = 200
_MAX_BLOB = 64
_MAX_PARAMS = 50


def _clip(s):
    return s if len(s) <= _MAX_TEXT else s[:_MAX_TEXT] + "…"


def _describe_param(value):
    """JSON-safe, size-capped rendering of one bound value."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _clip(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        return {"blob": data[:_MAX_BLOB].hex(), "size": len(data), "clipped": len(data) > _MAX_BLOB}
    return _clip(repr(value))


def _describe_params(params):
    if params is None:
        return None
    if isinstance(params, collections.abc.Mapping):
        items = list(params.items())
        described = {str(k): _describe_param(v) for k, v in items[:_MAX_PARAMS]}
    else:
        items = list(params)
        described = [_describe_param(v) for v in items[:_MAX_PARAMS]]
    if len(items) > _MAX_PARAMS:
        return {"first": described, "count": len(items)}
    return described


def _with_context(msg_str, code, sql, params):
    if sql is None:
        return msg_str
    ctx = {
        "native_code": int(code) if code is not None else None,
        "sql": sql,
        "params": _describe_params(params),
    }
    return msg_str + "\nContext: " + json.dumps(ctx, ensure_ascii=False)


def error_from_connection(db_handle, exc_class, *, code=None, sql=None, params=None):
    """Build ``exc_class`` from the connection's current error state.

    Must run immediately after the failing call: any later call on the same
    connection overwrites the engine's error code and message.
    """
    lib = load_library()
    if code is None:
        code = lib.sqlite3_errcode(db_handle)
    msg = lib.sqlite3_errmsg(db_handle) if db_handle else None
    # Native messages should be UTF-8, but don't crash if not.
    msg_str = msg.decode('utf-8', errors='replace') if msg else errstr(code)
    return exc_class(
        _with_context(msg_str, code, sql, params), code=code, message=msg_str, sql=sql, params=params
    )


def error_from_code(code, exc_class, message=None, *, sql=None, params=None):
    """Build ``exc_class`` for a result code when no connection state applies."""
    msg_str = message if message is not None else errstr(code)
    return exc_class(
        _with_context(msg_str, code, sql, params), code=code, message=msg_str, sql=sql, params=params
    )
