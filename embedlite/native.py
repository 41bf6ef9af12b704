import ctypes
import ctypes.util
import logging
import os
import sys
from ctypes import c_int, c_int64, c_uint64, c_double, c_char_p, c_void_p, POINTER

logger = logging.getLogger(__name__)

# Primary result codes (must match sqlite3.h).
#
# Steps and calls may also hand back extended codes (primary code in the low
# byte); they are passed through untouched and never re-interpreted here.
SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_EMPTY = 16
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_NOLFS = 22
SQLITE_AUTH = 23
SQLITE_FORMAT = 24
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_NOTICE = 27
SQLITE_WARNING = 28
SQLITE_ROW = 100
SQLITE_DONE = 101

# Dynamic type tags (sqlite3_column_type)
SQLITE_INTEGER = 1
SQLITE_FLOAT = 2
SQLITE_TEXT = 3
SQLITE_BLOB = 4
SQLITE_NULL = 5

# sqlite3_open_v2 flags
SQLITE_OPEN_READONLY = 0x00000001
SQLITE_OPEN_READWRITE = 0x00000002
SQLITE_OPEN_CREATE = 0x00000004
SQLITE_OPEN_URI = 0x00000040
SQLITE_OPEN_MEMORY = 0x00000080

# Destructor sentinel: the engine copies the buffer before the call returns.
SQLITE_TRANSIENT = c_void_p(-1)

_lib = None


def _candidate_paths():
    lib_path = os.environ.get("EMBEDLITE_SQLITE_LIB")
    if lib_path:
        # An explicit path is authoritative; don't fall back silently.
        return [lib_path]

    candidates = []
    found = ctypes.util.find_library("sqlite3")
    if found:
        candidates.append(found)

    # Common names across platforms
    if sys.platform == "darwin":
        candidates += ["libsqlite3.dylib", "/usr/lib/libsqlite3.dylib"]
    elif sys.platform == "win32":
        candidates += ["sqlite3.dll", "winsqlite3.dll"]
    else:
        candidates += ["libsqlite3.so.0", "libsqlite3.so"]

    # The interpreter's own sqlite3 module links the engine; its shared object
    # resolves the C API symbols either statically or through its dependencies.
    try:
        import _sqlite3
    except ImportError:
        pass
    else:
        ext_path = getattr(_sqlite3, "__file__", None)
        if ext_path:
            candidates.append(ext_path)

    return candidates


def load_library():
    global _lib
    if _lib is not None:
        return _lib

    errors = []
    lib = None
    for path in _candidate_paths():
        try:
            candidate = ctypes.CDLL(path)
        except OSError as e:
            errors.append(f"{path}: {e}")
            continue
        if not hasattr(candidate, "sqlite3_open_v2"):
            errors.append(f"{path}: sqlite3_open_v2 not exported")
            continue
        lib = candidate
        logger.debug("Loaded SQLite library from %s", path)
        break

    if lib is None:
        detail = "; ".join(errors) if errors else "no candidates"
        raise RuntimeError(
            f"Could not find the SQLite shared library ({detail}). Set EMBEDLITE_SQLITE_LIB env var."
        )

    # Define signatures

    # Connection lifecycle
    lib.sqlite3_open_v2.argtypes = [c_char_p, POINTER(c_void_p), c_int, c_char_p]
    lib.sqlite3_open_v2.restype = c_int

    lib.sqlite3_close_v2.argtypes = [c_void_p]
    lib.sqlite3_close_v2.restype = c_int

    # Error state (per connection, overwritten by every fallible call)
    lib.sqlite3_errcode.argtypes = [c_void_p]
    lib.sqlite3_errcode.restype = c_int

    lib.sqlite3_errmsg.argtypes = [c_void_p]
    lib.sqlite3_errmsg.restype = c_char_p

    lib.sqlite3_errstr.argtypes = [c_int]
    lib.sqlite3_errstr.restype = c_char_p

    # Statements
    lib.sqlite3_prepare_v2.argtypes = [c_void_p, c_char_p, c_int, POINTER(c_void_p), POINTER(c_void_p)]
    lib.sqlite3_prepare_v2.restype = c_int

    lib.sqlite3_step.argtypes = [c_void_p]
    lib.sqlite3_step.restype = c_int

    lib.sqlite3_reset.argtypes = [c_void_p]
    lib.sqlite3_reset.restype = c_int

    lib.sqlite3_clear_bindings.argtypes = [c_void_p]
    lib.sqlite3_clear_bindings.restype = c_int

    lib.sqlite3_finalize.argtypes = [c_void_p]
    lib.sqlite3_finalize.restype = c_int

    # Bindings (1-based parameter index)
    lib.sqlite3_bind_null.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_null.restype = c_int

    lib.sqlite3_bind_int.argtypes = [c_void_p, c_int, c_int]
    lib.sqlite3_bind_int.restype = c_int

    lib.sqlite3_bind_int64.argtypes = [c_void_p, c_int, c_int64]
    lib.sqlite3_bind_int64.restype = c_int

    lib.sqlite3_bind_double.argtypes = [c_void_p, c_int, c_double]
    lib.sqlite3_bind_double.restype = c_int

    lib.sqlite3_bind_text.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_text.restype = c_int

    lib.sqlite3_bind_blob.argtypes = [c_void_p, c_int, c_void_p, c_int, c_void_p]
    lib.sqlite3_bind_blob.restype = c_int

    lib.sqlite3_bind_zeroblob.argtypes = [c_void_p, c_int, c_int]
    lib.sqlite3_bind_zeroblob.restype = c_int

    # Optional (3.8.11+)
    if hasattr(lib, "sqlite3_bind_zeroblob64"):
        lib.sqlite3_bind_zeroblob64.argtypes = [c_void_p, c_int, c_uint64]
        lib.sqlite3_bind_zeroblob64.restype = c_int

    lib.sqlite3_bind_parameter_count.argtypes = [c_void_p]
    lib.sqlite3_bind_parameter_count.restype = c_int

    lib.sqlite3_bind_parameter_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_parameter_name.restype = c_char_p

    lib.sqlite3_bind_parameter_index.argtypes = [c_void_p, c_char_p]
    lib.sqlite3_bind_parameter_index.restype = c_int

    # Columns (0-based column index)
    lib.sqlite3_column_count.argtypes = [c_void_p]
    lib.sqlite3_column_count.restype = c_int

    lib.sqlite3_column_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_name.restype = c_char_p

    lib.sqlite3_column_type.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_type.restype = c_int

    lib.sqlite3_column_int.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_int.restype = c_int

    lib.sqlite3_column_int64.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_int64.restype = c_int64

    lib.sqlite3_column_double.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_double.restype = c_double

    # Raw pointers: text may contain NULs, so length comes from column_bytes.
    lib.sqlite3_column_text.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_text.restype = c_void_p

    lib.sqlite3_column_blob.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_blob.restype = c_void_p

    lib.sqlite3_column_bytes.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_bytes.restype = c_int

    # Connection counters
    lib.sqlite3_changes.argtypes = [c_void_p]
    lib.sqlite3_changes.restype = c_int

    # Optional (3.37+)
    if hasattr(lib, "sqlite3_changes64"):
        lib.sqlite3_changes64.argtypes = [c_void_p]
        lib.sqlite3_changes64.restype = c_int64

    lib.sqlite3_last_insert_rowid.argtypes = [c_void_p]
    lib.sqlite3_last_insert_rowid.restype = c_int64

    lib.sqlite3_get_autocommit.argtypes = [c_void_p]
    lib.sqlite3_get_autocommit.restype = c_int

    # Incremental blob I/O
    lib.sqlite3_blob_open.argtypes = [c_void_p, c_char_p, c_char_p, c_char_p, c_int64, c_int, POINTER(c_void_p)]
    lib.sqlite3_blob_open.restype = c_int

    lib.sqlite3_blob_bytes.argtypes = [c_void_p]
    lib.sqlite3_blob_bytes.restype = c_int

    lib.sqlite3_blob_read.argtypes = [c_void_p, c_void_p, c_int, c_int]
    lib.sqlite3_blob_read.restype = c_int

    lib.sqlite3_blob_write.argtypes = [c_void_p, c_void_p, c_int, c_int]
    lib.sqlite3_blob_write.restype = c_int

    lib.sqlite3_blob_close.argtypes = [c_void_p]
    lib.sqlite3_blob_close.restype = c_int

    lib.sqlite3_libversion.argtypes = []
    lib.sqlite3_libversion.restype = c_char_p

    _lib = lib
    return _lib


def sqlite_version():
    """Version string of the linked SQLite library, e.g. ``"3.45.1"``."""
    return load_library().sqlite3_libversion().decode("ascii")


def errstr(code):
    """English description of a result code, independent of any connection."""
    msg = load_library().sqlite3_errstr(code)
    return msg.decode('utf-8', errors='replace') if msg else f"result code {code}"
