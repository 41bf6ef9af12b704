"""Incremental I/O on a single blob cell.

A :class:`Blob` is opened on one (database, table, column, rowid) cell and
keeps a fixed size for its whole life: reads and writes never go past the
end and never grow the value. Use a :class:`~embedlite.values.ZeroBlob` to
reserve space first, then fill it through a read-write blob.
"""

import ctypes
import enum
import io
import os

from ._handles import Handle, attach_finalizer
from .errors import BlobOpenError, BlobRangeError, DatabaseError, MisuseError, error_from_connection
from .native import SQLITE_OK


class DatabaseName(str, enum.Enum):
    MAIN = "main"
    TEMP = "temp"


class BlobOpenFlags(enum.IntEnum):
    READ_ONLY = 0
    READ_WRITE = 1


def _closer_for(lib):
    def release(ptr):
        # The handle is closed unconditionally, even when an error is returned.
        lib.sqlite3_blob_close(ptr)

    return release


def open_blob(connection, database, table, column, rowid, flags=BlobOpenFlags.READ_ONLY):
    lib = connection._lib
    db = connection._db_ptr()
    flags = BlobOpenFlags(flags)
    db_name = getattr(database, "value", database)

    blob_ptr = ctypes.c_void_p()
    rc = lib.sqlite3_blob_open(
        db,
        db_name.encode('utf-8'),
        table.encode('utf-8'),
        column.encode('utf-8'),
        rowid,
        int(flags),
        ctypes.byref(blob_ptr),
    )
    if rc != SQLITE_OK:
        # On failure the engine leaves no handle behind.
        raise error_from_connection(db, BlobOpenError, code=rc)
    return Blob(connection, blob_ptr, flags)


class Blob:
    def __init__(self, connection, ptr, flags):
        self._connection = connection
        self._lib = connection._lib
        self._handle = Handle(ptr, _closer_for(self._lib), "blob")
        self._finalizer = attach_finalizer(self, self._handle)
        self.flags = flags
        connection._track(self)

    def __repr__(self):
        if self.closed:
            return "<Blob closed>"
        return f"<Blob size={self.size()} flags={self.flags.name}>"

    @property
    def closed(self):
        return self._handle.released

    def size(self):
        return self._lib.sqlite3_blob_bytes(self._handle.get())

    def _check_range(self, offset, length, size):
        if offset < 0 or length < 0:
            raise BlobRangeError(f"Negative offset {offset} or length {length}")
        if offset + length > size:
            raise BlobRangeError(
                f"offset {offset} + length {length} = {offset + length} exceed blob size {size}"
            )

    def read(self, offset, length):
        """Return ``length`` bytes starting at ``offset``."""
        ptr = self._handle.get()
        self._check_range(offset, length, self._lib.sqlite3_blob_bytes(ptr))
        if length == 0:
            return b""
        buf = ctypes.create_string_buffer(length)
        rc = self._lib.sqlite3_blob_read(ptr, buf, length, offset)
        if rc != SQLITE_OK:
            raise error_from_connection(self._connection._handle.ptr, DatabaseError, code=rc)
        return buf.raw

    def write(self, offset, data):
        """Overwrite ``len(data)`` bytes at ``offset``; the size never changes."""
        ptr = self._handle.get()
        data = bytes(data)
        self._check_range(offset, len(data), self._lib.sqlite3_blob_bytes(ptr))
        if not data:
            return
        rc = self._lib.sqlite3_blob_write(ptr, data, len(data), offset)
        if rc != SQLITE_OK:
            raise error_from_connection(self._connection._handle.ptr, DatabaseError, code=rc)

    def close(self):
        self._handle.release()
        self._finalizer.detach()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class BlobReader(io.RawIOBase):
    """Seekable binary stream over a :class:`Blob`.

    The reader takes over the blob: closing the reader closes the blob.
    ``read_at`` reads from an absolute offset without moving the cursor.
    """

    def __init__(self, blob):
        super().__init__()
        self._blob = blob
        self._offset = 0

    def _live_blob(self):
        if self._blob is None or self._blob.closed:
            raise MisuseError("Invalid blob handle")
        return self._blob

    def readable(self):
        return True

    def seekable(self):
        return True

    @property
    def size(self):
        return self._live_blob().size()

    @property
    def eof(self):
        return self._offset >= self.size

    def readinto(self, b):
        blob = self._live_blob()
        blob_size = blob.size()
        if self._offset >= blob_size:
            return 0

        view = memoryview(b).cast("B")
        to_read = min(len(view), blob_size - self._offset)
        if to_read == 0:
            return 0
        view[:to_read] = blob.read(self._offset, to_read)
        self._offset += to_read
        return to_read

    def read_at(self, offset, length=-1):
        """Read up to ``length`` bytes (all remaining if negative) at ``offset``."""
        blob = self._live_blob()
        blob_size = blob.size()
        if offset < 0:
            raise BlobRangeError(f"Negative offset {offset}")
        if offset >= blob_size:
            return b""
        if length < 0 or offset + length > blob_size:
            length = blob_size - offset
        return blob.read(offset, length)

    def seek(self, offset, whence=os.SEEK_SET):
        blob_size = self._live_blob().size()

        if whence == os.SEEK_SET:
            new_offset = offset
        elif whence == os.SEEK_CUR:
            new_offset = self._offset + offset
        elif whence == os.SEEK_END:
            new_offset = blob_size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")

        if new_offset < 0 or new_offset > blob_size:
            raise BlobRangeError(f"Seek out of range: {new_offset}")

        self._offset = new_offset
        return self._offset

    def tell(self):
        self._live_blob()
        return self._offset

    def close(self):
        if self._blob is not None:
            self._blob.close()
            self._blob = None
        super().close()
