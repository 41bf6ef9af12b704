import logging
import weakref

from .errors import MisuseError
from .native import SQLITE_OK

logger = logging.getLogger(__name__)


class Handle:
    """Sole owner of one foreign pointer.

    ``release()`` may run any number of times, from explicit ``close()``
    calls and from the garbage-collection finalizer alike: the pointer is
    nulled after the first successful release and later calls return
    ``SQLITE_OK`` without touching the engine.
    """

    __slots__ = ("ptr", "kind", "_release_fn")

    def __init__(self, ptr, release_fn, kind):
        self.ptr = ptr
        self.kind = kind
        self._release_fn = release_fn

    @property
    def released(self):
        return not self.ptr

    def get(self):
        if not self.ptr:
            raise MisuseError(f"Cannot operate on a released {self.kind} handle")
        return self.ptr

    def release(self):
        if not self.ptr:
            return SQLITE_OK
        rc = self._release_fn(self.ptr)
        # None: release function has no result code (e.g. nothing to report)
        if rc is None or rc == SQLITE_OK:
            self.ptr = None
            return SQLITE_OK
        return rc

    def release_from_finalizer(self):
        if not self.ptr:
            return
        logger.debug("Releasing leaked %s handle from finalizer", self.kind)
        self.release()


def attach_finalizer(owner, handle):
    """Release ``handle`` when ``owner`` is collected without an explicit close.

    The callback holds the handle only, never the owner, so registering it
    does not keep the owner alive.
    """
    return weakref.finalize(owner, handle.release_from_finalizer)
