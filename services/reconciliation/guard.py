"""
Single-flight run guards.

A guard is an atomic test-and-set flag: ``try_acquire()`` either takes it and
returns True, or returns False immediately. Nothing ever waits on a guard; a
pass that cannot acquire it is skipped, not queued.
"""

import os
import socket
import threading
from contextlib import contextmanager
from uuid import uuid4

from django.core.cache import cache

from services.core.cache import CacheManager
from services.core.constants import DEFAULT_RUN_GUARD_TTL
from services.core.exceptions import RunAlreadyInProgressError, RunGuardUnavailableError
from services.core.logging import get_logger

logger = get_logger(__name__)


class RunGuard:
    """
    In-process guard.

    Backed by a non-blocking ``threading.Lock`` so test-and-set stays atomic
    whether triggers arrive on the event loop or on Celery pool threads. The
    flag lives in memory only and cannot survive a process restart.
    """

    def __init__(self, name: str = "reconciliation"):
        self.name = name
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self):
        """
        Hold the guard for the duration of the block.

        Raises:
            RunAlreadyInProgressError: If the guard is already held
        """
        if not self.try_acquire():
            raise RunAlreadyInProgressError(self.name)
        try:
            yield self
        finally:
            self.release()


class CacheRunGuard(RunGuard):
    """
    Guard shared by every process using the same Django cache.

    ``cache.add`` only writes when the key is absent, which makes it the
    test-and-set. The stored value is an owner token ``host:pid:nonce`` so
    that only the acquirer releases the key, and a worker restarting on the
    same host can tell that a key left by a dead process is stale. The key
    also expires after ``ttl`` seconds.

    Cache backend failures raise ``RunGuardUnavailableError``.
    """

    def __init__(self, name: str = "reconciliation", ttl: int = DEFAULT_RUN_GUARD_TTL):
        super().__init__(name)
        self.ttl = ttl
        self.key = CacheManager.run_guard(name)
        self._token: str | None = None

    @staticmethod
    def new_token() -> str:
        return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex}"

    def _acquire(self) -> str | None:
        token = self.new_token()
        try:
            acquired = cache.add(self.key, token, timeout=self.ttl)
        except Exception as e:
            raise RunGuardUnavailableError(self.name, str(e)) from e
        if not acquired:
            logger.debug(f"Run guard {self.key} already held")
            return None
        return token

    def _release(self, token: str) -> None:
        """Delete the key only while it still carries ``token``."""
        try:
            if cache.get(self.key) == token:
                cache.delete(self.key)
            else:
                logger.warning(
                    f"Run guard {self.key} expired before release; "
                    f"leaving the current holder in place"
                )
        except Exception as e:
            logger.warning(f"Could not release run guard {self.key}, it expires in {self.ttl}s: {e}")

    def try_acquire(self) -> bool:
        token = self._acquire()
        if token is None:
            return False
        self._token = token
        return True

    def release(self) -> None:
        token, self._token = self._token, None
        if token is not None:
            self._release(token)

    @contextmanager
    def hold(self):
        """Like ``RunGuard.hold`` but releases with the token taken on entry."""
        token = self._acquire()
        if token is None:
            raise RunAlreadyInProgressError(self.name)
        try:
            yield self
        finally:
            self._release(token)

    @property
    def is_held(self) -> bool:
        try:
            return cache.get(self.key) is not None
        except Exception as e:
            raise RunGuardUnavailableError(self.name, str(e)) from e

    def clear_stale(self) -> bool:
        """
        Delete the key if its owner was a process on this host that no
        longer exists. Called when a worker starts.

        Returns:
            True if a stale key was removed
        """
        owner = cache.get(self.key)
        if not isinstance(owner, str):
            return False
        parts = owner.rsplit(":", 2)
        if len(parts) != 3 or not parts[1].isdigit():
            return False

        host, pid = parts[0], int(parts[1])
        if host != socket.gethostname() or process_alive(pid):
            return False

        if cache.get(self.key) == owner:
            cache.delete(self.key)
            logger.warning(f"Cleared stale run guard {self.key} left by dead process {pid}")
            return True
        return False


def process_alive(pid: int) -> bool:
    """Whether a process with this pid exists on this host."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
