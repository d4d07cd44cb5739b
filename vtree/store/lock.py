"""
vtree Store: Tree Locks.

A tree is held by at most one session at a time. The holder is recorded in
``<store>/locks/<tree>.lock``, created with O_EXCL so two processes cannot
both succeed. The file names the holder's pid, host and acquisition time,
which makes an abandoned lock recoverable: a lock whose process is gone
(same host), or which is older than the stale limit, is broken on the next
acquisition attempt.

Example:
    >>> with TreeLock(lock_dir, "Project_A"):
    ...     tree = store.load("Project_A")
    ...     ...
    ...     store.save(tree)
"""

import os
import socket
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from vtree.core.constants import Limits, StoreLayout
from vtree.core.errors import LockHeldError, StoreIOError
from vtree.infrastructure.logger import Logger, get_logger

# Grace period for a lock file whose content cannot be read yet
UNREADABLE_GRACE_SECONDS = 5.0


def pid_alive(pid: int) -> bool:
    """Check whether a process with this pid exists on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    except OSError:
        return False
    return True


class TreeLock:
    """
    Exclusive, crash-recoverable lock on one tree.

    Attributes:
        path: Lock file path
        stale_seconds: Age after which any lock is considered abandoned
        held: True while this instance holds the lock
    """

    def __init__(
        self,
        lock_dir: Union[str, Path],
        tree_name: str,
        stale_seconds: float = Limits.DEFAULT_LOCK_STALE_SECONDS,
        logger: Optional[Logger] = None,
    ):
        self.lock_dir = Path(lock_dir)
        self.tree_name = tree_name
        self.path = self.lock_dir / f"{tree_name}{StoreLayout.LOCK_SUFFIX}"
        self.stale_seconds = stale_seconds
        self.logger = logger or get_logger("vtree.lock")
        self.token = uuid.uuid4().hex
        self.held = False

    def _read_holder(self) -> Optional[Dict[str, Any]]:
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, yaml.YAMLError):
            return None
        return data if isinstance(data, dict) else None

    def _is_stale(self, holder: Optional[Dict[str, Any]]) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True

        if holder is None:
            return age > UNREADABLE_GRACE_SECONDS
        if age > self.stale_seconds:
            return True
        if holder.get("host") == socket.gethostname():
            pid = holder.get("pid")
            return isinstance(pid, int) and not pid_alive(pid)
        return False

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise StoreIOError(f"Cannot create lock {self.path}: {e}")

        record = {
            "tree": self.tree_name,
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "acquired": time.time(),
            "token": self.token,
        }
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(record, f, sort_keys=False)
        return True

    def acquire(self) -> "TreeLock":
        """Take the lock.

        Raises:
            LockHeldError: If a live holder has the tree
            StoreIOError: If the lock file cannot be created
        """
        if self.held:
            return self

        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Cannot create lock directory {self.lock_dir}: {e}")

        for _ in range(2):
            if self._try_create():
                self.held = True
                self.logger.debug("Lock acquired", tree=self.tree_name, path=str(self.path))
                return self

            holder = self._read_holder()
            if not self._is_stale(holder):
                holder = holder or {}
                raise LockHeldError(
                    f"Tree {self.tree_name} is in use by pid {holder.get('pid', '?')} "
                    f"on {holder.get('host', '?')} (lock file {self.path})"
                )

            self.logger.warning(
                "Breaking stale lock",
                tree=self.tree_name,
                pid=(holder or {}).get("pid"),
                host=(holder or {}).get("host"),
            )
            self.path.unlink(missing_ok=True)

        raise LockHeldError(f"Tree {self.tree_name} is being locked by another process")

    def release(self) -> None:
        """Give the lock up; a lock that was broken and re-taken is left alone."""
        if not self.held:
            return
        self.held = False

        holder = self._read_holder()
        if holder and holder.get("token") != self.token:
            self.logger.warning("Lock was taken over, not removing", tree=self.tree_name)
            return
        self.path.unlink(missing_ok=True)
        self.logger.debug("Lock released", tree=self.tree_name)

    def __enter__(self) -> "TreeLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
