"""
Per-project advisory locking.

Mutating operations (profile selection changes, slot create/revoke/compact,
image builds) hold an exclusive flock on <data root>/.lock so concurrent
slotbox invocations against the same project run one after another.
"""

import fcntl
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from slotbox.utils.errors import LockError
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

LOCK_FILENAME = ".lock"


@contextmanager
def project_lock(data_root: Path) -> Iterator[None]:
    """
    Hold the project's exclusive lock for the duration of the block.

    Blocks until any other holder releases it. The lock is released on every
    exit path, including exceptions and KeyboardInterrupt. Not re-entrant:
    callers must not nest two project_lock blocks for the same data root.

    Args:
        data_root: Project data root directory

    Raises:
        LockError: If the lock file cannot be opened or locked
    """
    lock_path = data_root / LOCK_FILENAME
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_handle = lock_path.open("a+", encoding="utf-8")
    except OSError as e:
        raise LockError(
            message=f"Failed to open project lock at {lock_path}: {e}",
            suggestion=f"Check permissions on {data_root}",
        ) from e

    try:
        try:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            raise LockError(
                message=f"Failed to acquire project lock at {lock_path}: {e}",
                suggestion="Another slotbox command may be stuck; check running processes",
            ) from e
        logger.debug("Acquired project lock %s", lock_path)
        yield
    finally:
        try:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)
        except OSError:
            logger.debug("Failed to release project lock %s", lock_path)
        lock_handle.close()
