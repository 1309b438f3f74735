"""Single-instance run lock.

Prevents two scan passes from running at the same time on one host (for
example after a reload of the process manager). The lock is a file created
with O_EXCL. Its first line is the creation time in epoch milliseconds, the
second an owner token ``<pid>:<nonce>``::

    1708387878000
    4242:9f0c2d0e6b1a4c53a1f7e2b8d4c6a901

Only the owner removes its own lock. A lock left behind by a dead process
can be reclaimed once it is older than ``max_age``.
"""

import logging
import os
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

# Tokens of locks held by RunLock instances in this process
_held_tokens: set[str] = set()


def _owner_alive(token: Optional[str]) -> bool:
    """Whether the process named in a lock token still runs.

    A token without a pid is treated as dead. Our own pid only counts when
    the token belongs to a lock this process still holds, since a restarted
    container often reuses the pid of the crashed run.
    """
    if not token:
        return False
    pid_text, _, _ = token.partition(":")
    try:
        pid = int(pid_text)
    except ValueError:
        return False
    if pid <= 0:
        return False
    if pid == os.getpid():
        return token in _held_tokens

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists, owned by another user
    except OSError:
        return False
    return True


class RunLock:
    """Non-blocking, file based mutual exclusion.

    Example:
        lock = RunLock("./wallet_cron.lock", max_age=1800)
        if not lock.acquire():
            return  # another pass is running
        try:
            ...
            lock.refresh()
        finally:
            lock.release()
    """

    def __init__(
        self,
        path: Union[str, Path],
        max_age: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the lock.

        Args:
            path: Lock file location
            max_age: Seconds after which a lock whose owner is gone is
                treated as left behind by a crashed run and reclaimed
                (None = never)
            clock: Time source returning epoch seconds
        """
        self.path = Path(path).resolve()
        self.max_age = max_age
        self._clock = clock
        self._token: Optional[str] = None

    @property
    def token(self) -> Optional[str]:
        """Owner token while this instance holds the lock."""
        return self._token

    def acquire(self) -> bool:
        """Try to take the lock without waiting.

        Returns:
            True if this instance now holds the lock
        """
        if self._try_create():
            return True

        if self.max_age is None:
            return False

        observed = self._read()
        if observed is None:
            # Released in the meantime
            return self._try_create()

        age = self._age_of(observed)
        if age is None or age <= self.max_age:
            return False

        owner = self._owner_of(observed)
        if _owner_alive(owner):
            logger.warning(
                f"Run lock {self.path} is {age:.0f}s old but its owner ({owner}) is alive"
            )
            return False

        logger.warning(
            f"Reclaiming stale lock {self.path} (age {age:.0f}s > {self.max_age:.0f}s)"
        )
        if not self._reclaim(observed):
            return False
        return self._try_create()

    def release(self) -> None:
        """Remove the lock file if this instance owns it."""
        if self._token is None:
            return

        token, self._token = self._token, None
        _held_tokens.discard(token)

        content = self._read()
        if content is None:
            return
        if self._owner_of(content) != token:
            logger.warning(f"Run lock {self.path} was taken over by another pass - leaving it")
            return

        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def clear(self) -> None:
        """Remove the lock file whoever owns it (manual recovery)."""
        content = self._read()
        if content is not None:
            owner = self._owner_of(content)
            if owner:
                _held_tokens.discard(owner)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def refresh(self) -> bool:
        """Rewrite the timestamp of a lock this instance holds.

        Long passes call this between units of work so the lock never looks
        stale while its owner is busy.

        Returns:
            True if the lock is still ours and was refreshed
        """
        if self._token is None:
            return False
        content = self._read()
        if content is None or self._owner_of(content) != self._token:
            return False

        tmp_path = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_text(self._marker(), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Could not refresh run lock {self.path}: {e}")
            tmp_path.unlink(missing_ok=True)
            return False
        return True

    def is_locked(self) -> bool:
        return self.path.exists()

    def age(self) -> Optional[float]:
        """Seconds since the lock was created, or None if there is no lock.

        Uses the timestamp stored in the file, falling back to the file's
        mtime when the content is unreadable.
        """
        content = self._read()
        if content is None:
            return None
        return self._age_of(content)

    def _age_of(self, content: str) -> Optional[float]:
        first_line = content.strip().splitlines()[0] if content.strip() else ""
        try:
            created = int(first_line) / 1000
        except ValueError:
            try:
                created = self.path.stat().st_mtime
            except FileNotFoundError:
                return None
        return max(self._clock() - created, 0.0)

    @staticmethod
    def _owner_of(content: str) -> Optional[str]:
        lines = content.strip().splitlines()
        return lines[1].strip() if len(lines) > 1 else None

    def _read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError):
            return ""

    def _reclaim(self, observed: str) -> bool:
        """Move the stale lock aside, making sure it is the one we judged.

        Renaming is atomic, so of several reclaimers only one gets the file.
        If the file changed between reading and renaming, it belongs to a
        new owner and is put back.
        """
        aside = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.stale")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            return True  # Someone else removed it; race for the create

        try:
            moved = aside.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            moved = ""

        if moved != observed:
            logger.warning(f"Run lock {self.path} changed owner while reclaiming - restoring it")
            try:
                os.link(aside, self.path)
            except FileExistsError:
                pass
            aside.unlink(missing_ok=True)
            return False

        aside.unlink(missing_ok=True)
        return True

    def _marker(self) -> str:
        return f"{int(self._clock() * 1000)}\n{self._token}"

    def _try_create(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False

        self._token = f"{os.getpid()}:{uuid.uuid4().hex}"
        _held_tokens.add(self._token)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self._marker())
        logger.debug(f"Run lock acquired: {self.path}")
        return True
