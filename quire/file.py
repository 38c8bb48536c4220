# file.py -- Safe, locked access to repository files
# Copyright (C) 2026 The quire authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# quire is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Safe, locked access to repository files.

Writes follow the git lock file protocol: all data for ``foo`` goes to
``foo.lock``, which is created exclusively and therefore doubles as a lock
on ``foo``. Closing the file renames ``foo.lock`` over ``foo`` in a single
step, so readers see either the old or the new contents and never a partial
file. Aborting removes ``foo.lock`` and leaves ``foo`` untouched.
"""

__all__ = [
    "LOCK_RETRY_INTERVAL",
    "FileLocked",
    "GitFile",
    "ensure_dir_exists",
]

import os
import time
import warnings
from types import TracebackType
from typing import IO, Literal, overload

from .errors import LockFailure
from .log_utils import getLogger

logger = getLogger(__name__)

# Seconds between attempts to take a held lock.
LOCK_RETRY_INTERVAL = 0.05


def ensure_dir_exists(dirname: str | os.PathLike[str]) -> None:
    """Ensure a directory exists, creating if necessary."""
    try:
        os.makedirs(dirname)
    except FileExistsError:
        pass


class FileLocked(LockFailure):
    """File is already locked."""

    def __init__(self, filename: str | os.PathLike[str], lockfilename: str) -> None:
        """Initialize FileLocked.

        Args:
          filename: Name of the file that is locked
          lockfilename: Name of the lock file
        """
        self.filename = filename
        self.lockfilename = lockfilename
        super().__init__(filename, lockfilename)

    def __str__(self) -> str:
        return f"unable to lock {self.filename}: {self.lockfilename} exists"


@overload
def GitFile(
    filename: str | os.PathLike[str],
    mode: Literal["wb"],
    bufsize: int = -1,
    mask: int = 0o644,
    fsync: bool = True,
    timeout: float | None = 0,
) -> "_GitFile": ...


@overload
def GitFile(
    filename: str | os.PathLike[str],
    mode: Literal["rb"] = "rb",
    bufsize: int = -1,
    mask: int = 0o644,
    fsync: bool = True,
    timeout: float | None = 0,
) -> IO[bytes]: ...


def GitFile(
    filename: str | os.PathLike[str],
    mode: str = "rb",
    bufsize: int = -1,
    mask: int = 0o644,
    fsync: bool = True,
    timeout: float | None = 0,
) -> "IO[bytes] | _GitFile":
    """Create a file object that obeys the git file locking protocol.

    Returns: a builtin file object or a _GitFile object

    Only read-only and write-only (binary) modes are supported; r+, w+, and a
    are not.

    Args:
      filename: Path to the file
      mode: File mode (only 'rb' and 'wb' are supported)
      bufsize: Buffer size for file operations
      mask: File mask for created files
      fsync: Whether to call fsync() before renaming into place
      timeout: How long to wait for a held lock, in seconds. 0 fails at
        once, None waits indefinitely.
    """
    if "a" in mode:
        raise OSError("append mode not supported for locked files")
    if "+" in mode:
        raise OSError("read/write mode not supported for locked files")
    if "b" not in mode:
        raise OSError("text mode not supported for locked files")
    if "w" in mode:
        return _GitFile(filename, mode, bufsize, mask, fsync, timeout)
    else:
        return open(filename, mode, bufsize)


class _GitFile:
    """File that follows the git locking protocol for writes.

    Note: You *must* call close() or abort() on a _GitFile for the lock to be
        released. Typically this will happen in a finally block, or by using
        the file as a context manager.
    """

    def __init__(
        self,
        filename: str | os.PathLike[str],
        mode: str,
        bufsize: int,
        mask: int,
        fsync: bool = True,
        timeout: float | None = 0,
    ) -> None:
        self._filename = os.fspath(filename)
        self._lockfilename = self._filename + ".lock"
        self._fsync = fsync
        fd = self._acquire(mask, timeout)
        self._file = os.fdopen(fd, mode, bufsize)
        self._closed = False

    def _acquire(self, mask: int, timeout: float | None) -> int:
        deadline = None if timeout is None else time.monotonic() + timeout
        waiting = False
        while True:
            try:
                return os.open(
                    self._lockfilename,
                    os.O_RDWR | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0),
                    mask,
                )
            except FileExistsError as exc:
                if deadline is not None and time.monotonic() >= deadline:
                    raise FileLocked(self._filename, self._lockfilename) from exc
            if not waiting:
                logger.info("Waiting for lock on %s", self._filename)
                waiting = True
            time.sleep(LOCK_RETRY_INTERVAL)

    @property
    def lockfilename(self) -> str:
        return self._lockfilename

    def abort(self) -> None:
        """Close and discard the lockfile without overwriting the target.

        If the file is already closed, this is a no-op.
        """
        if self._closed:
            return
        self._file.close()
        try:
            os.remove(self._lockfilename)
        except FileNotFoundError:
            # The file may have been removed already, which is ok.
            pass
        self._closed = True

    def close(self) -> None:
        """Close this file, saving the lockfile over the original.

        Raises:
          OSError: if the original file could not be overwritten. The lock
            file is removed in that case and the original is left as it was.
        """
        if self._closed:
            return
        self._file.flush()
        if self._fsync:
            os.fsync(self._file.fileno())
        self._file.close()
        try:
            os.replace(self._lockfilename, self._filename)
        except BaseException:
            self.abort()
            raise
        # The lock name may belong to the next writer once the rename is done.
        self._closed = True

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            warnings.warn(f"unclosed {self!r}", ResourceWarning, stacklevel=2)
            self.abort()

    def __enter__(self) -> "_GitFile":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()

    def __fspath__(self) -> str:
        return self._filename

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._filename!r})"

    @property
    def closed(self) -> bool:
        """Return whether the file is closed."""
        return self._closed

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def writelines(self, lines: list[bytes]) -> None:
        self._file.writelines(lines)

    def flush(self) -> None:
        self._file.flush()

    def fileno(self) -> int:
        return self._file.fileno()
