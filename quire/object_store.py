# object_store.py -- Content-addressable blob storage
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

"""Content-addressable storage of file contents.

Blobs are identified by the SHA-1 of ``b"blob <size>\\0" + content``, the
same identifier git gives them, and are kept as zlib-compressed loose
objects under ``objects/<first two hex digits>/<remaining digits>``.
"""

__all__ = [
    "DiskObjectStore",
    "blob_id",
    "hex_to_filename",
    "read_blob_from_path",
    "valid_hexsha",
]

import hashlib
import os
import stat
import zlib
from collections.abc import Iterator

from .errors import StorageFailure
from .file import GitFile, ensure_dir_exists

# Loose objects are never rewritten once present.
PACK_MODE = 0o444

HEXSHA_LENGTH = 40


def valid_hexsha(hex: bytes | str) -> bool:
    """Check whether a value looks like a hex-encoded SHA-1."""
    if isinstance(hex, bytes):
        try:
            hex = hex.decode("ascii")
        except UnicodeDecodeError:
            return False
    if len(hex) != HEXSHA_LENGTH:
        return False
    try:
        int(hex, 16)
    except ValueError:
        return False
    return hex == hex.lower()


def _blob_header(size: int) -> bytes:
    return b"blob " + str(size).encode("ascii") + b"\0"


def blob_id(data: bytes) -> str:
    """Compute the identifier a blob with the given contents would have."""
    sha = hashlib.sha1(_blob_header(len(data)))
    sha.update(data)
    return sha.hexdigest()


def hex_to_filename(path: str, hex: str) -> str:
    """Takes a hex sha and returns its filename relative to the given path."""
    return os.path.join(path, hex[:2], hex[2:])


def read_blob_from_path(path: str | os.PathLike[str]) -> bytes:
    """Read the content that represents a working tree file.

    Regular files contribute their bytes; symlinks contribute their target,
    without following it.

    Raises:
      OSError: if the path cannot be read, or is neither a file nor a symlink
    """
    st = os.lstat(path)
    if stat.S_ISLNK(st.st_mode):
        return os.fsencode(os.readlink(path))
    if not stat.S_ISREG(st.st_mode):
        raise IsADirectoryError(f"{os.fspath(path)} is not a regular file")
    with open(path, "rb") as f:
        return f.read()


class DiskObjectStore:
    """Blob store that keeps loose objects on disk."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        loose_compression_level: int = -1,
        fsync_object_files: bool = True,
    ) -> None:
        """Open an object store.

        Args:
          path: Path to the objects directory
          loose_compression_level: zlib compression level for new objects
          fsync_object_files: Whether to fsync objects before renaming
        """
        self.path = os.fspath(path)
        self.loose_compression_level = loose_compression_level
        self.fsync_object_files = fsync_object_files

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    @classmethod
    def init(cls, path: str | os.PathLike[str]) -> "DiskObjectStore":
        """Create the objects directory and return a store for it."""
        ensure_dir_exists(path)
        return cls(path)

    def _get_shafile_path(self, sha: str) -> str:
        return hex_to_filename(self.path, sha)

    def __contains__(self, sha: object) -> bool:
        if not isinstance(sha, str) or not valid_hexsha(sha):
            return False
        return os.path.exists(self._get_shafile_path(sha))

    def __iter__(self) -> Iterator[str]:
        try:
            prefixes = os.listdir(self.path)
        except FileNotFoundError:
            return
        for base in sorted(prefixes):
            if len(base) != 2:
                continue
            for rest in sorted(os.listdir(os.path.join(self.path, base))):
                if valid_hexsha(base + rest):
                    yield base + rest

    def add_blob(self, data: bytes) -> str:
        """Store a blob and return its identifier.

        Storing content that is already present is a no-op.

        Raises:
          StorageFailure: if the object could not be written
        """
        sha = blob_id(data)
        path = self._get_shafile_path(sha)
        if os.path.exists(path):
            return sha
        compressed = zlib.compress(
            _blob_header(len(data)) + data, self.loose_compression_level
        )
        try:
            ensure_dir_exists(os.path.dirname(path))
            # Concurrent writers of the same blob serialise on its lock.
            with GitFile(
                path,
                "wb",
                mask=PACK_MODE,
                fsync=self.fsync_object_files,
                timeout=None,
            ) as f:
                f.write(compressed)
        except OSError as exc:
            raise StorageFailure(f"unable to write object {sha}: {exc}") from exc
        return sha

    def add_path(self, path: str | os.PathLike[str]) -> str:
        """Hash a working tree file and store its contents.

        Returns: the blob identifier
        Raises:
          StorageFailure: if the file could not be read or stored
        """
        try:
            data = read_blob_from_path(path)
        except OSError as exc:
            raise StorageFailure(
                f"unable to read {os.fspath(path)}: {exc.strerror or exc}"
            ) from exc
        return self.add_blob(data)

    def get_raw(self, sha: str) -> bytes:
        """Return the uncompressed contents of a stored blob.

        Raises:
          KeyError: if the blob is not present
        """
        if sha not in self:
            raise KeyError(sha)
        with GitFile(self._get_shafile_path(sha), "rb") as f:
            raw = zlib.decompress(f.read())
        header, _, data = raw.partition(b"\0")
        if header != _blob_header(len(data))[:-1]:
            raise StorageFailure(f"object {sha} has an invalid header")
        return data
