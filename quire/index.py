# index.py -- Reader/writer and transactions for the staging index
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

"""Reader, writer and transactions for the staging index.

The index is a single JSON object mapping canonical repository-relative
paths to the last staged state of each file::

    {
      "docs/readme.txt": {"h": "<sha>", "m": 1700000000, "s": 120},
      "setup.cfg": "<sha>"
    }

Object values carry the content hash (``h``) together with the modification
time in Unix seconds (``m``) and the size in bytes (``s``); zero metadata is
omitted. Bare string values are the older format, which recorded only the
hash. They are read as entries with unknown (zero) metadata, so the next
stage re-hashes those files, and are written back in the object form.

All changes go through a transaction: the index is locked, re-read, handed
to the caller for mutation and written back atomically, or left untouched
if the mutation raises.
"""

__all__ = [
    "DEFAULT_INDEX_MODE",
    "IndexEntry",
    "IndexStore",
    "canonicalize_path",
    "entries_to_hashes",
    "get_path_element_validator",
    "is_canonical_path",
    "locked_index",
    "parse_index_dict",
    "read_index_dict",
    "read_index_file",
    "reconcile_hashes",
    "serialize_index_dict",
    "validate_path",
    "validate_path_element_default",
    "validate_path_element_hfs",
    "validate_path_element_ntfs",
    "write_index_dict",
]

import json
import os
import posixpath
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any, TypeVar

from .errors import IndexCorruption, LockFailure, WriteFailure
from .file import GitFile, ensure_dir_exists
from .log_utils import getLogger

if TYPE_CHECKING:
    from .config import Config
    from .file import _GitFile

logger = getLogger(__name__)

T = TypeVar("T")

DEFAULT_INDEX_MODE = 0o644

# Short keys keep the on-disk index compact.
_HASH_KEY = "h"
_MTIME_KEY = "m"
_SIZE_KEY = "s"


@dataclass(frozen=True)
class IndexEntry:
    """Last staged state of one file.

    A zero mtime and size mean the metadata is unknown and the file has to
    be re-hashed before its entry can be trusted.
    """

    sha: str
    mtime: int = 0
    size: int = 0

    @classmethod
    def from_stat(cls, st: os.stat_result, sha: str) -> "IndexEntry":
        """Create an entry for content ``sha`` read from a file with stat ``st``."""
        return cls(sha=sha, mtime=int(st.st_mtime), size=st.st_size)

    @property
    def has_metadata(self) -> bool:
        return self.mtime != 0 or self.size != 0

    def matches_stat(self, st: os.stat_result) -> bool:
        """Check whether a file's size and modification time equal this entry's."""
        return self.size == st.st_size and self.mtime == int(st.st_mtime)


def canonicalize_path(path: str) -> str:
    """Normalize a relative path to the form used for index keys.

    Separators become ``/``; ``.`` segments and redundant separators are
    removed. ``..`` segments are collapsed where possible, so a result that
    still starts with ``..`` lies outside the root.
    """
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    return posixpath.normpath(path)


INVALID_DOTNAMES = (".quire", ".", "..", "")


def is_canonical_path(path: str) -> bool:
    """Check whether a string is usable as an index key."""
    if not isinstance(path, str) or not path or path.startswith("/"):
        return False
    if posixpath.normpath(path) != path:
        return False
    return path.split("/")[0] not in INVALID_DOTNAMES


def _normalize_path_element_default(element: str) -> str:
    return element.lower()


def _normalize_path_element_ntfs(element: str) -> str:
    # NTFS ignores trailing dots and spaces.
    return element.rstrip(". ").lower()


# Code points HFS+ ignores when comparing names (from git's utf8.c).
HFS_IGNORABLE_CHARS = {
    0x200C,  # ZERO WIDTH NON-JOINER
    0x200D,  # ZERO WIDTH JOINER
    0x200E,  # LEFT-TO-RIGHT MARK
    0x200F,  # RIGHT-TO-LEFT MARK
    0x202A,  # LEFT-TO-RIGHT EMBEDDING
    0x202B,  # RIGHT-TO-LEFT EMBEDDING
    0x202C,  # POP DIRECTIONAL FORMATTING
    0x202D,  # LEFT-TO-RIGHT OVERRIDE
    0x202E,  # RIGHT-TO-LEFT OVERRIDE
    0x206A,  # INHIBIT SYMMETRIC SWAPPING
    0x206B,  # ACTIVATE SYMMETRIC SWAPPING
    0x206C,  # INHIBIT ARABIC FORM SHAPING
    0x206D,  # ACTIVATE ARABIC FORM SHAPING
    0x206E,  # NATIONAL DIGIT SHAPES
    0x206F,  # NOMINAL DIGIT SHAPES
    0xFEFF,  # ZERO WIDTH NO-BREAK SPACE
}


def _normalize_path_element_hfs(element: str) -> str:
    import unicodedata

    filtered = "".join(c for c in element if ord(c) not in HFS_IGNORABLE_CHARS)
    return unicodedata.normalize("NFD", filtered).lower()


def validate_path_element_default(element: str) -> bool:
    return _normalize_path_element_default(element) not in INVALID_DOTNAMES


def validate_path_element_ntfs(element: str) -> bool:
    normalized = _normalize_path_element_ntfs(element)
    if normalized in INVALID_DOTNAMES:
        return False
    # 8.3 short name of the control directory.
    if normalized == "quire~1":
        return False
    return True


def validate_path_element_hfs(element: str) -> bool:
    try:
        normalized = _normalize_path_element_hfs(element)
    except UnicodeError:
        return False
    if normalized in INVALID_DOTNAMES:
        return False
    if normalized == "quire~1":
        return False
    return True


def get_path_element_validator(config: "Config") -> Callable[[str], bool]:
    """Pick the path element validator for the configured filesystem rules."""
    import sys

    if config.get_boolean("core", "protectNTFS", os.name == "nt"):
        return validate_path_element_ntfs
    elif config.get_boolean("core", "protectHFS", sys.platform == "darwin"):
        return validate_path_element_hfs
    else:
        return validate_path_element_default


def validate_path(
    path: str,
    element_validator: Callable[[str], bool] = validate_path_element_default,
) -> bool:
    """Check that a canonical relative path is safe to record in the index.

    Rejects absolute paths, paths that climb out of the root and any path
    that names the control directory.
    """
    if not path or path.startswith("/"):
        return False
    return all(element_validator(p) for p in path.split("/"))


def _decode_metadata(path: str, value: dict[str, Any], key: str, name: str) -> int:
    field = value.get(key)
    if field is None:
        return 0
    # bool is an int subclass, but never valid here.
    if isinstance(field, bool) or not isinstance(field, int):
        raise IndexCorruption(f"failed to decode entry: invalid {name} {field!r}", path)
    return field


def _decode_entry(path: str, value: dict[str, Any]) -> IndexEntry:
    sha = value.get(_HASH_KEY)
    if not isinstance(sha, str):
        raise IndexCorruption(
            f"failed to decode entry: invalid content hash {sha!r}", path
        )
    size = _decode_metadata(path, value, _SIZE_KEY, "size")
    if size < 0:
        raise IndexCorruption(f"failed to decode entry: negative size {size}", path)
    return IndexEntry(
        sha=sha, mtime=_decode_metadata(path, value, _MTIME_KEY, "mtime"), size=size
    )


def parse_index_dict(data: bytes) -> dict[str, IndexEntry]:
    """Parse the contents of an index file.

    Raises:
      IndexCorruption: if the document is malformed, or an entry has a known
        shape but cannot be decoded
    """
    if not data.strip():
        return {}
    try:
        raw = json.loads(data)
    except (ValueError, RecursionError) as exc:
        raise IndexCorruption(f"index file corruption: {exc}") from exc
    if not isinstance(raw, dict):
        raise IndexCorruption(
            f"index file corruption: expected an object, got {type(raw).__name__}"
        )

    entries: dict[str, IndexEntry] = {}
    for path, value in raw.items():
        if not is_canonical_path(path):
            logger.warning("Invalid path %r in index, skipping", path)
            continue
        if isinstance(value, str):
            # Older format: just the hash.
            entries[path] = IndexEntry(sha=value)
        elif isinstance(value, dict):
            entries[path] = _decode_entry(path, value)
        else:
            logger.warning("Unknown index format for %s, skipping", path)
    return entries


def read_index_dict(f: IO[bytes]) -> dict[str, IndexEntry]:
    """Read an index from a file-like object."""
    return parse_index_dict(f.read())


def read_index_file(filename: str | os.PathLike[str]) -> dict[str, IndexEntry]:
    """Read an index file; a missing file is an empty index."""
    try:
        f = GitFile(filename, "rb")
    except FileNotFoundError:
        return {}
    with f:
        return read_index_dict(f)


def _encode_entry(entry: IndexEntry) -> dict[str, Any]:
    ret: dict[str, Any] = {_HASH_KEY: entry.sha}
    if entry.mtime:
        ret[_MTIME_KEY] = entry.mtime
    if entry.size:
        ret[_SIZE_KEY] = entry.size
    return ret


def serialize_index_dict(entries: Mapping[str, IndexEntry]) -> bytes:
    """Serialize an index.

    The output depends only on the mapping's contents: keys are sorted and
    indentation is fixed.

    Raises:
      ValueError: if a key is not a canonical path
      TypeError: if a value is not an IndexEntry
    """
    encoded = {}
    for path, entry in entries.items():
        if not is_canonical_path(path):
            raise ValueError(f"invalid index path {path!r}")
        if not isinstance(entry, IndexEntry):
            raise TypeError(f"expected IndexEntry for {path!r}, got {entry!r}")
        encoded[path] = _encode_entry(entry)
    return (json.dumps(encoded, sort_keys=True, indent=2) + "\n").encode("ascii")


def write_index_dict(f: IO[bytes], entries: Mapping[str, IndexEntry]) -> None:
    """Write an index to a file-like object."""
    f.write(serialize_index_dict(entries))


def entries_to_hashes(entries: Mapping[str, IndexEntry]) -> dict[str, str]:
    """Project index entries onto their content hashes."""
    return {path: entry.sha for path, entry in entries.items()}


def reconcile_hashes(entries: dict[str, IndexEntry], hashes: Mapping[str, str]) -> None:
    """Apply a path -> hash mapping back onto index entries.

    Paths missing from ``hashes`` are removed. Paths whose hash is new or
    changed get a fresh entry with unknown metadata, since nothing about the
    file on disk is known for them; unchanged paths keep their entry.
    """
    removed = [path for path in entries if path not in hashes]
    for path in removed:
        del entries[path]

    for path, sha in hashes.items():
        existing = entries.get(path)
        if existing is not None and existing.sha == sha:
            continue
        if not is_canonical_path(path):
            raise ValueError(f"invalid index path {path!r}")
        if not isinstance(sha, str):
            raise TypeError(f"expected a hash string for {path!r}, got {sha!r}")
        entries[path] = IndexEntry(sha=sha)


class locked_index:
    """Lock the index while making modifications.

    Works as a context manager yielding the current entries as a mutable
    dict. When the block finishes normally the dict is written back
    atomically; when it raises, nothing is written and the exception
    propagates. The lock is released either way.
    """

    _file: "_GitFile"

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        timeout: float | None = None,
        mask: int = DEFAULT_INDEX_MODE,
        read: bool = True,
    ) -> None:
        self._path = os.fspath(path)
        self._timeout = timeout
        self._mask = mask
        self._read = read

    def __enter__(self) -> dict[str, IndexEntry]:
        ensure_dir_exists(os.path.dirname(self._path) or ".")
        try:
            self._file = GitFile(
                self._path, "wb", mask=self._mask, timeout=self._timeout
            )
        except OSError as exc:
            raise LockFailure(f"unable to lock {self._path}: {exc}") from exc
        try:
            self._entries = read_index_file(self._path) if self._read else {}
        except BaseException:
            self._file.abort()
            raise
        return self._entries

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: types.TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self._file.abort()
            return
        try:
            data = serialize_index_dict(self._entries)
            self._file.write(data)
            self._file.close()
        except OSError as exc:
            self._file.abort()
            raise WriteFailure(f"unable to write {self._path}: {exc}") from exc
        except BaseException:
            self._file.abort()
            raise


class IndexStore:
    """The on-disk staging index of a repository.

    Nothing is cached between calls: every read and every transaction sees
    the latest committed state of the file.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        lock_timeout: float | None = None,
        file_mode: int = DEFAULT_INDEX_MODE,
    ) -> None:
        """Create a store for the index file at ``path``.

        Args:
          path: Path to the index file; it need not exist yet
          lock_timeout: Seconds to wait for the lock; None waits indefinitely
          file_mode: Permissions for a newly written index
        """
        self._path = os.fspath(path)
        self.lock_timeout = lock_timeout
        self.file_mode = file_mode

    @property
    def path(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._path!r})"

    def read(self) -> dict[str, IndexEntry]:
        """Read the current entries without locking."""
        return read_index_file(self._path)

    def read_hashes(self) -> dict[str, str]:
        """Read the current path -> hash mapping without locking."""
        return entries_to_hashes(self.read())

    def locked(self, read: bool = True) -> locked_index:
        """Open a transaction as a context manager."""
        return locked_index(
            self._path, timeout=self.lock_timeout, mask=self.file_mode, read=read
        )

    def update(self, mutate: Callable[[dict[str, IndexEntry]], T]) -> T:
        """Run ``mutate`` on the current entries inside a transaction.

        Returns: whatever ``mutate`` returns
        """
        with self.locked() as entries:
            return mutate(entries)

    def update_hashes(self, mutate: Callable[[dict[str, str]], T]) -> T:
        """Run ``mutate`` on a path -> hash view inside a transaction.

        For callers that only deal in hashes; see reconcile_hashes() for
        how the view is applied back.
        """

        def apply(entries: dict[str, IndexEntry]) -> T:
            hashes = entries_to_hashes(entries)
            ret = mutate(hashes)
            reconcile_hashes(entries, hashes)
            return ret

        return self.update(apply)

    def write_hashes(self, hashes: Mapping[str, str]) -> None:
        """Replace the whole index with ``hashes``, discarding all metadata.

        Used when the index is rebuilt from a snapshot rather than from the
        working tree; every file will be re-hashed by the next stage.
        """
        replacement: dict[str, IndexEntry] = {}
        reconcile_hashes(replacement, hashes)
        with self.locked(read=False) as entries:
            entries.update(replacement)
