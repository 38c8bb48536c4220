# worktree.py -- Staging the working tree into the index
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

"""Working tree operations: staging files into the index.

Files are visited in a single top-down walk. A file whose size and
modification time still match its index entry is taken as unchanged and is
neither read nor hashed; any other file is hashed, stored in the object
store and recorded with its current metadata.
"""

__all__ = [
    "WorkTree",
    "sweep_index",
]

import os
import stat
import types
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING

from .errors import OutsideRepository, PathNotFound, StorageFailure
from .ignore import IgnoreFilterManager, load_ignore_patterns, should_ignore
from .index import (
    IndexEntry,
    canonicalize_path,
    entries_to_hashes,
    get_path_element_validator,
    validate_path,
)
from .log_utils import getLogger
from .repo import CONTROLDIR

if TYPE_CHECKING:
    from .repo import Repo

logger = getLogger(__name__)


def sweep_index(entries: dict[str, IndexEntry], seen: set[str]) -> list[str]:
    """Remove the entries for paths that were not seen during a walk.

    Returns: the removed paths, sorted
    """
    removed = sorted(path for path in entries if path not in seen)
    for path in removed:
        logger.debug("Removing %s from index", path)
        del entries[path]
    return removed


def _in_controldir(path: str) -> bool:
    return path == CONTROLDIR or path.startswith(CONTROLDIR + "/")


class WorkTree:
    """Working tree of a quire repository.

    Paths given to the staging methods may be absolute or relative to the
    current directory; they are recorded relative to the repository root.
    """

    def __init__(
        self,
        repo: "Repo",
        *,
        ignore_manager: IgnoreFilterManager | None = None,
    ) -> None:
        """Initialize a WorkTree.

        Args:
          repo: The repository
          ignore_manager: Ignore rules to apply; loaded from the
            repository on every stage when not given
        """
        self._repo = repo
        self._ignore_manager = ignore_manager

    @property
    def path(self) -> str:
        return self._repo.path

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"

    def stage(self, fs_path: str | os.PathLike[str]) -> None:
        """Stage a file, or every file below a directory.

        Entries for files that no longer exist are left alone; use
        stage_all() to retire them.

        Raises:
          OutsideRepository: if the path is not below the repository root
          PathNotFound: if the path does not exist
          StorageFailure: if a file could not be hashed or stored
          OSError: if the tree could not be walked
        """
        full_path = os.path.abspath(fs_path)
        self._relpath(full_path, strict=True)
        if not os.path.lexists(full_path):
            raise PathNotFound(os.fspath(fs_path))

        self._repo.open_index().update(
            lambda entries: self._stage_tree(entries, full_path, strict=True)
        )

    def stage_all(self) -> list[str]:
        """Bring the index in line with the whole working tree.

        Failures to read individual files are logged and skipped, leaving
        their entries as they were. Entries for files that were not found,
        or that are now ignored, are removed.

        Returns: the paths removed from the index
        """

        def update(entries: dict[str, IndexEntry]) -> list[str]:
            seen: set[str] = set()
            self._stage_tree(entries, self.path, strict=False, seen=seen)
            return sweep_index(entries, seen)

        return self._repo.open_index().update(update)

    def _relpath(self, full_path: str, strict: bool) -> str | None:
        """Express an absolute path relative to the root.

        Returns: the canonical relative path, or None if it lies outside the
          root and ``strict`` is false
        """
        try:
            rel = canonicalize_path(os.path.relpath(full_path, self.path))
        except ValueError:
            # Different drives.
            rel = None
        if rel is None or rel == ".." or rel.startswith("../") or os.path.isabs(rel):
            if strict:
                raise OutsideRepository(full_path, self.path)
            logger.warning("%s is outside repository %s, skipping", full_path, self.path)
            return None
        return rel

    def _walk(
        self,
        top: str,
        strict: bool,
        prune: Callable[[str], bool],
        unlisted: Callable[[str], None] | None = None,
    ) -> Iterator[tuple[str, str]]:
        """Yield (absolute path, relative path) for every candidate below top.

        Directories are descended but not yielded, unless ``prune`` rejects
        their relative path; symlinks are yielded and never followed. The
        control directory is never entered. When ``strict`` is false, a
        directory that cannot be listed is reported to ``unlisted`` by its
        relative path and skipped.
        """
        top_rel = self._relpath(top, strict)
        if top_rel is None or _in_controldir(top_rel):
            return
        if not stat.S_ISDIR(os.lstat(top).st_mode):
            yield top, top_rel
            return

        def onerror(exc: OSError) -> None:
            if strict:
                raise exc
            logger.warning("Unable to list %s: %s", exc.filename, exc.strerror or exc)
            if unlisted is not None and exc.filename is not None:
                rel = self._relpath(os.fsdecode(exc.filename), strict)
                if rel is not None:
                    unlisted(rel)

        for dirpath, dirnames, filenames in os.walk(top, onerror=onerror):
            candidates = []
            for name in list(dirnames):
                full_path = os.path.join(dirpath, name)
                rel = self._relpath(full_path, strict)
                if rel is None or _in_controldir(rel):
                    dirnames.remove(name)
                elif os.path.islink(full_path):
                    dirnames.remove(name)
                    candidates.append((full_path, rel))
                elif prune(rel):
                    logger.debug("Skipping ignored directory %s", rel)
                    dirnames.remove(name)
            for name in filenames:
                full_path = os.path.join(dirpath, name)
                rel = self._relpath(full_path, strict)
                if rel is not None and not _in_controldir(rel):
                    candidates.append((full_path, rel))
            yield from sorted(candidates, key=lambda c: c[1])

    def _stage_tree(
        self,
        entries: dict[str, IndexEntry],
        top: str,
        *,
        strict: bool,
        seen: set[str] | None = None,
    ) -> None:
        config = self._repo.get_config()
        trust_stat = config.get_boolean("index", "trustStat", True)
        element_validator = get_path_element_validator(config)
        patterns = self._ignore_manager or load_ignore_patterns(self._repo)
        tracked: Mapping[str, str] = types.MappingProxyType(entries_to_hashes(entries))

        def prune(rel_dir: str) -> bool:
            return should_ignore(rel_dir + "/", patterns, tracked)

        def unlisted(rel_dir: str) -> None:
            # Entries below an unreadable directory survive the sweep.
            if seen is None:
                return
            for path in entries:
                if rel_dir == "." or path.startswith(rel_dir + "/"):
                    seen.add(path)

        for full_path, rel in self._walk(top, strict, prune, unlisted):
            if not validate_path(rel, element_validator):
                logger.debug("Skipping unsafe path %s", rel)
                continue
            if should_ignore(rel, patterns, tracked):
                logger.debug("Skipping ignored path %s", rel)
                continue
            self._stage_file(
                entries,
                full_path,
                rel,
                strict=strict,
                trust_stat=trust_stat,
                seen=seen,
            )

    def _stage_file(
        self,
        entries: dict[str, IndexEntry],
        full_path: str,
        rel: str,
        *,
        strict: bool,
        trust_stat: bool,
        seen: set[str] | None,
    ) -> None:
        fail: Callable[[Exception], None]
        if strict:

            def fail(exc: Exception) -> None:
                raise exc

        else:

            def fail(exc: Exception) -> None:
                logger.warning("Unable to stage %s: %s", rel, exc)

        try:
            st = os.lstat(full_path)
        except OSError as exc:
            if seen is not None:
                seen.add(rel)
            fail(exc)
            return
        if not (stat.S_ISREG(st.st_mode) or stat.S_ISLNK(st.st_mode)):
            logger.debug("Skipping special file %s", rel)
            return
        if seen is not None:
            seen.add(rel)

        existing = entries.get(rel)
        if (
            trust_stat
            and existing is not None
            and existing.has_metadata
            and existing.matches_stat(st)
        ):
            logger.debug("%s unchanged", rel)
            return
        if st.st_size == 0 and int(st.st_mtime) == 0:
            logger.debug(
                "%s has zero size and mtime, which cannot be told apart from "
                "unknown metadata; hashing",
                rel,
            )

        try:
            sha = self._repo.object_store.add_path(full_path)
        except StorageFailure as exc:
            fail(exc)
            return
        entries[rel] = IndexEntry.from_stat(st, sha)
