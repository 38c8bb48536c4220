# porcelain.py -- Porcelain-like layer on top of quire
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

"""Simple wrapper that provides porcelain-like functions on top of quire.

Currently implemented:
 * add
 * check_ignore
 * hash_object
 * init
 * ls_files
 * ls_files_stage
 * remove_cached
 * reset_index
 * update_index_cacheinfo

Functions should generally accept both a Repo object and a path as the
repository argument. Working tree paths are absolute or relative to the
current directory.
"""

__all__ = [
    "Error",
    "add",
    "check_ignore",
    "hash_object",
    "init",
    "ls_files",
    "ls_files_stage",
    "open_repo_closing",
    "path_to_index_path",
    "remove_cached",
    "reset_index",
    "update_index_cacheinfo",
]

import os
from collections.abc import Iterable, Iterator, Mapping
from contextlib import AbstractContextManager, closing, contextmanager
from typing import TypeVar, Union

from .errors import OutsideRepository
from .ignore import IgnoreFilterManager
from .index import (
    IndexEntry,
    canonicalize_path,
    get_path_element_validator,
    validate_path,
)
from .log_utils import getLogger
from .object_store import blob_id, read_blob_from_path, valid_hexsha
from .repo import Repo

logger = getLogger(__name__)

T = TypeVar("T")

RepoPath = Union[str, os.PathLike[str], Repo]


class Error(Exception):
    """Porcelain-based error."""

    def __init__(self, msg: str) -> None:
        super().__init__(msg)


@contextmanager
def _noop_context_manager(obj: T) -> Iterator[T]:
    """Context manager that has the same api as closing but does nothing."""
    yield obj


def open_repo_closing(path_or_repo: RepoPath) -> AbstractContextManager[Repo]:
    """Open an argument that can be a repository or a path for a repository.

    returns a context manager that will close the repo on exit if the argument
    is a path, else does nothing if the argument is a repo.
    """
    if isinstance(path_or_repo, Repo):
        return _noop_context_manager(path_or_repo)
    return closing(Repo(path_or_repo))


def path_to_index_path(
    repopath: str | os.PathLike[str], path: str | os.PathLike[str]
) -> str:
    """Convert a working tree path to the path used as index key.

    Args:
      repopath: Repository root
      path: A path, absolute or relative to the current directory
    Returns: canonical repository-relative path
    Raises:
      OutsideRepository: if the path is not below the repository root
    """
    root = os.path.abspath(repopath)
    full_path = os.path.abspath(path)
    try:
        rel = canonicalize_path(os.path.relpath(full_path, root))
    except ValueError as exc:
        raise OutsideRepository(os.fspath(path), root) from exc
    if rel == ".." or rel.startswith("../"):
        raise OutsideRepository(os.fspath(path), root)
    return rel


def _check_index_path(r: Repo, path: str) -> str:
    tree_path = canonicalize_path(path)
    if not validate_path(tree_path, get_path_element_validator(r.get_config())):
        raise Error(f"invalid path {path!r}")
    return tree_path


def init(path: str | os.PathLike[str] = ".") -> Repo:
    """Create a new quire repository.

    Args:
      path: Path to repository; created if it does not exist
    Returns: A Repo instance
    """
    if not os.path.exists(path):
        os.mkdir(path)
    return Repo.init(path)


def add(
    repo: RepoPath = ".",
    paths: Iterable[str | os.PathLike[str]] | None = None,
) -> list[str]:
    """Add files to the staging area.

    Args:
      repo: Repository for the files
      paths: Paths to add. If None, the whole working tree is staged and
        entries for files that are gone or ignored are removed.
    Returns: paths removed from the index
    """
    with open_repo_closing(repo) as r:
        wt = r.get_worktree()
        if paths is None:
            return wt.stage_all()
        # Each path is staged in its own transaction.
        for p in paths:
            wt.stage(p)
        return []


def ls_files(repo: RepoPath = ".") -> list[str]:
    """List all files in an index."""
    with open_repo_closing(repo) as r:
        return sorted(r.open_index().read())


def ls_files_stage(repo: RepoPath = ".") -> list[tuple[str, IndexEntry]]:
    """List all index entries, sorted by path."""
    with open_repo_closing(repo) as r:
        return sorted(r.open_index().read().items())


def remove_cached(
    repo: RepoPath,
    paths: Iterable[str | os.PathLike[str]],
    missing_ok: bool = False,
) -> None:
    """Remove files from the index, leaving the working tree alone.

    Args:
      repo: Repository
      paths: Working tree paths of the files
      missing_ok: Whether to tolerate paths that are not in the index
    Raises:
      KeyError: if a path is not in the index and ``missing_ok`` is false;
        the index is left unchanged in that case
    """
    with open_repo_closing(repo) as r:
        tree_paths = [path_to_index_path(r.path, p) for p in paths]

        def remove(hashes: dict[str, str]) -> None:
            for tree_path in tree_paths:
                try:
                    del hashes[tree_path]
                except KeyError as exc:
                    if not missing_ok:
                        raise KeyError(f"file '{tree_path}' not in index") from exc

        r.open_index().update_hashes(remove)


def update_index_cacheinfo(
    repo: RepoPath, sha: str, path: str, info_only: bool = False
) -> None:
    """Record a blob in the index under a path, as ``update-index --cacheinfo``.

    The entry carries no file metadata, so the next stage of that path
    re-hashes it.

    Args:
      repo: Repository
      sha: Blob identifier
      path: Repository-relative path
      info_only: Whether to skip checking that the blob is in the object store
    """
    if not valid_hexsha(sha):
        raise Error(f"invalid object id {sha!r}")
    with open_repo_closing(repo) as r:
        tree_path = _check_index_path(r, path)
        if not info_only and sha not in r.object_store:
            raise Error(f"object {sha} not in object store")

        def set_hash(hashes: dict[str, str]) -> None:
            hashes[tree_path] = sha

        r.open_index().update_hashes(set_hash)


def reset_index(repo: RepoPath, hashes: Mapping[str, str]) -> None:
    """Replace the whole index with a path -> hash mapping.

    Args:
      repo: Repository
      hashes: Repository-relative paths and their blob identifiers
    """
    with open_repo_closing(repo) as r:
        checked = {}
        for path, sha in hashes.items():
            if not valid_hexsha(sha):
                raise Error(f"invalid object id {sha!r} for {path}")
            checked[_check_index_path(r, path)] = sha
        r.open_index().write_hashes(checked)


def check_ignore(
    repo: RepoPath, paths: Iterable[str | os.PathLike[str]]
) -> Iterator[str]:
    """Debug ignore files.

    Tracked files are reported too: being in the index does not exempt a
    path from the ignore rules.

    Args:
      repo: Path to the repository
      paths: List of paths to check for
    Returns: the paths from ``paths`` that are ignored
    """
    with open_repo_closing(repo) as r:
        ignore_manager = IgnoreFilterManager.from_repo(r)
        for original_path in paths:
            tree_path = path_to_index_path(r.path, original_path)
            if os.path.isdir(os.path.join(r.path, tree_path)):
                tree_path += "/"
            if ignore_manager.is_ignored(tree_path):
                yield os.fspath(original_path)


def hash_object(
    path: str | os.PathLike[str], repo: RepoPath | None = None, write: bool = False
) -> str:
    """Compute the blob identifier of a file.

    Args:
      path: File to hash
      repo: Repository to store the blob in; required when ``write`` is set
      write: Whether to store the blob
    Returns: the blob identifier
    """
    if not write:
        return blob_id(read_blob_from_path(path))
    if repo is None:
        raise Error("a repository is required to write objects")
    with open_repo_closing(repo) as r:
        return r.object_store.add_path(path)
