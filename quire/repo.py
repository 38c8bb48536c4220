# repo.py -- For dealing with quire repositories.
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

"""Repository access.

A repository is a working tree with a ``.quire`` control directory at its
root. The control directory holds the object store, the index and the
repository configuration.
"""

__all__ = [
    "BASE_DIRECTORIES",
    "CONTROLDIR",
    "INDEX_FILENAME",
    "OBJECTDIR",
    "Repo",
    "UnsupportedVersion",
]

import os
from types import TracebackType
from typing import TYPE_CHECKING

from .config import ConfigFile
from .errors import NotRepository
from .object_store import DiskObjectStore

if TYPE_CHECKING:
    from .index import IndexStore
    from .worktree import WorkTree

CONTROLDIR = ".quire"
OBJECTDIR = "objects"
INDEX_FILENAME = "index"
CONFIG_FILENAME = "config"

BASE_DIRECTORIES = [
    [OBJECTDIR],
    ["info"],
]

SUPPORTED_FORMAT_VERSIONS = (0,)


class UnsupportedVersion(Exception):
    """Unsupported repository version."""

    def __init__(self, version: int) -> None:
        """Initialize UnsupportedVersion exception.

        Args:
            version: The unsupported repository version
        """
        self.version = version
        super().__init__(f"unsupported repository format version {version}")


class Repo:
    """A quire repository backed by local disk.

    To open an existing repository, call the constructor with the path of
    its working tree. To create a new repository, use the Repo.init class
    method.

    Attributes:
      path: Absolute path to the working tree
      object_store: The repository's DiskObjectStore
    """

    path: str
    object_store: DiskObjectStore

    def __init__(self, root: str | os.PathLike[str]) -> None:
        """Open a repository on disk.

        Args:
          root: Path to the repository's root

        Raises:
          NotRepository: if there is no control directory at ``root``
          UnsupportedVersion: if the repository format is not supported
        """
        root = os.path.abspath(os.fspath(root))
        controldir = os.path.join(root, CONTROLDIR)
        if not os.path.isdir(controldir):
            raise NotRepository(f"No quire repository was found at {root}")
        self.path = root
        self._controldir = controldir

        config = self.get_config()
        try:
            format_version = config.get_int("core", "repositoryformatversion", 0)
        except ValueError as exc:
            raise UnsupportedVersion(-1) from exc
        if format_version not in SUPPORTED_FORMAT_VERSIONS:
            raise UnsupportedVersion(format_version)

        self.object_store = DiskObjectStore(os.path.join(controldir, OBJECTDIR))

    def __repr__(self) -> str:
        return f"<Repo at {self.path!r}>"

    @classmethod
    def discover(cls, start: str | os.PathLike[str] = ".") -> "Repo":
        """Iterate parent directories to discover a repository.

        Return a Repo object for the first parent directory that looks like a
        quire repository.

        Args:
          start: The directory to start discovery from (defaults to '.')
        """
        path = os.path.abspath(start)
        while True:
            try:
                return cls(path)
            except NotRepository:
                new_path, _tail = os.path.split(path)
                if new_path == path:  # Root reached
                    break
                path = new_path
        raise NotRepository(f"No quire repository was found at {os.fspath(start)}")

    def controldir(self) -> str:
        """Return the path of the control directory."""
        return self._controldir

    def index_path(self) -> str:
        """Return path to the index file."""
        return os.path.join(self.controldir(), INDEX_FILENAME)

    def get_config(self) -> ConfigFile:
        """Retrieve the config object.

        Returns: `ConfigFile` object for the ``.quire/config`` file.
        """
        path = os.path.join(self.controldir(), CONFIG_FILENAME)
        try:
            return ConfigFile.from_path(path)
        except FileNotFoundError:
            ret = ConfigFile()
            ret.path = path
            return ret

    def open_index(self) -> "IndexStore":
        """Open the index for this repository.

        The index file itself is created by the first transaction that
        commits.
        """
        from .index import IndexStore

        config = self.get_config()
        timeout_ms = config.get_int("index", "lockTimeout", -1)
        return IndexStore(
            self.index_path(),
            lock_timeout=None if timeout_ms < 0 else timeout_ms / 1000.0,
        )

    def has_index(self) -> bool:
        """Check if an index file has been written yet."""
        return os.path.exists(self.index_path())

    def get_worktree(self) -> "WorkTree":
        """Get the working tree operations for this repository."""
        from .worktree import WorkTree

        return WorkTree(self)

    @classmethod
    def init(cls, path: str | os.PathLike[str], *, mkdir: bool = False) -> "Repo":
        """Create a new repository.

        Args:
          path: Path in which to create the repository
          mkdir: Whether to create the directory
        Returns: `Repo` instance
        """
        path = os.fspath(path)
        if mkdir:
            os.mkdir(path)
        controldir = os.path.join(path, CONTROLDIR)
        os.mkdir(controldir)
        for d in BASE_DIRECTORIES:
            os.mkdir(os.path.join(controldir, *d))

        config = ConfigFile()
        config.set("core", "repositoryformatversion", "0")
        config.write_to_path(os.path.join(controldir, CONFIG_FILENAME))
        return cls(path)

    def close(self) -> None:
        """Close any files opened by this repository."""

    def __enter__(self) -> "Repo":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
