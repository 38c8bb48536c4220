# errors.py -- quire-related exception classes
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

"""quire-related exception classes."""

__all__ = [
    "FileFormatException",
    "IndexCorruption",
    "LockFailure",
    "NotRepository",
    "OutsideRepository",
    "PathNotFound",
    "PathResolutionError",
    "StorageFailure",
    "WriteFailure",
]


class NotRepository(Exception):
    """Indicates that no quire repository was found."""

    def __init__(self, *args: object, **kwargs: object) -> None:
        """Initialize a NotRepository exception.

        Args:
            *args: Error message and additional positional arguments.
            **kwargs: Additional keyword arguments.
        """
        Exception.__init__(self, *args, **kwargs)


class PathResolutionError(ValueError):
    """A path could not be made absolute or expressed relative to the root."""


class OutsideRepository(PathResolutionError):
    """A path resolves to a location outside the repository."""

    def __init__(self, path: str, root: str) -> None:
        """Initialize an OutsideRepository exception.

        Args:
            path: The offending path, as given by the caller.
            root: The repository root it was checked against.
        """
        self.path = path
        self.root = root
        super().__init__(f"Path {path} is not within repository {root}")


class PathNotFound(FileNotFoundError):
    """An explicitly requested path does not exist."""

    def __init__(self, path: str) -> None:
        """Initialize a PathNotFound exception.

        Args:
            path: The missing path, as given by the caller.
        """
        self.path = path
        super().__init__(f"path does not exist: {path}")


class FileFormatException(Exception):
    """Base class for exceptions relating to reading quire file formats."""


class IndexCorruption(FileFormatException):
    """The index file could not be decoded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        """Initialize an IndexCorruption exception.

        Args:
            message: Description of the problem.
            path: Index key the problem was found at, if any.
        """
        self.path = path
        if path is not None:
            message = f"{message} (entry {path!r})"
        super().__init__(message)


class StorageFailure(Exception):
    """Content could not be hashed or persisted in the object store."""


class LockFailure(Exception):
    """A lock could not be acquired."""


class WriteFailure(Exception):
    """A locked file could not be committed to disk."""
