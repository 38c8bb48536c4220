# ignore.py -- Parsing and matching of ignore files
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

"""Parsing and matching of ignore files.

Ignore files use gitignore syntax (see https://git-scm.com/docs/gitignore).
Rules are read from, in increasing order of precedence:

* the file named by ``core.excludesFile`` (default
  ``$XDG_CONFIG_HOME/quire/ignore``)
* ``.quire/info/exclude``
* ``.quireignore`` files in the working tree, deeper files overriding
  shallower ones

Paths are repository-relative and ``/``-separated. Directories are checked
with a trailing slash (``"build/"``); a file inside an ignored directory is
always ignored, whatever later negations say.
"""

__all__ = [
    "IGNORE_FILENAME",
    "IgnoreFilter",
    "IgnoreFilterManager",
    "Pattern",
    "load_ignore_patterns",
    "match_pattern",
    "read_ignore_patterns",
    "should_ignore",
    "translate",
]

import os
import re
from collections.abc import Iterable, Iterator, Mapping
from contextlib import suppress
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from .config import Config
    from .repo import Repo

IGNORE_FILENAME = ".quireignore"


def _translate_segment(segment: str) -> str:
    """Translate a single path segment to a regular expression."""
    if segment == "*":
        return "[^/]+"

    res = []
    i, n = 0, len(segment)
    while i < n:
        c = segment[i]
        i += 1
        if c == "*":
            res.append("[^/]*")
        elif c == "?":
            res.append("[^/]")
        elif c == "\\":
            if i < n:
                res.append(re.escape(segment[i]))
                i += 1
            else:
                res.append(re.escape(c))
        elif c == "[":
            j = i
            if j < n and segment[j] == "!":
                j += 1
            if j < n and segment[j] == "]":
                j += 1
            while j < n and segment[j] != "]":
                j += 1
            if j >= n:
                res.append("\\[")
            else:
                stuff = segment[i:j].replace("\\", "\\\\")
                i = j + 1
                if stuff.startswith("!"):
                    stuff = "^" + stuff[1:]
                elif stuff.startswith("^"):
                    stuff = "\\" + stuff
                res.append("[" + stuff + "]")
        else:
            res.append(re.escape(c))
    return "".join(res)


def _translate_double_asterisk(segments: list[str], i: int) -> tuple[str, bool]:
    """Translate a ``**`` segment; returns the regex and whether to skip the next segment."""
    if all(s == "" for s in segments[i + 1 :]):
        return ".*", False

    if i + 1 < len(segments) and segments[i + 1] == "**":
        if segments[i + 2 :] == [""]:
            # c/**/**/ needs at least one intermediate directory.
            return "[^/]+/(?:[^/]+/)*", True
        return "(?:[^/]+/)*", True

    if i == 0:
        return "(?:.*/)??", False
    return "(?:[^/]+/)*", False


def translate(pat: str) -> str:
    """Translate an ignore pattern to a regular expression."""
    res = "(?ms)"

    if "//" in pat:
        # git treats patterns with an empty segment as matching nothing.
        return "(?!.*)"

    # Without a slash (other than a trailing one) a pattern matches at any level.
    if "/" not in pat[:-1]:
        res += "(.*/)?"

    if pat.startswith("/**/"):
        pat = pat[4:]
        res += "(.*/)?"
    elif pat.startswith("**/"):
        pat = pat[3:]
        res += "(.*/)?"
    elif pat.startswith("/"):
        pat = pat[1:]

    if pat == "**":
        res += ".*"
    else:
        segments = pat.split("/")
        i = 0
        while i < len(segments):
            segment = segments[i]
            if i > 0 and segments[i - 1] != "**":
                res += "/"
            if segment == "**":
                regex_part, skip_next = _translate_double_asterisk(segments, i)
                res += regex_part
                if regex_part == ".*":
                    break
                if skip_next:
                    i += 1
            else:
                res += _translate_segment(segment)
            i += 1

    if not pat.endswith("/"):
        res += "/?"

    return res + "\\Z"


def read_ignore_patterns(f: BinaryIO) -> Iterator[str]:
    """Read an ignore file.

    Args:
      f: File-like object to read from
    Returns: Iterator over patterns
    """
    for raw in f:
        line = raw.decode("utf-8", "surrogateescape").rstrip("\r\n")

        if not line.strip():
            continue

        if line.startswith("#"):
            continue

        # Trailing spaces are ignored unless they are quoted with a backslash.
        while line.endswith(" ") and not line.endswith("\\ "):
            line = line[:-1]
        line = line.replace("\\ ", " ")

        yield line


def match_pattern(path: str, pattern: str, ignorecase: bool = False) -> bool:
    """Match an ignore pattern against a path.

    Args:
      path: Path to match
      pattern: Pattern to match
      ignorecase: Whether to match case-insensitively
    Returns:
      bool indicating whether the pattern matched
    """
    return Pattern(pattern, ignorecase).match(path)


class Pattern:
    """A single ignore pattern."""

    def __init__(self, pattern: str, ignorecase: bool = False) -> None:
        self.pattern = pattern
        self.ignorecase = ignorecase

        if pattern.startswith("!"):
            self.is_exclude = False
            pattern = pattern[1:]
        else:
            if pattern[:2] in ("\\!", "\\#"):
                pattern = pattern[1:]
            self.is_exclude = True

        self.is_directory_only = pattern.endswith("/")
        self._re = re.compile(translate(pattern), re.IGNORECASE if ignorecase else 0)

    def __str__(self) -> str:
        return self.pattern

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, type(self))
            and self.pattern == other.pattern
            and self.ignorecase == other.ignorecase
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern!r}, {self.ignorecase!r})"

    def match(self, path: str) -> bool:
        """Try to match a path against this ignore pattern.

        Args:
          path: Path to match (relative to the ignore file's directory)
        Returns: boolean
        """
        return bool(self._re.match(path))


class IgnoreFilter:
    """Filter to apply the patterns of a single ignore file."""

    def __init__(
        self,
        patterns: Iterable[str],
        ignorecase: bool = False,
        path: str | None = None,
    ) -> None:
        self._patterns: list[Pattern] = []
        self._ignorecase = ignorecase
        self._path = path
        for pattern in patterns:
            self.append_pattern(pattern)

    def append_pattern(self, pattern: str) -> None:
        """Add a pattern to the set."""
        self._patterns.append(Pattern(pattern, self._ignorecase))

    def find_matching(self, path: str) -> Iterator[Pattern]:
        """Yield all matching patterns for path, in file order."""
        for pattern in self._patterns:
            if pattern.match(path):
                yield pattern

    def is_ignored(self, path: str) -> bool | None:
        """Check whether a path is ignored by this filter alone.

        Returns: None if the path is not mentioned, True if it is excluded,
            False if it is explicitly re-included.
        """
        status = None
        for pattern in self.find_matching(path):
            status = pattern.is_exclude
        return status

    @classmethod
    def from_path(
        cls, path: str | os.PathLike[str], ignorecase: bool = False
    ) -> "IgnoreFilter":
        """Create an IgnoreFilter from a file path."""
        with open(path, "rb") as f:
            return cls(read_ignore_patterns(f), ignorecase, path=os.fspath(path))

    def __repr__(self) -> str:
        if self._path is not None:
            return f"{type(self).__name__}.from_path({self._path!r})"
        return f"<{type(self).__name__}>"


def default_user_ignore_filter_path(config: "Config") -> str:
    """Return the path of the per-user ignore file.

    Args:
      config: A Config object
    Returns:
      ``core.excludesFile`` if set, else ``$XDG_CONFIG_HOME/quire/ignore``
    """
    try:
        return config.get("core", "excludesFile").decode("utf-8")
    except KeyError:
        pass

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", "~/.config/")
    return os.path.join(xdg_config_home, "quire", "ignore")


class IgnoreFilterManager:
    """Combine the ignore files that apply within a working tree."""

    def __init__(
        self,
        top_path: str,
        global_filters: list[IgnoreFilter],
        ignorecase: bool,
    ) -> None:
        """Create an IgnoreFilterManager.

        Args:
            top_path: Root of the working tree
            global_filters: Filters that apply everywhere, lowest precedence first
            ignorecase: Whether to match case-insensitively
        """
        self._path_filters: dict[str, IgnoreFilter | None] = {}
        self._top_path = top_path
        self._global_filters = global_filters
        self._ignorecase = ignorecase

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._top_path}, {self._global_filters!r}, {self._ignorecase!r})"

    def _load_path(self, dirname: str) -> IgnoreFilter | None:
        try:
            return self._path_filters[dirname]
        except KeyError:
            pass

        p = os.path.join(self._top_path, dirname, IGNORE_FILENAME)
        try:
            self._path_filters[dirname] = IgnoreFilter.from_path(p, self._ignorecase)
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            self._path_filters[dirname] = None
        return self._path_filters[dirname]

    def find_matching(self, path: str) -> list[Pattern]:
        """Find the patterns matching a path, lowest precedence first.

        Args:
          path: Repository-relative path; directories end with "/"
        """
        if os.path.isabs(path):
            raise ValueError(f"{path} is an absolute path")
        is_dir = path.endswith("/")
        parts = path.rstrip("/").split("/")
        suffix = "/" if is_dir else ""

        matches: list[Pattern] = []
        for f in self._global_filters:
            matches.extend(f.find_matching(path))
        # An ignore file in directory d applies to paths below d, relative to d.
        for level in range(len(parts)):
            f = self._load_path("/".join(parts[:level]))
            if f is not None:
                matches.extend(f.find_matching("/".join(parts[level:]) + suffix))
        return matches

    def _is_ignored_here(self, path: str) -> bool | None:
        status = None
        for pattern in self.find_matching(path):
            status = pattern.is_exclude
        return status

    def is_ignored(self, path: str) -> bool | None:
        """Check whether a path is excluded or explicitly re-included.

        Args:
          path: Path to check. For directories, the path should end with '/'.

        Returns:
          None if the path is not mentioned, True if it is excluded,
          False if it is explicitly re-included.
        """
        parts = path.rstrip("/").split("/")
        # A path below an excluded directory cannot be re-included.
        for i in range(1, len(parts)):
            if self._is_ignored_here("/".join(parts[:i]) + "/") is True:
                return True
        return self._is_ignored_here(path)

    @classmethod
    def from_repo(cls, repo: "Repo") -> "IgnoreFilterManager":
        """Create an IgnoreFilterManager from a repository.

        Args:
          repo: Repository object
        Returns:
          A `IgnoreFilterManager` object
        """
        config = repo.get_config()
        ignorecase = config.get_boolean("core", "ignorecase", False)
        global_filters = []
        for p in [
            default_user_ignore_filter_path(config),
            os.path.join(repo.controldir(), "info", "exclude"),
        ]:
            with suppress(OSError):
                global_filters.append(
                    IgnoreFilter.from_path(os.path.expanduser(p), ignorecase)
                )
        return cls(repo.path, global_filters, ignorecase)


def load_ignore_patterns(repo: "Repo") -> IgnoreFilterManager:
    """Load the ignore rules that apply to a repository's working tree."""
    return IgnoreFilterManager.from_repo(repo)


def should_ignore(
    path: str,
    patterns: IgnoreFilterManager,
    tracked: Mapping[str, str] | None = None,
) -> bool:
    """Decide whether a file should be left out of the index.

    Args:
      path: Canonical repository-relative path of a file
      patterns: Rules from load_ignore_patterns()
      tracked: Read-only path -> hash view of the current index
    Returns: True if the file is ignored

    Being tracked does not protect a file: once a rule matches it, staging
    the whole tree drops it from the index. ``tracked`` is part of the
    predicate signature so that replacement predicates can consult it.
    """
    return patterns.is_ignored(path) is True
