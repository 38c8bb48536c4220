# config.py -- Reading and writing repository configuration files
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

"""Reading and writing configuration files.

The format is the one git uses for ``.git/config``::

    [core]
        ignorecase = true
    [index]
        lockTimeout = 500

Section and variable names are case-insensitive and are stored lowercased;
subsection names (``[section "sub"]``) are case-sensitive.
"""

__all__ = [
    "Config",
    "ConfigDict",
    "ConfigFile",
]

import os
from collections.abc import Iterator
from typing import IO, overload

from .file import GitFile

Name = bytes
NameLike = bytes | str
Section = tuple[bytes, ...]
SectionLike = bytes | str | tuple[bytes | str, ...]
Value = bytes
ValueLike = bytes | str

_TRUE_VALUES = (b"true", b"yes", b"on", b"1")
_FALSE_VALUES = (b"false", b"no", b"off", b"0", b"")


def _to_bytes(value: bytes | str, encoding: str = "utf-8") -> bytes:
    if isinstance(value, str):
        return value.encode(encoding)
    return value


def _normalize_section(section: SectionLike) -> Section:
    if not isinstance(section, tuple):
        section = (section,)
    parts = [_to_bytes(p) for p in section]
    # Only the section name itself is case-insensitive.
    return (parts[0].lower(), *parts[1:])


class Config:
    """A quire configuration."""

    def get(self, section: SectionLike, name: NameLike) -> Value:
        """Retrieve the contents of a configuration setting.

        Args:
          section: Section name, or tuple with section name and subsection name
          name: Variable name
        Returns:
          Contents of the setting
        Raises:
          KeyError: if the value is not set
        """
        raise NotImplementedError(self.get)

    @overload
    def get_boolean(
        self, section: SectionLike, name: NameLike, default: bool
    ) -> bool: ...

    @overload
    def get_boolean(self, section: SectionLike, name: NameLike) -> bool | None: ...

    def get_boolean(
        self, section: SectionLike, name: NameLike, default: bool | None = None
    ) -> bool | None:
        """Retrieve a configuration setting as boolean.

        Accepts the spellings git does: true/yes/on/1 and false/no/off/0.

        Args:
          section: Section name, or tuple with section name and subsection name
          name: Variable name
          default: Default value if setting is not found

        Returns:
          Contents of the setting
        Raises:
          ValueError: if the value is set but is not a boolean
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        if value.lower() in _TRUE_VALUES:
            return True
        elif value.lower() in _FALSE_VALUES:
            return False
        raise ValueError(f"not a valid boolean string: {value!r}")

    def get_int(self, section: SectionLike, name: NameLike, default: int) -> int:
        """Retrieve a configuration setting as an integer.

        Raises:
          ValueError: if the value is set but is not an integer
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise ValueError(f"not a valid integer: {value!r}") from exc

    def set(
        self, section: SectionLike, name: NameLike, value: ValueLike | bool
    ) -> None:
        """Set a configuration value.

        Args:
          section: Section name, or tuple with section name and subsection name
          name: Variable name
          value: value of the setting
        """
        raise NotImplementedError(self.set)

    def items(self, section: SectionLike) -> Iterator[tuple[Name, Value]]:
        """Iterate over the configuration pairs for a specific section."""
        raise NotImplementedError(self.items)

    def sections(self) -> Iterator[Section]:
        """Iterate over the sections."""
        raise NotImplementedError(self.sections)

    def has_section(self, name: SectionLike) -> bool:
        """Check if a specified section exists."""
        return _normalize_section(name) in self.sections()


class ConfigDict(Config):
    """Configuration stored in a dictionary."""

    def __init__(
        self,
        values: dict[Section, dict[Name, Value]] | None = None,
        encoding: str = "utf-8",
    ) -> None:
        """Create a new ConfigDict."""
        self.encoding = encoding
        self._values: dict[Section, dict[Name, Value]] = {}
        if values is not None:
            for section, settings in values.items():
                for name, value in settings.items():
                    self.set(section, name, value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._values!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, self.__class__) and other._values == self._values

    def __getitem__(self, key: SectionLike) -> dict[Name, Value]:
        return self._values[_normalize_section(key)]

    def __iter__(self) -> Iterator[Section]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def get(self, section: SectionLike, name: NameLike) -> Value:
        return self._values[_normalize_section(section)][_to_bytes(name).lower()]

    def set(
        self, section: SectionLike, name: NameLike, value: ValueLike | bool
    ) -> None:
        if isinstance(value, bool):
            value = b"true" if value else b"false"
        self._values.setdefault(_normalize_section(section), {})[
            _to_bytes(name).lower()
        ] = _to_bytes(value, self.encoding)

    def remove(self, section: SectionLike, name: NameLike) -> None:
        """Remove a configuration setting.

        Raises:
          KeyError: if the value is not set
        """
        del self._values[_normalize_section(section)][_to_bytes(name).lower()]

    def items(self, section: SectionLike) -> Iterator[tuple[Name, Value]]:
        return iter(self._values.get(_normalize_section(section), {}).items())

    def sections(self) -> Iterator[Section]:
        return iter(self._values.keys())


def _format_string(value: bytes) -> bytes:
    if (
        value.startswith((b" ", b"\t"))
        or value.endswith((b" ", b"\t"))
        or b"#" in value
        or b";" in value
    ):
        return b'"' + _escape_value(value) + b'"'
    return _escape_value(value)


_ESCAPE_TABLE = {
    ord(b"\\"): ord(b"\\"),
    ord(b'"'): ord(b'"'),
    ord(b"n"): ord(b"\n"),
    ord(b"t"): ord(b"\t"),
    ord(b"b"): ord(b"\b"),
}
_COMMENT_CHARS = (ord(b"#"), ord(b";"))
_WHITESPACE_CHARS = (ord(b"\t"), ord(b" "))


def _parse_string(value: bytes) -> bytes:
    """Unquote and unescape a raw value, dropping any trailing comment."""
    data = bytearray(value.strip())
    ret = bytearray()
    pending_whitespace = bytearray()
    in_quotes = False
    i = 0
    while i < len(data):
        c = data[i]
        if c == ord(b"\\"):
            i += 1
            if pending_whitespace:
                ret.extend(pending_whitespace)
                pending_whitespace.clear()
            if i >= len(data):
                ret.append(ord(b"\\"))
            elif data[i] in _ESCAPE_TABLE:
                ret.append(_ESCAPE_TABLE[data[i]])
            else:
                # Unknown escapes are kept literally.
                ret.append(ord(b"\\"))
                continue
        elif c == ord(b'"'):
            in_quotes = not in_quotes
        elif c in _COMMENT_CHARS and not in_quotes:
            break
        elif c in _WHITESPACE_CHARS and not in_quotes:
            pending_whitespace.append(c)
        else:
            if pending_whitespace:
                ret.extend(pending_whitespace)
                pending_whitespace.clear()
            ret.append(c)
        i += 1

    if in_quotes:
        raise ValueError("missing end quote")

    return bytes(ret)


def _escape_value(value: bytes) -> bytes:
    value = value.replace(b"\\", b"\\\\")
    value = value.replace(b"\n", b"\\n")
    value = value.replace(b"\t", b"\\t")
    value = value.replace(b'"', b'\\"')
    return value


def _check_variable_name(name: bytes) -> bool:
    return bool(name) and name[:1].isalpha() and all(
        c.isalnum() or c == b"-" for c in (name[i : i + 1] for i in range(len(name)))
    )


def _check_section_name(name: bytes) -> bool:
    return all(
        c.isalnum() or c in (b"-", b".") for c in (name[i : i + 1] for i in range(len(name)))
    )


def _strip_comments(line: bytes) -> bytes:
    string_open = False
    for i, character in enumerate(line):
        if character == ord(b'"'):
            string_open = not string_open
        elif not string_open and character in _COMMENT_CHARS:
            return line[:i]
    return line


def _is_line_continuation(value: bytes) -> bool:
    """Check whether a raw line ends with an unescaped backslash."""
    content = value.rstrip(b"\r\n")
    if content == value or not content.endswith(b"\\"):
        return False
    trailing = len(content) - len(content.rstrip(b"\\"))
    return trailing % 2 == 1


def _parse_section_header_line(line: bytes) -> tuple[Section, bytes]:
    """Parse a ``[section]`` or ``[section "sub"]`` header.

    Returns: the section tuple and whatever follows the closing bracket
    """
    line = _strip_comments(line).rstrip()
    in_quotes = False
    escaped = False
    for i, c in enumerate(line):
        if escaped:
            escaped = False
            continue
        if c == ord(b'"'):
            in_quotes = not in_quotes
        elif c == ord(b"\\"):
            escaped = True
        elif c == ord(b"]") and not in_quotes:
            last = i
            break
    else:
        raise ValueError("expected trailing ]")
    pts = line[1:last].split(b" ", 1)
    rest = line[last + 1 :]
    if len(pts) == 2:
        if not (pts[1][:1] == b'"' and pts[1][-1:] == b'"'):
            raise ValueError(f"Invalid subsection {pts[1]!r}")
        if not _check_section_name(pts[0]):
            raise ValueError(f"invalid section name {pts[0]!r}")
        return (pts[0].lower(), pts[1][1:-1]), rest
    if not _check_section_name(pts[0]):
        raise ValueError(f"invalid section name {pts[0]!r}")
    # Deprecated [section.subsection] syntax.
    dotted = pts[0].split(b".", 1)
    if len(dotted) == 2:
        return (dotted[0].lower(), dotted[1]), rest
    return (dotted[0].lower(),), rest


class ConfigFile(ConfigDict):
    """A configuration file, like .quire/config."""

    def __init__(
        self,
        values: dict[Section, dict[Name, Value]] | None = None,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__(values=values, encoding=encoding)
        self.path: str | None = None

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: on a syntax error
        """
        ret = cls()
        section: Section | None = None
        setting: bytes | None = None
        continuation: bytes | None = None
        for lineno, line in enumerate(f.readlines()):
            if lineno == 0 and line.startswith(b"\xef\xbb\xbf"):
                line = line[3:]
            line = line.lstrip()
            if setting is None:
                if line[:1] == b"[":
                    section, line = _parse_section_header_line(line)
                    ret._values.setdefault(section, {})
                if _strip_comments(line).strip() == b"":
                    continue
                if section is None:
                    raise ValueError(f"setting {line!r} without section")
                try:
                    setting, value = line.split(b"=", 1)
                except ValueError:
                    # A bare name is shorthand for "true".
                    setting = _strip_comments(line)
                    value = b"true"
                setting = setting.strip().lower()
                if not _check_variable_name(setting):
                    raise ValueError(f"invalid variable name {setting!r}")
                if _is_line_continuation(value):
                    continuation = value.rstrip(b"\r\n")[:-1]
                    continue
                ret._values[section][setting] = _parse_string(value)
                setting = None
            else:
                assert continuation is not None and section is not None
                if _is_line_continuation(line):
                    continuation += line.rstrip(b"\r\n")[:-1]
                    continue
                continuation += line
                ret._values[section][setting] = _parse_string(continuation)
                continuation = None
                setting = None
        return ret

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        abs_path = os.fspath(path)
        with GitFile(abs_path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = abs_path
        return ret

    def write_to_path(self, path: str | os.PathLike[str] | None = None) -> None:
        """Write configuration to a file on disk."""
        if path is None:
            if self.path is None:
                raise ValueError("No path specified and no default path available")
            path = self.path
        with GitFile(path, "wb") as f:
            self.write_to_file(f)

    def write_to_file(self, f: IO[bytes]) -> None:
        """Write configuration to a file-like object."""
        for section, values in self._values.items():
            if len(section) == 1:
                f.write(b"[" + section[0] + b"]\n")
            else:
                f.write(b"[" + section[0] + b' "' + section[1] + b'"]\n')
            for key, value in values.items():
                f.write(b"\t" + key + b" = " + _format_string(value) + b"\n")
