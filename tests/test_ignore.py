# test_ignore.py -- Tests for ignore files.
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

"""Tests for ignore files."""

import os
import re
from io import BytesIO

from quire.ignore import (
    IgnoreFilter,
    IgnoreFilterManager,
    Pattern,
    load_ignore_patterns,
    match_pattern,
    read_ignore_patterns,
    should_ignore,
    translate,
)
from quire.repo import Repo

from . import TestCase

POSITIVE_MATCH_TESTS = [
    ("foo.c", "*.c"),
    (".c", "*.c"),
    ("foo/foo.c", "*.c"),
    ("foo/foo.c", "foo.c"),
    ("foo.c", "/*.c"),
    ("foo.c", "/foo.c"),
    ("foo.c", "foo.c"),
    ("foo.c", "foo.[ch]"),
    ("foo/bar/bla.c", "foo/**"),
    ("foo/bar/bla/blie.c", "foo/**/blie.c"),
    ("foo/bar/bla.c", "**/bla.c"),
    ("bla.c", "**/bla.c"),
    ("foo/bar", "foo/**/bar"),
    ("foo/bla/bar", "foo/**/bar"),
    ("foo/bar/", "bar/"),
    ("foo/bar/", "bar"),
    ("foo/bar/something", "foo/bar/*"),
]

NEGATIVE_MATCH_TESTS = [
    ("foo.c", "foo.[dh]"),
    ("foo/foo.c", "/foo.c"),
    ("foo/foo.c", "/*.c"),
    ("foo/bar/", "/bar/"),
    ("foo/bar/", "foo/bar/*"),
    ("foo/bar", "foo?bar"),
    ("foo/bar", "foo//bar"),
]


TRANSLATE_TESTS = [
    ("*.c", "(?ms)(.*/)?[^/]*\\.c/?\\Z"),
    ("foo.c", "(?ms)(.*/)?foo\\.c/?\\Z"),
    ("/*.c", "(?ms)[^/]*\\.c/?\\Z"),
    ("/foo.c", "(?ms)foo\\.c/?\\Z"),
    ("foo.[ch]", "(?ms)(.*/)?foo\\.[ch]/?\\Z"),
    ("bar/", "(?ms)(.*/)?bar/\\Z"),
    ("foo/**", "(?ms)foo/.*/?\\Z"),
    ("foo/**/blie.c", "(?ms)foo/(?:[^/]+/)*blie\\.c/?\\Z"),
    ("**/bla.c", "(?ms)(.*/)?bla\\.c/?\\Z"),
    ("foo/**/bar", "(?ms)foo/(?:[^/]+/)*bar/?\\Z"),
    ("foo/bar/*", "(?ms)foo/bar/[^/]+/?\\Z"),
]


class TranslateTests(TestCase):
    def test_translate(self) -> None:
        for pattern, regex in TRANSLATE_TESTS:
            if re.escape("/") == "/":
                # Slash is no longer escaped in Python3.7, so undo the escaping
                # in the expected return value..
                regex = regex.replace("\\/", "/")
            self.assertEqual(
                regex,
                translate(pattern),
                f"orig pattern: {pattern!r}, regex: {translate(pattern)!r}, expected: {regex!r}",
            )


class ReadIgnorePatterns(TestCase):
    def test_read_file(self) -> None:
        f = BytesIO(
            b"""
# a comment
\x20\x20
# and an empty line:

\\#not a comment
!negative
with trailing whitespace\x20\x20
with escaped trailing whitespace\\\x20
"""
        )
        self.assertEqual(
            list(read_ignore_patterns(f)),
            [
                "\\#not a comment",
                "!negative",
                "with trailing whitespace",
                "with escaped trailing whitespace ",
            ],
        )


class MatchPatternTests(TestCase):
    def test_matches(self) -> None:
        for path, pattern in POSITIVE_MATCH_TESTS:
            self.assertTrue(
                match_pattern(path, pattern),
                f"path: {path!r}, pattern: {pattern!r}",
            )

    def test_no_matches(self) -> None:
        for path, pattern in NEGATIVE_MATCH_TESTS:
            self.assertFalse(
                match_pattern(path, pattern),
                f"path: {path!r}, pattern: {pattern!r}",
            )

    def test_ignorecase(self) -> None:
        self.assertFalse(match_pattern("FOO.c", "foo.c"))
        self.assertTrue(match_pattern("FOO.c", "foo.c", ignorecase=True))


class PatternTests(TestCase):
    def test_negation(self) -> None:
        p = Pattern("!keep.log")
        self.assertFalse(p.is_exclude)
        self.assertTrue(p.match("keep.log"))

    def test_escaped_specials(self) -> None:
        p = Pattern("\\!important")
        self.assertTrue(p.is_exclude)
        self.assertTrue(p.match("!important"))
        self.assertTrue(Pattern("\\#hash").match("#hash"))

    def test_directory_only(self) -> None:
        p = Pattern("build/")
        self.assertTrue(p.is_directory_only)
        self.assertTrue(p.match("build/"))
        self.assertFalse(p.match("build"))

    def test_eq(self) -> None:
        self.assertEqual(Pattern("*.o"), Pattern("*.o"))
        self.assertNotEqual(Pattern("*.o"), Pattern("*.o", ignorecase=True))


class IgnoreFilterTests(TestCase):
    def test_included(self) -> None:
        filter = IgnoreFilter(["a.c", "b.c"])
        self.assertTrue(filter.is_ignored("a.c"))
        self.assertIsNone(filter.is_ignored("c.c"))
        self.assertEqual([Pattern("a.c")], list(filter.find_matching("a.c")))
        self.assertEqual([], list(filter.find_matching("c.c")))

    def test_included_ignorecase(self) -> None:
        filter = IgnoreFilter(["a.c", "b.c"], ignorecase=False)
        self.assertTrue(filter.is_ignored("a.c"))
        self.assertFalse(filter.is_ignored("A.c"))
        filter = IgnoreFilter(["a.c", "b.c"], ignorecase=True)
        self.assertTrue(filter.is_ignored("a.c"))
        self.assertTrue(filter.is_ignored("A.c"))
        self.assertTrue(filter.is_ignored("A.C"))

    def test_excluded(self) -> None:
        filter = IgnoreFilter(["a.c", "b.c", "!c.c"])
        self.assertFalse(filter.is_ignored("c.c"))
        self.assertIsNone(filter.is_ignored("d.c"))
        self.assertEqual([Pattern("!c.c")], list(filter.find_matching("c.c")))
        self.assertEqual([], list(filter.find_matching("d.c")))

    def test_include_exclude_include(self) -> None:
        filter = IgnoreFilter(["a.c", "!a.c", "a.c"])
        self.assertTrue(filter.is_ignored("a.c"))
        self.assertEqual(
            [Pattern("a.c"), Pattern("!a.c"), Pattern("a.c")],
            list(filter.find_matching("a.c")),
        )

    def test_manpage(self) -> None:
        # A specific example from the gitignore manpage
        filter = IgnoreFilter(["/*", "!/foo", "/foo/*", "!/foo/bar"])
        self.assertTrue(filter.is_ignored("a.c"))
        self.assertTrue(filter.is_ignored("foo/blie"))
        self.assertFalse(filter.is_ignored("foo"))
        self.assertFalse(filter.is_ignored("foo/bar"))
        self.assertFalse(filter.is_ignored("foo/bar/"))
        self.assertFalse(filter.is_ignored("foo/bar/bloe"))

    def test_from_path(self) -> None:
        path = os.path.join(self.mkdtemp(), "ignore")
        with open(path, "wb") as f:
            f.write(b"*.o\n")
        filter = IgnoreFilter.from_path(path)
        self.assertTrue(filter.is_ignored("x.o"))
        self.assertIn("from_path", repr(filter))


class IgnoreFilterManagerTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.tmp_dir = self.mkdtemp()
        self.repo = Repo.init(self.tmp_dir)

    def write(self, relpath: str, contents: bytes) -> None:
        path = os.path.join(self.tmp_dir, relpath)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(contents)

    def test_load_ignore(self) -> None:
        self.write(".quireignore", b"/foo/bar\n/dir2\n/dir3/\n*.o\n")
        self.write("dir/.quireignore", b"/blie\n")
        self.write(".quire/info/exclude", b"/excluded\n")

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("dir/blie"))
        self.assertIsNone(m.is_ignored(os.path.join("dir", "bloe")))
        self.assertIsNone(m.is_ignored("dir"))
        self.assertTrue(m.is_ignored(os.path.join("foo", "bar")))
        self.assertTrue(m.is_ignored(os.path.join("excluded")))
        self.assertTrue(m.is_ignored(os.path.join("dir2", "fileinignoreddir")))
        self.assertFalse(m.is_ignored("dir3"))
        self.assertTrue(m.is_ignored("dir3/"))
        self.assertTrue(m.is_ignored("dir3/bla"))
        self.assertTrue(m.is_ignored("x.o"))
        self.assertTrue(m.is_ignored("dir/x.o"))

    def test_nested_override(self) -> None:
        self.write(".quireignore", b"*.txt\n")
        self.write("sub/.quireignore", b"!a.txt\n")

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("a.txt"))
        self.assertFalse(m.is_ignored("sub/a.txt"))
        self.assertTrue(m.is_ignored("sub/b.txt"))

    def test_ignored_directory_cannot_be_reincluded(self) -> None:
        self.write(".quireignore", b"build/\n!build/keep.txt\n")

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("build/keep.txt"))
        self.assertTrue(m.is_ignored("build/other.txt"))

    def test_per_directory_file_beats_info_exclude(self) -> None:
        self.write(".quire/info/exclude", b"*.log\n")
        self.write(".quireignore", b"!keep.log\n")

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("debug.log"))
        self.assertFalse(m.is_ignored("keep.log"))

    def test_excludes_file(self) -> None:
        excludes = os.path.join(self.mkdtemp(), "excludes")
        with open(excludes, "wb") as f:
            f.write(b"*.bak\n")
        config = self.repo.get_config()
        config.set("core", "excludesFile", excludes)
        config.write_to_path()

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("notes.bak"))
        self.assertIsNone(m.is_ignored("notes.txt"))

    def test_xdg_default_ignore_file(self) -> None:
        xdg = self.mkdtemp()
        self.overrideEnv("XDG_CONFIG_HOME", xdg)
        os.mkdir(os.path.join(xdg, "quire"))
        with open(os.path.join(xdg, "quire", "ignore"), "wb") as f:
            f.write(b"*.swp\n")

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("file.swp"))

    def test_ignorecase(self) -> None:
        self.write(".quireignore", b"*.TXT\n")
        config = self.repo.get_config()
        config.set("core", "ignorecase", True)
        config.write_to_path()

        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertTrue(m.is_ignored("a.txt"))

    def test_absolute_path_rejected(self) -> None:
        m = IgnoreFilterManager.from_repo(self.repo)
        self.assertRaises(ValueError, m.find_matching, os.path.join(self.tmp_dir, "x"))

    def test_should_ignore(self) -> None:
        self.write(".quireignore", b"*.tmp\n")
        patterns = load_ignore_patterns(self.repo)
        self.assertTrue(should_ignore("x.tmp", patterns))
        self.assertFalse(should_ignore("x.txt", patterns))

    def test_should_ignore_tracked(self) -> None:
        self.write(".quireignore", b"*.tmp\n")
        patterns = load_ignore_patterns(self.repo)
        tracked = {"x.tmp": "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"}
        self.assertTrue(should_ignore("x.tmp", patterns, tracked))

    def test_should_ignore_negated(self) -> None:
        self.write(".quireignore", b"*.tmp\n!keep.tmp\n")
        patterns = load_ignore_patterns(self.repo)
        self.assertFalse(should_ignore("keep.tmp", patterns))
