# test_repository.py -- tests for repo.py
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

"""Tests for the repository."""

import os

from quire.config import ConfigFile
from quire.errors import NotRepository
from quire.repo import CONTROLDIR, Repo, UnsupportedVersion
from quire.worktree import WorkTree

from . import TestCase


class CreateRepositoryTests(TestCase):
    def test_create_disk(self) -> None:
        tmp_dir = self.mkdtemp()
        repo = Repo.init(tmp_dir)
        self.assertEqual(os.path.abspath(tmp_dir), repo.path)
        controldir = os.path.join(tmp_dir, CONTROLDIR)
        self.assertEqual(controldir, repo.controldir())
        self.assertTrue(os.path.isdir(os.path.join(controldir, "objects")))
        self.assertTrue(os.path.isdir(os.path.join(controldir, "info")))
        self.assertFalse(repo.has_index())

    def test_create_config(self) -> None:
        repo = Repo.init(self.mkdtemp())
        config = ConfigFile.from_path(os.path.join(repo.controldir(), "config"))
        self.assertEqual(b"0", config.get("core", "repositoryformatversion"))

    def test_create_mkdir(self) -> None:
        path = os.path.join(self.mkdtemp(), "new")
        repo = Repo.init(path, mkdir=True)
        self.assertTrue(os.path.isdir(os.path.join(path, CONTROLDIR)))
        self.assertEqual(os.path.abspath(path), repo.path)

    def test_create_twice(self) -> None:
        tmp_dir = self.mkdtemp()
        Repo.init(tmp_dir)
        self.assertRaises(FileExistsError, Repo.init, tmp_dir)


class RepositoryTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.tmp_dir = self.mkdtemp()
        Repo.init(self.tmp_dir)

    def write_config(self, data: bytes) -> None:
        with open(os.path.join(self.tmp_dir, CONTROLDIR, "config"), "wb") as f:
            f.write(data)

    def test_open(self) -> None:
        with Repo(self.tmp_dir) as r:
            self.assertEqual(os.path.abspath(self.tmp_dir), r.path)
            self.assertEqual(
                os.path.join(r.controldir(), "objects"), r.object_store.path
            )
            self.assertIn(repr(r.path), repr(r))

    def test_not_a_repository(self) -> None:
        self.assertRaises(NotRepository, Repo, self.mkdtemp())

    def test_unsupported_version(self) -> None:
        self.write_config(b"[core]\n\trepositoryformatversion = 1\n")
        with self.assertRaises(UnsupportedVersion) as cm:
            Repo(self.tmp_dir)
        self.assertEqual(1, cm.exception.version)

    def test_unparsable_version(self) -> None:
        self.write_config(b"[core]\n\trepositoryformatversion = one\n")
        with self.assertRaises(UnsupportedVersion) as cm:
            Repo(self.tmp_dir)
        self.assertEqual(-1, cm.exception.version)

    def test_missing_config(self) -> None:
        path = os.path.join(self.tmp_dir, CONTROLDIR, "config")
        os.remove(path)
        r = Repo(self.tmp_dir)
        config = r.get_config()
        self.assertEqual(ConfigFile(), config)
        self.assertEqual(path, config.path)

    def test_discover(self) -> None:
        subdir = os.path.join(self.tmp_dir, "a", "b")
        os.makedirs(subdir)
        r = Repo.discover(subdir)
        self.assertEqual(os.path.abspath(self.tmp_dir), r.path)

    def test_discover_from_cwd(self) -> None:
        self.chdir(self.tmp_dir)
        self.assertEqual(os.path.abspath(self.tmp_dir), Repo.discover().path)

    def test_discover_not_found(self) -> None:
        self.assertRaises(NotRepository, Repo.discover, self.mkdtemp())

    def test_index_path(self) -> None:
        r = Repo(self.tmp_dir)
        self.assertEqual(os.path.join(r.controldir(), "index"), r.index_path())
        self.assertEqual(r.index_path(), r.open_index().path)

    def test_open_index_waits_by_default(self) -> None:
        self.assertIsNone(Repo(self.tmp_dir).open_index().lock_timeout)

    def test_open_index_lock_timeout(self) -> None:
        self.write_config(b"[index]\n\tlockTimeout = 1500\n")
        self.assertEqual(1.5, Repo(self.tmp_dir).open_index().lock_timeout)

    def test_open_index_no_wait(self) -> None:
        self.write_config(b"[index]\n\tlockTimeout = 0\n")
        self.assertEqual(0, Repo(self.tmp_dir).open_index().lock_timeout)

    def test_open_index_negative_timeout(self) -> None:
        self.write_config(b"[index]\n\tlockTimeout = -1\n")
        self.assertIsNone(Repo(self.tmp_dir).open_index().lock_timeout)

    def test_has_index(self) -> None:
        r = Repo(self.tmp_dir)
        self.assertFalse(r.has_index())
        r.open_index().update(lambda entries: None)
        self.assertTrue(r.has_index())

    def test_get_worktree(self) -> None:
        r = Repo(self.tmp_dir)
        wt = r.get_worktree()
        self.assertIsInstance(wt, WorkTree)
        self.assertEqual(r.path, wt.path)
