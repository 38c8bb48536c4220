# __init__.py -- The tests for quire
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

"""Tests for quire."""

__all__ = [
    "SkipTest",
    "TestCase",
    "expectedFailure",
    "skipIf",
    "test_suite",
]

import os
import shutil
import tempfile
import unittest
from unittest import SkipTest, expectedFailure, skipIf
from unittest import TestCase as _TestCase


class TestCase(_TestCase):
    """Base class for quire tests.

    HOME and XDG_CONFIG_HOME point at locations that do not exist, so no
    per-user ignore file can leak into a test.
    """

    def setUp(self) -> None:
        super().setUp()
        self.overrideEnv("HOME", "/nonexistent")
        self.overrideEnv("XDG_CONFIG_HOME", "/nonexistent")
        self.overrideEnv("QUIRE_TRACE", None)

    def overrideEnv(self, name: str, value: str | None) -> None:
        def restore() -> None:
            if oldval is not None:
                os.environ[name] = oldval
            else:
                os.environ.pop(name, None)

        oldval = os.environ.get(name)
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)
        self.addCleanup(restore)

    def mkdtemp(self) -> str:
        """Create a temporary directory that is removed after the test."""
        path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, path)
        return path

    def chdir(self, path: str) -> None:
        """Change the working directory for the rest of the test."""
        self.addCleanup(os.chdir, os.getcwd())
        os.chdir(path)


def test_suite() -> unittest.TestSuite:
    names = [
        "cli",
        "config",
        "file",
        "ignore",
        "index",
        "log_utils",
        "object_store",
        "porcelain",
        "repository",
        "worktree",
    ]
    module_names = ["tests.test_" + name for name in names]
    loader = unittest.TestLoader()
    return loader.loadTestsFromNames(module_names)
