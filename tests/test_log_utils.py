# test_log_utils.py -- Tests for quire.log_utils
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

"""Tests for quire.log_utils."""

import logging
import os

from quire.log_utils import (
    _NULL_HANDLER,
    _QUIRE_LOGGER,
    TRACE_ENVIRONMENT_VARIABLE,
    _get_trace_target,
    _NullHandler,
    default_logging_config,
    getLogger,
    remove_null_handler,
)

from . import TestCase


class LogUtilsTests(TestCase):
    """Tests for log_utils."""

    def setUp(self) -> None:
        super().setUp()
        self.original_handlers = list(_QUIRE_LOGGER.handlers)
        root_logger = logging.getLogger()
        original_level = root_logger.level
        original_root_handlers = list(root_logger.handlers)

        def restore() -> None:
            _QUIRE_LOGGER.handlers = self.original_handlers
            for handler in root_logger.handlers:
                if handler not in original_root_handlers:
                    handler.close()
            root_logger.handlers = original_root_handlers
            root_logger.level = original_level

        self.addCleanup(restore)
        root_logger.handlers = []
        root_logger.level = logging.WARNING

    def _set_trace(self, value: str | None) -> None:
        self.overrideEnv(TRACE_ENVIRONMENT_VARIABLE, value)

    def test_null_handler(self) -> None:
        """The null handler swallows records."""
        handler = _NullHandler()
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test_log_utils.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        handler.emit(record)

    def test_library_logger_is_silent_by_default(self) -> None:
        self.assertIn(_NULL_HANDLER, _QUIRE_LOGGER.handlers)

    def test_get_logger(self) -> None:
        logger = getLogger("quire.test")
        self.assertIsInstance(logger, logging.Logger)
        self.assertEqual(logger.name, "quire.test")

    def test_remove_null_handler(self) -> None:
        if _NULL_HANDLER not in _QUIRE_LOGGER.handlers:
            _QUIRE_LOGGER.addHandler(_NULL_HANDLER)

        remove_null_handler()

        self.assertNotIn(_NULL_HANDLER, _QUIRE_LOGGER.handlers)

    def test_default_logging_config(self) -> None:
        default_logging_config()

        self.assertNotIn(_NULL_HANDLER, _QUIRE_LOGGER.handlers)
        root_logger = logging.getLogger()
        self.assertTrue(root_logger.handlers)
        self.assertEqual(logging.INFO, root_logger.level)

    def test_get_trace_target_disabled(self) -> None:
        for value in (None, "", "0", "false", "FALSE"):
            self._set_trace(value)
            self.assertIsNone(_get_trace_target(), value)

    def test_get_trace_target_stderr(self) -> None:
        for value in ("1", "2", "true", "TRUE"):
            self._set_trace(value)
            self.assertEqual(2, _get_trace_target(), value)

    def test_get_trace_target_file_descriptor(self) -> None:
        for fd in range(3, 10):
            self._set_trace(str(fd))
            self.assertEqual(fd, _get_trace_target())

        self._set_trace("10")
        self.assertIsNone(_get_trace_target())

    def test_get_trace_target_path(self) -> None:
        tmpdir = self.mkdtemp()
        self._set_trace(tmpdir)
        self.assertEqual(tmpdir, _get_trace_target())

        trace_file = os.path.join(tmpdir, "trace.log")
        self._set_trace(trace_file)
        self.assertEqual(trace_file, _get_trace_target())

    def test_get_trace_target_relative_path(self) -> None:
        self._set_trace("relative/path")
        self.assertIsNone(_get_trace_target())

    def test_default_logging_config_with_trace(self) -> None:
        self._set_trace("1")
        default_logging_config()

        self.assertNotIn(_NULL_HANDLER, _QUIRE_LOGGER.handlers)
        root_logger = logging.getLogger()
        self.assertTrue(root_logger.handlers)
        self.assertEqual(logging.DEBUG, root_logger.level)

    def test_default_logging_config_trace_directory(self) -> None:
        tmpdir = self.mkdtemp()
        self._set_trace(tmpdir)
        default_logging_config()

        getLogger("quire.test").debug("traced message")
        for handler in logging.getLogger().handlers:
            handler.flush()

        trace_file = os.path.join(tmpdir, f"trace.{os.getpid()}")
        with open(trace_file) as f:
            self.assertIn("traced message", f.read())
