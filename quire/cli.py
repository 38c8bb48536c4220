#
# quire - Simple command-line interface to quire
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

"""Simple command-line interface to quire.

Output is written through the ``quire.cli`` logger at INFO level; errors
are reported at ERROR level and give exit status 1.
"""

__all__ = [
    "Command",
    "commands",
    "main",
    "parse_hash_lines",
    "signal_int",
]

import argparse
import logging
import os
import signal
import sys
import types
from collections.abc import Iterable, Sequence
from typing import ClassVar

from . import porcelain
from .errors import (
    FileFormatException,
    LockFailure,
    NotRepository,
    PathNotFound,
    PathResolutionError,
    StorageFailure,
    WriteFailure,
)
from .log_utils import _configure_logging_from_trace, remove_null_handler
from .repo import Repo, UnsupportedVersion

logger = logging.getLogger(__name__)

# Failures reported as a one-line message rather than a traceback.
HANDLED_ERRORS = (
    porcelain.Error,
    FileFormatException,
    LockFailure,
    NotRepository,
    PathNotFound,
    PathResolutionError,
    StorageFailure,
    UnsupportedVersion,
    WriteFailure,
)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def parse_hash_lines(lines: Iterable[str]) -> dict[str, str]:
    """Parse ``<sha> <path>`` lines, as read by reset-index.

    Blank lines are skipped; the path extends to the end of the line.

    Raises:
      ValueError: on a line without a path
    """
    ret = {}
    for lineno, line in enumerate(lines, 1):
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        sha, sep, path = line.partition(" ")
        if not sep or not path:
            raise ValueError(f"line {lineno}: expected '<sha> <path>', got {line!r}")
        ret[path] = sha
    return ret


class Command:
    """A quire subcommand."""

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create an empty quire repository."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="quire init")
        parser.add_argument(
            "path", nargs="?", default=os.getcwd(), help="Repository path"
        )
        parsed_args = parser.parse_args(args)

        repo = porcelain.init(parsed_args.path)
        logger.info("Initialized empty quire repository in %s", repo.controldir())


class cmd_add(Command):
    """Add file contents to the index."""

    def run(self, argv: Sequence[str]) -> None:
        """Execute the add command.

        Args:
            argv: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="quire add")
        parser.add_argument(
            "-A",
            "--all",
            action="store_true",
            help="Stage the whole working tree and drop entries for removed files",
        )
        parser.add_argument("path", nargs="*")
        args = parser.parse_args(argv)
        if not args.all and not args.path:
            parser.error("nothing specified, nothing added")

        repo = Repo.discover()
        if args.all:
            for path in porcelain.add(repo):
                logger.info("rm '%s'", path)
        if args.path:
            porcelain.add(repo, paths=args.path)


class cmd_ls_files(Command):
    """Show information about files in the index."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="quire ls-files")
        parser.add_argument(
            "-s",
            "--stage",
            action="store_true",
            help="Show the content hash, size and mtime of each entry",
        )
        parsed_args = parser.parse_args(args)

        repo = Repo.discover()
        if parsed_args.stage:
            for path, entry in porcelain.ls_files_stage(repo):
                logger.info("%s %d %d\t%s", entry.sha, entry.size, entry.mtime, path)
        else:
            for name in porcelain.ls_files(repo):
                logger.info(name)


class cmd_rm(Command):
    """Remove files from the index."""

    def run(self, argv: Sequence[str]) -> int | None:
        """Execute the rm command.

        Args:
            argv: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="quire rm")
        parser.add_argument(
            "--cached",
            action="store_true",
            help="Remove from index only (required)",
        )
        parser.add_argument("path", nargs="+")
        args = parser.parse_args(argv)
        if not args.cached:
            parser.error("only --cached is supported")

        try:
            porcelain.remove_cached(Repo.discover(), args.path)
        except KeyError as exc:
            logger.error("error: %s", exc.args[0])
            return 1
        return None


class cmd_update_index(Command):
    """Register blob contents in the index directly."""

    def run(self, argv: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="quire update-index")
        group = parser.add_mutually_exclusive_group(required=True)
        group.add_argument(
            "--cacheinfo",
            metavar="SHA,PATH",
            help="Record blob SHA under PATH",
        )
        group.add_argument(
            "--force-remove",
            metavar="PATH",
            help="Remove PATH from the index if present",
        )
        parser.add_argument(
            "--info-only",
            action="store_true",
            help="Do not require the blob to be in the object store",
        )
        args = parser.parse_args(argv)

        repo = Repo.discover()
        if args.force_remove is not None:
            porcelain.remove_cached(repo, [args.force_remove], missing_ok=True)
            return
        sha, sep, path = args.cacheinfo.partition(",")
        if not sep or not path:
            parser.error("--cacheinfo expects SHA,PATH")
        porcelain.update_index_cacheinfo(repo, sha, path, info_only=args.info_only)


class cmd_reset_index(Command):
    """Replace the index with a list of hashes and paths."""

    def run(self, argv: Sequence[str]) -> int | None:
        parser = argparse.ArgumentParser(prog="quire reset-index")
        parser.add_argument(
            "file",
            nargs="?",
            help="File with '<sha> <path>' lines (defaults to standard input)",
        )
        args = parser.parse_args(argv)

        try:
            if args.file is None:
                hashes = parse_hash_lines(sys.stdin)
            else:
                with open(args.file, encoding="utf-8") as f:
                    hashes = parse_hash_lines(f)
        except ValueError as exc:
            logger.error("error: %s", exc)
            return 1
        porcelain.reset_index(Repo.discover(), hashes)
        return None


class cmd_check_ignore(Command):
    """Check whether files are excluded by ignore rules."""

    def run(self, args: Sequence[str]) -> int:
        """Execute the check-ignore command.

        Args:
            args: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="quire check-ignore")
        parser.add_argument("paths", nargs="+", help="Paths to check")
        parsed_args = parser.parse_args(args)
        ret = 1
        for path in porcelain.check_ignore(Repo.discover(), parsed_args.paths):
            logger.info(path)
            ret = 0
        return ret


class cmd_hash_object(Command):
    """Compute the blob identifier of a file."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="quire hash-object")
        parser.add_argument(
            "-w",
            action="store_true",
            dest="write",
            help="Write the blob into the object store",
        )
        parser.add_argument("file")
        parsed_args = parser.parse_args(args)

        repo = Repo.discover() if parsed_args.write else None
        logger.info(porcelain.hash_object(parsed_args.file, repo, parsed_args.write))


class cmd_help(Command):
    """Display help information about quire."""

    def run(self, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="quire help")
        parser.parse_args(args)
        logger.info("Available commands:")
        for cmd in sorted(commands):
            logger.info("  %-14s %s", cmd, commands[cmd].__doc__)


commands: dict[str, type[Command]] = {
    "add": cmd_add,
    "check-ignore": cmd_check_ignore,
    "hash-object": cmd_hash_object,
    "help": cmd_help,
    "init": cmd_init,
    "ls-files": cmd_ls_files,
    "reset-index": cmd_reset_index,
    "rm": cmd_rm,
    "update-index": cmd_update_index,
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the quire CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        parser = argparse.ArgumentParser(
            prog="quire", description="Simple command-line interface to quire"
        )
        parser.add_argument(
            "command",
            nargs="?",
            help=f"Command to run. Available: {', '.join(sorted(commands))}",
        )
        parser.print_help()
        return 1

    remove_null_handler()
    # Try to configure from QUIRE_TRACE, fall back to default if it fails
    if not _configure_logging_from_trace():
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logging.fatal("No such subcommand: %s", cmd)
        return 1
    try:
        return cmd_kls().run(argv[1:])
    except HANDLED_ERRORS as exc:
        logger.error("error: %s", exc)
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
