"""Entry point for running quire as a module.

This module allows quire to be run as a Python module using the -m flag:
    python -m quire

It serves as the main entry point for the quire command-line interface.
"""

from . import cli

if __name__ == "__main__":
    cli._main()
