#!/usr/bin/python3
# Setup file for quire
# Copyright (C) 2026 The quire authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]


setup(
    name="quire",
    version="0.3.0",
    description="Staging index engine for a content-addressed version control tool",
    license="Apache-2.0 OR GPL-2.0-or-later",
    packages=["quire"],
    package_data={"": ["py.typed"]},
    python_requires=">=3.10",
    install_requires=[],
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["quire=quire.cli:_main"]},
    test_suite="tests.test_suite",
)
