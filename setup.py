#!/usr/bin/env python3
"""
Cache Client Setup Script
=========================
Allows installation of the cache-client package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="cache-client",
    version="1.0.0",
    packages=find_packages(include=["cache_client", "cache_client.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "cache-client=cache_client.cli:main",
        ],
    },
)
