#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for DQ Engine

Packages the field reconciliation SDK, its FastAPI router and the
``dq`` command line interface.
"""

from setuptools import setup, find_packages
from pathlib import Path

VERSION = "1.0.0"

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")
else:
    long_description = "DQ Engine - Cross-repository field reconciliation"

setup(
    name="dq-engine",
    version=VERSION,
    description="Cross-repository field mapping and value reconciliation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["dqengine", "dqengine.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",
        "prometheus-client>=0.17",
        "fastapi>=0.100",
        "typer>=0.9",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "dq=dqengine.cli.main:main",
        ],
    },
)
