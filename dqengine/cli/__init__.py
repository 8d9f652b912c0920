# -*- coding: utf-8 -*-
"""
DQ Engine CLI
=============

Command line interface for the field reconciliation engines.
"""

from dqengine.cli.main import app, main

__all__ = ["app", "main"]
