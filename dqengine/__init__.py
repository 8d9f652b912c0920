# -*- coding: utf-8 -*-
"""
DQ Engine
=========

Data quality tooling for health information repositories.

Subpackages:
    - reconciliation: cross-repository field mapping and value reconciliation
    - cli: ``dq`` command line interface
"""

__version__ = "1.0.0"
