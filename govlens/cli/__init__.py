"""
govlens CLI

Command-line tools for governance dashboards.
"""

from .dashboard import cli

__all__ = ["cli"]
