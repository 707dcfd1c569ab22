"""Command line interface for taskgraph."""

from taskgraph.cli.main import app

__all__ = ["app"]
