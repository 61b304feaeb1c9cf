"""contest-fanout command-line interface."""

from contest_fanout.cli.app import app

__all__ = ["app"]
