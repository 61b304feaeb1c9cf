"""Deployment entry points."""

from contest_fanout.handlers.partition import PartitionEvent, build_processor, handler, parse_event

__all__ = ["PartitionEvent", "build_processor", "handler", "parse_event"]
