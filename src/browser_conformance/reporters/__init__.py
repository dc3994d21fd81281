"""Conformance report generators."""

from .json_reporter import JsonReporter

__all__ = ["JsonReporter"]
