"""Rule evaluation for conformance snapshots."""

from .engine import (
    AssertionEngine,
    DEFAULT_EVALUATORS,
    required_dom_queries,
    rule_id,
)

__all__ = [
    "AssertionEngine",
    "DEFAULT_EVALUATORS",
    "required_dom_queries",
    "rule_id",
]
