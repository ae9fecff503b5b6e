# Engine error taxonomy: fatal tree/config errors and contained per-rule failures.

from __future__ import annotations

from typing import Optional


class ForgelintError(Exception):
    """Base class for all errors raised by the engine."""


class MalformedTree(ForgelintError):
    """The parsed tree violates the structural invariants of the tree model."""


class ConfigurationError(ForgelintError):
    """Invalid rule configuration, detected before a pass starts."""

    def __init__(self, rule_id: str, message: str, key: Optional[str] = None) -> None:
        self.rule_id = rule_id
        self.key = key
        where = f"{rule_id}.{key}" if key else rule_id
        super().__init__(f"{where}: {message}")


class RuleInternalError(ForgelintError):
    """A rule's detection function raised while checking a node."""

    def __init__(self, rule_id: str, node_type: str, cause: BaseException) -> None:
        self.rule_id = rule_id
        self.node_type = node_type
        self.cause = cause
        super().__init__(f"Rule {rule_id} failed on {node_type}: {cause!r}")
