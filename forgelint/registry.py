# Matcher registry: maps node kinds to the rules interested in them, and dispatches.

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from forgelint.errors import RuleInternalError
from forgelint.findings.models import Finding, Message, Severity
from forgelint.index import ControlContext, Scope
from forgelint.rules.base import Rule, RuleContext
from forgelint.tree import NodeKind, SyntaxNode

logger = logging.getLogger(__name__)

INTERNAL_ERROR_KIND = "rule-internal-error"


class RuleRegistry:
    """
    Dispatch table from NodeKind to the rules that declared interest in it.

    Rules keep registration order; rules registered in the same register()
    call are ordered by id so the table does not depend on argument order.
    """

    def __init__(self) -> None:
        self._rules: list[Rule] = []
        self._by_kind: dict[NodeKind, tuple[Rule, ...]] = {}

    def register(self, *rules: Rule) -> None:
        known = {r.id for r in self._rules}
        for rule in sorted(rules, key=lambda r: r.id):
            if rule.id in known:
                raise ValueError(f"Rule {rule.id!r} is already registered")
            known.add(rule.id)
            self._rules.append(rule)
            for kind in rule.interests:
                self._by_kind[kind] = self._by_kind.get(kind, ()) + (rule,)
            logger.debug("Registered rule %s for %d node kind(s)", rule.id, len(rule.interests))

    @classmethod
    def from_rules(cls, rules: Iterable[Rule]) -> "RuleRegistry":
        registry = cls()
        for rule in rules:
            registry.register(rule)
        return registry

    @property
    def rules(self) -> Sequence[Rule]:
        return tuple(self._rules)

    def rules_for(self, kind: NodeKind) -> tuple[Rule, ...]:
        return self._by_kind.get(kind, ())

    def dispatch(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        contexts: Mapping[str, RuleContext],
    ) -> list[Finding]:
        """
        Run every rule interested in node.kind and collect their findings.

        A rule that raises is isolated: the failure is logged and turned into a
        synthetic finding, and the remaining rules still run.
        """
        findings: list[Finding] = []
        for rule in self._by_kind.get(node.kind, ()):
            context = contexts.get(rule.id)
            if context is None:
                continue
            try:
                findings.extend(rule.check(node, control, scope, context))
            except Exception as exc:
                error = RuleInternalError(rule.id, node.type, exc)
                logger.exception("%s (file %s)", error, context.file.path)
                findings.append(_internal_error_finding(rule, node, context, error))
        return findings


def _internal_error_finding(
    rule: Rule,
    node: SyntaxNode,
    context: RuleContext,
    error: RuleInternalError,
) -> Finding:
    message = Message(
        kind=INTERNAL_ERROR_KIND,
        category="engine",
        text=f"Rule {rule.id} failed to run on this {node.type}: {error.cause!r}",
    )
    finding = rule.report(context, node, message)
    return finding.model_copy(update={"severity": Severity.ERROR})
