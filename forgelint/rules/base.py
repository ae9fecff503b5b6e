# Rule interface (abstract base class): defines the contract all rules must implement.
# Concrete rules (no_sql_injection, no_unhandled_promise, etc.) subclass Rule,
# declare the node kinds they want to see, and implement check().

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from forgelint.context import FileContext, get_line_col, get_source_span
from forgelint.findings.models import (
    Finding,
    Fix,
    FixStatus,
    Location,
    Message,
    Severity,
    Suggestion,
    TextEdit,
)
from forgelint.index import AnalysisIndex, ControlContext, Scope
from forgelint.tree import NodeKind, SyntaxNode


class RuleOptions(BaseModel):
    """
    Base class for a rule's option schema.

    Unknown keys are rejected. Fields accept both snake_case and the camelCase
    spelling used in configuration files (e.g. trustedFunctions).
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RuleDescriptor(BaseModel):
    """Static metadata a rule registers with the engine."""

    id: str
    name: str
    description: str = ""
    default_severity: Severity
    options_schema: dict[str, Any]
    interests: tuple[NodeKind, ...]
    fixable: bool = False
    suggestion_count: int = 0


@dataclass(frozen=True)
class RuleContext:
    """
    Everything a rule may read besides the node itself, for one file and one rule.

    state is the rule's own per-file accumulator (see Rule.create_state); it is
    never shared with another rule or another file.
    """

    file: FileContext
    index: AnalysisIndex
    options: RuleOptions
    severity: Severity
    state: Any = None

    def text(self, node: SyntaxNode) -> str:
        return get_source_span(self.file, node)

    def control(self, node: SyntaxNode) -> ControlContext:
        return self.index.control(node)


class Rule(ABC):
    """
    Abstract base class for all rules.

    Subclasses must define:
    - id: str, unique rule identifier (e.g. "no-sql-injection")
    - name: str, human-readable name
    - interests: the NodeKinds check() is called for
    - check(node, control, scope, context) -> list[Finding]

    Optional: options (a RuleOptions subclass), default_severity, fixable,
    suggestion_count, create_state() for a per-file accumulator.
    check() must not raise for shapes it does not recognize; it returns [].
    """

    id: ClassVar[str]
    name: ClassVar[str]
    description: ClassVar[str] = ""
    category: ClassVar[str] = "problem"
    reference: ClassVar[Optional[str]] = None
    interests: ClassVar[frozenset[NodeKind]]
    options: ClassVar[type[RuleOptions]] = RuleOptions
    default_severity: ClassVar[Severity] = Severity.WARN
    fixable: ClassVar[bool] = False
    suggestion_count: ClassVar[int] = 0

    @classmethod
    def descriptor(cls) -> RuleDescriptor:
        return RuleDescriptor(
            id=cls.id,
            name=cls.name,
            description=cls.description,
            default_severity=cls.default_severity,
            options_schema=cls.options.model_json_schema(by_alias=True),
            interests=tuple(sorted(cls.interests, key=lambda k: k.value)),
            fixable=cls.fixable,
            suggestion_count=cls.suggestion_count,
        )

    def create_state(self) -> Any:
        """Return a fresh per-file accumulator, or None if the rule keeps none."""
        return None

    @abstractmethod
    def check(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        context: RuleContext,
    ) -> list[Finding]:
        """
        Inspect one node of an interesting kind and return any findings.

        Args:
            node: the node being visited.
            control: its ControlContext (enclosing try/function, discarded).
            scope: the innermost scope at the node.
            context: file, index, validated options, severity, accumulator.
        """
        ...

    # -- helpers for subclasses -------------------------------------------

    def make_message(
        self,
        kind: str,
        text: str,
        *,
        hint: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Message:
        return Message(
            kind=kind,
            category=self.category,
            text=text,
            reference=reference or self.reference,
            hint=hint,
        )

    def report(
        self,
        context: RuleContext,
        node: SyntaxNode,
        message: Message,
        *,
        fix: Optional[Fix] = None,
        suggestions: Iterable[Suggestion] = (),
    ) -> Finding:
        """Build a Finding located at node."""
        line, col = get_line_col(node)
        end_row, end_col = node.span.end_point
        location = Location(
            path=context.file.path,
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            line=line,
            column=col,
            end_line=end_row + 1,
            end_column=end_col + 1,
            snippet=context.text(node),
        )
        return Finding(
            rule_id=self.id,
            message=message,
            location=location,
            severity=context.severity,
            fix=fix,
            suggestions=tuple(suggestions),
            fix_status=FixStatus.PENDING if fix is not None else FixStatus.NONE,
        )


def replace_node(node: SyntaxNode, text: str) -> TextEdit:
    return TextEdit(start_byte=node.start_byte, end_byte=node.end_byte, replacement=text)


def insert_before(node: SyntaxNode, text: str) -> TextEdit:
    return TextEdit(start_byte=node.start_byte, end_byte=node.start_byte, replacement=text)


def insert_after(node: SyntaxNode, text: str) -> TextEdit:
    return TextEdit(start_byte=node.end_byte, end_byte=node.end_byte, replacement=text)
