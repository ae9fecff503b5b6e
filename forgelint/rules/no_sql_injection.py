# SQL injection: queries assembled by template interpolation or string concatenation.

from __future__ import annotations

import re
from typing import Literal, NamedTuple, Optional

from pydantic import AliasChoices, Field

from forgelint.findings.models import Finding, Fix, Severity, Suggestion
from forgelint.index import BindingKind, ControlContext, Scope
from forgelint.rules.ast_utils import (
    call_arguments,
    callee_name,
    callee_path,
    string_value,
    unwrap_parentheses,
)
from forgelint.rules.base import Rule, RuleContext, RuleOptions, replace_node
from forgelint.tree import NodeKind, SyntaxNode

DEFAULT_QUERY_METHODS = (
    "query",
    "execute",
    "raw",
    "$queryRawUnsafe",
    "$executeRawUnsafe",
    "unsafe",
)

# Static SQL text ending in one of these puts the next segment in identifier position.
IDENTIFIER_POSITION = re.compile(
    r"\b(FROM|JOIN|INTO|UPDATE|TABLE|ORDER\s+BY|GROUP\s+BY)\s*[`\"\[]?$",
    re.IGNORECASE,
)

TRACEABLE_BINDINGS = frozenset({BindingKind.VAR, BindingKind.LET, BindingKind.CONST})

# Non-string literals contribute their source text, like string literals.
LITERAL_KINDS = frozenset({NodeKind.NUMBER, NodeKind.TRUE, NodeKind.FALSE, NodeKind.NULL, NodeKind.UNDEFINED})


class Segment(NamedTuple):
    """A piece of a flattened query: static SQL text or a dynamic expression."""

    text: str
    node: Optional[SyntaxNode] = None

    @property
    def is_dynamic(self) -> bool:
        return self.node is not None


class NoSqlInjectionOptions(RuleOptions):
    query_methods: tuple[str, ...] = DEFAULT_QUERY_METHODS
    trusted_functions: tuple[str, ...] = ()
    allow_dynamic_identifiers: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "allowDynamicTableNames", "allowDynamicIdentifiers", "allow_dynamic_identifiers"
        ),
    )
    placeholder_style: Literal["dollar", "question"] = "dollar"
    max_trace_depth: int = Field(default=5, ge=0)


class _Flattener:
    """
    Turns a query expression into Segments.

    Identifiers are followed to their declaration initializer (plus `+=`
    appends that precede the query call) up to max_trace_depth. built is set
    once any template or concatenation took part in the construction.
    """

    def __init__(self, context: RuleContext, call: SyntaxNode, max_depth: int) -> None:
        self.context = context
        self.source = context.file.source
        self.call = call
        self.max_depth = max_depth
        self.built = False

    def flatten(self, node: Optional[SyntaxNode], depth: int = 0) -> list[Segment]:
        node = unwrap_parentheses(node)
        if node is None:
            return []
        kind = node.kind
        if kind is NodeKind.STRING:
            return [Segment(string_value(node, self.context) or "")]
        if kind in LITERAL_KINDS:
            return [Segment(self.context.text(node))]
        if kind is NodeKind.TEMPLATE_STRING:
            return self._template(node, depth)
        if kind is NodeKind.BINARY_EXPRESSION and node.has_token("+"):
            self.built = True
            return self.flatten(node.child("left"), depth) + self.flatten(node.child("right"), depth)
        if kind is NodeKind.IDENTIFIER and depth < self.max_depth:
            traced = self._trace(node, depth)
            if traced is not None:
                return traced
        return [Segment("", node)]

    def _template(self, node: SyntaxNode, depth: int) -> list[Segment]:
        segments: list[Segment] = []
        pos = node.start_byte + 1
        for child in node.children:
            if child.kind is not NodeKind.TEMPLATE_SUBSTITUTION:
                continue
            self.built = True
            segments.append(Segment(self._static(pos, child.start_byte)))
            expr = child.first_named_child()
            literal = self._literal_value(expr)
            segments.append(Segment(literal) if literal is not None else Segment("", expr))
            pos = child.end_byte
        segments.append(Segment(self._static(pos, node.end_byte - 1)))
        return segments

    def _static(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8", errors="replace")

    def _literal_value(self, expr: Optional[SyntaxNode]) -> Optional[str]:
        """Value of a literal, directly or through a const binding."""
        expr = unwrap_parentheses(expr)
        if expr is None:
            return None
        if expr.kind is NodeKind.IDENTIFIER:
            binding = self.context.index.resolve(expr)
            if binding is None or binding.kind is not BindingKind.CONST:
                return None
            expr = unwrap_parentheses(binding.initializer)
        if expr is None:
            return None
        if expr.kind in LITERAL_KINDS:
            return self.context.text(expr)
        if expr.kind is not NodeKind.STRING:
            return None
        return string_value(expr, self.context)

    def _trace(self, ident: SyntaxNode, depth: int) -> Optional[list[Segment]]:
        binding = self.context.index.resolve(ident)
        if binding is None or binding.kind not in TRACEABLE_BINDINGS:
            return None
        init = binding.initializer
        if init is None:
            return None
        segments = self.flatten(init, depth + 1)
        for ref in binding.references:
            if ref.start_byte >= self.call.start_byte:
                break
            parent = ref.parent
            if (
                parent is not None
                and parent.kind is NodeKind.AUGMENTED_ASSIGNMENT_EXPRESSION
                and parent.child("left") is ref
                and parent.has_token("+=")
            ):
                self.built = True
                segments = segments + self.flatten(parent.child("right"), depth + 1)
        return segments


class NoSqlInjectionRule(Rule):
    """
    Report query calls whose SQL text is assembled from dynamic values.

    Each dynamic segment is acceptable only when it is a call to a trusted
    escaping function, or, with allow_dynamic_identifiers, when it sits in a
    table/column position (after FROM, JOIN, INTO, ...). Values are never
    acceptable, whatever the flag says.
    """

    id = "no-sql-injection"
    name = "SQL injection"
    description = "Detects SQL queries built by string interpolation or concatenation"
    category = "security"
    reference = "CWE-89"
    interests = frozenset({NodeKind.CALL_EXPRESSION})
    options = NoSqlInjectionOptions
    default_severity = Severity.ERROR
    suggestion_count = 1

    def check(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        context: RuleContext,
    ) -> list[Finding]:
        opts: NoSqlInjectionOptions = context.options  # type: ignore[assignment]
        method = callee_name(node, context)
        if method is None or method not in opts.query_methods:
            return []
        args = call_arguments(node)
        if not args:
            return []
        query = args[0]

        flattener = _Flattener(context, node, opts.max_trace_depth)
        segments = flattener.flatten(query)
        if not flattener.built:
            return []

        unsafe = []
        value_positions = True
        preceding = ""
        for segment in segments:
            if not segment.is_dynamic:
                preceding += segment.text
                continue
            in_identifier_position = bool(IDENTIFIER_POSITION.search(preceding))
            if in_identifier_position:
                value_positions = False
            if self._is_trusted(segment.node, context, opts):
                continue
            if in_identifier_position and opts.allow_dynamic_identifiers:
                continue
            unsafe.append(segment)
        if not unsafe:
            return []

        names = ", ".join(context.text(s.node) for s in unsafe)  # type: ignore[arg-type]
        message = self.make_message(
            "sqlInjection",
            f"SQL passed to '{method}' is built from untrusted values ({names}); use a parameterized query",
            hint="Pass values as query parameters instead of interpolating them into the SQL text",
        )
        suggestions = []
        if value_positions and len(args) == 1:
            suggestion = self._parameterize(query, segments, context, opts)
            if suggestion is not None:
                suggestions.append(suggestion)
        return [self.report(context, query, message, suggestions=suggestions)]

    def _is_trusted(self, node: Optional[SyntaxNode], context: RuleContext, opts: NoSqlInjectionOptions) -> bool:
        if not opts.trusted_functions:
            return False
        node = unwrap_parentheses(node)
        if node is not None and node.kind is NodeKind.IDENTIFIER:
            binding = context.index.resolve(node)
            node = unwrap_parentheses(binding.initializer) if binding is not None else None
        if node is None or node.kind is not NodeKind.CALL_EXPRESSION:
            return False
        return (
            callee_name(node, context) in opts.trusted_functions
            or callee_path(node, context) in opts.trusted_functions
        )

    def _parameterize(
        self,
        query: SyntaxNode,
        segments: list[Segment],
        context: RuleContext,
        opts: NoSqlInjectionOptions,
    ) -> Optional[Suggestion]:
        """Rewrite an inline template literal into SQL text plus a values array."""
        if unwrap_parentheses(query) is not query or query.kind is not NodeKind.TEMPLATE_STRING:
            return None
        sql = []
        values = []
        for segment in segments:
            if segment.is_dynamic:
                values.append(context.text(segment.node))  # type: ignore[arg-type]
                sql.append(f"${len(values)}" if opts.placeholder_style == "dollar" else "?")
            else:
                sql.append(segment.text)
        text = "".join(sql)
        replacement = f"`{text}`, [{', '.join(values)}]"
        return Suggestion(label="Use a parameterized query", fix=Fix(edits=(replace_node(query, replacement),)))
