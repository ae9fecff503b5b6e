# Unhandled promise detection: calls whose promise is neither awaited nor given a rejection handler.

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Optional

from forgelint.context import DEFAULT_TEST_FILE_PATTERN
from forgelint.findings.models import Finding, Fix, Suggestion
from forgelint.index import ControlContext, Scope, unwrap_parentheses_up
from forgelint.rules.ast_utils import (
    call_arguments,
    callee_path,
    is_function_like,
    member_property,
    unwrap_parentheses,
)
from forgelint.rules.base import Rule, RuleContext, RuleOptions, insert_after, insert_before
from forgelint.tree import NodeKind, SyntaxNode

PROMISE_METHODS = frozenset({"then", "catch", "finally"})

# Callees known not to return promises. Glob patterns over the dotted callee path.
DEFAULT_SYNC_CALLEES = (
    "console.*",
    "Math.*",
    "JSON.*",
    "Object.*",
    "Array.*",
    "Number.*",
    "String.*",
    "Date.*",
    "Reflect.*",
    "Symbol.*",
    "process.exit",
    "process.on",
    "require",
    "parseInt",
    "parseFloat",
    "isNaN",
    "isFinite",
    "setTimeout",
    "setInterval",
    "setImmediate",
    "clearTimeout",
    "clearInterval",
    "clearImmediate",
    "describe",
    "it",
    "test",
    "expect",
    "*.push",
    "*.forEach",
    "*.log",
    "*.emit",
    "*.on",
    "*.set",
    "*.use",
    "*.listen",
    # express registration and response objects
    "app.*",
    "router.*",
    "res.*",
    "module.*",
    "exports.*",
)


class NoUnhandledPromiseOptions(RuleOptions):
    ignore_in_tests: bool = True
    test_file_pattern: str = DEFAULT_TEST_FILE_PATTERN
    ignore_void_expressions: bool = False
    sync_callees: tuple[str, ...] = DEFAULT_SYNC_CALLEES
    assume_unknown_async: bool = True


def _follow_chain(call: SyntaxNode, context: RuleContext) -> tuple[SyntaxNode, bool]:
    """
    Walk outward along `.then/.catch/.finally` links starting at call.

    Returns the outermost link and whether any link handles rejection
    (`.catch(fn)` or `.then(ok, err)`).
    """
    current = call
    handled = False
    while True:
        outer = unwrap_parentheses_up(current)
        member = outer.parent
        if member is None or member.kind is not NodeKind.MEMBER_EXPRESSION or member.child("object") is not outer:
            break
        method = member_property(member, context)
        if method not in PROMISE_METHODS:
            break
        link = member.parent
        if link is None or link.kind is not NodeKind.CALL_EXPRESSION or link.child("function") is not member:
            break
        args = call_arguments(link)
        if (method == "catch" and args) or (method == "then" and len(args) >= 2):
            handled = True
        current = link
    return current, handled


def _last_operand(sequence: SyntaxNode) -> Optional[SyntaxNode]:
    operands = [c for c in sequence.named_children if c.kind is not NodeKind.COMMENT]
    return operands[-1] if operands else None


def _is_continuation(call: SyntaxNode, context: RuleContext) -> bool:
    callee = unwrap_parentheses(call.child("function"))
    return (
        callee is not None
        and callee.kind is NodeKind.MEMBER_EXPRESSION
        and member_property(callee, context) in PROMISE_METHODS
    )


class NoUnhandledPromiseRule(Rule):
    """
    Flags promises that are dropped on the floor.

    A call counts as promise-returning when it targets a locally declared
    async function, or, unless assume_unknown_async is off, any callee that
    is not a locally declared sync function and not in sync_callees.
    """

    id = "no-unhandled-promise"
    name = "Unhandled promise"
    description = "Detects promises that are neither awaited nor given a rejection handler"
    category = "error-handling"
    reference = "CWE-755"
    interests = frozenset({NodeKind.CALL_EXPRESSION})
    options = NoUnhandledPromiseOptions
    suggestion_count = 2

    def check(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        context: RuleContext,
    ) -> list[Finding]:
        opts: NoUnhandledPromiseOptions = context.options  # type: ignore[assignment]
        if opts.ignore_in_tests and context.file.is_test_file(opts.test_file_pattern):
            return []
        if _is_continuation(node, context):
            return []
        known_async = self._known_async(node, context)
        if known_async is False:
            return []
        if known_async is None and not self._maybe_async(node, context, opts):
            return []

        outer, handled = _follow_chain(node, context)
        if handled:
            return []
        consumer = unwrap_parentheses_up(outer)
        parent = consumer.parent
        while parent is not None and parent.kind is NodeKind.SEQUENCE_EXPRESSION:
            if _last_operand(parent) is not consumer:
                # only the last operand of `a(), b()` is the value of the sequence
                break
            consumer = unwrap_parentheses_up(parent)
            parent = consumer.parent
        if parent is None:
            return []

        if parent.kind is NodeKind.UNARY_EXPRESSION and parent.has_token("void"):
            if opts.ignore_void_expressions:
                return []
            if not context.control(parent).is_discarded:
                return []
        elif parent.kind is NodeKind.VARIABLE_DECLARATOR:
            if not self._stored_and_forgotten(parent, consumer, context) or not known_async:
                return []
        elif parent.kind not in (NodeKind.EXPRESSION_STATEMENT, NodeKind.SEQUENCE_EXPRESSION):
            # awaited, returned, passed on, assigned: someone else owns the promise
            return []

        name = callee_path(node, context) or "call"
        message = self.make_message(
            "unhandledPromise",
            f"Promise returned by '{name}' is not awaited and has no rejection handler",
            hint="Add .catch() or await the promise inside try/catch",
        )
        return [self.report(context, node, message, suggestions=self._suggestions(outer, control))]

    def _known_async(self, call: SyntaxNode, context: RuleContext) -> Optional[bool]:
        """True/False when the callee is a function visible in this file, else None."""
        callee = unwrap_parentheses(call.child("function"))
        if callee is None:
            return None
        if is_function_like(callee):
            return callee.has_token("async")
        if callee.kind is NodeKind.IDENTIFIER:
            binding = context.index.resolve(callee)
            if binding is not None:
                fn = binding.function_node
                if fn is not None:
                    return fn.has_token("async")
        return None

    def _maybe_async(self, call: SyntaxNode, context: RuleContext, opts: NoUnhandledPromiseOptions) -> bool:
        path = callee_path(call, context)
        if path is not None and any(fnmatchcase(path, pattern) for pattern in opts.sync_callees):
            return False
        return opts.assume_unknown_async

    def _stored_and_forgotten(self, declarator: SyntaxNode, value: SyntaxNode, context: RuleContext) -> bool:
        name = declarator.child("name")
        if declarator.child("value") is not value or name is None or name.kind is not NodeKind.IDENTIFIER:
            return False
        binding = context.index.resolve(name)
        return binding is not None and not binding.references

    def _suggestions(self, outer: SyntaxNode, control: ControlContext) -> list[Suggestion]:
        suggestions = [
            Suggestion(
                label="Add a .catch() handler",
                fix=Fix(edits=(insert_after(outer, ".catch((error) => console.error(error))"),)),
            )
        ]
        if control.function_is_async:
            suggestions.append(
                Suggestion(label="Await the promise", fix=Fix(edits=(insert_before(outer, "await "),)))
            )
        return suggestions
