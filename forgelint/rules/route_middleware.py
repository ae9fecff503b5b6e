# Shared machinery for rules that require a middleware argument on route registrations
# (authentication, CSRF). Subclasses supply the option model, patterns and wording.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional

from forgelint.context import DEFAULT_TEST_FILE_PATTERN
from forgelint.findings.models import Finding, Fix, Suggestion
from forgelint.index import ControlContext, Scope
from forgelint.rules.ast_utils import (
    call_arguments,
    callee_path,
    contains_any,
    dotted_path,
    matches_any_pattern,
    member_property,
    string_value,
    unwrap_parentheses,
)
from forgelint.rules.base import Rule, RuleContext, RuleOptions, insert_after, insert_before
from forgelint.tree import NodeKind, SyntaxNode

HTTP_VERBS = frozenset({"get", "post", "put", "delete", "patch", "options", "head", "all"})
CATCH_ALL_PATHS = frozenset({"*", "/*", "(.*)"})
ROUTER_FACTORIES = frozenset({"express", "express.Router", "Router"})
DEFAULT_ROUTER_NAMES = ("app", "router", "server", "api", "routes")


@dataclass
class MiddlewareState:
    """Global middleware seen so far in one file, in source order."""

    all_verbs: bool = False
    verbs: set[str] = field(default_factory=set)

    def satisfies(self, verb: str) -> bool:
        return self.all_verbs or "all" in self.verbs or verb in self.verbs


class RouteMiddlewareOptions(RuleOptions):
    """Options common to the middleware rules; subclasses add patterns and methods."""

    middleware_patterns: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    router_names: tuple[str, ...] = DEFAULT_ROUTER_NAMES
    ignore_patterns: tuple[str, ...] = ()
    allow_in_tests: bool = False
    test_file_pattern: str = DEFAULT_TEST_FILE_PATTERN


class RouteMiddlewareRule(Rule):
    """
    Report route registrations that carry no matching middleware.

    A route is `<router>.<verb>(path, ...middleware, handler)` or
    `<router>.route(path).<verb>(...middleware, handler)`. It is satisfied by
    a matching middleware argument, or by a module-level `<router>.use(...)`
    or catch-all `<router>.<verb>('*', ...)` registration earlier in the file.
    Routes registered inside a callback passed to a middleware wrapper are
    satisfied as well.
    """

    interests = frozenset({NodeKind.CALL_EXPRESSION})
    options = RouteMiddlewareOptions
    suggestion_count = 1

    message_kind: ClassVar[str]
    capability: ClassVar[str]
    middleware_snippet: ClassVar[str]

    def create_state(self) -> MiddlewareState:
        return MiddlewareState()

    def check(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        context: RuleContext,
    ) -> list[Finding]:
        opts: RouteMiddlewareOptions = context.options  # type: ignore[assignment]
        if opts.allow_in_tests and context.file.is_test_file(opts.test_file_pattern):
            return []
        callee = unwrap_parentheses(node.child("function"))
        if callee is None or callee.kind is not NodeKind.MEMBER_EXPRESSION:
            return []
        verb = (member_property(callee, context) or "").lower()
        receiver = unwrap_parentheses(callee.child("object"))
        if receiver is None:
            return []

        chain_path = self._route_chain_path(receiver, context, opts)
        if chain_path is None and not self._is_router(receiver, context, opts):
            return []

        args = call_arguments(node)
        state: MiddlewareState = context.state
        if verb == "use":
            if chain_path is None and control.at_module_level and self._any_matches(args, context, opts):
                state.all_verbs = True
            return []
        if verb not in HTTP_VERBS:
            return []

        if chain_path is not None:
            if not args:
                return []
            path_node: Optional[SyntaxNode] = chain_path if chain_path.kind is not NodeKind.ARGUMENTS else None
            middleware = args[:-1]
        else:
            if len(args) < 2:
                return []
            path_node = args[0]
            middleware = args[1:-1]
        path = string_value(path_node, context) if path_node is not None else None

        if chain_path is None and control.at_module_level and path in CATCH_ALL_PATHS:
            # catch-all carrying the middleware registers it for every later route
            if self._any_matches(args[1:], context, opts):
                state.verbs.add(verb)
                return []

        if verb not in {m.lower() for m in opts.methods}:
            return []
        if opts.ignore_patterns and matches_any_pattern(context.text(node), opts.ignore_patterns):
            return []
        if self._any_matches(middleware, context, opts):
            return []
        if state.satisfies(verb):
            return []
        if self._inside_middleware_wrapper(node, context, opts):
            return []

        label = path if path is not None else (context.text(path_node) if path_node is not None else "<route>")
        message = self.make_message(
            self.message_kind,
            f"{verb.upper()} route '{label}' is missing {self.capability}",
            hint=f"Pass {self.middleware_snippet} before the handler or register it with use()",
        )
        return [self.report(context, node, message, suggestions=self._suggestions(path_node, args))]

    # -- recognition ------------------------------------------------------

    def _is_router(self, receiver: SyntaxNode, context: RuleContext, opts: RouteMiddlewareOptions) -> bool:
        if receiver.kind is NodeKind.IDENTIFIER:
            if context.text(receiver) in opts.router_names:
                return True
            binding = context.index.resolve(receiver)
            init = unwrap_parentheses(binding.initializer) if binding is not None else None
            return (
                init is not None
                and init.kind is NodeKind.CALL_EXPRESSION
                and callee_path(init, context) in ROUTER_FACTORIES
            )
        if receiver.kind is NodeKind.MEMBER_EXPRESSION:
            return member_property(receiver, context) in opts.router_names
        return False

    def _route_chain_path(
        self, receiver: SyntaxNode, context: RuleContext, opts: RouteMiddlewareOptions
    ) -> Optional[SyntaxNode]:
        """
        For `<router>.route(path)` receivers return the path argument (or the
        empty arguments node when no path was given); otherwise None.
        """
        if receiver.kind is not NodeKind.CALL_EXPRESSION:
            return None
        inner = unwrap_parentheses(receiver.child("function"))
        if inner is None or inner.kind is not NodeKind.MEMBER_EXPRESSION or member_property(inner, context) != "route":
            return None
        router = unwrap_parentheses(inner.child("object"))
        if router is None or not self._is_router(router, context, opts):
            return None
        args = call_arguments(receiver)
        if args:
            return args[0]
        return receiver.child("arguments")

    def _inside_middleware_wrapper(
        self, node: SyntaxNode, context: RuleContext, opts: RouteMiddlewareOptions
    ) -> bool:
        """
        True when node is registered inside an argument of a call that applies
        the middleware, e.g. `withAuth(() => { app.get(...) })` or
        `router.use(authenticate, () => { ... })`.
        """
        for ancestor in node.ancestors():
            if ancestor.kind is not NodeKind.ARGUMENTS:
                continue
            call = ancestor.parent
            if call is None or call.kind is not NodeKind.CALL_EXPRESSION:
                continue
            name = callee_path(call, context)
            if name and contains_any(name, opts.middleware_patterns):
                return True
            callee = unwrap_parentheses(call.child("function"))
            if (
                callee is not None
                and callee.kind is NodeKind.MEMBER_EXPRESSION
                and member_property(callee, context) in ("use", "all")
                and self._any_matches(call_arguments(call), context, opts)
            ):
                return True
        return False

    def _middleware_names(self, arg: SyntaxNode, context: RuleContext) -> Iterator[str]:
        node = unwrap_parentheses(arg)
        if node is None:
            return
        if node.kind is NodeKind.IDENTIFIER:
            yield context.text(node)
            binding = context.index.resolve(node)
            init = unwrap_parentheses(binding.initializer) if binding is not None else None
            if init is not None and init.kind is NodeKind.CALL_EXPRESSION:
                name = callee_path(init, context)
                if name:
                    yield name
            elif init is not None:
                name = dotted_path(init, context)
                if name:
                    yield name
        elif node.kind is NodeKind.MEMBER_EXPRESSION:
            name = dotted_path(node, context)
            if name:
                yield name
        elif node.kind is NodeKind.CALL_EXPRESSION:
            name = callee_path(node, context)
            if name:
                yield name
        elif node.kind is NodeKind.ARRAY:
            for element in node.named_children:
                yield from self._middleware_names(element, context)

    def _any_matches(self, args: list[SyntaxNode], context: RuleContext, opts: RouteMiddlewareOptions) -> bool:
        return any(
            contains_any(name, opts.middleware_patterns)
            for arg in args
            for name in self._middleware_names(arg, context)
        )

    def _suggestions(self, path_node: Optional[SyntaxNode], args: list[SyntaxNode]) -> list[Suggestion]:
        if path_node is not None and path_node.kind is not NodeKind.ARGUMENTS and path_node in args:
            edit = insert_after(path_node, f", {self.middleware_snippet}")
        elif args:
            edit = insert_before(args[0], f"{self.middleware_snippet}, ")
        else:
            return []
        return [Suggestion(label=f"Add {self.middleware_snippet} middleware", fix=Fix(edits=(edit,)))]
