"""
Scope and control-flow index: one upfront walk over a SyntaxTree.

The walk produces two read-only structures shared by every rule in a pass:

- the Scope tree, with bindings per lexical region and resolved references;
- a ControlContext per node (enclosing try block, enclosing function and
  whether it is async, whether the node's value is discarded).

References are recorded in the scope where they occur and resolved when that
scope closes, so a use that precedes a hoisted declaration in the same or an
outer scope still resolves. Nothing is revisited; the cost is O(tree size).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional

from forgelint.tree import FUNCTION_KINDS, NodeKind, SyntaxNode, SyntaxTree

logger = logging.getLogger(__name__)


class ScopeKind(str, Enum):
    MODULE = "module"
    FUNCTION = "function"
    BLOCK = "block"
    CATCH = "catch"


class BindingKind(str, Enum):
    VAR = "var"
    LET = "let"
    CONST = "const"
    FUNCTION = "function"
    CLASS = "class"
    PARAMETER = "parameter"
    IMPORT = "import"
    CATCH = "catch"


@dataclass(eq=False)
class Binding:
    """A declared name: where it was declared and every resolved reference to it."""

    name: str
    kind: BindingKind
    node: SyntaxNode
    declaration: SyntaxNode
    scope: "Scope"
    references: tuple[SyntaxNode, ...] = ()
    _refs: list[SyntaxNode] = field(default_factory=list, repr=False)

    @property
    def initializer(self) -> Optional[SyntaxNode]:
        """The `= value` of a plain `name = value` declarator, if any."""
        decl = self.declaration
        if decl.kind is NodeKind.VARIABLE_DECLARATOR and decl.child("name") is self.node:
            return decl.child("value")
        return None

    @property
    def function_node(self) -> Optional[SyntaxNode]:
        """The function this name is bound to when statically visible."""
        if self.declaration.kind in FUNCTION_KINDS:
            return self.declaration
        init = self.initializer
        while init is not None and init.kind is NodeKind.PARENTHESIZED_EXPRESSION:
            init = init.first_named_child()
        if init is not None and init.kind in FUNCTION_KINDS:
            return init
        return None


@dataclass(eq=False)
class Scope:
    """A lexical region; bindings and children are frozen once the index is built."""

    kind: ScopeKind
    node: SyntaxNode
    parent: Optional["Scope"] = None
    bindings: Mapping[str, Binding] = field(default_factory=dict)
    children: tuple["Scope", ...] = ()
    _children: list["Scope"] = field(default_factory=list, repr=False)
    _pending: list[tuple[SyntaxNode, str]] = field(default_factory=list, repr=False)

    def lookup(self, name: str) -> Optional[Binding]:
        scope: Optional[Scope] = self
        while scope is not None:
            binding = scope.bindings.get(name)
            if binding is not None:
                return binding
            scope = scope.parent
        return None

    def function_scope(self) -> "Scope":
        """Nearest enclosing scope that receives `var` declarations."""
        scope = self
        while scope.kind not in (ScopeKind.FUNCTION, ScopeKind.MODULE) and scope.parent is not None:
            scope = scope.parent
        return scope


class UnresolvedReference(NamedTuple):
    name: str
    node: SyntaxNode


@dataclass(frozen=True)
class ControlContext:
    """Control-flow facts about one node, snapshotted when the node was visited."""

    enclosing_try: Optional[SyntaxNode] = None
    enclosing_function: Optional[SyntaxNode] = None
    function_is_async: bool = False
    is_discarded: bool = False

    @property
    def at_module_level(self) -> bool:
        return self.enclosing_function is None


_MODULE_CONTEXT = ControlContext()


def unwrap_parentheses_up(node: SyntaxNode) -> SyntaxNode:
    """Climb out of any parenthesized_expression wrappers around node."""
    while node.parent is not None and node.parent.kind is NodeKind.PARENTHESIZED_EXPRESSION:
        node = node.parent
    return node


def _is_discarded(node: SyntaxNode) -> bool:
    outer = unwrap_parentheses_up(node)
    parent = outer.parent
    return parent is not None and parent.kind is NodeKind.EXPRESSION_STATEMENT


def binding_identifiers(pattern: Optional[SyntaxNode]) -> list[SyntaxNode]:
    """Expand a binding pattern (identifier or destructuring) into its name nodes."""
    found: list[SyntaxNode] = []
    stack = [pattern] if pattern is not None else []
    while stack:
        node = stack.pop()
        kind = node.kind
        if kind in (NodeKind.IDENTIFIER, NodeKind.SHORTHAND_PROPERTY_IDENTIFIER_PATTERN):
            found.append(node)
        elif kind in (NodeKind.OBJECT_PATTERN, NodeKind.ARRAY_PATTERN):
            stack.extend(reversed(node.named_children))
        elif kind is NodeKind.PAIR_PATTERN:
            value = node.child("value")
            if value is not None:
                stack.append(value)
        elif kind in (NodeKind.ASSIGNMENT_PATTERN, NodeKind.OBJECT_ASSIGNMENT_PATTERN):
            left = node.child("left")
            if left is not None:
                stack.append(left)
        elif kind is NodeKind.REST_PATTERN:
            inner = node.first_named_child()
            if inner is not None:
                stack.append(inner)
    return found


@dataclass
class _FunctionFrame:
    node: Optional[SyntaxNode]
    is_async: bool
    tries: list[SyntaxNode] = field(default_factory=list)


class _Undo(NamedTuple):
    scope: bool
    frame: bool
    try_block: bool


class AnalysisIndex:
    """Read-only scope tree and control-context table for one SyntaxTree."""

    def __init__(
        self,
        tree: SyntaxTree,
        module_scope: Scope,
        scopes: tuple[Scope, ...],
        scope_of: dict[SyntaxNode, Scope],
        contexts: dict[SyntaxNode, ControlContext],
        resolutions: dict[SyntaxNode, Binding],
        declarations: dict[SyntaxNode, Binding],
        unresolved: tuple[UnresolvedReference, ...],
    ) -> None:
        self.tree = tree
        self.module_scope = module_scope
        self.scopes = scopes
        self._scope_of = scope_of
        self._contexts = contexts
        self._resolutions = resolutions
        self._declarations = declarations
        self.unresolved = unresolved

    @classmethod
    def build(cls, tree: SyntaxTree) -> "AnalysisIndex":
        return _IndexBuilder(tree).build()

    def control(self, node: SyntaxNode) -> ControlContext:
        return self._contexts.get(node, _MODULE_CONTEXT)

    def scope_of(self, node: SyntaxNode) -> Scope:
        """Innermost scope at node; a scope-creating node maps to the scope it creates."""
        return self._scope_of.get(node, self.module_scope)

    def resolve(self, identifier: SyntaxNode) -> Optional[Binding]:
        """Binding a reference or declaration identifier refers to, if known."""
        return self._resolutions.get(identifier) or self._declarations.get(identifier)


class _IndexBuilder:
    def __init__(self, tree: SyntaxTree) -> None:
        self.tree = tree
        root = tree.root()
        self.module = Scope(ScopeKind.MODULE, root)
        self.current = self.module
        self.scopes: list[Scope] = [self.module]
        self.frames = [_FunctionFrame(None, False)]
        self.undo: list[_Undo] = []
        self.scope_of: dict[SyntaxNode, Scope] = {}
        self.contexts: dict[SyntaxNode, ControlContext] = {}
        self.shared_contexts: dict[tuple, ControlContext] = {}
        self.resolutions: dict[SyntaxNode, Binding] = {}
        self.declarations: dict[SyntaxNode, Binding] = {}
        self.unresolved: list[UnresolvedReference] = []
        self.non_references: set[SyntaxNode] = set()

    def build(self) -> AnalysisIndex:
        stack: list[tuple[SyntaxNode, bool]] = [(self.tree.root(), False)]
        while stack:
            node, exiting = stack.pop()
            if exiting:
                self._exit()
                continue
            self._enter(node)
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.children))
        self._close(self.module)
        self._freeze()
        logger.debug(
            "Indexed tree: %d scopes, %d resolved, %d unresolved references",
            len(self.scopes),
            len(self.resolutions),
            len(self.unresolved),
        )
        return AnalysisIndex(
            self.tree,
            self.module,
            tuple(self.scopes),
            self.scope_of,
            self.contexts,
            self.resolutions,
            self.declarations,
            tuple(sorted(self.unresolved, key=lambda r: r.node.start_byte)),
        )

    # -- walk -------------------------------------------------------------

    def _enter(self, node: SyntaxNode) -> None:
        self._snapshot(node)
        kind = node.kind
        pushed_scope = pushed_frame = pushed_try = False

        if kind in FUNCTION_KINDS:
            self._enter_function(node)
            pushed_scope = pushed_frame = True
        elif kind is NodeKind.STATEMENT_BLOCK:
            parent = node.parent
            owned_by_function = parent is not None and parent.kind in FUNCTION_KINDS and node.role == "body"
            if not owned_by_function:
                if parent is not None and parent.kind is NodeKind.TRY_STATEMENT and node.role == "body":
                    self.frames[-1].tries.append(parent)
                    pushed_try = True
                self._push_scope(ScopeKind.BLOCK, node)
                pushed_scope = True
        elif kind in (NodeKind.FOR_STATEMENT, NodeKind.FOR_IN_STATEMENT):
            self._push_scope(ScopeKind.BLOCK, node)
            pushed_scope = True
            if kind is NodeKind.FOR_IN_STATEMENT:
                self._declare_for_in(node)
        elif kind is NodeKind.CATCH_CLAUSE:
            self._push_scope(ScopeKind.CATCH, node)
            pushed_scope = True
            for ident in binding_identifiers(node.child("parameter")):
                self._declare(ident, BindingKind.CATCH, node, self.current)
        elif kind in (NodeKind.VARIABLE_DECLARATION, NodeKind.LEXICAL_DECLARATION):
            self._declare_variables(node)
        elif kind is NodeKind.CLASS_DECLARATION:
            name = node.child("name")
            if name is not None:
                self._declare(name, BindingKind.CLASS, node, self.current)
        elif kind is NodeKind.IMPORT_STATEMENT:
            self._declare_imports(node)
        elif kind is NodeKind.EXPORT_SPECIFIER:
            alias = node.child("alias")
            if alias is not None:
                self.non_references.add(alias)
        elif kind in (NodeKind.IDENTIFIER, NodeKind.SHORTHAND_PROPERTY_IDENTIFIER):
            if node not in self.declarations and node not in self.non_references:
                self.current._pending.append((node, self.tree.text_of(node)))

        self.scope_of[node] = self.current
        self.undo.append(_Undo(pushed_scope, pushed_frame, pushed_try))

    def _exit(self) -> None:
        undo = self.undo.pop()
        if undo.scope:
            scope = self.current
            self._close(scope)
            assert scope.parent is not None
            self.current = scope.parent
        if undo.frame:
            self.frames.pop()
        if undo.try_block:
            self.frames[-1].tries.pop()

    def _snapshot(self, node: SyntaxNode) -> None:
        frame = self.frames[-1]
        enclosing_try = frame.tries[-1] if frame.tries else None
        discarded = _is_discarded(node)
        key = (enclosing_try, frame.node, discarded)
        ctx = self.shared_contexts.get(key)
        if ctx is None:
            ctx = ControlContext(
                enclosing_try=enclosing_try,
                enclosing_function=frame.node,
                function_is_async=frame.is_async,
                is_discarded=discarded,
            )
            self.shared_contexts[key] = ctx
        self.contexts[node] = ctx

    # -- declarations -----------------------------------------------------

    def _enter_function(self, node: SyntaxNode) -> None:
        kind = node.kind
        name = node.child("name")
        if kind in (NodeKind.FUNCTION_DECLARATION, NodeKind.GENERATOR_FUNCTION_DECLARATION) and name is not None:
            self._declare(name, BindingKind.FUNCTION, node, self.current)
        self.frames.append(_FunctionFrame(node, node.has_token("async")))
        self._push_scope(ScopeKind.FUNCTION, node)
        if kind in (NodeKind.FUNCTION_EXPRESSION, NodeKind.FUNCTION, NodeKind.GENERATOR_FUNCTION) and name is not None:
            # a named function expression sees its own name
            self._declare(name, BindingKind.FUNCTION, node, self.current)
        params = node.child("parameters")
        if params is not None:
            for param in params.named_children:
                for ident in binding_identifiers(param):
                    self._declare(ident, BindingKind.PARAMETER, node, self.current)
        single = node.child("parameter")
        if single is not None:
            for ident in binding_identifiers(single):
                self._declare(ident, BindingKind.PARAMETER, node, self.current)

    def _declare_variables(self, node: SyntaxNode) -> None:
        if node.kind is NodeKind.VARIABLE_DECLARATION:
            binding_kind = BindingKind.VAR
            target = self.current.function_scope()
        else:
            token = node.child("kind")
            binding_kind = BindingKind.CONST if token is not None and token.type == "const" else BindingKind.LET
            target = self.current
        for declarator in node.named_children:
            if declarator.kind is not NodeKind.VARIABLE_DECLARATOR:
                continue
            for ident in binding_identifiers(declarator.child("name")):
                self._declare(ident, binding_kind, declarator, target)

    def _declare_for_in(self, node: SyntaxNode) -> None:
        token = node.child("kind")
        if token is None:
            return
        if token.type == "var":
            binding_kind, target = BindingKind.VAR, self.current.function_scope()
        elif token.type == "const":
            binding_kind, target = BindingKind.CONST, self.current
        else:
            binding_kind, target = BindingKind.LET, self.current
        for ident in binding_identifiers(node.child("left")):
            self._declare(ident, binding_kind, node, target)

    def _declare_imports(self, node: SyntaxNode) -> None:
        stack = list(node.named_children)
        while stack:
            child = stack.pop()
            if child.kind is NodeKind.IMPORT_CLAUSE or child.kind is NodeKind.NAMED_IMPORTS:
                stack.extend(child.named_children)
            elif child.kind is NodeKind.NAMESPACE_IMPORT:
                ident = child.first_named_child()
                if ident is not None:
                    self._declare(ident, BindingKind.IMPORT, node, self.module)
            elif child.kind is NodeKind.IMPORT_SPECIFIER:
                name = child.child("name")
                alias = child.child("alias")
                local = alias or name
                if alias is not None and name is not None:
                    self.non_references.add(name)
                if local is not None and local.kind is NodeKind.IDENTIFIER:
                    self._declare(local, BindingKind.IMPORT, node, self.module)
            elif child.kind is NodeKind.IDENTIFIER and child.parent is not None and child.parent.kind is NodeKind.IMPORT_CLAUSE:
                self._declare(child, BindingKind.IMPORT, node, self.module)

    def _declare(self, ident: SyntaxNode, kind: BindingKind, declaration: SyntaxNode, scope: Scope) -> None:
        name = self.tree.text_of(ident)
        binding = scope.bindings.get(name)
        if binding is None:
            binding = Binding(name=name, kind=kind, node=ident, declaration=declaration, scope=scope)
            scope.bindings[name] = binding  # type: ignore[index]
        self.declarations[ident] = binding

    # -- scopes -----------------------------------------------------------

    def _push_scope(self, kind: ScopeKind, node: SyntaxNode) -> None:
        scope = Scope(kind, node, parent=self.current)
        self.current._children.append(scope)
        self.scopes.append(scope)
        self.current = scope

    def _close(self, scope: Scope) -> None:
        for ref, name in scope._pending:
            binding = scope.bindings.get(name)
            if binding is not None:
                binding._refs.append(ref)
                self.resolutions[ref] = binding
            elif scope.parent is not None:
                scope.parent._pending.append((ref, name))
            else:
                self.unresolved.append(UnresolvedReference(name, ref))
        scope._pending.clear()

    def _freeze(self) -> None:
        for scope in self.scopes:
            for binding in scope.bindings.values():
                binding.references = tuple(sorted(binding._refs, key=lambda n: n.start_byte))
            scope.children = tuple(scope._children)
            scope.bindings = MappingProxyType(dict(scope.bindings))
