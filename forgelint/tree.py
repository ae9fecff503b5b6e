# Tree model: immutable, position-annotated syntax nodes built once from a tree-sitter parse.

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

from forgelint.errors import MalformedTree

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """
    Closed set of node kinds the engine dispatches on.

    Values are tree-sitter-javascript node type names. Grammar types with no
    member here map to OTHER; the raw type stays available as SyntaxNode.type.
    """

    PROGRAM = "program"
    ERROR = "ERROR"
    COMMENT = "comment"

    # statements
    EXPRESSION_STATEMENT = "expression_statement"
    STATEMENT_BLOCK = "statement_block"
    EMPTY_STATEMENT = "empty_statement"
    IF_STATEMENT = "if_statement"
    ELSE_CLAUSE = "else_clause"
    FOR_STATEMENT = "for_statement"
    FOR_IN_STATEMENT = "for_in_statement"
    WHILE_STATEMENT = "while_statement"
    DO_STATEMENT = "do_statement"
    SWITCH_STATEMENT = "switch_statement"
    SWITCH_BODY = "switch_body"
    SWITCH_CASE = "switch_case"
    SWITCH_DEFAULT = "switch_default"
    TRY_STATEMENT = "try_statement"
    CATCH_CLAUSE = "catch_clause"
    FINALLY_CLAUSE = "finally_clause"
    RETURN_STATEMENT = "return_statement"
    THROW_STATEMENT = "throw_statement"
    BREAK_STATEMENT = "break_statement"
    CONTINUE_STATEMENT = "continue_statement"
    LABELED_STATEMENT = "labeled_statement"

    # declarations
    VARIABLE_DECLARATION = "variable_declaration"
    LEXICAL_DECLARATION = "lexical_declaration"
    VARIABLE_DECLARATOR = "variable_declarator"
    FUNCTION_DECLARATION = "function_declaration"
    GENERATOR_FUNCTION_DECLARATION = "generator_function_declaration"
    CLASS_DECLARATION = "class_declaration"
    CLASS = "class"
    CLASS_BODY = "class_body"
    METHOD_DEFINITION = "method_definition"
    FIELD_DEFINITION = "field_definition"
    FORMAL_PARAMETERS = "formal_parameters"

    # modules
    IMPORT_STATEMENT = "import_statement"
    IMPORT_CLAUSE = "import_clause"
    NAMED_IMPORTS = "named_imports"
    IMPORT_SPECIFIER = "import_specifier"
    NAMESPACE_IMPORT = "namespace_import"
    EXPORT_STATEMENT = "export_statement"
    EXPORT_CLAUSE = "export_clause"
    EXPORT_SPECIFIER = "export_specifier"
    IMPORT = "import"

    # expressions
    CALL_EXPRESSION = "call_expression"
    NEW_EXPRESSION = "new_expression"
    MEMBER_EXPRESSION = "member_expression"
    SUBSCRIPT_EXPRESSION = "subscript_expression"
    ARGUMENTS = "arguments"
    AWAIT_EXPRESSION = "await_expression"
    YIELD_EXPRESSION = "yield_expression"
    UNARY_EXPRESSION = "unary_expression"
    UPDATE_EXPRESSION = "update_expression"
    BINARY_EXPRESSION = "binary_expression"
    TERNARY_EXPRESSION = "ternary_expression"
    ASSIGNMENT_EXPRESSION = "assignment_expression"
    AUGMENTED_ASSIGNMENT_EXPRESSION = "augmented_assignment_expression"
    SEQUENCE_EXPRESSION = "sequence_expression"
    PARENTHESIZED_EXPRESSION = "parenthesized_expression"
    SPREAD_ELEMENT = "spread_element"
    FUNCTION_EXPRESSION = "function_expression"
    FUNCTION = "function"
    GENERATOR_FUNCTION = "generator_function"
    ARROW_FUNCTION = "arrow_function"
    OPTIONAL_CHAIN = "optional_chain"

    # patterns
    OBJECT_PATTERN = "object_pattern"
    ARRAY_PATTERN = "array_pattern"
    PAIR_PATTERN = "pair_pattern"
    ASSIGNMENT_PATTERN = "assignment_pattern"
    OBJECT_ASSIGNMENT_PATTERN = "object_assignment_pattern"
    REST_PATTERN = "rest_pattern"
    SHORTHAND_PROPERTY_IDENTIFIER_PATTERN = "shorthand_property_identifier_pattern"

    # literals and names
    IDENTIFIER = "identifier"
    PROPERTY_IDENTIFIER = "property_identifier"
    SHORTHAND_PROPERTY_IDENTIFIER = "shorthand_property_identifier"
    PRIVATE_PROPERTY_IDENTIFIER = "private_property_identifier"
    STATEMENT_IDENTIFIER = "statement_identifier"
    THIS = "this"
    SUPER = "super"
    STRING = "string"
    STRING_FRAGMENT = "string_fragment"
    ESCAPE_SEQUENCE = "escape_sequence"
    TEMPLATE_STRING = "template_string"
    TEMPLATE_SUBSTITUTION = "template_substitution"
    NUMBER = "number"
    REGEX = "regex"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"
    UNDEFINED = "undefined"
    OBJECT = "object"
    PAIR = "pair"
    ARRAY = "array"

    OTHER = "__other__"

    @classmethod
    def from_type(cls, node_type: str) -> "NodeKind":
        return _KIND_BY_TYPE.get(node_type, cls.OTHER)


_KIND_BY_TYPE = {kind.value: kind for kind in NodeKind if kind is not NodeKind.OTHER}

FUNCTION_KINDS = frozenset(
    {
        NodeKind.FUNCTION_DECLARATION,
        NodeKind.GENERATOR_FUNCTION_DECLARATION,
        NodeKind.FUNCTION_EXPRESSION,
        NodeKind.FUNCTION,
        NodeKind.GENERATOR_FUNCTION,
        NodeKind.ARROW_FUNCTION,
        NodeKind.METHOD_DEFINITION,
    }
)


@dataclass(frozen=True)
class Span:
    """Byte range [start_byte, end_byte) plus 0-based (row, column) points."""

    start_byte: int
    end_byte: int
    start_point: tuple[int, int]
    end_point: tuple[int, int]

    def contains(self, other: "Span") -> bool:
        return self.start_byte <= other.start_byte and other.end_byte <= self.end_byte

    def overlaps(self, other: "Span") -> bool:
        return self.start_byte < other.end_byte and other.start_byte < self.end_byte


class SyntaxNode:
    """
    One element of the syntax tree.

    Nodes compare by identity, so they can be used as dictionary keys for the
    derived indices. The parent link is weak; the owning SyntaxTree keeps every
    node alive for the duration of a pass.
    """

    __slots__ = (
        "kind",
        "type",
        "span",
        "role",
        "is_named",
        "is_missing",
        "_children",
        "_roles",
        "_parent",
        "__weakref__",
    )

    def __init__(
        self,
        node_type: str,
        span: Span,
        *,
        role: Optional[str] = None,
        is_named: bool = True,
        is_missing: bool = False,
        parent: Optional["SyntaxNode"] = None,
    ) -> None:
        # anonymous tokens share names with some kinds ("function", "class")
        self.kind = NodeKind.from_type(node_type) if is_named else NodeKind.OTHER
        self.type = node_type
        self.span = span
        self.role = role
        self.is_named = is_named
        self.is_missing = is_missing
        self._children: list[SyntaxNode] = []
        self._roles: dict[str, list[SyntaxNode]] = {}
        self._parent = weakref.ref(parent) if parent is not None else None

    def __repr__(self) -> str:
        return f"<SyntaxNode {self.type} {self.span.start_byte}:{self.span.end_byte}>"

    @property
    def parent(self) -> Optional["SyntaxNode"]:
        return self._parent() if self._parent is not None else None

    @property
    def children(self) -> tuple["SyntaxNode", ...]:
        return tuple(self._children)

    @property
    def named_children(self) -> list["SyntaxNode"]:
        return [c for c in self._children if c.is_named]

    @property
    def start_byte(self) -> int:
        return self.span.start_byte

    @property
    def end_byte(self) -> int:
        return self.span.end_byte

    def child(self, role: str) -> Optional["SyntaxNode"]:
        """Return the first child carrying the given field role, or None."""
        found = self._roles.get(role)
        return found[0] if found else None

    def first_named_child(self) -> Optional["SyntaxNode"]:
        for c in self._children:
            if c.is_named and c.kind is not NodeKind.COMMENT:
                return c
        return None

    def has_token(self, token: str) -> bool:
        """True if an anonymous child token (e.g. 'async', '+') is present."""
        return any(not c.is_named and c.type == token for c in self._children)

    def ancestors(self) -> Iterator["SyntaxNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def _adopt(self, child: "SyntaxNode") -> None:
        if not self.span.contains(child.span):
            raise MalformedTree(
                f"{child.type} at {child.span.start_byte}:{child.span.end_byte} "
                f"escapes parent {self.type} at {self.span.start_byte}:{self.span.end_byte}"
            )
        if self._children and self._children[-1].span.end_byte > child.span.start_byte:
            prev = self._children[-1]
            raise MalformedTree(
                f"{child.type} at {child.span.start_byte} overlaps previous sibling "
                f"{prev.type} ending at {prev.span.end_byte}"
            )
        self._children.append(child)
        if child.role:
            self._roles.setdefault(child.role, []).append(child)


def _span_of(raw: Any) -> Span:
    return Span(
        start_byte=raw.start_byte,
        end_byte=raw.end_byte,
        start_point=(raw.start_point[0], raw.start_point[1]),
        end_point=(raw.end_point[0], raw.end_point[1]),
    )


def _make_node(raw: Any, parent: Optional[SyntaxNode], role: Optional[str]) -> SyntaxNode:
    return SyntaxNode(
        raw.type,
        _span_of(raw),
        role=role,
        is_named=bool(raw.is_named),
        is_missing=bool(getattr(raw, "is_missing", False)),
        parent=parent,
    )


class SyntaxTree:
    """
    Read-only view over one parsed file.

    Build with SyntaxTree.build(); the tree-sitter tree is walked once and
    never consulted again, so node identity is stable for the whole pass.
    """

    def __init__(self, root: SyntaxNode, nodes: list[SyntaxNode], source: bytes) -> None:
        self._root = root
        self._nodes = nodes
        self.source = source

    @classmethod
    def build(cls, ts_tree: Any, source: bytes) -> "SyntaxTree":
        """Convert a tree-sitter Tree (or anything exposing root_node) into a SyntaxTree."""
        return cls.from_raw(ts_tree.root_node, source)

    @classmethod
    def from_raw(cls, raw_root: Any, source: bytes) -> "SyntaxTree":
        """
        Convert a raw node hierarchy into SyntaxNodes.

        raw nodes need type, is_named, start/end byte and point, children and
        field_name_for_child(index). Raises MalformedTree on span violations.
        """
        root = _make_node(raw_root, None, None)
        if root.span.start_byte < 0 or root.span.end_byte > len(source):
            raise MalformedTree(
                f"root span {root.span.start_byte}:{root.span.end_byte} "
                f"exceeds source length {len(source)}"
            )
        nodes = [root]
        # Explicit stack keeps deep trees clear of the recursion limit.
        stack: list[tuple[Any, SyntaxNode]] = [(raw_root, root)]
        while stack:
            raw, node = stack.pop()
            pending = []
            for i, raw_child in enumerate(raw.children):
                child = _make_node(raw_child, node, raw.field_name_for_child(i))
                node._adopt(child)
                nodes.append(child)
                pending.append((raw_child, child))
            stack.extend(reversed(pending))
        logger.debug("Built syntax tree: %d nodes", len(nodes))
        return cls(root, nodes, source)

    def root(self) -> SyntaxNode:
        return self._root

    def children_of(self, node: SyntaxNode) -> tuple[SyntaxNode, ...]:
        return node.children

    def kind_of(self, node: SyntaxNode) -> NodeKind:
        return node.kind

    def span_of(self, node: SyntaxNode) -> Span:
        return node.span

    def parent_of(self, node: SyntaxNode) -> Optional[SyntaxNode]:
        return node.parent

    def text_of(self, node: SyntaxNode) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def __len__(self) -> int:
        return len(self._nodes)

    def iter_nodes(self) -> Iterator[SyntaxNode]:
        """Yield every node in pre-order, children in source order."""
        stack = [self._root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node._children))
