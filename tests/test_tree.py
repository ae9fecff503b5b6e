"""Tests for the tree model: node identity, roles, spans and MalformedTree."""

from dataclasses import dataclass, field
from typing import Optional

import pytest

from forgelint.errors import MalformedTree
from forgelint.parser import parse_syntax_tree
from forgelint.tree import NodeKind, SyntaxTree


@dataclass
class FakeNode:
    """Minimal stand-in for a tree-sitter node."""

    type: str
    start_byte: int
    end_byte: int
    children: list = field(default_factory=list)
    fields: list = field(default_factory=list)
    is_named: bool = True
    is_missing: bool = False

    @property
    def start_point(self):
        return (0, self.start_byte)

    @property
    def end_point(self):
        return (0, self.end_byte)

    def field_name_for_child(self, i: int) -> Optional[str]:
        return self.fields[i] if i < len(self.fields) else None


def test_roles_and_parents():
    tree = parse_syntax_tree(b"db.query(sql);")
    root = tree.root()
    stmt = root.named_children[0]
    call = stmt.first_named_child()
    assert call.kind is NodeKind.CALL_EXPRESSION
    callee = call.child("function")
    assert callee.kind is NodeKind.MEMBER_EXPRESSION
    assert tree.text_of(callee.child("property")) == "query"
    assert tree.parent_of(callee) is call
    assert tree.parent_of(root) is None
    assert call.child("nope") is None


def test_ancestors_walk_up_to_root():
    tree = parse_syntax_tree(b"f(a);")
    ident = next(n for n in tree.iter_nodes() if n.kind is NodeKind.IDENTIFIER and tree.text_of(n) == "a")
    chain = list(ident.ancestors())
    assert chain[0] is ident.parent
    assert chain[-1] is tree.root()
    assert any(n.kind is NodeKind.CALL_EXPRESSION for n in chain)


def test_node_identity_is_stable():
    tree = parse_syntax_tree(b"a(); b();")
    first = list(tree.iter_nodes())
    second = list(tree.iter_nodes())
    assert all(x is y for x, y in zip(first, second))
    assert len(first) == len(tree)
    assert tree.children_of(tree.root()) == tree.root().children


def test_iter_nodes_is_preorder_in_source_order():
    tree = parse_syntax_tree(b"a(); b();")
    calls = [tree.text_of(n) for n in tree.iter_nodes() if n.kind is NodeKind.CALL_EXPRESSION]
    assert calls == ["a()", "b()"]


def test_anonymous_tokens_are_not_kinds():
    tree = parse_syntax_tree(b"async function f() {}")
    fn = tree.root().named_children[0]
    assert fn.kind is NodeKind.FUNCTION_DECLARATION
    assert fn.has_token("async")
    keyword = [c for c in fn.children if c.type == "function"][0]
    assert keyword.kind is NodeKind.OTHER


def test_unknown_types_map_to_other():
    assert NodeKind.from_type("jsx_element") is NodeKind.OTHER
    assert NodeKind.from_type("call_expression") is NodeKind.CALL_EXPRESSION


def test_span_helpers():
    tree = parse_syntax_tree(b"let x = 1;")
    decl = tree.root().named_children[0]
    declarator = decl.named_children[0]
    assert tree.span_of(decl).contains(tree.span_of(declarator))
    assert tree.span_of(decl).overlaps(tree.span_of(declarator))
    assert tree.kind_of(declarator) is NodeKind.VARIABLE_DECLARATOR


def test_from_raw_builds_fields():
    raw = FakeNode(
        "call_expression",
        0,
        3,
        children=[FakeNode("identifier", 0, 1), FakeNode("arguments", 1, 3)],
        fields=["function", "arguments"],
    )
    tree = SyntaxTree.from_raw(raw, b"f()")
    root = tree.root()
    assert root.child("function").kind is NodeKind.IDENTIFIER
    assert root.child("arguments").kind is NodeKind.ARGUMENTS


def test_child_outside_parent_span_is_malformed():
    raw = FakeNode("program", 0, 4, children=[FakeNode("identifier", 2, 9)])
    with pytest.raises(MalformedTree, match="escapes parent"):
        SyntaxTree.from_raw(raw, b"x" * 10)


def test_overlapping_siblings_are_malformed():
    raw = FakeNode(
        "program",
        0,
        10,
        children=[FakeNode("identifier", 0, 5), FakeNode("identifier", 4, 8)],
    )
    with pytest.raises(MalformedTree, match="overlaps"):
        SyntaxTree.from_raw(raw, b"x" * 10)


def test_root_longer_than_source_is_malformed():
    with pytest.raises(MalformedTree, match="exceeds source length"):
        SyntaxTree.from_raw(FakeNode("program", 0, 20), b"short")
