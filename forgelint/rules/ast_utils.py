# Small predicates and accessors over SyntaxNodes shared by the rules.
# All of them return None/False for shapes they do not recognize.

from __future__ import annotations

import re
from typing import Iterable, Optional

from forgelint.rules.base import RuleContext
from forgelint.tree import FUNCTION_KINDS, NodeKind, SyntaxNode


def unwrap_parentheses(node: Optional[SyntaxNode]) -> Optional[SyntaxNode]:
    """Descend through parenthesized_expression wrappers."""
    while node is not None and node.kind is NodeKind.PARENTHESIZED_EXPRESSION:
        node = node.first_named_child()
    return node


def is_function_like(node: Optional[SyntaxNode]) -> bool:
    return node is not None and node.kind in FUNCTION_KINDS


def call_arguments(call: SyntaxNode) -> list[SyntaxNode]:
    args = call.child("arguments")
    if args is None or args.kind is not NodeKind.ARGUMENTS:
        return []
    return [a for a in args.named_children if a.kind is not NodeKind.COMMENT]


def member_property(member: SyntaxNode, context: RuleContext) -> Optional[str]:
    prop = member.child("property")
    if prop is None:
        return None
    return context.text(prop)


def dotted_path(node: Optional[SyntaxNode], context: RuleContext) -> Optional[str]:
    """'a.b.c' for identifier/member chains (this counts as a segment), else None."""
    parts: list[str] = []
    node = unwrap_parentheses(node)
    while node is not None and node.kind is NodeKind.MEMBER_EXPRESSION:
        prop = member_property(node, context)
        if prop is None:
            return None
        parts.append(prop)
        node = unwrap_parentheses(node.child("object"))
    if node is None or node.kind not in (NodeKind.IDENTIFIER, NodeKind.THIS):
        return None
    parts.append(context.text(node))
    return ".".join(reversed(parts))


def callee_path(call: SyntaxNode, context: RuleContext) -> Optional[str]:
    return dotted_path(call.child("function"), context)


def callee_name(call: SyntaxNode, context: RuleContext) -> Optional[str]:
    """Bare name of the called function: `f` for f(), `query` for db.query()."""
    callee = unwrap_parentheses(call.child("function"))
    if callee is None:
        return None
    if callee.kind is NodeKind.IDENTIFIER:
        return context.text(callee)
    if callee.kind is NodeKind.MEMBER_EXPRESSION:
        return member_property(callee, context)
    return None


def string_value(node: Optional[SyntaxNode], context: RuleContext) -> Optional[str]:
    """Contents of a string literal or a substitution-free template string."""
    node = unwrap_parentheses(node)
    if node is None:
        return None
    if node.kind is NodeKind.STRING:
        raw = context.text(node)
        return raw[1:-1] if len(raw) >= 2 else None
    if node.kind is NodeKind.TEMPLATE_STRING:
        if any(c.kind is NodeKind.TEMPLATE_SUBSTITUTION for c in node.children):
            return None
        raw = context.text(node)
        return raw[1:-1] if len(raw) >= 2 else None
    return None


def matches_any_pattern(text: str, patterns: Iterable[str]) -> bool:
    """Case-insensitive regex search; invalid regexes fall back to substring match."""
    for pattern in patterns:
        try:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        except re.error:
            if pattern.lower() in text.lower():
                return True
    return False


def contains_any(name: str, patterns: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(p.lower() in lowered for p in patterns)
