"""Tests for forgelint.context: FileContext, create_context, node/function counts."""

from pathlib import Path

from forgelint.context import (
    FileContext,
    context_from_source,
    count_tree_stats,
    create_context,
    get_line_col,
    get_source_span,
)
from forgelint.parser import parse_syntax_tree


def test_count_tree_stats():
    tree = parse_syntax_tree(b"function main() { return () => 0; }")
    nodes, funcs = count_tree_stats(tree)
    assert nodes >= 1
    assert funcs == 2


def test_create_context_sample_js(tmp_path):
    js_file = tmp_path / "main.js"
    js_file.write_bytes(b"function main() { return 0; }\n")
    ctx = create_context(js_file)
    assert ctx is not None
    assert ctx.path == js_file
    assert ctx.source == b"function main() { return 0; }\n"
    assert ctx.root_node.type == "program"
    assert ctx.has_parse_errors is False


def test_create_context_nonexistent():
    assert create_context(Path("/nonexistent/file.js")) is None


def test_create_context_malformed_still_returns_context(tmp_path):
    js_file = tmp_path / "bad.js"
    js_file.write_bytes(b"function main( { return 0; }\n")
    ctx = create_context(js_file)
    assert ctx is not None
    assert ctx.has_parse_errors is True


def test_get_source_span():
    source = b"let x = 42;"
    ctx = FileContext(path=Path("x.js"), source=source, tree=parse_syntax_tree(source))
    decl = ctx.root_node.named_children[0]
    assert get_source_span(ctx, decl) == "let x = 42;"


def test_get_line_col_one_based():
    ctx = context_from_source(b"let x;\nlet y;")
    second = ctx.root_node.named_children[1]
    assert get_line_col(second, one_based=True) == (2, 1)
    assert get_line_col(second, one_based=False) == (1, 0)


def test_is_test_file():
    source = b"x();"
    assert context_from_source(source, path=Path("users.test.js")).is_test_file()
    assert context_from_source(source, path=Path("users.spec.mjs")).is_test_file()
    assert not context_from_source(source, path=Path("users.js")).is_test_file()
