# Per-file analysis context: file path, source bytes, syntax tree, and location helpers.
# Handles reading/parsing JavaScript files, unreadable/malformed files, and logging
# of node/function counts so trees are ready for the engine.

import logging
import re
from pathlib import Path
from typing import Optional

from tree_sitter import Parser

from forgelint.parser import create_parser, parse_bytes
from forgelint.tree import FUNCTION_KINDS, SyntaxNode, SyntaxTree

logger = logging.getLogger(__name__)

DEFAULT_TEST_FILE_PATTERN = r"\.(test|spec)\.(ts|tsx|js|jsx|mjs|cjs)$"


def count_tree_stats(tree: SyntaxTree) -> tuple[int, int]:
    """
    Return (total node count, function count) for the tree.

    Useful for logging how much was parsed.
    """
    functions = sum(1 for node in tree.iter_nodes() if node.kind in FUNCTION_KINDS)
    return len(tree), functions


class FileContext:
    """
    Per-file state for analysis: path, raw source bytes, and syntax tree.

    Rules use context.path, context.source and context.tree. Use
    get_source_span(context, node) and get_line_col(node) for locations/snippets.
    """

    def __init__(
        self,
        path: Path,
        source: bytes,
        tree: SyntaxTree,
        *,
        has_parse_errors: bool = False,
    ) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.has_parse_errors = has_parse_errors

    @property
    def root_node(self) -> SyntaxNode:
        """Convenience access to the tree root."""
        return self.tree.root()

    def is_test_file(self, pattern: str = DEFAULT_TEST_FILE_PATTERN) -> bool:
        return re.search(pattern, self.path.name) is not None


def get_source_span(context: FileContext, node: SyntaxNode) -> str:
    """
    Return the substring of context.source for the given node's byte range.

    Decodes with errors="replace" so bad UTF-8 does not crash.
    """
    return context.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def get_line_col(node: SyntaxNode, one_based: bool = True) -> tuple[int, int]:
    """
    Return (line, column) for the node's start position.

    Tree-sitter uses 0-based (row, col). If one_based=True (default),
    returns 1-based line and column for display.
    """
    row, col = node.span.start_point
    if one_based:
        return row + 1, col + 1
    return row, col


def context_from_source(
    source: bytes,
    path: Path = Path("<memory>.js"),
    parser: Optional[Parser] = None,
) -> FileContext:
    """Parse in-memory source into a FileContext."""
    ts_tree = parse_bytes(source, parser=parser)
    has_errors = ts_tree.root_node.has_error
    tree = SyntaxTree.build(ts_tree, source)
    return FileContext(path=path, source=source, tree=tree, has_parse_errors=has_errors)


def create_context(
    path: Path,
    parser: Optional[Parser] = None,
) -> Optional[FileContext]:
    """
    Read a JavaScript file and parse it into a FileContext.

    - Unreadable file (permission, missing): returns None and logs error.
    - Syntax errors: still returns a FileContext and sets has_parse_errors=True.
    - Success: logs node count and function count.
    """
    if parser is None:
        parser = create_parser()

    try:
        source = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None

    ctx = context_from_source(source, path=path, parser=parser)
    if ctx.has_parse_errors:
        logger.warning("File %s parsed with syntax errors; tree may be incomplete", path)

    node_count, func_count = count_tree_stats(ctx.tree)
    logger.info(
        "Parsed %s: %d nodes, %d function(s)%s",
        path,
        node_count,
        func_count,
        " (with parse errors)" if ctx.has_parse_errors else "",
    )
    return ctx
