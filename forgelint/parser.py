# Tree-sitter setup and AST parsing: parse JavaScript source into syntax trees.

import logging
from typing import Optional

import tree_sitter
import tree_sitter_javascript
from tree_sitter import Language

from forgelint.tree import SyntaxTree

logger = logging.getLogger(__name__)

# JavaScript grammar: wrap the tree-sitter-javascript capsule for tree_sitter.Parser
_JS_LANGUAGE = Language(tree_sitter_javascript.language())


def get_js_language() -> Language:
    """Return the Tree-sitter Language object for JavaScript."""
    return _JS_LANGUAGE


def create_parser() -> tree_sitter.Parser:
    """Create and return a Tree-sitter Parser configured for JavaScript."""
    return tree_sitter.Parser(_JS_LANGUAGE)


def parse_bytes(
    source: bytes,
    parser: Optional[tree_sitter.Parser] = None,
) -> tree_sitter.Tree:
    """
    Parse JavaScript source bytes into a tree-sitter tree.

    Args:
        source: UTF-8 encoded JavaScript source.
        parser: Optional parser instance; if None, a new one is created.

    Returns:
        The parse tree. Check tree.root_node.has_error for ERROR nodes.
    """
    if parser is None:
        parser = create_parser()
    tree = parser.parse(source)
    if tree.root_node.has_error:
        logger.warning(
            "Parse completed with errors: root=%s",
            tree.root_node.type,
        )
    else:
        logger.debug(
            "Parse succeeded: root=%s",
            tree.root_node.type,
        )
    return tree


def parse_syntax_tree(
    source: bytes,
    parser: Optional[tree_sitter.Parser] = None,
) -> SyntaxTree:
    """Parse source and convert the result into the engine's SyntaxTree."""
    return SyntaxTree.build(parse_bytes(source, parser=parser), source)
