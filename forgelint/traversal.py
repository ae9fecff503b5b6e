"""
File system traversal: collect JavaScript sources to analyze.

Walks a directory tree and returns the .js, .mjs, .cjs and .jsx files in it,
skipping dependency, build and VCS directories. Test files are not skipped
here; rules that care about them check FileContext.is_test_file().

Typical usage:
    from pathlib import Path
    from forgelint.traversal import find_source_files, collect_targets

    files = find_source_files(Path("./my_service"))
    files = find_source_files(Path("./my_service"), ignore_dirs={"node_modules", "fixtures"})
    files = collect_targets(Path("./my_service/app.js"))
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Set

logger = logging.getLogger(__name__)

JS_EXTENSIONS = frozenset({".js", ".mjs", ".cjs", ".jsx"})

DEFAULT_IGNORE_DIRS: Set[str] = {
    # dependencies
    "node_modules",
    "bower_components",
    "jspm_packages",
    "vendor",
    # build output
    "build",
    "dist",
    "out",
    "coverage",
    ".next",
    ".nuxt",
    # version control
    ".git",
    ".svn",
    ".hg",
    # editors and caches
    ".vscode",
    ".idea",
    ".cache",
    ".turbo",
}


def is_source_file(path: Path) -> bool:
    """
    Check whether a path names a JavaScript source file.

    Examples:
        >>> is_source_file(Path("server.js"))
        True
        >>> is_source_file(Path("App.JSX"))
        True
        >>> is_source_file(Path("types.d.ts"))
        False
    """
    return path.suffix.lower() in JS_EXTENSIONS


def is_minified(path: Path) -> bool:
    return path.name.endswith((".min.js", ".min.mjs", ".min.cjs"))


def should_ignore_directory(dir_path: Path, ignore_dirs: Set[str]) -> bool:
    return dir_path.name in ignore_dirs


def find_source_files(
    root: Path,
    ignore_dirs: Optional[Set[str]] = None,
    follow_symlinks: bool = False,
    filter_fn: Optional[Callable[[Path], bool]] = None,
) -> list[Path]:
    """
    Recursively find JavaScript source files under root.

    Args:
        root: Directory to walk.
        ignore_dirs: Directory names to skip. Defaults to DEFAULT_IGNORE_DIRS.
        follow_symlinks: Follow symbolic links (off by default).
        filter_fn: Extra predicate; only files it accepts are returned.

    Returns:
        Sorted list of matching files. Minified bundles are left out.

    Raises:
        FileNotFoundError: root does not exist.
        NotADirectoryError: root is not a directory.

    Unreadable subdirectories are logged and skipped.
    """
    if ignore_dirs is None:
        ignore_dirs = DEFAULT_IGNORE_DIRS

    root = root.resolve()
    if not root.exists():
        logger.error("Root directory does not exist: %s", root)
        raise FileNotFoundError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        logger.error("Root path is not a directory: %s", root)
        raise NotADirectoryError(f"Root path is not a directory: {root}")

    logger.info("Collecting JavaScript files under %s", root)
    collected: list[Path] = []
    pending = [root]
    while pending:
        current = pending.pop()
        try:
            entries = list(current.iterdir())
        except OSError as e:
            logger.warning("Cannot read directory %s: %s", current, e)
            continue
        for entry in entries:
            if entry.is_symlink() and not follow_symlinks:
                logger.debug("Skipping symlink: %s", entry)
                continue
            if entry.is_dir():
                if should_ignore_directory(entry, ignore_dirs):
                    logger.debug("Ignoring directory: %s", entry)
                    continue
                pending.append(entry)
            elif entry.is_file() and is_source_file(entry) and not is_minified(entry):
                if filter_fn is not None and not filter_fn(entry):
                    continue
                collected.append(entry)

    collected.sort()
    logger.info("Found %d JavaScript file(s) in %s", len(collected), root)
    return collected


def collect_targets(target: Path, ignore_dirs: Optional[Set[str]] = None) -> list[Path]:
    """
    Resolve a CLI target into files: a source file stands for itself, a
    directory is walked. Raises ValueError for anything else.
    """
    if target.is_file():
        if not is_source_file(target):
            raise ValueError(f"not a JavaScript file: {target}")
        return [target]
    if target.is_dir():
        files = find_source_files(target, ignore_dirs=ignore_dirs)
        if not files:
            logger.warning("No JavaScript files found under %s", target)
        return files
    raise ValueError(f"neither a file nor a directory: {target}")
