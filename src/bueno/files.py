"""Filesystem helpers shared by discovery, analysis, rewriting and copying.

Encoding-tolerant reads, source-file enumeration and the ignore predicate
used when a component or shared directory is copied into the bundle.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

# ── Constants ──

# Extensions the analyzer and the rewriter treat as JS/TS source
SOURCE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")

TEST_MARKERS = (".test.", ".spec.")
STORY_MARKER = ".stories."

# Entries never copied into a bundle
COPY_EXCLUDE_NAMES = {"node_modules"}
COPY_EXCLUDE_SUFFIXES = {".mdx"}

# BOM signatures for UTF-16 variants
_UTF16_LE_BOM = b"\xff\xfe"
_UTF16_BE_BOM = b"\xfe\xff"


def normalize_path(path: str | Path) -> Path:
    """Absolute, normalized path without resolving symlinks."""
    return Path(os.path.normpath(os.path.abspath(path)))


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` is ``root`` or lies below it."""
    return path == root or root in path.parents


def is_test_file(name: str) -> bool:
    return any(marker in name for marker in TEST_MARKERS)


def is_story_file(name: str) -> bool:
    return STORY_MARKER in name


def is_source_file(name: str) -> bool:
    """JS/TS source that takes part in dependency analysis (stories excluded)."""
    return name.endswith(SOURCE_EXTENSIONS) and not is_story_file(name)


def read_text_with_encoding(path: Path) -> tuple[str, str]:
    """Read a text file; returns ``(text, encoding)`` for writing it back.

    Raises OSError if the file cannot be read at all.
    """
    raw = path.read_bytes()
    if raw[:2] in (_UTF16_LE_BOM, _UTF16_BE_BOM):
        return raw.decode("utf-16"), "utf-16"
    try:
        return raw.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return raw.decode("latin-1"), "latin-1"


def read_text_safe(path: Path) -> str:
    """Read a text file, handling UTF-8, UTF-16 (BOM), and latin-1 gracefully.

    Raises OSError if the file cannot be read at all.
    """
    return read_text_with_encoding(path)[0]


def iter_source_files(root: Path, include_stories: bool = False) -> Iterator[Path]:
    """Yield every source file below ``root`` in sorted, depth-first order."""

    def _wanted(name: str) -> bool:
        return is_source_file(name) or (include_stories and name.endswith(SOURCE_EXTENSIONS))

    if root.is_file():
        if _wanted(root.name):
            yield root
        return
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError as e:
        logger.warning("Could not list %s: %s", root, e)
        return
    for entry in entries:
        if entry.name.startswith(".") or entry.name in COPY_EXCLUDE_NAMES:
            continue
        path = Path(entry.path)
        if entry.is_dir():
            yield from iter_source_files(path, include_stories)
        elif entry.is_file() and _wanted(entry.name):
            yield path


def make_copy_ignore(include_stories: bool = False) -> Callable[[str, list[str]], set[str]]:
    """Build a ``shutil.copytree`` ignore callback for bundle copies.

    Dot entries, ``node_modules`` and ``.mdx`` docs are always skipped;
    story files are skipped unless ``include_stories`` is set.
    """

    def _ignore(directory, contents):
        ignored = set()
        for item in contents:
            if item.startswith(".") or item in COPY_EXCLUDE_NAMES:
                ignored.add(item)
            elif any(item.endswith(sfx) for sfx in COPY_EXCLUDE_SUFFIXES):
                ignored.add(item)
            elif not include_stories and is_story_file(item):
                ignored.add(item)
        return ignored

    return _ignore
