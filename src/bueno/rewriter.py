"""Import Path Rewriter -- retargets local imports at the bundle layout.

A bundle flattens the cached tree: every component lands in
``<output>/<Basename>/`` and every shared file in
``<output>/shared/<flattened path>``.  The rewriter re-resolves each local
import of a copied file against the file's *original* location, maps the
target to where it now lives in the bundle, and substitutes the relative
path from the copied file.

Because the import table always comes from the original source, rewriting
the same file again gives the same result.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, Optional

from bueno.analyzer import (
    COMPONENT,
    DIRECTORY,
    EXTENSION,
    INDEX,
    SHARED,
    TYPES_DIR_NAME,
    Classification,
    DependencyAnalyzer,
    Resolution,
)
from bueno.discovery import ComponentRecord
from bueno.files import normalize_path, read_text_safe, read_text_with_encoding
from bueno.imports import extract_local_imports, replace_import_specifiers

logger = logging.getLogger(__name__)

# ── Constants ──

SHARED_DIR_NAME = "shared"

# Path segment dropped when shared files are flattened
_COMMON_SEGMENT = "common"


# ── Layout ──


def flatten_shared_path(rel_path: str) -> str:
    """Bundle location of a shared file, relative to ``shared/``.

    The first ``common`` directory is dropped, so ``common/Utils/format.ts``
    becomes ``Utils/format.ts`` and ``common/helpers.ts`` becomes
    ``helpers.ts``.  Other paths are kept as they are.
    """
    parts = rel_path.split("/")
    if _COMMON_SEGMENT in parts[:-1]:
        parts.remove(_COMMON_SEGMENT)
    return "/".join(parts)


class BundleLayout:
    """Where things go inside an output directory."""

    def __init__(self, output_dir: str | Path):
        self.output_dir = normalize_path(output_dir)
        self.shared_dir = self.output_dir / SHARED_DIR_NAME
        self.types_dir = self.shared_dir / TYPES_DIR_NAME

    def component_dir(self, name: str) -> Path:
        return self.output_dir / name.rsplit("/", 1)[-1]

    def shared_path(self, rel_path: str) -> Path:
        head, _, rest = rel_path.partition("/")
        if head == TYPES_DIR_NAME:
            return self.types_dir / rest if rest else self.types_dir
        return self.shared_dir / flatten_shared_path(rel_path)


@dataclass
class RewriteContext:
    """What a rewrite pass may point imports at.

    Attributes:
        components: Component names that are (or will be) in the bundle.
        shared_files: Source-relative shared paths copied into ``shared/``;
            a copied directory covers everything below it.
        current: Component the rewritten file belongs to, if any.
    """

    components: Collection[str] = ()
    shared_files: Collection[str] = ()
    current: Optional[ComponentRecord] = None

    def component_available(self, name: str) -> bool:
        return name in self.components

    def shared_available(self, rel_path: str) -> bool:
        parts = rel_path.split("/")
        return any(
            "/".join(parts[:i]) in self.shared_files for i in range(len(parts), 0, -1)
        )


# ── Helpers ──


def _without_appended_extension(resolution: Resolution) -> Path:
    if resolution.mode == EXTENSION:
        name = resolution.path.name
        return resolution.path.with_name(name[: -len(resolution.extension)])
    return resolution.path


def _import_style_path(resolution: Resolution) -> Path:
    """The path the import names: a directory for index imports, no added extension."""
    if resolution.mode == INDEX:
        return resolution.path.parent
    return _without_appended_extension(resolution)


def relative_specifier(from_dir: Path, dest: Path) -> str:
    """Relative import specifier from ``from_dir`` to ``dest``."""
    rel = os.path.relpath(dest, from_dir).replace(os.sep, "/")
    if rel == ".":
        return "."
    if rel == ".." or rel.startswith("../"):
        return rel
    return f"./{rel}"


# ── Rewriter ──


class ImportRewriter:
    """Rewrites copied files so their local imports resolve inside the bundle.

    Usage::

        rewriter = ImportRewriter(analyzer, BundleLayout("./components"))
        context = RewriteContext(components=deps.components, current=component)
        rewriter.rewrite_file(copied_file, original_file, context)
    """

    def __init__(self, analyzer: DependencyAnalyzer, layout: BundleLayout):
        self.analyzer = analyzer
        self.layout = layout

    def new_specifier(
        self,
        specifier: str,
        origin_file: Path,
        output_file: Path,
        context: RewriteContext,
    ) -> Optional[str]:
        """Replacement for ``specifier``, or None if it stays as it is."""
        result = self.analyzer.classify(origin_file, specifier, context.current)
        if result.kind == COMPONENT:
            if not context.component_available(result.component.name):
                return None
            dest = self._component_destination(result)
        elif result.kind == SHARED:
            if not context.shared_available(result.shared_path):
                return None
            dest = self._shared_destination(result)
        else:
            return None

        new = relative_specifier(normalize_path(output_file).parent, dest)
        return None if new == specifier else new

    def rewrite_content(
        self,
        content: str,
        origin_file: Path,
        output_file: Path,
        context: RewriteContext,
    ) -> str:
        mapping: dict[str, str] = {}
        for target in extract_local_imports(content):
            if target.specifier in mapping:
                continue
            new = self.new_specifier(target.specifier, origin_file, output_file, context)
            if new is not None:
                logger.debug("%s: %s -> %s", output_file.name, target.specifier, new)
                mapping[target.specifier] = new
        return replace_import_specifiers(content, mapping)

    def rewrite_file(
        self,
        output_file: Path,
        origin_file: Optional[Path],
        context: RewriteContext,
    ) -> bool:
        """Rewrite ``output_file`` in place; True if its content changed.

        ``origin_file`` is where the copy came from.  Imports are read from
        and resolved against it; without one, the copy itself is used.
        """
        source = origin_file if origin_file is not None and origin_file.is_file() else output_file
        try:
            existing, encoding = read_text_with_encoding(output_file)
            original = existing if source == output_file else read_text_safe(source)
        except OSError as e:
            logger.warning("Could not read %s: %s", source, e)
            return False

        updated = self.rewrite_content(original, source, output_file, context)
        if updated == existing:
            return False
        try:
            # Written back in the encoding it was copied with
            output_file.write_text(updated, encoding=encoding)
        except (OSError, UnicodeEncodeError) as e:
            logger.warning("Could not update imports in %s: %s", output_file, e)
            return False
        return True

    # ── Destinations ──

    def _component_destination(self, result: Classification) -> Path:
        component = result.component
        out_dir = self.layout.component_dir(component.name)
        # Convention: a component's main module is <Basename>/<Basename>
        convention = out_dir / component.basename

        if result.resolution is None:
            path = result.target
        elif result.resolution.mode == DIRECTORY:
            path = result.resolution.path
        else:
            path = _import_style_path(result.resolution)
        try:
            inner = path.relative_to(component.path)
        except ValueError:
            return convention
        if inner == Path("."):
            return convention
        return out_dir / inner

    def _shared_destination(self, result: Classification) -> Path:
        path = _import_style_path(result.resolution)
        rel = path.relative_to(self.analyzer.src_root).as_posix()
        return self.layout.shared_path(rel)
