"""Dependency Analyzer -- classifies a component's local imports.

Every relative import is resolved against the cached source tree and sorted
into one of three buckets:

  - another component (the import lands inside a different component's
    directory below the components root),
  - a shared file (the import lands below the source root but outside the
    components tree, e.g. ``common/Utils`` or ``@types``),
  - external / unresolved (dropped).

Resolution tries the bare path, then the known source extensions, then an
``index`` file inside a matching directory, the way TS module resolution
does for relative paths.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from bueno.discovery import ComponentRecord, component_index
from bueno.files import is_source_file, is_within, normalize_path, read_text_safe
from bueno.imports import extract_local_imports

logger = logging.getLogger(__name__)

# ── Constants ──

RESOLVE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".d.ts")

COMPONENTS_DIR_NAME = "components"

# Shared type declarations are copied as a whole directory
TYPES_DIR_NAME = "@types"

# Classification kinds
COMPONENT = "component"
SHARED = "shared"
EXTERNAL = "external"

# How an import specifier was matched on disk
EXACT = "exact"            # the specifier named an existing file
EXTENSION = "extension"    # a source extension had to be appended
INDEX = "index"            # an index file inside the named directory
DIRECTORY = "directory"    # a directory without an index file


# ── Data Classes ──


@dataclass
class DependencySet:
    """Local dependencies of one component or shared file.

    Both lists are ordered sets: unique, in first-seen order.
    ``shared_files`` holds paths relative to the source root.
    """

    components: list[str] = field(default_factory=list)
    shared_files: list[str] = field(default_factory=list)

    def add_component(self, name: str) -> None:
        if name not in self.components:
            self.components.append(name)

    def add_shared_file(self, rel_path: str) -> None:
        if rel_path not in self.shared_files:
            self.shared_files.append(rel_path)

    def discard_component(self, name: str) -> None:
        self.components = [c for c in self.components if c != name]

    def merge(self, other: "DependencySet") -> None:
        for name in other.components:
            self.add_component(name)
        for rel in other.shared_files:
            self.add_shared_file(rel)

    def is_empty(self) -> bool:
        return not self.components and not self.shared_files


@dataclass(frozen=True)
class Resolution:
    """Where a relative specifier landed on disk."""

    path: Path
    mode: str  # EXACT, EXTENSION, INDEX or DIRECTORY
    extension: str = ""


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one import specifier."""

    kind: str  # COMPONENT, SHARED or EXTERNAL
    target: Path  # normalized, possibly non-existent, import target
    resolution: Optional[Resolution] = None
    component: Optional[ComponentRecord] = None
    shared_path: Optional[str] = None  # source-root relative, SHARED only


def resolve_import(base_dir: Path, specifier: str) -> Optional[Resolution]:
    """Resolve a relative specifier from ``base_dir`` to something on disk.

    Order: bare file, file + each of ``RESOLVE_EXTENSIONS``, ``index`` + each
    extension inside a matching directory, then the directory itself.
    Returns None if nothing exists.
    """
    target = normalize_path(base_dir / specifier)
    if target.is_file():
        return Resolution(target, EXACT)
    for ext in RESOLVE_EXTENSIONS:
        candidate = target.with_name(target.name + ext)
        if candidate.is_file():
            return Resolution(candidate, EXTENSION, ext)
    if target.is_dir():
        for ext in RESOLVE_EXTENSIONS:
            candidate = target / f"index{ext}"
            if candidate.is_file():
                return Resolution(candidate, INDEX, ext)
        return Resolution(target, DIRECTORY)
    return None


# ── Analyzer ──


class DependencyAnalyzer:
    """Classifies local imports against one cached source tree.

    Usage::

        analyzer = DependencyAnalyzer(repo / "src", discover_components(...))
        deps = analyzer.analyze(analyzer.index["Form/Inputs/Select"])
        print(deps.components, deps.shared_files)
    """

    def __init__(
        self,
        src_root: str | Path,
        components: Iterable[ComponentRecord],
        components_root: Optional[str | Path] = None,
    ):
        self.src_root = normalize_path(src_root)
        self.components_root = normalize_path(
            components_root or self.src_root / COMPONENTS_DIR_NAME
        )
        self.components = list(components)
        self.index = component_index(self.components)

    # ── Public API ──

    def analyze(self, component: ComponentRecord) -> DependencySet:
        """Dependencies of the source files directly inside ``component``."""
        deps = DependencySet()
        try:
            entries = sorted(os.listdir(component.path))
        except OSError as e:
            logger.warning("Could not analyze dependencies for %s: %s", component.name, e)
            return deps

        for entry in entries:
            source_file = component.path / entry
            if is_source_file(entry) and source_file.is_file():
                self.analyze_file(source_file, deps, current=component)

        deps.discard_component(component.name)
        if deps.is_empty():
            logger.debug("%s has no local dependencies", component.name)
        else:
            logger.debug(
                "%s depends on components %s and shared files %s",
                component.name, deps.components, deps.shared_files,
            )
        return deps

    def analyze_file(
        self,
        source_file: Path,
        deps: Optional[DependencySet] = None,
        current: Optional[ComponentRecord] = None,
        include_same_dir: bool = False,
    ) -> DependencySet:
        """Add the local dependencies of one file to ``deps``.

        Same-directory (``./``) imports are skipped unless
        ``include_same_dir`` is set, which is how shared files pick up their
        sibling files.  Unreadable files are logged and skipped.
        """
        if deps is None:
            deps = DependencySet()
        try:
            content = read_text_safe(source_file)
        except OSError as e:
            logger.warning("Could not read %s: %s", source_file, e)
            return deps

        for target in extract_local_imports(content):
            if not target.escapes_directory and not include_same_dir:
                continue
            result = self.classify(source_file, target.specifier, current)
            if result.kind == COMPONENT:
                deps.add_component(result.component.name)
            elif result.kind == SHARED:
                deps.add_shared_file(result.shared_path)
        return deps

    def classify(
        self,
        source_file: Path,
        specifier: str,
        current: Optional[ComponentRecord] = None,
    ) -> Classification:
        """Classify ``specifier`` as imported from ``source_file``."""
        base_dir = normalize_path(source_file).parent
        target = normalize_path(base_dir / specifier)
        resolution = resolve_import(base_dir, specifier)
        candidate = resolution.path if resolution else target

        if is_within(candidate, self.components_root):
            component = self.component_for_path(candidate, current)
            if component is not None:
                return Classification(COMPONENT, target, resolution, component=component)
            return Classification(EXTERNAL, target, resolution)

        if (
            resolution is not None
            and is_within(resolution.path, self.src_root)
            and resolution.path != self.src_root
        ):
            return Classification(
                SHARED, target, resolution,
                shared_path=self.shared_path_for(resolution.path),
            )
        return Classification(EXTERNAL, target, resolution)

    def component_for_path(
        self,
        path: Path,
        current: Optional[ComponentRecord] = None,
    ) -> Optional[ComponentRecord]:
        """Component whose directory holds ``path``, other than ``current``.

        The deepest containing component wins.  If no directory contains the
        path, the path relative to the components root is shortened one
        segment at a time until it names a known component.
        """
        current_name = current.name if current else None

        best: Optional[ComponentRecord] = None
        for record in self.components:
            if is_within(path, record.path):
                if best is None or len(record.path.parts) > len(best.path.parts):
                    best = record
        if best is not None:
            return None if best.name == current_name else best

        try:
            parts = list(path.relative_to(self.components_root).parts)
        except ValueError:
            return None
        if parts and os.path.splitext(parts[-1])[1]:
            parts = parts[:-1]
        for i in range(len(parts), 0, -1):
            record = self.index.get("/".join(parts[:i]))
            if record is not None and record.name != current_name:
                return record
        return None

    def shared_path_for(self, path: Path) -> str:
        """Source-root relative path recorded for a shared dependency."""
        rel = path.relative_to(self.src_root).as_posix()
        if rel.split("/", 1)[0] == TYPES_DIR_NAME:
            return TYPES_DIR_NAME
        return rel
