"""Download/Assembly Orchestrator -- turns one component name into a bundle.

Given a ready repository checkout, the orchestrator:

  1. Discovers the components of the checked-out tree.
  2. Expands the requested component depth-first: component dependencies
     are downloaded before the component itself, each component at most once.
  3. Copies shared files (plus their own sibling dependencies, one level)
     into ``<output>/shared/``.
  4. Copies each component into ``<output>/<Basename>/`` and rewrites its
     local imports for the new layout.
  5. Rewrites the shared tree, scans it once for components it references
     that are not in the bundle yet, downloads those and rewrites the shared
     tree again.

Failures of transitive dependencies and shared files are collected as
warnings on the result; only a missing or uncopyable top-level component
aborts the download.
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bueno.analyzer import DependencyAnalyzer, DependencySet
from bueno.discovery import ComponentRecord, discover_components, suggest_names
from bueno.files import iter_source_files, make_copy_ignore
from bueno.rewriter import BundleLayout, ImportRewriter, RewriteContext

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "./components"


# ── Exceptions ──


class DownloadError(Exception):
    """Base exception for download errors."""


class ComponentNotFoundError(DownloadError):
    """The requested component does not exist in the repository."""

    def __init__(self, name: str, suggestions=()):
        self.name = name
        self.suggestions = list(suggestions)
        message = f'Component "{name}" not found'
        if self.suggestions:
            lines = "\n".join(f"  - {s}" for s in self.suggestions)
            message += f". Did you mean one of these?\n{lines}"
        super().__init__(message)


# ── Data Classes ──


@dataclass
class DownloadOptions:
    """Options that change what ends up in the bundle."""

    include_stories: bool = False


@dataclass
class DownloadSession:
    """State of one top-level download, passed through every recursive call.

    Attributes:
        layout: Where components and shared files go.
        analyzer: Classifier for the checked-out source tree.
        rewriter: Import rewriter bound to ``layout``.
        downloaded: Component names claimed so far, in claim order.
        basenames: Output directory name -> component name that claimed it.
        shared_copied: Source-relative shared path -> output path.
        shared_expanded: Shared paths whose own imports were already followed.
        shared_origins: Copied shared file -> the source file it came from.
        warnings: Non-fatal problems, in the order they happened.
    """

    layout: BundleLayout
    analyzer: DependencyAnalyzer
    rewriter: ImportRewriter
    downloaded: list[str] = field(default_factory=list)
    basenames: dict[str, str] = field(default_factory=dict)
    shared_copied: dict[str, Path] = field(default_factory=dict)
    shared_expanded: set[str] = field(default_factory=set)
    shared_origins: dict[Path, Path] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.debug("Warning: %s", message)
        self.warnings.append(message)

    def context(self, current: Optional[ComponentRecord] = None) -> RewriteContext:
        return RewriteContext(
            components=set(self.downloaded),
            shared_files=set(self.shared_copied),
            current=current,
        )


@dataclass
class DownloadResult:
    """What a download produced."""

    component: str
    main_path: Path
    downloaded: list[str] = field(default_factory=list)
    shared_files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def dependencies(self) -> list[str]:
        """Downloaded components other than the requested one."""
        return [name for name in self.downloaded if name != self.component]


# ── Orchestrator ──


class ComponentDownloader:
    """Downloads components with their local dependencies from a repository cache.

    ``repository`` needs ``ensure_cache(ref)``, ``src_root`` and
    ``components_root``; see ``bueno.repository.RepositoryCache``.

    Usage::

        downloader = ComponentDownloader(RepositoryCache(config.git, cache_dir))
        result = downloader.download("Buttons/Button", version="v2.1.0")
        print(result.main_path, result.dependencies)
    """

    def __init__(self, repository, options: Optional[DownloadOptions] = None):
        self.repository = repository
        self.options = options or DownloadOptions()
        self._copy_ignore = make_copy_ignore(self.options.include_stories)

    # ── Public API ──

    def list_components(
        self,
        version: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> list[ComponentRecord]:
        """Components at ``version`` or at the remote ``branch`` (current checkout if neither)."""
        self.repository.ensure_cache(version)
        if branch:
            self.repository.checkout_branch(branch)
        return discover_components(self.repository.components_root)

    def download(
        self,
        name: str,
        version: Optional[str] = None,
        output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    ) -> DownloadResult:
        """Download ``name`` and everything it depends on into ``output_dir``.

        Raises:
            ComponentNotFoundError: ``name`` is not a known component.
            DownloadError: The component itself could not be copied.
            RepositoryError: The cache could not be prepared.
        """
        self.repository.ensure_cache(version)
        components = discover_components(self.repository.components_root)
        analyzer = DependencyAnalyzer(
            self.repository.src_root, components, self.repository.components_root
        )
        if name not in analyzer.index:
            raise ComponentNotFoundError(name, suggest_names(name, analyzer.index))

        layout = BundleLayout(output_dir)
        session = DownloadSession(layout, analyzer, ImportRewriter(analyzer, layout))
        try:
            layout.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(f"Could not create {layout.output_dir}: {e}") from e

        logger.info("Downloading %s into %s", name, layout.output_dir)
        self._download_with_dependencies(name, session)
        self._finish_shared(session)

        return DownloadResult(
            component=name,
            main_path=layout.component_dir(name),
            downloaded=list(session.downloaded),
            shared_files=list(session.shared_copied),
            warnings=list(session.warnings),
        )

    def download_component(
        self,
        name: str,
        version: Optional[str] = None,
        output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    ) -> Path:
        """Download ``name`` and return the directory of its copy."""
        return self.download(name, version, output_dir).main_path

    # ── Expansion ──

    def _download_with_dependencies(self, name: str, session: DownloadSession) -> None:
        if name in session.downloaded:
            return
        component = session.analyzer.index.get(name)
        if component is None:
            raise ComponentNotFoundError(name, suggest_names(name, session.analyzer.index))

        # Claimed before recursing so dependency cycles terminate
        session.downloaded.append(name)
        deps = session.analyzer.analyze(component)

        for dep in deps.components:
            try:
                self._download_with_dependencies(dep, session)
            except DownloadError as e:
                session.warn(f"Skipped dependency {dep} of {name}: {e}")

        for rel_path in deps.shared_files:
            self._copy_shared_file(rel_path, session)

        self._copy_component(component, session)
        self._rewrite_component(component, session)

    def _copy_component(self, component: ComponentRecord, session: DownloadSession) -> None:
        dest = session.layout.component_dir(component.name)
        owner = session.basenames.setdefault(component.basename, component.name)
        if owner != component.name:
            session.warn(
                f"{component.name} and {owner} both download to {dest}; "
                f"files of {component.name} are merged over {owner}"
            )
        try:
            shutil.copytree(component.path, dest, ignore=self._copy_ignore, dirs_exist_ok=True)
        except shutil.Error as e:
            # Everything but the listed entries was copied
            for src, _dst, why in e.args[0]:
                session.warn(f"Could not copy {src} of {component.name}: {why}")
        except OSError as e:
            if not dest.is_dir():
                session.downloaded.remove(component.name)
                if session.basenames.get(component.basename) == component.name:
                    del session.basenames[component.basename]
            raise DownloadError(f"Could not copy {component.name}: {e}") from e
        logger.info("Copied %s -> %s", component.name, dest)

    def _rewrite_component(self, component: ComponentRecord, session: DownloadSession) -> None:
        out_dir = session.layout.component_dir(component.name)
        context = session.context(current=component)
        for out_file in iter_source_files(out_dir, self.options.include_stories):
            origin = component.path / out_file.relative_to(out_dir)
            session.rewriter.rewrite_file(
                out_file, origin if origin.is_file() else None, context
            )

    # ── Shared Files ──

    def _copy_shared_file(
        self,
        rel_path: str,
        session: DownloadSession,
        expand: bool = True,
    ) -> None:
        """Copy one shared file or directory, then its own dependencies one level deep.

        A path copied earlier as another file's dependency is not copied
        again, but its own imports are still followed when ``expand`` is set.
        """
        if rel_path not in session.shared_copied and not self._copy_shared(rel_path, session):
            return
        if not expand or rel_path in session.shared_expanded:
            return
        session.shared_expanded.add(rel_path)

        own = DependencySet()
        for origin in self._shared_sources(session.analyzer.src_root / rel_path):
            own.merge(session.analyzer.analyze_file(origin, include_same_dir=True))
        for sub_path in own.shared_files:
            self._copy_shared_file(sub_path, session, expand=False)

    def _copy_shared(self, rel_path: str, session: DownloadSession) -> bool:
        source = session.analyzer.src_root / rel_path
        dest = session.layout.shared_path(rel_path)
        if not source.exists():
            session.warn(f"Shared file {rel_path} not found")
            return False
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                shutil.copytree(source, dest, ignore=self._copy_ignore, dirs_exist_ok=True)
            else:
                shutil.copy2(source, dest)
        except OSError as e:
            session.warn(f"Could not copy shared file {rel_path}: {e}")
            return False

        session.shared_copied[rel_path] = dest
        for origin in self._shared_sources(source):
            out_file = dest if origin == source else dest / origin.relative_to(source)
            session.shared_origins[out_file] = origin
        logger.debug("Copied shared %s -> %s", rel_path, dest)
        return True

    def _shared_sources(self, source: Path) -> list[Path]:
        if source.is_file():
            return [source]
        return list(iter_source_files(source, self.options.include_stories))

    def _rewrite_shared(self, session: DownloadSession) -> None:
        context = session.context()
        for out_file, origin in list(session.shared_origins.items()):
            if out_file.is_file():
                session.rewriter.rewrite_file(out_file, origin, context)

    def _scan_shared_for_components(self, session: DownloadSession) -> list[str]:
        """Components referenced from shared files that are not downloaded yet."""
        found = DependencySet()
        for origin in list(session.shared_origins.values()):
            session.analyzer.analyze_file(origin, found, include_same_dir=True)
        return [name for name in found.components if name not in session.downloaded]

    def _finish_shared(self, session: DownloadSession) -> None:
        if not session.shared_copied:
            return
        self._rewrite_shared(session)

        missing = self._scan_shared_for_components(session)
        if not missing:
            return
        logger.info("Shared files reference more components: %s", ", ".join(missing))
        for name in missing:
            try:
                self._download_with_dependencies(name, session)
            except DownloadError as e:
                session.warn(f"Skipped component {name} referenced by shared files: {e}")
        self._rewrite_shared(session)
