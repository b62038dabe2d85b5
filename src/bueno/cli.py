"""mui-bueno CLI — download UI components with their local dependencies.

Usage::

    mui-bueno download Buttons/Button [options]
    python -m bueno download Buttons/Button [options]

Commands::

    download [name]   Download a component and its dependencies
    list | ls         List available components
    search QUERY      Search components by name
    branches          List branches and tags of the repository
    config            Show or reset the configuration
    cache             Show or clear the repository cache
    init              Set up the configuration and test the connection

Download options::

    -v, --version V       Tag to download
    -b, --branch B        Remote branch to download from
    -c, --commit C        Commit to download
    -o, --output-dir DIR  Where to put the bundle
    -f, --force           Overwrite an existing component without asking
    --no-tests            Remove test files after download
    --include-stories     Keep Storybook stories
    --install-deps        Install the component's npm dependencies
    --package-manager PM  npm, pnpm or yarn (default pnpm)
    --non-interactive     Never prompt
    --verbose             Enable verbose logging
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from bueno.config import ConfigError, ConfigManager, GitConfig
from bueno.discovery import suggest_names
from bueno.downloader import (
    ComponentDownloader,
    ComponentNotFoundError,
    DownloadError,
    DownloadOptions,
)
from bueno.installer import (
    DEFAULT_PACKAGE_MANAGER,
    PACKAGE_MANAGERS,
    InstallError,
    collect_dependencies,
    format_specs,
    install_dependencies,
)
from bueno.interface import TerminalIO, UserIO
from bueno.postprocess import format_summary, remove_test_files, summarize_component
from bueno.repository import ConnectivityError, RepositoryCache, RepositoryError
from bueno.rewriter import BundleLayout

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50

_SEARCH_CHOICE = "Search components..."
_LATEST_CHOICE = "Latest (current checkout)"


# ── Helpers ──


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _is_interactive(args: argparse.Namespace) -> bool:
    return not args.non_interactive and sys.stdin.isatty()


def _load_config(manager: ConfigManager):
    """Validated configuration, or None after printing what is wrong."""
    config = manager.load()
    valid, errors = manager.validate(config)
    if not valid:
        _error("Configuration is invalid:")
        for e in errors:
            print(f"  - {e}", file=sys.stderr)
        print('Run "mui-bueno init" to fix configuration issues.', file=sys.stderr)
        return None
    return config


def _repository(config) -> RepositoryCache:
    return RepositoryCache(config.git, config.cache_dir)


def _dir_size(path: Path) -> int:
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += (Path(dirpath) / name).stat().st_size
            except OSError:
                continue
    return total


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


# ── download ──


def _resolve_ref(args: argparse.Namespace) -> tuple[Optional[str], Optional[str]]:
    """(git ref to check out, label to show) from the version flags."""
    if args.version:
        return args.version, args.version
    if args.branch:
        return f"origin/{args.branch}", args.branch
    if args.commit:
        return args.commit, args.commit
    return None, None


def _pick_component(downloader: ComponentDownloader, branch, io: UserIO) -> Optional[str]:
    names = sorted(c.name for c in downloader.list_components(branch=branch))
    if not names:
        _error("No components found in the repository")
        return None
    io.display(f"Found {_plural(len(names), 'component')}.")
    pick = io.choose("Select a component to download:", [_SEARCH_CHOICE] + names)
    if pick is None:
        return None
    if pick > 0:
        return names[pick - 1]

    query = io.prompt("Enter search term:").lower()
    matches = [n for n in names if query in n.lower()]
    if not matches:
        io.display(f'No components found matching "{query}"')
        return None
    pick = io.choose(f"Found {_plural(len(matches), 'matching component')}:", matches)
    return None if pick is None else matches[pick]


def _pick_version(repo: RepositoryCache, io: UserIO) -> tuple[Optional[str], Optional[str]]:
    repo.ensure_cache()
    info = repo.git_info()
    refs = [(t, t) for t in info.tags] + [(f"origin/{b}", b) for b in info.branches]
    labels = [f"{t} (tag)" for t in info.tags] + [f"{b} (branch)" for b in info.branches]
    if not refs:
        return None, None
    pick = io.choose("Select a version to download:", [_LATEST_CHOICE] + labels)
    if not pick:
        return None, None
    return refs[pick - 1]


def _install(result_path: Path, args: argparse.Namespace, io: UserIO, interactive: bool) -> None:
    deps, peers = collect_dependencies(result_path)
    specs = format_specs(deps, peers)
    if not specs:
        io.display("No dependencies found for this component.")
        return
    io.display(f"Found {_plural(len(specs), 'dependency')}:")
    for spec in specs:
        io.display(f"  {spec}")
    if interactive and not io.confirm(
        f"Install {len(specs)} dependencies using {args.package_manager}?", default=True
    ):
        io.display("Dependency installation cancelled.")
        return
    try:
        install_dependencies(deps, peers, args.package_manager, cwd=Path.cwd())
    except InstallError as e:
        print(f"Warning: Could not install dependencies: {e}", file=sys.stderr)
        return
    io.display("Dependencies installed successfully!")


def cmd_download(args: argparse.Namespace, io: UserIO) -> int:
    manager = ConfigManager()
    config = _load_config(manager)
    if config is None:
        return 1
    interactive = _is_interactive(args)
    repo = _repository(config)

    io.display("Testing connection to repository...")
    try:
        repo.require_connectivity()
    except ConnectivityError as e:
        _error(str(e))
        return 1

    downloader = ComponentDownloader(repo, DownloadOptions(include_stories=args.include_stories))
    ref, label = _resolve_ref(args)
    name = args.component

    try:
        if not name:
            if not interactive:
                _error("A component name is required in non-interactive mode")
                return 1
            name = _pick_component(downloader, args.branch, io)
            if not name:
                io.display("No component selected for download.")
                return 0
        if ref is None and interactive:
            ref, label = _pick_version(repo, io)
    except RepositoryError as e:
        _error(str(e))
        return 1

    output_dir = args.output_dir or config.default_download_path
    layout = BundleLayout(output_dir)
    existing = layout.component_dir(name)
    if existing.exists() and not args.force:
        if not interactive:
            _error(f'Component "{name}" already exists at {existing}; use --force to overwrite')
            return 1
        if not io.confirm(f'Component "{name}" already exists. Overwrite?'):
            io.display("Download cancelled.")
            return 0

    while True:
        io.display(f"Downloading {name}{'@' + label if label else ''} and dependencies...")
        try:
            result = downloader.download(name, ref, output_dir)
            break
        except ComponentNotFoundError as e:
            _error(str(e))
            if not interactive or not e.suggestions:
                return 1
            pick = io.choose("Download one of these instead?", e.suggestions)
            if pick is None:
                return 1
            name = e.suggestions[pick]
        except (DownloadError, RepositoryError) as e:
            _error(f"Failed to download {name}: {e}")
            return 1

    io.display(f"{name} and all dependencies downloaded successfully!")
    io.display(f"  Main component location: {result.main_path}")
    if result.dependencies:
        io.display(f"  Dependencies: {', '.join(result.dependencies)}")
    if result.shared_files:
        io.display(f"  Shared files: {', '.join(result.shared_files)}")
    if result.warnings:
        io.display("\nWarnings:")
        for w in result.warnings:
            io.display(f"  - {w}")

    if not args.include_tests:
        for downloaded in result.downloaded:
            remove_test_files(layout.component_dir(downloaded))

    io.display("")
    io.display(format_summary(summarize_component(result.main_path), label))

    if args.install_deps:
        _install(result.main_path, args, io, interactive)
    return 0


# ── list / search ──


def cmd_list(args: argparse.Namespace, io: UserIO) -> int:
    config = _load_config(ConfigManager())
    if config is None:
        return 1
    try:
        components = ComponentDownloader(_repository(config)).list_components(branch=args.branch)
    except RepositoryError as e:
        _error(f"Failed to list components: {e}")
        return 1

    names = sorted(c.name for c in components)
    if not names:
        io.display("No components found in the repository.")
        return 0
    shown = names[: args.limit] if args.limit else names
    suffix = f" (showing {len(shown)})" if len(shown) < len(names) else ""
    io.display(f"Found {_plural(len(names), 'component')}{suffix}:\n")
    for i, name in enumerate(shown, start=1):
        io.display(f"{i}. {name}")
    return 0


def cmd_search(args: argparse.Namespace, io: UserIO) -> int:
    config = _load_config(ConfigManager())
    if config is None:
        return 1
    try:
        components = ComponentDownloader(_repository(config)).list_components(branch=args.branch)
    except RepositoryError as e:
        _error(f"Search failed: {e}")
        return 1

    names = sorted(c.name for c in components)
    query = args.query.lower()
    matches = [n for n in names if query in n.lower()]
    if not matches:
        io.display(f'No components found matching "{args.query}".')
        suggestions = suggest_names(args.query, names, limit=5)
        if suggestions:
            io.display(f"Did you mean: {', '.join(suggestions)}?")
        return 0
    shown = matches[: args.limit] if args.limit else matches
    suffix = f" (showing {len(shown)})" if len(shown) < len(matches) else ""
    io.display(f'Found {_plural(len(matches), "component")} matching "{args.query}"{suffix}:\n')
    for i, name in enumerate(shown, start=1):
        io.display(f"{i}. {name}")
    return 0


# ── branches ──


def cmd_branches(args: argparse.Namespace, io: UserIO) -> int:
    config = _load_config(ConfigManager())
    if config is None:
        return 1
    repo = _repository(config)
    try:
        repo.ensure_cache()
        info = repo.git_info()
    except RepositoryError as e:
        _error(f"Failed to fetch branches and tags: {e}")
        return 1

    io.display("Branches:")
    for branch in info.branches:
        marker = "*" if branch == info.current_branch else " "
        io.display(f"{marker} {branch}")
    if info.tags:
        io.display("\nTags:")
        for tag in info.tags:
            io.display(f"  {tag}")
    io.display(f"\nCurrent branch: {info.current_branch}")
    io.display(f"Latest commit: {info.latest_commit}")
    return 0


# ── config / init ──


def _setup_configuration(manager: ConfigManager, io: UserIO) -> None:
    defaults = manager.load()
    io.display("Git Repository Configuration:\n")
    while True:
        url = io.prompt(f"Git repository URL [{defaults.git.repository_url}]:") or defaults.git.repository_url
        if "git@" in url or "https://" in url:
            break
        io.display("Please provide a valid git URL (SSH or HTTPS)")
    branch = io.prompt(f"Default branch [{defaults.git.branch}]:") or defaults.git.branch
    ssh_key = io.prompt("SSH key path (optional, leave empty for default):") or None
    author = io.prompt(f"Your name [{defaults.author}]:") or defaults.author
    download_path = (
        io.prompt(f"Default download path [{defaults.default_download_path}]:")
        or defaults.default_download_path
    )

    manager.update(
        git=GitConfig(repository_url=url, branch=branch, ssh_key_path=ssh_key, username=author),
        author=author,
        default_download_path=download_path,
        workspace=str(Path.cwd()),
    )
    io.display("Configuration saved successfully!")


def cmd_init(args: argparse.Namespace, io: UserIO) -> int:
    manager = ConfigManager()
    interactive = _is_interactive(args)
    io.display("Initializing MUI Bueno CLI...\n")

    if not manager.exists():
        io.display("No configuration found. Let's set it up!\n")
        if interactive:
            _setup_configuration(manager, io)
        else:
            manager.save(manager.load())
            io.display(f"Default configuration written to {manager.config_path}")
    else:
        io.display("Configuration already exists.")
        if interactive and io.confirm("Would you like to reconfigure?"):
            _setup_configuration(manager, io)

    config = manager.load()
    io.display("\nTesting SSH connection to repository...")
    if _repository(config).test_connectivity():
        io.display("SSH connection successful!")
    else:
        io.display("SSH connection failed.")
        io.display("Please ensure you have SSH access to the repository.")

    io.display("\nMUI Bueno CLI is ready to use!")
    io.display("\nNext steps:")
    hint = "  Run \"mui-bueno download <component>"
    if args.install_deps:
        hint += f" --install-deps --package-manager {args.package_manager}"
    io.display(hint + '" to download components')
    return 0


def cmd_config(args: argparse.Namespace, io: UserIO) -> int:
    manager = ConfigManager()
    if args.reset:
        if _is_interactive(args) and not io.confirm(
            "This will delete existing configuration. Continue?"
        ):
            io.display("Reset cancelled.")
            return 0
        manager.reset()
        io.display("Configuration reset.")
        return 0
    if args.edit:
        return cmd_init(args, io)

    io.display("Current configuration:\n")
    io.display(json.dumps(manager.load().to_dict(), indent=2))
    return 0


# ── cache ──


def cmd_cache(args: argparse.Namespace, io: UserIO) -> int:
    config = ConfigManager().load()
    cache_dir = Path(config.cache_dir).expanduser()

    if args.clear:
        if _is_interactive(args) and not io.confirm(
            f"This will delete the cache directory at {cache_dir}. Continue?"
        ):
            io.display("Cache clear cancelled.")
            return 0
        try:
            cleared = _repository(config).clear()
        except RepositoryError as e:
            _error(str(e))
            return 1
        io.display("Cache cleared successfully." if cleared else "Cache directory does not exist.")
        return 0

    if not cache_dir.exists():
        io.display("Cache directory does not exist.")
        return 0
    io.display(f"Cache directory: {cache_dir}")
    io.display(f"Cache size: {_dir_size(cache_dir) / (1024 * 1024):.2f} MB")
    return 0


# ── Parser ──


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )
    common.add_argument(
        "--non-interactive",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Never prompt; fail where a choice would be needed",
    )

    parser = argparse.ArgumentParser(
        prog="mui-bueno",
        description=(
            "mui-bueno — download MUI Bueno components into your project.\n\n"
            "Components are copied together with the components and shared "
            "files they import, with import paths fixed for the new layout."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=False,
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        default=False,
        help="Never prompt; fail where a choice would be needed",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    # download
    p = sub.add_parser("download", parents=[common], help="Download a component and its dependencies")
    p.add_argument("component", nargs="?", default=None, help="Component name, e.g. Buttons/Button")
    p.add_argument("-v", "--version", default=None, help="Tag to download")
    p.add_argument("-b", "--branch", default=None, help="Remote branch to download from")
    p.add_argument("-c", "--commit", default=None, help="Commit hash to download")
    p.add_argument("-o", "--output-dir", default=None, help="Output directory")
    p.add_argument("-f", "--force", action="store_true", default=False,
                   help="Overwrite an existing component without asking")
    p.add_argument("--include-tests", dest="include_tests", action="store_true", default=True,
                   help="Keep test files (default)")
    p.add_argument("--no-tests", dest="include_tests", action="store_false",
                   help="Remove test files after download")
    p.add_argument("--include-stories", action="store_true", default=False,
                   help="Keep Storybook story files")
    p.add_argument("--install-deps", action="store_true", default=False,
                   help="Install npm dependencies after download")
    p.add_argument("--package-manager", choices=PACKAGE_MANAGERS, default=DEFAULT_PACKAGE_MANAGER,
                   help="Package manager for --install-deps (default: pnpm)")
    p.set_defaults(handler=cmd_download)

    # list
    p = sub.add_parser("list", aliases=["ls"], parents=[common], help="List available components")
    p.add_argument("-b", "--branch", default=None, help="Branch to list from")
    p.add_argument("-l", "--limit", type=int, default=DEFAULT_LIST_LIMIT,
                   help=f"Maximum number of components shown (default: {DEFAULT_LIST_LIMIT}, 0 for all)")
    p.set_defaults(handler=cmd_list)

    # search
    p = sub.add_parser("search", parents=[common], help="Search components by name")
    p.add_argument("query", help="Case-insensitive part of a component name")
    p.add_argument("-b", "--branch", default=None, help="Branch to search")
    p.add_argument("-l", "--limit", type=int, default=None, help="Maximum number of results")
    p.set_defaults(handler=cmd_search)

    # branches
    p = sub.add_parser("branches", parents=[common], help="List branches and tags")
    p.set_defaults(handler=cmd_branches)

    # config
    p = sub.add_parser("config", parents=[common], help="Show or reset the configuration")
    group = p.add_mutually_exclusive_group()
    group.add_argument("-s", "--show", action="store_true", default=False,
                       help="Print the current configuration (default)")
    group.add_argument("-r", "--reset", action="store_true", default=False,
                       help="Delete the configuration file")
    group.add_argument("-e", "--edit", action="store_true", default=False,
                       help="Edit the configuration interactively")
    p.set_defaults(handler=cmd_config, install_deps=False, package_manager=DEFAULT_PACKAGE_MANAGER)

    # cache
    p = sub.add_parser("cache", parents=[common], help="Show or clear the repository cache")
    p.add_argument("-c", "--clear", action="store_true", default=False,
                   help="Delete the repository cache")
    p.set_defaults(handler=cmd_cache)

    # init
    p = sub.add_parser("init", parents=[common], help="Set up the configuration")
    p.add_argument("--install-deps", action="store_true", default=False,
                   help="Suggest --install-deps in the next steps")
    p.add_argument("--package-manager", choices=PACKAGE_MANAGERS, default=DEFAULT_PACKAGE_MANAGER,
                   help="Package manager to suggest (default: pnpm)")
    p.set_defaults(handler=cmd_init)

    return parser


def main(argv: list[str] | None = None, io: Optional[UserIO] = None) -> int:
    """CLI entry point.  Returns exit code (0=success, 1=failure)."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        return args.handler(args, io or TerminalIO())
    except ConfigError as e:
        _error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 1
