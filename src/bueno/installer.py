"""Package-manager install for the npm packages a component needs.

Dependencies come from a ``package.json`` next to the component if there is
one, otherwise from the bare imports of its source files (installed at their
latest version).
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

from bueno.files import SOURCE_EXTENSIONS, is_story_file, is_test_file, read_text_safe
from bueno.imports import extract_imports, package_name

logger = logging.getLogger(__name__)

PACKAGE_MANAGERS = ("npm", "pnpm", "yarn")
DEFAULT_PACKAGE_MANAGER = "pnpm"

# Versions that are installed without an explicit version suffix
_UNPINNED = {"latest", "*", ""}


class InstallError(Exception):
    """The package manager could not install the dependencies."""


def collect_dependencies(component_dir: Path) -> tuple[dict[str, str], dict[str, str]]:
    """(dependencies, peer_dependencies) of a downloaded component, name -> version."""
    package_json = component_dir / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", package_json, e)
        else:
            return (
                dict(data.get("dependencies") or {}),
                dict(data.get("peerDependencies") or {}),
            )

    deps: dict[str, str] = {}
    try:
        names = sorted(p.name for p in component_dir.iterdir())
    except OSError as e:
        logger.warning("Could not list %s: %s", component_dir, e)
        return deps, {}
    for name in names:
        if not name.endswith(SOURCE_EXTENSIONS) or is_test_file(name) or is_story_file(name):
            continue
        try:
            content = read_text_safe(component_dir / name)
        except OSError as e:
            logger.warning("Could not read %s: %s", name, e)
            continue
        for target in extract_imports(content):
            if target.is_relative or target.specifier.startswith("/"):
                continue
            deps.setdefault(package_name(target.specifier), "latest")
    return deps, {}


def format_specs(*groups: dict[str, str]) -> list[str]:
    """``name`` or ``name@version`` install specs, later groups overriding earlier ones."""
    merged: dict[str, str] = {}
    for group in groups:
        merged.update(group)
    return [
        name if version in _UNPINNED else f"{name}@{version}"
        for name, version in merged.items()
    ]


def build_install_command(manager: str, specs: list[str]) -> list[str]:
    if manager not in PACKAGE_MANAGERS:
        raise InstallError(
            f"Unknown package manager {manager!r}; use one of {', '.join(PACKAGE_MANAGERS)}"
        )
    verb = "install" if manager == "npm" else "add"
    return [manager, verb] + specs


def install_dependencies(
    dependencies: dict[str, str],
    peer_dependencies: Optional[dict[str, str]] = None,
    manager: str = DEFAULT_PACKAGE_MANAGER,
    cwd: Optional[Path] = None,
) -> list[str]:
    """Install the given packages; returns the command that was run (empty if none)."""
    specs = format_specs(dependencies, peer_dependencies or {})
    if not specs:
        return []
    cmd = build_install_command(manager, specs)
    logger.info("Installing dependencies: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, cwd=cwd)
    except FileNotFoundError as e:
        raise InstallError(f"{manager} not found on PATH") from e
    except OSError as e:
        raise InstallError(f"Could not run {manager}: {e}") from e
    if result.returncode != 0:
        raise InstallError(f"{manager} {cmd[1]} failed (exit {result.returncode})")
    return cmd
