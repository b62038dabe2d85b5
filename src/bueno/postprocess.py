"""Post-download processing -- test clean-up and the component summary."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bueno.discovery import is_component_file
from bueno.files import is_test_file, read_text_safe
from bueno.imports import extract_imports, package_name

logger = logging.getLogger(__name__)

_EXPORT_RE = re.compile(r"\bexport\s+(?:default\s+)?(?:const|let|function|class)\s+(\w+)")


@dataclass
class ComponentSummary:
    """What the CLI prints about a freshly downloaded component."""

    name: str
    main_file: Optional[str] = None
    exports: list[str] = field(default_factory=list)
    external_imports: list[str] = field(default_factory=list)


def remove_test_files(directory: Path) -> list[Path]:
    """Delete ``*.test.*`` and ``*.spec.*`` files below ``directory``.

    Returns the removed paths.  Files that cannot be removed are logged and
    left in place.
    """
    removed: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            if not is_test_file(name):
                continue
            path = Path(dirpath) / name
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Could not remove test file %s: %s", path, e)
                continue
            removed.append(path)
    logger.debug("Removed %d test files from %s", len(removed), directory)
    return removed


def find_main_file(component_dir: Path) -> Optional[str]:
    """Main source file of a downloaded component.

    Prefers ``<Basename>.tsx``/``.jsx``, then the first component file in
    sorted order.
    """
    try:
        names = sorted(os.listdir(component_dir))
    except OSError:
        return None
    candidates = [n for n in names if is_component_file(n) and (component_dir / n).is_file()]
    for name in candidates:
        if os.path.splitext(name)[0] == component_dir.name:
            return name
    return candidates[0] if candidates else None


def summarize_component(component_dir: Path) -> ComponentSummary:
    summary = ComponentSummary(name=component_dir.name)
    summary.main_file = find_main_file(component_dir)
    if summary.main_file is None:
        return summary
    try:
        content = read_text_safe(component_dir / summary.main_file)
    except OSError as e:
        logger.warning("Could not read component info from %s: %s", summary.main_file, e)
        return summary

    summary.exports = list(dict.fromkeys(_EXPORT_RE.findall(content)))
    packages = [
        package_name(t.specifier)
        for t in extract_imports(content)
        if not t.is_relative and not t.specifier.startswith("/")
    ]
    summary.external_imports = list(dict.fromkeys(packages))
    return summary


def format_summary(summary: ComponentSummary, version: Optional[str] = None) -> str:
    """Human-readable component information with a usage line."""
    lines = ["Component Information:", f"  Name: {summary.name}"]
    if version:
        lines.append(f"  Version: {version}")
    if summary.main_file is None:
        lines.append("  Main file: (none found)")
        return "\n".join(lines)

    lines.append(f"  Main file: {summary.main_file}")
    if summary.exports:
        lines.append(f"  Exports: {', '.join(summary.exports)}")
    if summary.external_imports:
        lines.append("")
        lines.append("Dependencies found in component:")
        lines.extend(f"  {dep}" for dep in summary.external_imports)

    module = os.path.splitext(summary.main_file)[0]
    lines.append("")
    lines.append("Usage:")
    lines.append(f"  import {{ {module} }} from './{summary.name}/{module}';")
    return "\n".join(lines)
