"""Component Discovery -- builds the name index of a cached component tree.

A component is any directory below the components root that directly holds
a UI source file (``.tsx``/``.jsx``) which is neither a test nor a story.
Nested components are recorded independently, so ``Form/Inputs/Select``
and ``Form`` can both exist.

Also ranks "did you mean" suggestions for unknown component names.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from bueno.files import is_story_file, is_test_file, normalize_path

logger = logging.getLogger(__name__)

# ── Constants ──

COMPONENT_EXTENSIONS = (".tsx", ".jsx")

# Entries under the components root that are never components
SKIP_ENTRIES = {"README.md"}

MAX_SUGGESTIONS = 10


# ── Data Classes ──


@dataclass(frozen=True)
class ComponentRecord:
    """A discovered component.

    Attributes:
        name: Slash-separated path below the components root,
            e.g. ``"Form/Inputs/Select"``.
        path: Absolute directory of the component in the cache.
    """

    name: str
    path: Path

    @property
    def basename(self) -> str:
        """Last name segment; the component's directory name in a bundle."""
        return self.name.rsplit("/", 1)[-1]


# ── Discovery ──


def is_component_file(name: str) -> bool:
    return (
        name.endswith(COMPONENT_EXTENSIONS)
        and not is_test_file(name)
        and not is_story_file(name)
    )


def discover_components(components_root: str | Path) -> list[ComponentRecord]:
    """Walk ``components_root`` and return every component found.

    Returns an empty list if the root does not exist.  Entries are visited in
    sorted order, parents before their children.
    """
    root = normalize_path(components_root)
    if not root.is_dir():
        logger.debug("Components root %s does not exist", root)
        return []
    records: list[ComponentRecord] = []
    _walk(root, "", records)
    logger.debug("Discovered %d components under %s", len(records), root)
    return records


def _walk(directory: Path, prefix: str, records: list[ComponentRecord]) -> None:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        logger.warning("Could not list %s: %s", directory, e)
        return

    for entry in entries:
        if entry.name.startswith(".") or entry.name in SKIP_ENTRIES:
            continue
        if not entry.is_dir():
            continue
        sub_dir = Path(entry.path)
        name = f"{prefix}/{entry.name}" if prefix else entry.name
        try:
            files = os.listdir(sub_dir)
        except OSError as e:
            logger.warning("Could not list %s: %s", sub_dir, e)
            continue
        if any(is_component_file(f) and (sub_dir / f).is_file() for f in files):
            records.append(ComponentRecord(name=name, path=sub_dir))
        _walk(sub_dir, name, records)


def component_index(records: Iterable[ComponentRecord]) -> dict[str, ComponentRecord]:
    """Map names to records; the first record seen for a name wins."""
    index: dict[str, ComponentRecord] = {}
    for record in records:
        index.setdefault(record.name, record)
    return index


# ── Suggestions ──


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute) between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def suggest_names(
    query: str,
    names: Iterable[str],
    limit: int = MAX_SUGGESTIONS,
) -> list[str]:
    """Rank known component names that look like ``query``.

    Case-insensitive substring matches (either direction) win outright.
    Without any, every name is ranked by edit distance.  Ties are broken by
    name, so the result is stable for a given index.
    """
    q = query.lower()
    unique = list(dict.fromkeys(names))

    def _rank(name: str) -> tuple[int, str]:
        return (levenshtein(q, name.lower()), name)

    similar = [n for n in unique if q in n.lower() or n.lower() in q]
    candidates = similar if similar else unique
    return sorted(candidates, key=_rank)[:limit]
