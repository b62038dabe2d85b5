"""Import extraction for JS/TS sources.

Lightweight regex matching of import, re-export, dynamic import and require
forms, with comments stripped first so commented-out imports are ignored.
This is deliberately not a parser: everything that resolves or rewrites
imports goes through ``extract_local_imports`` and
``replace_import_specifiers`` so a real parser can be dropped in later.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Mapping

logger = logging.getLogger(__name__)

# ── Import Patterns ──

_QUOTE = r"""(?P<q>['"`])"""
_SPEC = r"""(?P<spec>[^'"`\n]+)(?P=q)"""

# import x from '...', import { a, b } from '...', import * as x from '...',
# import type { T } from '...'
_STATIC_IMPORT_RE = re.compile(
    r"\bimport\s+(?!\()[^'\"`;=()]*?\bfrom\s*" + _QUOTE + _SPEC
)

# export { a } from '...', export * from '...', export * as ns from '...'
_REEXPORT_RE = re.compile(
    r"\bexport\s+(?:type\s+)?(?:\*|\{)[^'\"`;=()]*?\bfrom\s*" + _QUOTE + _SPEC
)

# import '...'  (side-effect)
_SIDE_EFFECT_IMPORT_RE = re.compile(
    r"^[ \t]*import\s*" + _QUOTE + _SPEC, re.MULTILINE
)

# import('...')
_DYNAMIC_IMPORT_RE = re.compile(r"\bimport\s*\(\s*" + _QUOTE + _SPEC + r"\s*\)")

# require('...')
_REQUIRE_RE = re.compile(r"\brequire\s*\(\s*" + _QUOTE + _SPEC + r"\s*\)")

_PATTERNS = (
    ("static", _STATIC_IMPORT_RE),
    ("reexport", _REEXPORT_RE),
    ("side_effect", _SIDE_EFFECT_IMPORT_RE),
    ("dynamic", _DYNAMIC_IMPORT_RE),
    ("require", _REQUIRE_RE),
)


@dataclass(frozen=True)
class ImportTarget:
    """One import specifier found in a source file."""

    specifier: str
    lineno: int = 0
    kind: str = "static"

    @property
    def is_relative(self) -> bool:
        return self.specifier.startswith(("./", "../")) or self.specifier in (".", "..")

    @property
    def escapes_directory(self) -> bool:
        """True for ``../`` imports, which leave the importing file's directory."""
        return self.specifier == ".." or self.specifier.startswith("../")


# ── Comment Stripping ──


def strip_comments(source: str) -> str:
    """Remove ``//`` and ``/* */`` comments, keeping strings and line numbers intact."""
    out: list[str] = []
    i = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c in "'\"`":
            # Copy the string literal verbatim, honoring escapes
            j = i + 1
            while j < n and source[j] != c:
                j += 2 if source[j] == "\\" else 1
            out.append(source[i : j + 1])
            i = j + 1
        elif source.startswith("//", i):
            end = source.find("\n", i)
            i = n if end == -1 else end
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            block = source[i:] if end == -1 else source[i : end + 2]
            out.append("\n" * block.count("\n"))
            i = n if end == -1 else end + 2
        else:
            out.append(c)
            i += 1
    return "".join(out)


def _iter_matches(source: str) -> Iterator[tuple[str, re.Match]]:
    """Yield (kind, match) for every import form, in source order, without overlaps."""
    found: list[tuple[int, str, re.Match]] = []
    for kind, pattern in _PATTERNS:
        for m in pattern.finditer(source):
            found.append((m.start("spec"), kind, m))
    found.sort(key=lambda item: item[0])
    seen: set[int] = set()
    for spec_start, kind, m in found:
        if spec_start in seen:
            continue
        seen.add(spec_start)
        yield kind, m


# ── Public API ──


def extract_imports(content: str) -> list[ImportTarget]:
    """Every import specifier in ``content``, relative or bare, in file order."""
    clean = strip_comments(content)
    targets: list[ImportTarget] = []
    for kind, m in _iter_matches(clean):
        lineno = clean.count("\n", 0, m.start()) + 1
        targets.append(ImportTarget(specifier=m.group("spec"), lineno=lineno, kind=kind))
    return targets


def extract_local_imports(content: str) -> list[ImportTarget]:
    """Relative (``./`` or ``../``) import targets only.

    Bare specifiers are npm packages and are left to the package manager.
    """
    return [t for t in extract_imports(content) if t.is_relative]


def replace_import_specifiers(content: str, mapping: Mapping[str, str]) -> str:
    """Swap import specifiers in one pass according to ``mapping``.

    Only the quoted literal inside a recognized import form is touched; the
    rest of the text, quote style included, is preserved byte for byte.
    """
    if not mapping:
        return content
    pieces: list[str] = []
    last = 0
    for _kind, m in _iter_matches(content):
        old = m.group("spec")
        new = mapping.get(old)
        if new is None or new == old:
            continue
        start, end = m.span("spec")
        pieces.append(content[last:start])
        pieces.append(new)
        last = end
    if not pieces:
        return content
    pieces.append(content[last:])
    return "".join(pieces)


def package_name(specifier: str) -> str:
    """npm package that a bare specifier belongs to.

    ``@mui/material/Button`` → ``@mui/material``, ``lodash/fp`` → ``lodash``.
    """
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2])
    return parts[0]
