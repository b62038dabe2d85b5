"""Shared test fixtures for mui-bueno tests."""

import sys
from pathlib import Path

import pytest

# Add src to path so tests can import bueno
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def write(root: Path, rel_path: str, content: str = "") -> Path:
    """Create ``root/rel_path`` (and its parents) with ``content``."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class FakeRepository:
    """Stands in for RepositoryCache: a checked-out tree on disk, no git."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path
        self.src_root = repo_path / "src"
        self.components_root = self.src_root / "components"
        self.refs: list = []

    def ensure_cache(self, ref=None):
        self.refs.append(ref)
        return self.repo_path

    def checkout_branch(self, branch):
        self.refs.append(f"origin/{branch}")


# Source files of the fake monorepo, relative to the repository root
MONOREPO_FILES = {
    # Nested components with cross-component imports
    "src/components/Buttons/Button/Button.tsx": (
        "import React from 'react';\n"
        "import { cx } from '../../../common/helpers';\n"
        "export const Button = () => null;\n"
    ),
    "src/components/Buttons/Button/Button.test.tsx": (
        "import { Button } from './Button';\n"
    ),
    "src/components/Buttons/Button/Button.stories.tsx": (
        "import { Button } from './Button';\n"
    ),
    "src/components/Buttons/Submit/Submit.tsx": (
        "import { Button } from '../Button/Button';\n"
        "export const Submit = () => Button;\n"
    ),
    "src/components/Form/Mform/MForm.tsx": (
        "import { useForm } from 'react-hook-form';\n"
        "import { Submit } from '../../Buttons/Submit/Submit';\n"
        "import { TextField } from '../Inputs/TextField/TextField';\n"
        "import { formatDate } from '../../../common/Utils';\n"
        "export const MForm = () => null;\n"
    ),
    "src/components/Form/Inputs/TextField/TextField.tsx": (
        "import { Error } from '../../Error/Error';\n"
        "export const TextField = () => Error;\n"
    ),
    "src/components/Form/Inputs/Select/Select.tsx": (
        "import type { Theme } from '../../../../@types/theme';\n"
        "export const Select = () => null;\n"
    ),
    "src/components/Form/Error/Error.tsx": "export const Error = () => null;\n",
    "src/components/Form/Error/Error.mdx": "# Error\n",
    # Cycle
    "src/components/Cycle/A/A.tsx": "import { B } from '../B/B';\nexport const A = () => B;\n",
    "src/components/Cycle/B/B.tsx": "import { A } from '../A/A';\nexport const B = () => A;\n",
    # A component whose shared file references another component
    "src/components/Alerts/Alert.tsx": (
        "import { notify } from '../../common/notify';\n"
        "export const Alert = () => notify;\n"
    ),
    "src/components/README.md": "# Components\n",
    # Shared files
    "src/common/Utils/index.ts": "export * from './format';\n",
    "src/common/Utils/format.ts": "export const formatDate = (d: Date) => d.toISOString();\n",
    "src/common/helpers.ts": "export const cx = (...c: string[]) => c.join(' ');\n",
    "src/common/notify.ts": (
        "import { Error } from '../components/Form/Error/Error';\n"
        "export const notify = Error;\n"
    ),
    "src/@types/theme.d.ts": "export interface Theme { primary: string }\n",
}


@pytest.fixture
def monorepo(tmp_path):
    """A checked-out component monorepo."""
    root = tmp_path / "repo"
    for rel_path, content in MONOREPO_FILES.items():
        write(root, rel_path, content)
    return root


@pytest.fixture
def fake_repo(monorepo):
    return FakeRepository(monorepo)
