"""Repository Cache -- a local clone of the component monorepo.

The clone lives at ``<cache_dir>/<repo name>`` and is created on first use,
then refreshed with ``git fetch`` on every later use.  Versions (tags,
branches, commits) are selected by checking them out in the cache; the
downloader only ever reads from the checked-out tree.

All git calls go through ``subprocess.run`` with ``GIT_SSH_COMMAND`` set so
the configured SSH key is used and unknown hosts do not prompt.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bueno.analyzer import COMPONENTS_DIR_NAME

logger = logging.getLogger(__name__)

# ── Constants ──

DEFAULT_CACHE_DIR = Path.home() / ".mui-bueno-cache"

SRC_DIR_NAME = "src"

# Connectivity probe timeout; clone/fetch/checkout run without one
CONNECTIVITY_TIMEOUT = 30

DEFAULT_TAG_LIMIT = 10


# ── Exceptions ──


class RepositoryError(Exception):
    """Base exception for repository cache errors."""


class ConnectivityError(RepositoryError):
    """The remote repository cannot be reached with the configured credentials."""


class GitCommandError(RepositoryError):
    """A git command exited non-zero."""

    def __init__(self, command: list[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(
            f"git {' '.join(command)} failed (exit {returncode}): {detail}"
        )


# ── Data Classes ──


@dataclass
class GitInfo:
    """State of the cached checkout."""

    current_branch: str = ""
    latest_commit: str = ""
    branches: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


def repo_dir_name(url: str) -> str:
    """Cache directory name for a repository URL.

    ``git@github.com:owner/mui-bueno-v2.git`` -> ``mui-bueno-v2``.
    """
    name = url.rstrip("/").replace(":", "/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repository"


# ── Repository Cache ──


class RepositoryCache:
    """Clone, refresh and check out the component repository.

    Usage::

        repo = RepositoryCache(config.git)
        repo.ensure_cache("v2.1.0")
        print(repo.components_root)
    """

    def __init__(self, git_config, cache_dir: Optional[str | Path] = None):
        self.git_config = git_config
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR).expanduser()

    # ── Layout ──

    @property
    def repo_path(self) -> Path:
        return self.cache_dir / repo_dir_name(self.git_config.repository_url)

    @property
    def src_root(self) -> Path:
        return self.repo_path / SRC_DIR_NAME

    @property
    def components_root(self) -> Path:
        return self.src_root / COMPONENTS_DIR_NAME

    def is_present(self) -> bool:
        """True if the cache holds a git clone."""
        return (self.repo_path / ".git").exists()

    # ── Cache Lifecycle ──

    def ensure_cache(self, ref: Optional[str] = None) -> Path:
        """Clone or refresh the cache, then check out ``ref`` if given.

        Without a ref the checkout stays where it is.

        Raises:
            GitCommandError: clone, fetch or checkout failed.
            RepositoryError: git is not installed or the cache is unusable.
        """
        if self.repo_path.exists() and not self.is_present():
            logger.warning("Cache at %s is not a git clone, re-cloning", self.repo_path)
            shutil.rmtree(self.repo_path, ignore_errors=True)

        if self.is_present():
            logger.info("Updating repository cache at %s", self.repo_path)
            self._run_git(["fetch", "--all", "--tags", "--prune"])
        else:
            logger.info("Cloning %s into %s", self.git_config.repository_url, self.repo_path)
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise RepositoryError(f"Could not create cache directory {self.cache_dir}: {e}") from e
            self._run_git(
                ["clone", self.git_config.repository_url, str(self.repo_path)],
                cwd=self.cache_dir,
            )

        if ref:
            self.checkout(ref)
        return self.repo_path

    def checkout(self, ref: str) -> None:
        """Check out a tag, commit or branch name."""
        logger.info("Checking out %s", ref)
        self._run_git(["checkout", ref])

    def checkout_branch(self, branch: str) -> None:
        """Check out the fetched state of a remote branch."""
        self.checkout(f"origin/{branch}")

    def clear(self) -> bool:
        """Delete the whole cache directory; False if there was nothing to delete."""
        if not self.cache_dir.exists():
            return False
        try:
            shutil.rmtree(self.cache_dir)
        except OSError as e:
            raise RepositoryError(f"Could not clear cache {self.cache_dir}: {e}") from e
        logger.info("Cleared cache %s", self.cache_dir)
        return True

    # ── Queries ──

    def test_connectivity(self) -> bool:
        """True if the remote answers ``git ls-remote`` with our credentials."""
        cmd = ["git", "ls-remote", "--heads", self.git_config.repository_url]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=CONNECTIVITY_TIMEOUT,
                env=self._git_env(),
            )
        except subprocess.TimeoutExpired:
            logger.warning("Connectivity check timed out after %ds", CONNECTIVITY_TIMEOUT)
            return False
        except OSError as e:
            logger.warning("Could not run git: %s", e)
            return False
        if result.returncode != 0:
            logger.debug("git ls-remote failed: %s", result.stderr.strip())
            return False
        return True

    def require_connectivity(self) -> None:
        """Raise ConnectivityError unless the remote is reachable."""
        if not self.test_connectivity():
            raise ConnectivityError(
                f"Failed to connect to {self.git_config.repository_url}; "
                "check your SSH access to the repository"
            )

    def list_branches(self) -> list[str]:
        """Remote branch names, sorted, without ``origin/`` and ``HEAD``."""
        output = self._run_git(["branch", "-r"])
        branches = []
        for line in output.splitlines():
            branch = line.strip().replace("origin/", "", 1)
            if branch and "HEAD" not in branch:
                branches.append(branch)
        return sorted(branches)

    def list_tags(self, limit: int = DEFAULT_TAG_LIMIT) -> list[str]:
        """Newest tags first, by version order."""
        output = self._run_git(["tag", "--sort=-version:refname"])
        tags = [t.strip() for t in output.splitlines() if t.strip()]
        return tags[:limit]

    def git_info(self) -> GitInfo:
        return GitInfo(
            current_branch=self._run_git(["rev-parse", "--abbrev-ref", "HEAD"]).strip(),
            latest_commit=self._run_git(["rev-parse", "HEAD"]).strip(),
            branches=self.list_branches(),
            tags=self.list_tags(),
        )

    # ── Git Plumbing ──

    def _git_env(self) -> dict:
        ssh_command = "ssh -o StrictHostKeyChecking=no"
        if self.git_config.ssh_key_path:
            ssh_command += f" -i {self.git_config.ssh_key_path}"
        env = os.environ.copy()
        env["GIT_SSH_COMMAND"] = ssh_command
        return env

    def _run_git(self, args: list[str], cwd: Optional[Path] = None) -> str:
        """Run ``git <args>`` and return stdout; raise GitCommandError on failure."""
        cwd = cwd or self.repo_path
        if not Path(cwd).is_dir():
            raise RepositoryError(f"Repository cache not found at {cwd}")
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
        try:
            result = subprocess.run(
                ["git"] + args,
                cwd=cwd,
                capture_output=True,
                text=True,
                env=self._git_env(),
            )
        except FileNotFoundError as e:
            raise RepositoryError("git is not installed or not on PATH") from e
        except OSError as e:
            raise RepositoryError(f"Could not run git: {e}") from e
        if result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result.stdout
