"""Configuration -- the user's ``~/.mui-bueno-config.json``.

The file keeps the camelCase layout of the original tool so existing config
files keep working::

    {
      "git": {"repositoryUrl": "...", "branch": "main", "sshKeyPath": "..."},
      "defaultDownloadPath": "./components",
      "author": "anonymous",
      "workspace": "/path/to/project",
      "cacheDir": "~/.mui-bueno-cache"
    }

Values in the file are merged over the defaults.  ``MUI_BUENO_REPOSITORY_URL``
and ``MUI_BUENO_CACHE_DIR`` override the file; ``MUI_BUENO_CONFIG_PATH``
moves the file itself.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# ── Constants ──

CONFIG_FILENAME = ".mui-bueno-config.json"

DEFAULT_REPOSITORY_URL = "git@github.com:owner/mui-bueno-v2.git"
DEFAULT_BRANCH = "main"
DEFAULT_DOWNLOAD_PATH = "./components"
DEFAULT_AUTHOR = "anonymous"

ENV_CONFIG_PATH = "MUI_BUENO_CONFIG_PATH"
ENV_REPOSITORY_URL = "MUI_BUENO_REPOSITORY_URL"
ENV_CACHE_DIR = "MUI_BUENO_CACHE_DIR"


def _default_cache_dir() -> str:
    return str(Path.home() / ".mui-bueno-cache")


# ── Exceptions ──


class ConfigError(Exception):
    """The configuration file could not be written or removed."""


# ── Data Classes ──


@dataclass
class GitConfig:
    """Where the component repository lives and how to reach it."""

    repository_url: str = DEFAULT_REPOSITORY_URL
    branch: str = DEFAULT_BRANCH
    ssh_key_path: Optional[str] = None
    username: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"repositoryUrl": self.repository_url, "branch": self.branch}
        if self.ssh_key_path:
            data["sshKeyPath"] = self.ssh_key_path
        if self.username:
            data["username"] = self.username
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "GitConfig":
        return cls(
            repository_url=data.get("repositoryUrl", DEFAULT_REPOSITORY_URL),
            branch=data.get("branch", DEFAULT_BRANCH),
            ssh_key_path=data.get("sshKeyPath"),
            username=data.get("username"),
        )


@dataclass
class CliConfig:
    """Everything the CLI reads from the config file."""

    git: GitConfig = field(default_factory=GitConfig)
    default_download_path: str = DEFAULT_DOWNLOAD_PATH
    author: str = DEFAULT_AUTHOR
    workspace: str = field(default_factory=os.getcwd)
    cache_dir: str = field(default_factory=_default_cache_dir)

    def to_dict(self) -> dict:
        return {
            "git": self.git.to_dict(),
            "defaultDownloadPath": self.default_download_path,
            "author": self.author,
            "workspace": self.workspace,
            "cacheDir": self.cache_dir,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CliConfig":
        """Build a config from file data; missing keys keep their defaults."""
        defaults = cls()
        git_data = data.get("git")
        return cls(
            git=GitConfig.from_dict(git_data) if isinstance(git_data, dict) else defaults.git,
            default_download_path=data.get("defaultDownloadPath", defaults.default_download_path),
            author=data.get("author", defaults.author),
            workspace=data.get("workspace", defaults.workspace),
            cache_dir=data.get("cacheDir", defaults.cache_dir),
        )


# ── Config Manager ──


class ConfigManager:
    """Loads, updates and persists the CLI configuration.

    Usage::

        manager = ConfigManager()
        config = manager.load()
        manager.set_git_config(GitConfig(repository_url="git@host:org/repo.git"))
    """

    def __init__(self, config_path: Optional[str | Path] = None):
        path = config_path or os.environ.get(ENV_CONFIG_PATH) or Path.home() / CONFIG_FILENAME
        self.config_path = Path(path).expanduser()
        self._config: Optional[CliConfig] = None

    def load(self) -> CliConfig:
        """Current configuration; read from disk once, then cached."""
        if self._config is None:
            self._config = self._read()
        return self._apply_env(self._config)

    def save(self, config: CliConfig) -> None:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(
                json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8"
            )
        except OSError as e:
            raise ConfigError(f"Could not write {self.config_path}: {e}") from e
        self._config = config
        logger.debug("Saved configuration to %s", self.config_path)

    def update(self, **changes) -> CliConfig:
        """Save the stored configuration with ``changes`` applied."""
        if self._config is None:
            self._config = self._read()
        config = replace(self._config, **changes)
        self.save(config)
        return config

    def set_git_config(self, git_config: GitConfig) -> CliConfig:
        return self.update(git=git_config)

    def get_git_config(self) -> GitConfig:
        return self.load().git

    def exists(self) -> bool:
        return self.config_path.is_file()

    def reset(self) -> None:
        """Forget the stored configuration and delete the file."""
        self._config = None
        if not self.config_path.exists():
            return
        try:
            self.config_path.unlink()
        except OSError as e:
            raise ConfigError(f"Could not remove {self.config_path}: {e}") from e

    def validate(self, config: Optional[CliConfig] = None) -> tuple[bool, list[str]]:
        """Check that the settings needed for a download are present."""
        config = config or self.load()
        errors = []
        if config.git is None:
            errors.append("Git configuration is missing")
        else:
            if not config.git.repository_url:
                errors.append("Git repository URL is required")
            if not config.git.branch:
                errors.append("Git branch is required")
        return (not errors, errors)

    # ── Internals ──

    def _read(self) -> CliConfig:
        if not self.config_path.is_file():
            return CliConfig()
        try:
            data = json.loads(self.config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load config from %s, using defaults: %s", self.config_path, e)
            return CliConfig()
        if not isinstance(data, dict):
            logger.warning("Config file %s is not a JSON object, using defaults", self.config_path)
            return CliConfig()
        return CliConfig.from_dict(data)

    @staticmethod
    def _apply_env(config: CliConfig) -> CliConfig:
        """Environment overrides; never written back to the file."""
        url = os.environ.get(ENV_REPOSITORY_URL)
        cache_dir = os.environ.get(ENV_CACHE_DIR)
        if url:
            config = replace(config, git=replace(config.git, repository_url=url))
        if cache_dir:
            config = replace(config, cache_dir=cache_dir)
        return config
