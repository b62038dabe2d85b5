"""mui-bueno — download UI components with their local dependencies."""

from bueno.analyzer import (
    Classification,
    DependencyAnalyzer,
    DependencySet,
    resolve_import,
)
from bueno.config import CliConfig, ConfigError, ConfigManager, GitConfig
from bueno.discovery import (
    ComponentRecord,
    discover_components,
    suggest_names,
)
from bueno.downloader import (
    ComponentDownloader,
    ComponentNotFoundError,
    DownloadError,
    DownloadOptions,
    DownloadResult,
    DownloadSession,
)
from bueno.imports import ImportTarget, extract_local_imports
from bueno.installer import InstallError
from bueno.repository import (
    ConnectivityError,
    GitCommandError,
    GitInfo,
    RepositoryCache,
    RepositoryError,
)
from bueno.rewriter import BundleLayout, ImportRewriter, RewriteContext

__version__ = "0.1.0"

__all__ = [
    # Import extraction
    "ImportTarget",
    "extract_local_imports",
    # Component Discovery
    "ComponentRecord",
    "discover_components",
    "suggest_names",
    # Dependency Analyzer
    "DependencyAnalyzer",
    "DependencySet",
    "Classification",
    "resolve_import",
    # Import Path Rewriter
    "BundleLayout",
    "ImportRewriter",
    "RewriteContext",
    # Download/Assembly Orchestrator
    "ComponentDownloader",
    "DownloadOptions",
    "DownloadResult",
    "DownloadSession",
    "DownloadError",
    "ComponentNotFoundError",
    # Repository Cache
    "RepositoryCache",
    "GitInfo",
    "RepositoryError",
    "ConnectivityError",
    "GitCommandError",
    # Configuration
    "ConfigManager",
    "CliConfig",
    "GitConfig",
    "ConfigError",
    # Install
    "InstallError",
]
