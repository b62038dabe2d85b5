"""Tests for the command-line interface."""

import json
from unittest import mock

import pytest

from bueno.cli import build_parser, main
from bueno.config import ENV_CACHE_DIR, ENV_CONFIG_PATH, ENV_REPOSITORY_URL
from bueno.repository import ConnectivityError, GitInfo

from conftest import FakeRepository


# ── Fixtures ──


class ScriptedIO:
    """UserIO that answers from a list and records everything shown."""

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.lines: list[str] = []

    def _next(self, default=None):
        return self.answers.pop(0) if self.answers else default

    def display(self, message):
        self.lines.append(message)

    def prompt(self, message):
        self.lines.append(message)
        return self._next("")

    def confirm(self, message, default=False):
        self.lines.append(message)
        return self._next(default)

    def choose(self, message, options):
        self.lines.append(message)
        return self._next()

    @property
    def output(self):
        return "\n".join(self.lines)


class CliRepository(FakeRepository):
    reachable = True

    def test_connectivity(self):
        return self.reachable

    def require_connectivity(self):
        if not self.reachable:
            raise ConnectivityError("Failed to connect to git@host:org/repo.git")

    def git_info(self):
        return GitInfo("main", "abc123", ["develop", "main"], ["v2.0.0"])

    def clear(self):
        return True


@pytest.fixture(autouse=True)
def _config_env(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_CONFIG_PATH, str(tmp_path / "config.json"))
    monkeypatch.setenv(ENV_CACHE_DIR, str(tmp_path / "cache"))
    monkeypatch.delenv(ENV_REPOSITORY_URL, raising=False)


@pytest.fixture
def repo(monorepo):
    repository = CliRepository(monorepo)
    with mock.patch("bueno.cli.RepositoryCache", return_value=repository):
        yield repository


@pytest.fixture
def out(tmp_path):
    return tmp_path / "out"


@pytest.fixture
def interactive():
    with mock.patch("bueno.cli._is_interactive", return_value=True):
        yield


# ── Parser ──


class TestParser:
    def test_download_flags(self):
        args = build_parser().parse_args(
            ["download", "Buttons/Button", "-v", "v2.0.0", "-o", "src/ui", "--no-tests"]
        )
        assert args.component == "Buttons/Button"
        assert args.version == "v2.0.0"
        assert args.output_dir == "src/ui"
        assert args.include_tests is False
        assert args.package_manager == "pnpm"
        assert args.non_interactive is False

    def test_ls_alias(self):
        args = build_parser().parse_args(["ls", "-l", "5"])
        assert args.limit == 5

    def test_subcommand_verbose(self):
        assert build_parser().parse_args(["list", "--verbose"]).verbose is True
        assert build_parser().parse_args(["list"]).verbose is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ── download ──


class TestDownloadCommand:
    def test_download(self, repo, out):
        io = ScriptedIO()
        assert main(["download", "Form/Mform", "-o", str(out), "--non-interactive"], io) == 0
        assert (out / "Mform/MForm.tsx").is_file()
        assert "downloaded successfully" in io.output
        assert "Main file: MForm.tsx" in io.output
        assert "Buttons/Submit" in io.output

    def test_tests_kept_by_default(self, repo, out):
        main(["download", "Buttons/Button", "-o", str(out), "--non-interactive"], ScriptedIO())
        assert (out / "Button/Button.test.tsx").is_file()

    def test_no_tests(self, repo, out):
        main(["download", "Buttons/Submit", "-o", str(out), "--no-tests", "--non-interactive"], ScriptedIO())
        assert not (out / "Button/Button.test.tsx").exists()
        assert (out / "Button/Button.tsx").is_file()

    def test_branch_checks_out_remote(self, repo, out):
        main(["download", "Form/Error", "-b", "develop", "-o", str(out), "--non-interactive"], ScriptedIO())
        assert repo.refs == ["origin/develop"]

    def test_not_found(self, repo, out, capsys):
        assert main(["download", "Buttons/Buton", "-o", str(out), "--non-interactive"], ScriptedIO()) == 1
        err = capsys.readouterr().err
        assert 'Component "Buttons/Buton" not found' in err
        assert "Buttons/Button" in err

    def test_not_found_retry_with_suggestion(self, repo, out, interactive):
        # version picker: latest; suggestion picker: first entry
        io = ScriptedIO([0, 0])
        assert main(["download", "Alret", "-o", str(out)], io) == 0
        assert (out / "Alerts/Alert.tsx").is_file()

    def test_interactive_component_picker(self, repo, out, interactive):
        # component picker: "Buttons/Button" is entry 2 after the search entry
        io = ScriptedIO([2, 0])
        assert main(["download", "-o", str(out)], io) == 0
        assert (out / "Button/Button.tsx").is_file()

    def test_interactive_version_picker(self, repo, out, interactive):
        # entries: latest, v2.0.0 (tag), develop (branch), main (branch)
        io = ScriptedIO([2])
        main(["download", "Form/Error", "-o", str(out)], io)
        assert repo.refs[-1] == "origin/develop"

    def test_component_required_non_interactive(self, repo, out):
        assert main(["download", "-o", str(out), "--non-interactive"], ScriptedIO()) == 1

    def test_existing_without_force(self, repo, out):
        (out / "Error").mkdir(parents=True)
        assert main(["download", "Form/Error", "-o", str(out), "--non-interactive"], ScriptedIO()) == 1
        assert main(
            ["download", "Form/Error", "-o", str(out), "--force", "--non-interactive"], ScriptedIO()
        ) == 0

    def test_overwrite_declined(self, repo, out, interactive):
        (out / "Error").mkdir(parents=True)
        io = ScriptedIO([0, False])
        assert main(["download", "Form/Error", "-o", str(out)], io) == 0
        assert "Download cancelled." in io.output
        assert not (out / "Error/Error.tsx").exists()

    def test_unreachable(self, repo, out, capsys):
        repo.reachable = False
        assert main(["download", "Form/Error", "-o", str(out), "--non-interactive"], ScriptedIO()) == 1
        assert "Failed to connect" in capsys.readouterr().err

    def test_invalid_config(self, repo, out, tmp_path, capsys):
        (tmp_path / "config.json").write_text(json.dumps({"git": {"repositoryUrl": "", "branch": "main"}}))
        assert main(["download", "Form/Error", "-o", str(out), "--non-interactive"], ScriptedIO()) == 1
        assert "Git repository URL is required" in capsys.readouterr().err

    def test_install_deps(self, repo, out):
        with mock.patch("bueno.cli.install_dependencies") as mock_install:
            main(
                ["download", "Form/Mform", "-o", str(out), "--install-deps",
                 "--package-manager", "npm", "--non-interactive"],
                ScriptedIO(),
            )
        deps, peers, manager = mock_install.call_args.args
        assert deps == {"react-hook-form": "latest"}
        assert manager == "npm"


# ── list / search / branches ──


class TestListAndSearch:
    def test_list(self, repo):
        io = ScriptedIO()
        assert main(["list"], io) == 0
        assert "Found 9 components:" in io.output
        assert "1. Alerts" in io.output

    def test_list_limit(self, repo):
        io = ScriptedIO()
        main(["ls", "--limit", "2"], io)
        assert "(showing 2)" in io.output
        assert "3. " not in io.output

    def test_list_branch(self, repo):
        main(["list", "-b", "develop"], ScriptedIO())
        assert repo.refs == [None, "origin/develop"]

    def test_search(self, repo):
        io = ScriptedIO()
        assert main(["search", "button"], io) == 0
        assert 'Found 2 components matching "button"' in io.output
        assert "1. Buttons/Button" in io.output

    def test_search_without_match_suggests(self, repo):
        io = ScriptedIO()
        main(["search", "Alret"], io)
        assert 'No components found matching "Alret"' in io.output
        assert "Did you mean: Alerts" in io.output

    def test_branches(self, repo):
        io = ScriptedIO()
        assert main(["branches"], io) == 0
        assert "* main" in io.output
        assert "  v2.0.0" in io.output
        assert "Latest commit: abc123" in io.output


# ── config / cache / init ──


class TestConfigCommands:
    def test_show(self, tmp_path):
        io = ScriptedIO()
        assert main(["config"], io) == 0
        assert '"repositoryUrl"' in io.output

    def test_reset(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")
        io = ScriptedIO()
        assert main(["config", "--reset", "--non-interactive"], io) == 0
        assert not config_file.exists()

    def test_reset_declined(self, tmp_path, interactive):
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")
        main(["config", "--reset"], ScriptedIO([False]))
        assert config_file.exists()

    def test_init_non_interactive_writes_defaults(self, repo, tmp_path):
        io = ScriptedIO()
        assert main(["init", "--non-interactive"], io) == 0
        assert (tmp_path / "config.json").is_file()
        assert "SSH connection successful!" in io.output

    def test_init_interactive(self, repo, tmp_path, interactive):
        io = ScriptedIO(["git@bitbucket.org:org/ui.git", "develop", "", "sam", "src/ui"])
        main(["init"], io)
        data = json.loads((tmp_path / "config.json").read_text())
        assert data["git"]["repositoryUrl"] == "git@bitbucket.org:org/ui.git"
        assert data["git"]["branch"] == "develop"
        assert data["author"] == "sam"
        assert data["defaultDownloadPath"] == "src/ui"


class TestCacheCommand:
    def test_missing_cache(self):
        io = ScriptedIO()
        assert main(["cache"], io) == 0
        assert "Cache directory does not exist." in io.output

    def test_size(self, tmp_path):
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache/blob").write_bytes(b"x" * 1024)
        io = ScriptedIO()
        main(["cache"], io)
        assert "Cache size: 0.00 MB" in io.output

    def test_clear(self, repo):
        io = ScriptedIO()
        assert main(["cache", "--clear", "--non-interactive"], io) == 0
        assert "Cache cleared successfully." in io.output
