"""Tests for configuration loading."""

from pathlib import Path

import pytest

from gitmon.errors import ConfigInvalid
from gitmon.models import MonitorConfig, NewBranchPolicy
from gitmon.models.config import hash_repo_url
from gitmon.settings import Settings, default_config_path, load_config


@pytest.fixture
def settings():
    """Settings isolated from the environment of the test run."""
    return Settings(_env_file=None, config=None, token=None)


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


class TestLoadConfig:
    """Test load_config."""

    def test_flat_mail_keys(self, tmp_path, settings):
        """Test the flat from/to/token layout."""
        path = write_config(
            tmp_path,
            f"""
repos = ["{tmp_path / 'one'}"]
from = "bot@example.com"
to = "team@example.com"
token = "secret"
max_commits = 20
""",
        )

        config = load_config(path, settings)

        assert config.mail.sender == "bot@example.com"
        assert config.mail.recipient == "team@example.com"
        assert config.mail.token == "secret"
        assert config.max_commits == 20
        assert config.repos[0].path == tmp_path / "one"
        assert config.repos[0].url is None

    def test_url_is_cloned_into_cache_dir(self, tmp_path, settings):
        """Test that a remote URL maps to a directory in the cache."""
        url = "https://github.com/example/project.git"
        path = write_config(
            tmp_path,
            f"""
cache_dir = "{tmp_path / 'cache'}"
repos = ["{url}"]
""",
        )

        config = load_config(path, settings)

        repo = config.repos[0]
        assert repo.url == url
        assert repo.path == tmp_path / "cache" / hash_repo_url(url)
        assert repo.display_name == url
        assert config.resolved_state_dir == tmp_path / "cache"

    def test_table_entries(self, tmp_path, settings):
        """Test repository entries written as tables."""
        path = write_config(
            tmp_path,
            f"""
new_branch_policy = "full"

[[repos]]
path = "{tmp_path / 'two'}"
name = "two"
branches = ["release", "main"]

[mail]
from = "bot@example.com"
to = "team@example.com"
smtp_host = "mail.example.com"
use_ssl = false
""",
        )

        config = load_config(path, settings)

        assert config.repos[0].name == "two"
        assert config.repos[0].branches == ["release", "main"]
        assert config.new_branch_policy == NewBranchPolicy.FULL
        assert config.mail.smtp_host == "mail.example.com"
        assert config.mail.use_ssl is False

    def test_token_from_environment(self, tmp_path, monkeypatch):
        """Test that GITMON_TOKEN overrides the token in the file."""
        path = write_config(tmp_path, 'repos = []\nfrom = "a@x"\nto = "b@x"\ntoken = "file"\n')
        monkeypatch.setenv("GITMON_TOKEN", "from-env")

        config = load_config(path, Settings(_env_file=None))

        assert config.mail.token == "from-env"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        """Test that GITMON_CONFIG selects the config file."""
        path = write_config(tmp_path, "max_workers = 2\n")
        monkeypatch.setenv("GITMON_CONFIG", str(path))

        config = load_config(settings=Settings(_env_file=None))

        assert config.max_workers == 2

    def test_missing_file(self, tmp_path, settings):
        with pytest.raises(ConfigInvalid, match="Failed to read config file"):
            load_config(tmp_path / "missing.toml", settings)

    def test_bad_toml(self, tmp_path, settings):
        path = write_config(tmp_path, "repos = [unclosed\n")
        with pytest.raises(ConfigInvalid, match="Failed to parse config TOML"):
            load_config(path, settings)

    def test_duplicate_paths(self, tmp_path, settings):
        """Test that the same path configured twice is rejected."""
        repo = tmp_path / "one"
        path = write_config(tmp_path, f'repos = ["{repo}", {{ path = "{repo}", name = "x" }}]\n')

        with pytest.raises(ConfigInvalid, match="configured twice"):
            load_config(path, settings)

    def test_empty_path(self, tmp_path, settings):
        path = write_config(tmp_path, 'repos = [{ path = "", name = "nothing" }]\n')
        with pytest.raises(ConfigInvalid, match="Invalid config"):
            load_config(path, settings)

    def test_invalid_value(self, tmp_path, settings):
        path = write_config(tmp_path, "max_commits = 0\n")
        with pytest.raises(ConfigInvalid, match="max_commits"):
            load_config(path, settings)


class TestDefaults:
    """Test default locations and values."""

    def test_default_config_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert default_config_path() == tmp_path / "gitmon" / "config.toml"

    def test_default_cache_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert MonitorConfig().cache_dir == tmp_path / "gitmon"

    def test_defaults(self, tmp_path):
        config = MonitorConfig(cache_dir=tmp_path)

        assert config.repos == []
        assert config.mail is None
        assert config.max_commits is None
        assert config.max_workers == 4
        assert config.resolved_repository_timeout == 240
        assert config.new_branch_policy == NewBranchPolicy.TIP
        assert config.send_empty is False
