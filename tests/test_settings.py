"""Tests for resolver settings and the settings files."""

from pathlib import Path

import pytest
import yaml

from grab_app.settings import ResolverSettings
from grab_app.settings import SettingsManager


@pytest.fixture
def manager(tmp_path):
    return SettingsManager(grab_dir=tmp_path / ".grab", user_dir=tmp_path / "user")


def write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))


class TestResolverSettings:
    def test_defaults(self):
        settings = ResolverSettings.from_environment({})
        assert settings.grab_enabled is True
        assert settings.auto_download is True
        assert settings.disable_checksums is False

    def test_environment_flags(self):
        settings = ResolverSettings.from_environment(
            {"GRAB_ENABLE": "0", "GRAB_AUTO_DOWNLOAD": "no", "GRAB_DISABLE_CHECKSUMS": "TRUE"}
        )
        assert settings.grab_enabled is False
        assert settings.auto_download is False
        assert settings.disable_checksums is True

    def test_unrecognized_value_keeps_default(self, caplog):
        settings = ResolverSettings.from_environment({"GRAB_AUTO_DOWNLOAD": "maybe"})
        assert settings.auto_download is True
        assert "GRAB_AUTO_DOWNLOAD" in caplog.text

    def test_overrides_beat_environment(self):
        settings = ResolverSettings.from_environment({"GRAB_ENABLE": "false"}, {"enabled": True})
        assert settings.grab_enabled is True

    def test_assignment_validated(self):
        settings = ResolverSettings()
        with pytest.raises(ValueError):
            settings.auto_download = "not a bool"


class TestSettingsManager:
    def test_scope_precedence(self, manager):
        write_yaml(manager.user_settings_file, {"grab": {"autoDownload": False, "disableChecksums": True}})
        write_yaml(manager.local_settings_file, {"grab": {"autoDownload": True}})

        settings = manager.load_resolver_settings(env={})

        assert settings.auto_download is True
        assert settings.disable_checksums is True

    def test_set_flag(self, manager):
        manager.set_flag("enabled", False)
        assert manager.load_resolver_settings(env={}).grab_enabled is False
        assert yaml.safe_load(manager.local_settings_file.read_text()) == {"grab": {"enabled": False}}

    def test_root_resolution(self, manager, tmp_path):
        assert manager.get_root(env={}) == Path.home() / ".grab"

        write_yaml(manager.project_settings_file, {"grab": {"root": str(tmp_path / "configured")}})
        assert manager.get_root(env={}) == tmp_path / "configured"
        assert manager.get_root(env={"GRAB_ROOT": str(tmp_path / "env")}) == tmp_path / "env"

    def test_repositories_accumulate_across_scopes(self, manager):
        write_yaml(manager.user_settings_file, {"repositories": [{"name": "a", "root": "https://a.example.org"}]})
        write_yaml(
            manager.project_settings_file,
            {"repositories": [{"name": "a", "root": "https://a2.example.org"}, {"root": "https://b.example.org"}]},
        )

        repositories = manager.get_repositories()

        assert repositories == [
            {"name": "a", "root": "https://a2.example.org"},
            {"name": "https://b.example.org", "root": "https://b.example.org"},
        ]

    def test_malformed_repository_skipped(self, manager):
        write_yaml(manager.project_settings_file, {"repositories": ["oops", {"name": "no-root"}]})
        assert manager.get_repositories() == []

    def test_add_and_remove_repository(self, manager):
        path = manager.add_repository("internal", "https://repo.example.org", scope="local", m2_compatible=False)

        assert path == manager.local_settings_file
        assert manager.get_repositories() == [
            {"name": "internal", "root": "https://repo.example.org", "m2Compatible": False}
        ]

        assert manager.remove_repository("internal", scope="project") is False
        assert manager.remove_repository("internal", scope="local") is True
        assert manager.get_repositories() == []
        assert manager.remove_repository("internal", scope="local") is False

    def test_add_repository_replaces_same_name(self, manager):
        manager.add_repository("r", "https://one.example.org")
        manager.add_repository("r", "https://two.example.org")
        assert [r["root"] for r in manager.get_repositories()] == ["https://two.example.org"]

    def test_unreadable_yaml_ignored(self, manager):
        manager.project_settings_file.parent.mkdir(parents=True)
        manager.project_settings_file.write_text("grab: [unclosed")
        assert manager.get_merged_settings() == {}
