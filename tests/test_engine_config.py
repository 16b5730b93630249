"""Tests for the bundled engine configuration."""

from grab_app.engine import EngineConfig
from grab_app.engine import get_local_config


class TestGetLocalConfig:
    def test_copies_bundled_resource(self):
        path = get_local_config()
        try:
            assert path is not None
            assert path.name.startswith("grab_config")
            assert path.suffix == ".yaml"

            config = EngineConfig.load(path)
            assert [r["name"] for r in config.repositories] == ["scijava.public", "central"]
            assert config.endorsed_group == "org.scijava.endorsed"
            assert config.endorsed_version == "*"
        finally:
            if path is not None:
                path.unlink()

    def test_missing_resource(self, caplog):
        assert get_local_config("no_such_config.yaml") is None
        assert "no_such_config.yaml" in caplog.text


class TestEngineConfigLoad:
    def test_none_is_empty(self):
        assert EngineConfig.load(None).repositories == []

    def test_missing_file(self, tmp_path):
        config = EngineConfig.load(tmp_path / "absent.yaml")
        assert config.repositories == []
        assert config.endorsed_group == "org.scijava.endorsed"

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")
        assert EngineConfig.load(path).repositories == []

    def test_entries_without_root_dropped(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "repositories:\n"
            "  - name: good\n"
            "    root: https://repo.example.org\n"
            "  - name: no-root\n"
            "endorsed:\n"
            "  group: org.example.endorsed\n"
            "  version: '2.0'\n"
        )

        config = EngineConfig.load(path)

        assert config.repositories == [{"name": "good", "root": "https://repo.example.org"}]
        assert config.endorsed_group == "org.example.endorsed"
        assert config.endorsed_version == "2.0"
