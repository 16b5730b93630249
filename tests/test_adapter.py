"""Tests for the engine adapter."""

import threading
from unittest.mock import MagicMock

import pytest
from conftest import publish

from grab_app.adapter import ResolverAdapter
from grab_app.adapter import create_default_engine
from grab_app.errors import ConfigurationError
from grab_app.errors import IsolationError
from grab_app.isolation import ContextSelector
from grab_app.isolation import PathContext
from grab_app.settings import SettingsManager


class TestLazyEngine:
    def test_factory_called_once(self, engine):
        factory = MagicMock(return_value=engine)
        adapter = ResolverAdapter(factory)

        assert adapter.engine is engine
        assert adapter.engine is engine
        factory.assert_called_once()

    def test_concurrent_first_use_builds_once(self, engine):
        calls = []
        gate = threading.Event()

        def factory():
            calls.append(1)
            gate.wait(1)
            return engine

        adapter = ResolverAdapter(factory)
        threads = [threading.Thread(target=lambda: adapter.engine) for _ in range(4)]
        for t in threads:
            t.start()
        gate.set()
        for t in threads:
            t.join()

        assert calls == [1]
        assert adapter.engine is engine

    def test_failed_factory_yields_empty_results(self, host_context):
        factory = MagicMock(side_effect=OSError("read-only filesystem"))
        adapter = ResolverAdapter(factory, ContextSelector(host_context))

        adapter.grab({}, [{"group": "g", "module": "m"}])
        adapter.add_resolver({"root": "https://example.org"})
        assert adapter.resolve({}, [{"group": "g", "module": "m"}]) == []
        assert adapter.list_dependencies(host_context) == []
        assert adapter.dependencies() == {}
        assert host_context.paths == []
        factory.assert_called_once()


class TestGrab:
    def test_grab_into_requested_context(self, adapter, repo_root):
        publish(repo_root, "org.foo", "bar", "1.0")
        target = PathContext("target")

        adapter.grab({"context": target}, [{"group": "org.foo", "module": "bar", "version": "1.0"}])

        assert len(target.paths) == 1
        assert adapter.list_dependencies(target) == [{"group": "org.foo", "module": "bar", "version": "1.0"}]

    def test_specialized_context_falls_back_to_parent(self, adapter, repo_root):
        publish(repo_root, "org.foo", "bar", "1.0")
        root = PathContext("root")
        plugin = PathContext("plugin", parent=root, specialized=True)

        adapter.grab({"context": plugin}, [{"group": "org.foo", "module": "bar", "version": "1.0"}])

        assert plugin.paths == []
        assert len(root.paths) == 1

    def test_ref_object_context(self, adapter, repo_root):
        publish(repo_root, "org.foo", "bar", "1.0")
        owner = PathContext("owner")

        class Plugin:
            __isolation_context__ = owner

        adapter.grab({"refObject": Plugin()}, [{"group": "org.foo", "module": "bar", "version": "1.0"}])
        assert len(owner.paths) == 1

    def test_invalid_spec_fails_before_engine(self, adapter, host_context):
        with pytest.raises(ConfigurationError):
            adapter.grab({}, [{"group": "org.foo", "module": "bar", "version": "1.0"}, {"group": "g"}])
        assert host_context.paths == []

    def test_no_plain_context(self, engine):
        only = PathContext("only", specialized=True)
        adapter = ResolverAdapter(lambda: engine, ContextSelector(only))
        with pytest.raises(IsolationError):
            adapter.grab({}, [{"group": "org.foo", "module": "bar", "version": "1.0"}])

    def test_grab_endorsed(self, adapter, repo_root, host_context):
        publish(repo_root, "org.scijava.endorsed", "thing", "2.0")
        adapter.engine.config.endorsed_version = "2.0"

        adapter.grab_endorsed("thing", {})

        assert adapter.list_dependencies(host_context) == [
            {"group": "org.scijava.endorsed", "module": "thing", "version": "2.0"}
        ]


class TestResolve:
    def test_returns_uris(self, adapter, repo_root):
        publish(repo_root, "org.foo", "bar", "1.0")
        [uri] = adapter.resolve({}, [{"coordinates": "org.foo:bar:1.0"}])
        assert uri.startswith("file://")
        assert uri.endswith("/grapes/org.foo/bar/1.0/bar-1.0.jar")


class TestCreateDefaultEngine:
    def test_settings_repositories_come_first(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRAB_ROOT", str(tmp_path / "root"))
        manager = SettingsManager(grab_dir=tmp_path / ".grab", user_dir=tmp_path / "user")
        manager.add_repository("first", str(tmp_path / "first"))
        manager.add_repository("second", str(tmp_path / "second"))

        engine = create_default_engine(manager)

        names = [r.name for r in engine.repositories]
        assert names[:2] == ["first", "second"]
        assert engine.root == tmp_path / "root"
        assert engine.root.is_dir()
