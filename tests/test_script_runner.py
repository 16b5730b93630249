"""Tests for preparing and running scripts with directives."""

import io
import sys
import zipfile
from unittest.mock import MagicMock

import pytest
from conftest import publish

from grab_app.adapter import ResolverAdapter
from grab_app.errors import ScriptPreparationError
from grab_app.isolation import ContextSelector
from grab_app.isolation import SysPathContext
from grab_app.script import ScriptInfo
from grab_app.script import prepare_script
from grab_app.script import run_script
from grab_app.service import GrabService
from grab_app.settings import ResolverSettings


def zipped_module(name: str, body: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(f"{name}.py", body)
    return buffer.getvalue()


class TestPrepareScript:
    def test_line_numbers_preserved(self):
        source = "#@dependency('g:m:1')\r\nx = 1\n#@repository('https://x')\nline = sys._getframe().f_lineno\n"
        info = ScriptInfo(name="s.py")

        module = prepare_script(source, info, MagicMock(spec=GrabService))

        assert module.source == "\r\nx = 1\n\nline = sys._getframe().f_lineno\n"
        assert len(info.callbacks) == 1

    def test_body_runs_after_callbacks(self, service, repo_root, host_context):
        publish(repo_root, "org.foo", "bar", "1.0")
        source = "#@dependency('org.foo:bar:1.0')\nimport sys\nline = sys._getframe().f_lineno\n"
        module = prepare_script(source, ScriptInfo(name="s.py"), service)

        namespace = module.run()

        assert namespace["line"] == 3
        assert namespace["__name__"] == "__main__"
        assert len(host_context.paths) == 1

    def test_failed_directive_stops_body(self, service, tmp_path):
        marker = tmp_path / "ran"
        source = f"#@dependency('org.missing:thing:1.0')\nopen({str(marker)!r}, 'w').close()\n"
        module = prepare_script(source, ScriptInfo(name="s.py"), service)

        with pytest.raises(ScriptPreparationError, match="org.missing:thing:1.0"):
            module.run()
        assert not marker.exists()


class TestRunScript:
    def test_grabbed_module_importable(self, tmp_path, engine, repo_root, monkeypatch):
        monkeypatch.setattr(sys, "path", list(sys.path))
        archive = zipped_module("grabbed_greeting", "TEXT = 'hello'\n")
        publish(repo_root, "org.demo", "greeting", "1.0", archive, ext="zip")

        script = tmp_path / "hello.py"
        script.write_text(
            "#@dependency(group='org.demo', module='greeting', version='1.0', ext='zip')\n"
            "import sys\n"
            "import grabbed_greeting\n"
            "message = grabbed_greeting.TEXT + ' ' + sys.argv[1]\n"
        )
        context = SysPathContext()
        service = GrabService(ResolverSettings(), ResolverAdapter(lambda: engine, ContextSelector(context)), context)

        namespace = run_script(script, service, ["world"])

        assert namespace["message"] == "hello world"
        assert namespace["__file__"] == str(script)
        assert sys.argv != [str(script), "world"]
        sys.modules.pop("grabbed_greeting", None)
