"""Tests for the ``p2resolve`` Typer application."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from P2Resolve import __version__
from P2Resolve.cli import app

runner = CliRunner()

CORE = ("osgi.bundle", "core", "1.0.0")
FEAT = ("org.eclipse.update.feature", "feat", "2.0.0")


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "p2resolve.yaml"
    path.write_text(
        f"cache:\n  dir: {tmp_path / 'cache'}\n"
        f"logging:\n  dir: {tmp_path / 'logs'}\n  level: ERROR\n  emit_json_logs: false\n"
        "retry:\n  max_attempts: 1\n",
        encoding="utf-8",
    )
    return path


def _invoke(config, *args):
    return runner.invoke(app, ["--config", str(config), *args])


class TestResolveCommand:
    def test_table_output(self, repo, config):
        root = repo.artifacts("simple", CORE, FEAT)

        result = _invoke(config, "resolve", str(root))

        assert result.exit_code == 0, result.output
        assert "core" in result.output
        assert "feat" in result.output

    def test_json_output(self, repo, config):
        root = repo.artifacts("simple", CORE)

        result = _invoke(config, "resolve", str(root), "--format", "json")

        assert result.exit_code == 0, result.output
        [entry] = json.loads(result.stdout)
        assert entry["root"] == root.as_uri() + "/"
        assert entry["failures"] == []
        assert [a["id"] for a in entry["artifacts"]] == ["core"]
        assert entry["artifacts"][0]["uri"].endswith("/plugins/core_1.0.0.jar")

    def test_recovered_failure_is_a_warning(self, repo, config):
        top = repo.composite("top", "good", "missing")
        repo.artifacts("top/good", CORE)

        result = _invoke(config, "resolve", str(top))

        assert result.exit_code == 0, result.output
        assert "Warning" in result.output
        assert "No repository found" in result.output

    def test_strict_turns_warnings_into_errors(self, repo, config):
        top = repo.composite("top", "good", "missing")
        repo.artifacts("top/good", CORE)

        result = _invoke(config, "resolve", str(top), "--strict")

        assert result.exit_code == 1
        assert "1 errors found" in result.output

    def test_unreachable_root_fails(self, tmp_path, config):
        result = _invoke(config, "resolve", str(tmp_path / "nowhere"))

        assert result.exit_code == 1
        assert "No repository found" in result.output
        assert "1 errors found" in result.output

    def test_each_root_is_independent(self, tmp_path, repo, config):
        root = repo.artifacts("simple", CORE)

        result = _invoke(config, "resolve", str(tmp_path / "nowhere"), str(root))

        assert result.exit_code == 1
        assert "core" in result.output
        assert "1 errors found" in result.output

    def test_corrupt_root_does_not_stop_other_roots(self, repo, config):
        broken = repo.dir("badxz") / "artifacts.xml.xz"
        broken.write_bytes(b"this is not xz data at all")
        root = repo.artifacts("simple", CORE)

        result = _invoke(config, "resolve", str(broken), str(root), "--format", "json")

        assert result.exit_code == 1
        assert "Unreadable repository document" in result.output
        assert '"id": "core"' in result.output
        assert "1 errors found" in result.output

    def test_incompatible_index_is_reported(self, repo, config):
        repo.index("future", version="3")
        root = repo.artifacts("future", CORE)

        result = _invoke(config, "resolve", str(root))

        assert result.exit_code == 1
        assert "incompatible version 3" in result.output

    def test_roots_from_configuration(self, tmp_path, repo):
        root = repo.artifacts("configured", CORE)
        config = tmp_path / "configured.yaml"
        config.write_text(
            f"repositories:\n  - {root.as_uri()}\n"
            f"cache:\n  dir: {tmp_path / 'cache'}\n"
            "logging:\n  level: ERROR\n  emit_json_logs: false\n",
            encoding="utf-8",
        )

        result = _invoke(config, "resolve", "--format", "json")

        assert result.exit_code == 0, result.output
        assert [a["id"] for a in json.loads(result.stdout)[0]["artifacts"]] == ["core"]

    def test_no_roots(self, config):
        result = _invoke(config, "resolve")

        assert result.exit_code == 2

    def test_unknown_format(self, repo, config):
        root = repo.artifacts("simple", CORE)

        result = _invoke(config, "resolve", str(root), "--format", "xml")

        assert result.exit_code == 2

    def test_invalid_configuration(self, tmp_path, repo):
        config = tmp_path / "bad.yaml"
        config.write_text("concurrency:\n  workers: 0\n", encoding="utf-8")

        result = _invoke(config, "resolve", str(repo.artifacts("simple", CORE)))

        assert result.exit_code == 2
        assert "Invalid settings" in result.output


class TestIndexCommand:
    def test_synthesized_defaults(self, repo, config):
        root = repo.artifacts("plain", CORE)

        result = _invoke(config, "index", str(root))

        assert result.exit_code == 0, result.output
        assert "synthesized defaults" in result.output
        assert (root / "compositeArtifacts.xml").as_uri() in result.output
        assert (root / "content.xml").as_uri() in result.output

    def test_index_file(self, repo, config):
        repo.index("indexed", artifacts="artifacts.xml.xz,artifacts.xml,!")
        root = repo.dir("indexed")

        result = _invoke(config, "index", str(root))

        assert result.exit_code == 0, result.output
        assert "(p2.index)" in result.output
        assert "last modified:" in result.output
        assert (root / "artifacts.xml").as_uri() in result.output
        assert (root / "artifacts.xml.xz").as_uri() not in result.output

    def test_incompatible_index(self, repo, config):
        repo.index("future", version="2")

        result = _invoke(config, "index", str(repo.dir("future")))

        assert result.exit_code == 1
        assert "incompatible version 2" in result.output


def test_version_command():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"p2resolve {__version__}" in result.output
