"""Tests for the Crucible CLI, config, scaffolding, and error rendering."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from crucible.cli import main
from crucible.config import content_dir, find_config, load_config
from crucible.errors import (
    CompileError,
    Diagnostic,
    DiagnosticLabel,
    DiagnosticRenderer,
    Severity,
)
from crucible.project import scaffold
from crucible.source import SourceFile, Span


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a minimal crucible project in a temp dir."""
    (tmp_path / "crucible.toml").write_text(
        '[package]\nname = "testmod"\nversion = "1.0.0"\n'
        '[build]\ncontent = "content"\njobs = 2\n'
    )
    content = tmp_path / "content"
    content.mkdir()
    (content / "main.crucible").write_text(
        'namespace testmod {\n'
        '    aspect heat "Heat" "Warm" { }\n'
        '    card candle "Candle" (heat) { }\n'
        '}\n'
    )
    return tmp_path


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Crucible" in result.output
        assert "check" in result.output
        assert "new" in result.output
        assert "view" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "crucible" in result.output
        assert "0.1.0" in result.output

    def test_check_paths(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project / "content")])
        assert result.exit_code == 0, result.output
        assert "checked 1 file(s)" in result.output
        assert "1 aspects" in result.output
        assert "1 cards" in result.output

    def test_check_uses_config(self, runner, tmp_project, monkeypatch):
        monkeypatch.chdir(tmp_project)
        result = runner.invoke(main, ["check"])
        assert result.exit_code == 0, result.output
        assert "checking testmod v1.0.0..." in result.output

    def test_check_without_config(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(main, ["check"])
        assert result.exit_code == 1
        assert "no crucible.toml" in result.output

    def test_check_reports_errors(self, runner, tmp_path):
        (tmp_path / "a.crucible").write_text('card c "C" { }\n')
        (tmp_path / "b.crucible").write_text('card c "C" { }\n')
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 1
        assert "error[E300]" in result.output
        assert "first defined here" in result.output

    def test_check_jobs_option(self, runner, tmp_project):
        result = runner.invoke(main, ["-q", "check", "-j", "1", str(tmp_project / "content")])
        assert result.exit_code == 0, result.output

    def test_view(self, runner, tmp_project):
        result = runner.invoke(main, ["view", str(tmp_project / "content" / "main.crucible")])
        assert result.exit_code == 0, result.output
        assert "FileTree" in result.output
        assert "Namespace" in result.output
        assert "Card" in result.output
        assert "'candle'" in result.output

    def test_view_syntax_error(self, runner, tmp_path):
        bad = tmp_path / "bad.crucible"
        bad.write_text('card c "C" {\n    nonsense here\n}\n')
        result = runner.invoke(main, ["view", str(bad)])
        assert result.exit_code == 1
        assert "error[E101]" in result.output

    def test_view_too_deep(self, runner, tmp_path):
        deep = tmp_path / "deep.crucible"
        deep.write_text("namespace a {\n" * 3000 + "}\n" * 3000)
        result = runner.invoke(main, ["view", str(deep)])
        assert result.exit_code == 1
        assert "error[E100]" in result.output

    def test_new(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(main, ["new", "mymod"])
        assert result.exit_code == 0
        assert (tmp_path / "mymod" / "crucible.toml").is_file()
        assert (tmp_path / "mymod" / "src" / "content" / "main.crucible").is_file()

    def test_new_exists(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "taken").mkdir()
        result = runner.invoke(main, ["new", "taken"])
        assert result.exit_code == 1
        assert "already exists" in result.output


# --- Scaffolding tests ---


class TestScaffold:
    def test_files(self, tmp_path):
        project = scaffold("my-mod", tmp_path)
        assert (project / ".gitignore").is_file()
        assert "# my-mod" in (project / "README.md").read_text()
        assert 'name = "my-mod"' in (project / "crucible.toml").read_text()

    def test_scaffold_compiles(self, runner, tmp_path, monkeypatch):
        project = scaffold("my-mod", tmp_path)
        monkeypatch.chdir(project)
        result = runner.invoke(main, ["check"])
        assert result.exit_code == 0, result.output
        assert "1 aspects" in result.output

    def test_refuses_existing(self, tmp_path):
        scaffold("again", tmp_path)
        with pytest.raises(FileExistsError):
            scaffold("again", tmp_path)


# --- Config tests ---


class TestConfig:
    def test_load(self, tmp_project):
        config = load_config(tmp_project / "crucible.toml")
        assert config.package.name == "testmod"
        assert config.package.version == "1.0.0"
        assert config.build.content == "content"
        assert config.build.jobs == 2

    def test_defaults(self, tmp_path):
        path = tmp_path / "crucible.toml"
        path.write_text('[package]\nversion = "2.0.0"\n')
        config = load_config(path)
        assert config.package.name == "untitled"
        assert config.package.version == "2.0.0"
        assert config.build.content == "src/content"
        assert config.build.jobs == 0

    def test_find_walks_up(self, tmp_project):
        nested = tmp_project / "content" / "deep"
        nested.mkdir()
        assert find_config(nested) == (tmp_project / "crucible.toml").resolve()

    def test_content_dir(self, tmp_project):
        config_path = tmp_project / "crucible.toml"
        config = load_config(config_path)
        assert content_dir(config_path, config) == tmp_project / "content"


# --- Renderer tests ---


class TestRenderer:
    def test_render_with_source(self, tmp_path):
        source = tmp_path / "a.crucible"
        source.write_text('card c "C" {\n    set icon = 3\n}\n')
        diag = Diagnostic(
            severity=Severity.ERROR,
            code="E202",
            message="key 'icon' must be of type string, got number",
            labels=[DiagnosticLabel(span=Span(str(source), 2, 5, 2, 16), message="here")],
            notes=["use a quoted file name"],
        )
        output = DiagnosticRenderer(color=False).render(diag)
        assert output.startswith("error[E202]: key 'icon'")
        assert f"--> {source}:2:5" in output
        assert "set icon = 3" in output
        assert "^" * 12 in output
        assert "here" in output
        assert "= note: use a quoted file name" in output

    def test_secondary_label(self, tmp_path):
        source = tmp_path / "a.crucible"
        source.write_text("card c \"C\" { }\n")
        diag = Diagnostic(
            severity=Severity.ERROR, code="E300", message="dup",
            labels=[DiagnosticLabel(span=Span(str(source), 1, 1, 1, 4), message="", style="secondary")],
        )
        output = DiagnosticRenderer(color=False).render(diag)
        assert "----" in output
        assert "^" not in output

    def test_missing_source(self):
        diag = Diagnostic(
            severity=Severity.WARNING, code="E001", message="gone",
            labels=[DiagnosticLabel(span=Span("/no/such/file.crucible", 1, 1, 1, 1), message="")],
        )
        output = DiagnosticRenderer(color=False).render(diag)
        assert output.startswith("warning[E001]: gone")

    def test_color_highlights_source(self, tmp_path):
        source = tmp_path / "a.crucible"
        source.write_text('aspect a "A" "B" { }\n')
        diag = Diagnostic(
            severity=Severity.ERROR, code="E100", message="x",
            labels=[DiagnosticLabel(span=Span(str(source), 1, 1, 1, 6), message="")],
        )
        output = DiagnosticRenderer(color=True).render(diag)
        assert "\033[" in output
        assert "aspect" in output

    def test_compile_error_message(self):
        err = CompileError([
            Diagnostic(severity=Severity.ERROR, code="E200", message="one"),
            Diagnostic(severity=Severity.ERROR, code="E201", message="two"),
        ])
        assert "2 error(s)" in str(err)
        assert "one; two" in str(err)


class TestSourceFile:
    def test_lines(self, tmp_path):
        path = tmp_path / "s.crucible"
        path.write_text("first line\nsecond line\n")
        source = SourceFile(path)
        assert source.line_at(2) == "second line"
        assert source.line_at(9) == ""
        assert isinstance(source.path, Path)
