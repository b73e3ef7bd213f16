"""Crucible compiler CLI."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from crucible import __version__
from crucible.compiler import CompileResult, compile_files, parse_source
from crucible.config import content_dir, find_config, load_config
from crucible.errors import DiagnosticRenderer
from crucible.ir import COLLECTIONS
from crucible.project import scaffold

logger = logging.getLogger(__name__)


def _setup_logging(verbose: int, quiet: int) -> None:
    """INFO by default; each -v goes one level down, each -q one level up."""
    if quiet >= 3:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)
    level = max(logging.DEBUG, logging.INFO + 10 * (quiet - verbose))
    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def _renderer() -> DiagnosticRenderer:
    return DiagnosticRenderer(color=click.get_text_stream("stderr").isatty())


def _report(result: CompileResult) -> None:
    renderer = _renderer()
    for diag in result.diagnostics:
        click.echo(renderer.render(diag), err=True)


@click.group()
@click.version_option(__version__, prog_name="crucible")
@click.option("-v", "--verbose", count=True, help="Log more (repeatable).")
@click.option("-q", "--quiet", count=True, help="Log less (repeatable).")
def main(verbose: int, quiet: int) -> None:
    """The Crucible content compiler."""
    _setup_logging(verbose, quiet)


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("-j", "--jobs", type=int, default=None, help="Parallel parse workers.")
def check(paths: tuple[Path, ...], jobs: int | None) -> None:
    """Compile .crucible files and report every error."""
    targets = list(paths)
    if not targets:
        try:
            config_path = find_config()
        except FileNotFoundError:
            click.echo("error: no crucible.toml found and no paths given", err=True)
            raise SystemExit(1)
        config = load_config(config_path)
        click.echo(f"checking {config.package.name} v{config.package.version}...")
        targets = [content_dir(config_path, config)]
        if jobs is None:
            jobs = config.build.jobs or None

    logger.debug("check targets: %s", ", ".join(str(t) for t in targets))
    result = compile_files(targets, jobs=jobs)
    _report(result)
    if not result.ok:
        click.echo(f"error: {len(result.diagnostics)} error(s)", err=True)
        raise SystemExit(1)

    assert result.corpus is not None
    corpus = result.corpus
    summary = ", ".join(
        f"{len(corpus.collection(name))} {name}" for name in COLLECTIONS.values()
    )
    click.echo(f"checked {len(result.files)} file(s): {summary}")


@main.command()
@click.argument("name")
def new(name: str) -> None:
    """Create a new Crucible project."""
    try:
        project_dir = scaffold(name)
        click.echo(f"created project '{name}' at {project_dir}")
    except FileExistsError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def view(file: str) -> None:
    """View the parsed units of a Crucible source file."""
    filename = str(file)
    try:
        source = Path(file).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        click.echo(f"error: cannot read {filename}: {e}", err=True)
        raise SystemExit(1)

    parsed = parse_source(source, filename)
    if parsed.tree is None:
        renderer = _renderer()
        for diag in parsed.diagnostics:
            click.echo(renderer.render(diag), err=True)
        raise SystemExit(1)

    _dump_tree(parsed.tree, 0)


def _dump_tree(node: object, depth: int) -> None:
    """Print a readable tree dump."""
    indent = "  " * depth
    name = type(node).__name__

    if hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}")
        for field_name in fields:
            if field_name == "span":
                continue
            value = getattr(node, field_name)
            if isinstance(value, list):
                if value:
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_tree(item, depth + 2)
                else:
                    click.echo(f"{indent}  {field_name}: []")
            elif isinstance(value, dict):
                if value:
                    click.echo(f"{indent}  {field_name}:")
                    for key, item in value.items():
                        click.echo(f"{indent}    {key}: {item!r}")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_tree(value, depth + 2)
            elif value is not None:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}: {node!r}")
