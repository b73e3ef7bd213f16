"""Compilation pipeline: .crucible sources -> Corpus.

Phase 1 parses every file independently (in parallel, no shared state);
phase 2 merges the successful trees sequentially once every file has
been parsed.  A run never stops at the first problem: every file is
attempted and every error is collected.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from crucible.ast_nodes import FileTree
from crucible.errors import CompileError, Diagnostic, Severity, error
from crucible.ir import Corpus
from crucible.merger import Merger
from crucible.parser import Parser
from crucible.source import Span

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".crucible"


@dataclass
class ParsedFile:
    """Outcome of phase 1 for one file."""

    filename: str
    tree: FileTree | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.tree is not None


@dataclass
class CompileResult:
    """Outcome of a compilation run."""

    ok: bool
    corpus: Corpus | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    files: list[ParsedFile] = field(default_factory=list)

    def errors(self) -> list[tuple[str, str]]:
        """``(source-file-path, message)`` for every error of the run."""
        return [
            (d.file or "<unknown>", f"{d.code}: {d.message}")
            for d in self.diagnostics
            if d.severity == Severity.ERROR
        ]


def parse_source(source: str, filename: str = "<stdin>") -> ParsedFile:
    """Phase 1 for in-memory text. Never raises on bad input."""
    try:
        tree = Parser(source, filename).parse()
    except CompileError as e:
        logger.debug("%s: %d error(s)", filename, len(e.diagnostics))
        return ParsedFile(filename, diagnostics=list(e.diagnostics))
    except RecursionError:
        logger.debug("%s: nesting exceeds the recursion limit", filename)
        return ParsedFile(filename, diagnostics=[
            error(
                "E100", "nesting is too deep to parse", Span(filename, 1, 1, 1, 1),
                notes=["flatten the nested literals or namespaces in this file"],
            ),
        ])
    logger.debug("%s: %d unit(s)", filename, len(tree.units))
    return ParsedFile(filename, tree=tree)


def parse_file(path: Path) -> ParsedFile:
    """Phase 1 for one file on disk."""
    filename = str(path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ParsedFile(filename, diagnostics=[
            error("E001", f"cannot read {filename}: {e}", Span(filename, 1, 1, 1, 1)),
        ])
    return parse_source(source, filename)


def discover_sources(paths: Iterable[Path]) -> list[Path]:
    """Expand directories into their ``.crucible`` files, sorted."""
    found: list[Path] = []
    for path in paths:
        if path.is_dir():
            found.extend(sorted(path.rglob(f"*{SOURCE_SUFFIX}")))
        else:
            found.append(path)
    unique: list[Path] = []
    seen: set[Path] = set()
    for path in found:
        resolved = path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique.append(path)
    return unique


def _worker_count(jobs: int | None, files: int) -> int:
    if not jobs:
        jobs = min(32, (os.cpu_count() or 1) + 4)
    return max(1, min(jobs, files))


def merge_parsed(parsed: list[ParsedFile]) -> CompileResult:
    """Phase 2: merge every successfully parsed file and report."""
    diagnostics = [d for p in parsed for d in p.diagnostics]
    merger = Merger()
    for p in parsed:
        if p.tree is not None:
            merger.merge(p.tree)

    corpus: Corpus | None = None
    try:
        corpus = merger.finish()
    except CompileError as e:
        diagnostics.extend(e.diagnostics)

    if diagnostics:
        logger.info(
            "compilation failed: %d error(s) in %d file(s)",
            len(diagnostics), len(parsed),
        )
        return CompileResult(ok=False, diagnostics=diagnostics, files=parsed)
    return CompileResult(ok=True, corpus=corpus, files=parsed)


def compile_files(paths: Iterable[Path], *, jobs: int | None = None) -> CompileResult:
    """Compile the given files and directories into one Corpus."""
    files = discover_sources(paths)
    if not files:
        return CompileResult(ok=False, diagnostics=[
            error("E001", f"no {SOURCE_SUFFIX} files found"),
        ])

    workers = _worker_count(jobs, len(files))
    logger.info("parsing %d file(s) with %d worker(s)", len(files), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        parsed = list(pool.map(parse_file, files))
    return merge_parsed(parsed)


def compile_sources(sources: Mapping[str, str]) -> CompileResult:
    """Compile in-memory sources keyed by filename, in mapping order."""
    parsed = [parse_source(text, name) for name, text in sources.items()]
    return merge_parsed(parsed)
