"""Shared test helpers for the Crucible compiler test suite."""

from __future__ import annotations

import pytest

from crucible.ast_nodes import ComponentUnit, FileTree
from crucible.errors import CompileError, Diagnostic
from crucible.parser import Parser


def parse(source: str, filename: str = "test.crucible") -> FileTree:
    """Parse source, return the FileTree."""
    return Parser(source, filename).parse()


def parse_unit(source: str) -> ComponentUnit:
    """Parse source and return its single top-level component unit."""
    tree = parse(source)
    assert len(tree.units) == 1
    unit = tree.units[0]
    assert isinstance(unit, ComponentUnit)
    return unit


def parse_component(source: str):
    """Parse source and return the record of its single component."""
    return parse_unit(source).component


def parse_fails(source: str, error_code: str) -> list[Diagnostic]:
    """Parse source, asserting it fails with the given error code."""
    with pytest.raises(CompileError) as exc_info:
        parse(source)
    diagnostics = exc_info.value.diagnostics
    matching = [d for d in diagnostics if d.code == error_code]
    assert matching, (
        f"Expected error {error_code} but got: "
        f"{[f'{d.code}: {d.message}' for d in diagnostics]}"
    )
    return matching
