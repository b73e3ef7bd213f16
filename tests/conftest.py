"""Shared pytest fixtures for the Crucible compiler test suite."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture
def write_sources(tmp_path):
    """Write ``{relative name: text}`` under a content dir, return the dir."""

    def write(sources: dict[str, str]) -> Path:
        content = tmp_path / "content"
        for name, text in sources.items():
            path = content / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return content

    return write
