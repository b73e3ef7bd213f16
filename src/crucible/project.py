"""Project scaffolding for `crucible new`."""

from __future__ import annotations

from pathlib import Path

_CRUCIBLE_TOML_TEMPLATE = """\
[package]
name = "{name}"
version = "0.1.0"

[build]
content = "src/content"
jobs = 0
"""

_MAIN_CRUCIBLE_TEMPLATE = """\
#![mod.name = "{name}"]

namespace {namespace} {{
    aspect lantern "Lantern" "The light that shows what is hidden." {{
        set icon = "lantern.png"
    }}

    card candle "Candle" "A small light." (lantern: 1) -> 30 {{
        xtrigger lantern -> ash 50%
    }}

    verb work "Work" "Earn your bread."
}}
"""

_GITIGNORE = """\
build/
__pycache__/
"""

_README_TEMPLATE = """\
# {name}

Content for a card game, written in the Crucible language.

## Check

```bash
crucible check
```
"""


def _namespace_for(name: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in name.lower())
    return cleaned or "content"


def scaffold(name: str, parent: Path | None = None) -> Path:
    """Create a new Crucible project directory. Returns the project path."""
    base = parent or Path.cwd()
    project_dir = base / name

    if project_dir.exists():
        raise FileExistsError(f"Directory '{name}' already exists")

    content_dir = project_dir / "src" / "content"
    content_dir.mkdir(parents=True)

    (project_dir / "crucible.toml").write_text(_CRUCIBLE_TOML_TEMPLATE.format(name=name))
    (content_dir / "main.crucible").write_text(
        _MAIN_CRUCIBLE_TEMPLATE.format(name=name, namespace=_namespace_for(name))
    )
    (project_dir / ".gitignore").write_text(_GITIGNORE)
    (project_dir / "README.md").write_text(_README_TEMPLATE.format(name=name))

    return project_dir
