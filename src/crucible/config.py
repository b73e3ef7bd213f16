"""TOML config loading for crucible.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "crucible.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class BuildConfig:
    content: str = "src/content"
    jobs: int = 0


@dataclass
class CrucibleConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    build: BuildConfig = field(default_factory=BuildConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find crucible.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> CrucibleConfig:
    """Parse a crucible.toml file into a CrucibleConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = CrucibleConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "build" in data:
        bld = data["build"]
        config.build = BuildConfig(
            content=bld.get("content", "src/content"),
            jobs=bld.get("jobs", 0),
        )

    return config


def content_dir(config_path: Path, config: CrucibleConfig) -> Path:
    """The source directory a config points at, relative to the config file."""
    return config_path.parent / config.build.content
