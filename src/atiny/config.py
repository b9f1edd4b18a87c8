"""TOML config loading for atiny.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "atiny.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class SourceConfig:
    dirs: list[str] = field(default_factory=lambda: ["src"])
    extension: str = ".at"


@dataclass
class DiagnosticsConfig:
    color: bool = True


@dataclass
class AtinyConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find atiny.toml. Raises FileNotFoundError."""
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


def load_config(path: Path) -> AtinyConfig:
    """Parse an atiny.toml file into an AtinyConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = AtinyConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "source" in data:
        src = data["source"]
        extension = src.get("extension", ".at")
        if not extension.startswith("."):
            extension = "." + extension
        config.source = SourceConfig(
            dirs=list(src.get("dirs", ["src"])),
            extension=extension,
        )

    if "diagnostics" in data:
        diag = data["diagnostics"]
        config.diagnostics = DiagnosticsConfig(color=diag.get("color", True))

    return config


def load_config_or_default(start_path: Path | None = None) -> tuple[AtinyConfig, Path | None]:
    """Find and load atiny.toml, falling back to defaults when none exists.

    Returns the config and the path it was read from (None for defaults).
    """
    try:
        path = find_config(start_path)
    except FileNotFoundError:
        return AtinyConfig(), None
    return load_config(path), path
