"""TOML config loading for tlafmt.toml and pyproject.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from tlafmt.formatter import LINE_WIDTH, FormatOptions
from tlafmt.parser import DEFAULT_MAX_DEPTH

CONFIG_NAME = "tlafmt.toml"


@dataclass
class TlafmtConfig:
    max_width: int = LINE_WIDTH
    indent: int = 4
    collapse_single_junctions: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH

    def to_options(self) -> FormatOptions:
        return FormatOptions(
            max_width=self.max_width,
            indent=self.indent,
            collapse_single_junctions=self.collapse_single_junctions,
            max_depth=self.max_depth,
        )


def _has_tool_table(pyproject: Path) -> bool:
    with open(pyproject, "rb") as f:
        data = tomllib.load(f)
    return "tlafmt" in data.get("tool", {})


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find tlafmt.toml, or a pyproject.toml with a
    ``[tool.tlafmt]`` table. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        pyproject = path / "pyproject.toml"
        if pyproject.exists() and _has_tool_table(pyproject):
            return pyproject
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> TlafmtConfig:
    """Parse a config file into a TlafmtConfig. Unknown keys are ignored."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    if path.name == "pyproject.toml":
        table = data.get("tool", {}).get("tlafmt", {})
    else:
        table = data.get("format", {})

    return TlafmtConfig(
        max_width=table.get("max_width", LINE_WIDTH),
        indent=table.get("indent", 4),
        collapse_single_junctions=table.get("collapse_single_junctions", False),
        max_depth=table.get("max_depth", DEFAULT_MAX_DEPTH),
    )
