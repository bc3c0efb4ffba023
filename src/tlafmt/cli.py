"""tlafmt command-line tool."""

from __future__ import annotations

import difflib
import os
import sys
import tempfile
from pathlib import Path

import click

from tlafmt import __version__
from tlafmt.config import TlafmtConfig, find_config, load_config
from tlafmt.errors import DiagnosticRenderer, ParseError
from tlafmt.formatter import FormatOptions, format_source

CHECK_FAILED = 3


def _resolve_options(config_path: str | None, start: Path | None, max_width: int | None) -> FormatOptions:
    """Explicit --config, else the nearest config file, else defaults."""
    if config_path is not None:
        config = load_config(Path(config_path))
    else:
        try:
            config = load_config(find_config(start))
        except FileNotFoundError:
            config = TlafmtConfig()
    if max_width is not None:
        config.max_width = max_width
    return config.to_options()


def _report(error: ParseError, filename: str, source: str) -> None:
    renderer = DiagnosticRenderer(color=sys.stderr.isatty(), sources={filename: source})
    click.echo(renderer.render(error.to_diagnostic()), err=True)


def _write_in_place(path: Path, text: str) -> None:
    """Write to a sibling temp file and rename it over ``path``."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


@click.command()
@click.version_option(__version__, prog_name="tlafmt")
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--check", "-c", is_flag=True, help="Exit 3 if the file is not formatted.")
@click.option("--in-place", "-i", "in_place", is_flag=True, help="Overwrite FILE with the result.")
@click.option("--stdin", "use_stdin", is_flag=True, help="Read from stdin instead of FILE.")
@click.option("--max-width", type=click.IntRange(min=1), default=None, help="Target line width (header and rule lines stay 80 wide).")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to tlafmt.toml or pyproject.toml.",
)
def main(
    file: str | None,
    check: bool,
    in_place: bool,
    use_stdin: bool,
    max_width: int | None,
    config_path: str | None,
) -> None:
    """Format a TLA+ module."""
    if use_stdin and file is not None:
        raise click.UsageError("--stdin cannot be combined with FILE")
    if not use_stdin and file is None:
        raise click.UsageError("missing FILE (or pass --stdin)")
    if in_place and (use_stdin or check):
        raise click.UsageError("--in-place needs FILE and cannot be combined with --check")

    if use_stdin:
        source = sys.stdin.read()
        filename = "<stdin>"
        start = None
    else:
        path = Path(file)
        source = path.read_text(encoding="utf-8")
        filename = str(path)
        start = path

    options = _resolve_options(config_path, start, max_width)

    try:
        formatted = format_source(source, options, filename)
    except ParseError as e:
        _report(e, filename, source)
        raise SystemExit(1)

    if check:
        if formatted.strip() != source.strip():
            click.echo("input file needs formatting", err=True)
            diff = difflib.unified_diff(
                source.splitlines(keepends=True),
                formatted.splitlines(keepends=True),
                fromfile=filename,
                tofile=f"{filename} (formatted)",
            )
            click.echo("".join(diff), err=True, nl=False)
            raise SystemExit(CHECK_FAILED)
        return

    if in_place:
        if formatted != source:
            _write_in_place(Path(file), formatted)
        return

    click.echo(formatted, nl=False)
