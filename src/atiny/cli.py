"""atiny command-line interface."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from atiny import __version__
from atiny.ast_nodes import Located, Program
from atiny.config import AtinyConfig, load_config_or_default
from atiny.errors import CompileError, DiagnosticRenderer
from atiny.lexer import Lexer
from atiny.parser import Parser

LOGGER = logging.getLogger(__name__)


def _collect_sources(target: Path, config: AtinyConfig) -> list[Path]:
    """Source files named by ``target``: the file itself, or every file
    with the configured extension under the configured source dirs."""
    if target.is_file():
        return [target]

    pattern = f"*{config.source.extension}"
    roots = [target / d for d in config.source.dirs if (target / d).is_dir()]
    if not roots:
        roots = [target]  # fallback to the directory itself
    files: list[Path] = []
    for root in roots:
        files.extend(sorted(root.rglob(pattern)))
    return files


def _parse_file(source: str, filename: str, renderer: DiagnosticRenderer) -> Program | None:
    """Parse one file, rendering diagnostics on failure."""
    renderer.add_source(filename, source)
    try:
        tokens = Lexer(source, filename).lex()
        return Parser(tokens, filename).parse()
    except CompileError as e:
        for diag in e.diagnostics:
            click.echo(renderer.render(diag), err=True)
        return None


def _load(path: Path) -> AtinyConfig:
    config, config_path = load_config_or_default(path)
    if config_path is None:
        LOGGER.debug("no atiny.toml found above %s, using defaults", path)
    else:
        LOGGER.debug("loaded config from %s", config_path)
    return config


@click.group()
@click.version_option(__version__, prog_name="atiny")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
def main(verbose: bool) -> None:
    """The atiny language front end."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True))
def check(path: str) -> None:
    """Parse atiny sources and report syntax errors."""
    target = Path(path)
    config = _load(target)
    files = _collect_sources(target, config)
    if not files:
        click.echo(f"warning: no {config.source.extension} files found", err=True)
        return

    renderer = DiagnosticRenderer(color=config.diagnostics.color)
    failed = 0
    declarations = 0
    for source_file in files:
        LOGGER.info("checking %s", source_file)
        program = _parse_file(source_file.read_text(), str(source_file), renderer)
        if program is None:
            failed += 1
        else:
            LOGGER.debug("%s: %d declaration(s)", source_file, len(program.declarations))
            declarations += len(program.declarations)

    if failed:
        click.echo(f"{failed} of {len(files)} file(s) failed to parse", err=True)
        raise SystemExit(1)
    click.echo(f"checked {len(files)} file(s), {declarations} declaration(s), no errors")


@main.command(name="format")
@click.argument("path", default=".", type=click.Path(exists=True))
@click.option("--check", is_flag=True, help="Check formatting without modifying files.")
@click.option("--stdin", "use_stdin", is_flag=True, help="Read from stdin, write to stdout.")
def format_cmd(path: str, check: bool, use_stdin: bool) -> None:
    """Format atiny source files."""
    from atiny.formatter import AtinyFormatter

    formatter = AtinyFormatter()
    target = Path(path)
    config = _load(target)
    renderer = DiagnosticRenderer(color=config.diagnostics.color)

    if use_stdin:
        source = sys.stdin.read()
        program = _parse_file(source, "<stdin>", renderer)
        if program is None:
            raise SystemExit(1)
        formatted = formatter.format(program)
        if check:
            if formatted != source:
                raise SystemExit(1)
        else:
            sys.stdout.write(formatted)
        return

    files = _collect_sources(target, config)
    if not files:
        click.echo(f"no {config.source.extension} files found", err=True)
        return

    needs_formatting = False
    had_errors = False
    for source_file in files:
        source = source_file.read_text()
        filename = str(source_file)
        program = _parse_file(source, filename, renderer)
        if program is None:
            had_errors = True
            continue

        formatted = formatter.format(program)
        if formatted == source:
            LOGGER.debug("%s already formatted", filename)
        elif check:
            click.echo(f"would reformat {filename}")
            needs_formatting = True
        else:
            source_file.write_text(formatted)
            click.echo(f"formatted {filename}")

    if had_errors or (check and needs_formatting):
        raise SystemExit(1)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def tokens(file: str) -> None:
    """Print the token stream of an atiny source file."""
    source = Path(file).read_text()
    renderer = DiagnosticRenderer(color=_load(Path(file)).diagnostics.color)
    renderer.add_source(file, source)
    try:
        token_list = Lexer(source, file).lex()
    except CompileError as e:
        for diag in e.diagnostics:
            click.echo(renderer.render(diag), err=True)
        raise SystemExit(1)

    for tok in token_list:
        click.echo(f"{tok.span.start:>6}..{tok.span.end:<6} {tok.kind.name:<16} {tok.value!r}")


@main.command()
def lsp() -> None:
    """Start the atiny language server."""
    from atiny.lsp import main as lsp_main

    lsp_main()


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def view(file: str) -> None:
    """View the AST of an atiny source file."""
    source = Path(file).read_text()
    renderer = DiagnosticRenderer(color=_load(Path(file)).diagnostics.color)
    program = _parse_file(source, file, renderer)
    if program is None:
        raise SystemExit(1)

    click.echo(f"Program [{program.span.start}..{program.span.end})")
    for decl in program.declarations:
        _dump_ast(decl, 1)


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump with the byte range of each located node."""
    indent = "  " * depth

    if isinstance(node, Located):
        span = f" [{node.span.start}..{node.span.end})"
        node = node.data
    else:
        span = ""
    name = type(node).__name__

    if hasattr(node, "__dataclass_fields__"):
        fields = node.__dataclass_fields__  # type: ignore[union-attr]
        click.echo(f"{indent}{name}{span}")
        for field_name in fields:
            value = getattr(node, field_name)
            if isinstance(value, list):
                if value and hasattr(value[0], "__dataclass_fields__"):
                    click.echo(f"{indent}  {field_name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                else:
                    click.echo(f"{indent}  {field_name}: {value!r}")
            elif hasattr(value, "__dataclass_fields__"):
                click.echo(f"{indent}  {field_name}:")
                _dump_ast(value, depth + 2)
            elif value is not None:
                click.echo(f"{indent}  {field_name}: {value!r}")
    else:
        click.echo(f"{indent}{name}{span}: {node!r}")
