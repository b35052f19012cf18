"""CLI interface for repochat message processing."""

import contextlib
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from repochat.config import RepochatConfig, load_config, merge_cli_overrides
from repochat.diagrams.generator import (
    generate_from_graph_spec,
    load_graph_spec,
    parse_graph_spec,
)
from repochat.diagrams.sanitizer import sanitize_mermaid_code
from repochat.diagrams.validation import extract_diagram_type, validate_mermaid_syntax
from repochat.errors import GraphSpecError, ProcessingReport, save_report
from repochat.markdown.fences import repair_markdown
from repochat.pipeline import process_message

app = typer.Typer(
    name="repochat",
    help="Repair fenced code blocks and Mermaid diagrams in LLM chat answers.",
)

console = Console()
_stderr_console = Console(stderr=True)

STDIN_PATH = Path("-")
YAML_SUFFIXES = (".yaml", ".yml")


@contextlib.contextmanager
def _progress_context(quiet: bool = False):
    """Yield a Progress context or a no-op depending on quiet flag."""
    if quiet:
        yield None
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=_stderr_console,
        ) as progress:
            yield progress


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_stderr_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from repochat import __version__

        console.print(f"repochat {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log every fence rewrite."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .repochat.toml file."),
    ] = None,
) -> None:
    """Repochat - clean up LLM answers before rendering."""
    config = load_config(config_path)
    _configure_logging("DEBUG" if verbose else config.logging.level)
    ctx.obj = config


def _get_config(ctx: typer.Context) -> RepochatConfig:
    if isinstance(ctx.obj, RepochatConfig):
        return ctx.obj
    return load_config()


def _read_text(path: Path) -> str:
    if path == STDIN_PATH:
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _read_input(path: Path) -> str:
    """Read a file (or stdin for ``-``), exiting with an error on failure."""
    try:
        return _read_text(path)
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Error:[/red] Cannot read {path}: {exc}")
        raise typer.Exit(1)


def _write_output(text: str, output: Path | None) -> None:
    if output is None:
        print(text, end="" if text.endswith("\n") else "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    _stderr_console.print(f"[green]Wrote[/green] {output}")


@app.command(name="repair")
def repair_cmd(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(help="Markdown file to repair, or - for stdin."),
    ] = STDIN_PATH,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write here instead of stdout."),
    ] = None,
    check: Annotated[
        bool,
        typer.Option("--check", help="Only report whether a repair is needed."),
    ] = False,
    max_passes: Annotated[
        Optional[int],
        typer.Option("--max-passes", min=1, help="Upper bound on repair passes."),
    ] = None,
) -> None:
    """Repair nested or prematurely closed code fences.

    Only fence lines change; a missing closer is appended at the end.
    With --check nothing is written and the exit code is 1 when the file
    would change.
    """
    config = merge_cli_overrides(_get_config(ctx), max_passes=max_passes)
    text = _read_input(path)
    repaired = repair_markdown(text, max_passes=config.fences.max_passes)

    if check:
        if repaired != text:
            _stderr_console.print(f"[yellow]Needs repair:[/yellow] {path}")
            raise typer.Exit(1)
        _stderr_console.print(f"[green]OK:[/green] {path}")
        return

    _write_output(repaired, output)


@app.command(name="sanitize")
def sanitize_cmd(
    path: Annotated[
        Path,
        typer.Argument(help="Mermaid source file, or - for stdin."),
    ] = STDIN_PATH,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write here instead of stdout."),
    ] = None,
) -> None:
    """Sanitize loose Mermaid flowchart code."""
    _write_output(sanitize_mermaid_code(_read_input(path)), output)


@app.command(name="generate")
def generate_cmd(
    path: Annotated[
        Path,
        typer.Argument(
            help="Graph spec (.json, .yaml or .yml), or - for JSON on stdin."
        ),
    ] = STDIN_PATH,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write here instead of stdout."),
    ] = None,
) -> None:
    """Generate Mermaid code from a node/edge graph spec."""
    raw = _read_input(path)
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            try:
                data = yaml.safe_load(raw)
            except yaml.YAMLError as exc:
                raise GraphSpecError(f"Malformed graph spec YAML: {exc}") from exc
            spec = load_graph_spec(data)
        else:
            spec = parse_graph_spec(raw)
    except GraphSpecError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    _write_output(generate_from_graph_spec(spec), output)


@app.command(name="validate")
def validate_cmd(
    path: Annotated[
        Path,
        typer.Argument(help="Mermaid source file, or - for stdin."),
    ] = STDIN_PATH,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
) -> None:
    """Shallow check that a diagram is non-empty and names a diagram type.

    Exits with code 1 when the diagram is rejected.
    """
    code = _read_input(path)
    result = validate_mermaid_syntax(code)

    if as_json:
        print(result.model_dump_json(exclude_none=True))
    elif result.valid:
        console.print(f"[green]Valid[/green] {extract_diagram_type(code)} diagram")
    else:
        console.print(f"[red]Invalid:[/red] {result.error}")

    if not result.valid:
        raise typer.Exit(1)


@app.command(name="process")
def process_cmd(
    ctx: typer.Context,
    paths: Annotated[
        list[Path],
        typer.Argument(help="Markdown messages to process (- for stdin)."),
    ],
    output_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--output-dir",
            "-o",
            help="Write processed files here. Defaults to stdout.",
        ),
    ] = None,
    report_path: Annotated[
        Optional[Path],
        typer.Option("--report", help="Write a JSON processing report here."),
    ] = None,
    use_fallback: Annotated[
        Optional[bool],
        typer.Option(
            "--fallback/--no-fallback",
            help="Replace invalid diagrams with a template diagram.",
        ),
    ] = None,
    drop_invalid: Annotated[
        Optional[bool],
        typer.Option(
            "--drop-invalid/--keep-invalid",
            help="Remove diagram blocks that fail validation.",
        ),
    ] = None,
    max_passes: Annotated[
        Optional[int],
        typer.Option("--max-passes", min=1, help="Upper bound on repair passes."),
    ] = None,
) -> None:
    """Run the full pipeline: repair fences, then fix every diagram block.

    ```mermaid blocks are sanitized, ```mermaid-json blocks are generated
    from their graph spec, and both are written back as ```mermaid.
    """
    config = merge_cli_overrides(
        _get_config(ctx),
        max_passes=max_passes,
        use_fallback=use_fallback,
        drop_invalid=drop_invalid,
    )
    report = ProcessingReport()

    with _progress_context(quiet=output_dir is None) as progress:
        for path in paths:
            source = "stdin" if path == STDIN_PATH else str(path)
            if progress:
                progress.add_task(f"Processing {source}...", total=None)

            try:
                text = _read_text(path)
            except (OSError, UnicodeDecodeError) as exc:
                report.add_issue(
                    "read",
                    str(exc),
                    source=source,
                    error_type="io_error",
                    recoverable=False,
                )
                continue

            result = process_message(text, config)
            report.record_message(source, result)

            if output_dir is None:
                _write_output(result.content, None)
            else:
                name = "stdin.md" if path == STDIN_PATH else path.name
                output_dir.mkdir(parents=True, exist_ok=True)
                (output_dir / name).write_text(result.content, encoding="utf-8")

    report.finish()
    if report_path is not None:
        save_report(report, report_path)

    _stderr_console.print(report.summary_text(), markup=False, highlight=False)
    if not report.success:
        raise typer.Exit(1)
