"""
Command-line interface.

Usage:
    cat urls.txt | refract scan
    refract scan -f urls.txt -o results.json --json -w 20
"""

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .core.config import PipelineConfig
from .core.logging import configure_logging
from .core.orchestrator import Pipeline
from .reporting import ResultWriter, SetupError, open_input, open_output, read_lines
from .scanners import ERROR_FINGERPRINTS, PROBE_CHARSET


console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="refract")
def cli():
    """
    refract - Reflected parameter and unfiltered character prober

    Reads URLs, finds query parameters echoed by the server and reports
    which special characters come back unescaped.
    """
    pass


@cli.command()
@click.option('-f', '--file', 'input_file', type=click.Path(dir_okay=False), help='File containing URLs to process (default: stdin)')
@click.option('-o', '--output', 'output_file', type=click.Path(dir_okay=False), help='File to write output to (default: stdout)')
@click.option('-w', '--workers', default=40, type=click.IntRange(min=1), help='Number of workers per stage (default: 40)')
@click.option('-j', '--json', 'json_output', is_flag=True, help='Output results in JSON format')
@click.option('--timeout', default=30.0, type=click.FloatRange(min=0, min_open=True), help='Per-request timeout in seconds (default: 30)')
@click.option('--retries', default=3, type=click.IntRange(min=1), help='Attempts per request (default: 3)')
@click.option('--max-duration', type=click.FloatRange(min=0, min_open=True), help='Stop submitting work after this many seconds')
@click.option('--dedupe', is_flag=True, help='Skip URLs already submitted (same query in any order)')
@click.option('-v', '--verbose', is_flag=True, help='Log progress to stderr')
@click.option('--debug', is_flag=True, help='Log every probe to stderr')
@click.option('--stats', is_flag=True, help='Print pipeline statistics to stderr when done')
def scan(
    input_file: Optional[str],
    output_file: Optional[str],
    workers: int,
    json_output: bool,
    timeout: float,
    retries: int,
    max_duration: Optional[float],
    dedupe: bool,
    verbose: bool,
    debug: bool,
    stats: bool,
):
    """
    Probe URLs for reflected parameters and unfiltered characters.

    Results are written as soon as they are found. The exit status is 0
    whether or not anything was found.

    Example:
        cat urls.txt | refract scan --json
    """
    configure_logging(verbose=verbose, debug=debug)

    config = PipelineConfig(
        workers=workers,
        request_timeout=timeout,
        max_retries=retries,
        max_duration=max_duration,
        dedupe=dedupe,
    )

    try:
        source = open_input(input_file)
    except SetupError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    try:
        sink = open_output(output_file)
    except SetupError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        _close(source, sys.stdin)
        sys.exit(1)

    pipeline = Pipeline(config)
    writer = ResultWriter(sink, json_output=json_output)

    try:
        asyncio.run(pipeline.run(read_lines(source), writer))
        writer.finish()

    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[bold red]I/O error:[/bold red] {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(1)

    finally:
        _close(source, sys.stdin)
        _close(sink, sys.stdout)

    if stats:
        console.print(_statistics_table(pipeline))


@cli.command()
def version():
    """Show version information and probe settings"""
    console.print(f"\n[bold cyan]refract v{__version__}[/bold cyan]\n")

    table = Table(title="Probe Settings")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    defaults = PipelineConfig()
    table.add_row("Probe characters", " ".join(PROBE_CHARSET))
    table.add_row("Fingerprint vendors", ", ".join(ERROR_FINGERPRINTS))
    table.add_row("Workers per stage", str(defaults.workers))
    table.add_row("Attempts per request", str(defaults.max_retries))
    table.add_row("Body size cap", f"{defaults.max_body_size} bytes")

    console.print(table)
    console.print()


def _statistics_table(pipeline: Pipeline) -> Table:
    stats = pipeline.get_statistics()

    table = Table(title=f"Pipeline Statistics ({stats['submitted']} submitted, {stats['results']} results)")
    table.add_column("Stage", style="cyan", no_wrap=True)
    for column in ("received", "emitted", "dropped", "failed", "skipped"):
        table.add_column(column.title(), justify="right")
    table.add_column("Hit Rate", justify="right")

    for name, counters in stats["stages"].items():
        hit_rate = stats["scanners"][name]["hit_rate"]
        table.add_row(
            name,
            *(str(counters[key]) for key in ("received", "emitted", "dropped", "failed", "skipped")),
            f"{hit_rate:.0%}",
        )

    return table


def _close(stream, default):
    if stream is not default:
        stream.close()


if __name__ == '__main__':
    cli()
