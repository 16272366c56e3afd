"""dotgit CLI — rebuild a repository from an exposed ``.git`` directory.

Usage:
    dotgit https://example.com/.git ./loot [-j 8] [-r 3] [-t 10] [-v]
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.table import Table as RichTable

from . import __version__
from .config import MAX_VERBOSITY, DumpConfig
from .core.dispatcher import DEFAULT_JOBS
from .core.errors import FatalError
from .core.fetcher import DEFAULT_RETRIES, DEFAULT_TIMEOUT
from .core.models import DumpResult
from .pipeline import dump, prepare_output_dir

console = Console()

BANNER = r"""
      _       _         _ _
   __| | ___ | |_ __ _ (_) |_
  / _` |/ _ \| __/ _` || | __|
 | (_| | (_) | || (_| || | |_
  \__,_|\___/ \__\__, ||_|\__|
                 |___/
  Exposed .git → repository  v{version}
"""


def _setup_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity >= MAX_VERBOSITY else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    if verbosity:
        logging.getLogger("dotgit").setLevel(logging.DEBUG)
    # Per-request client logs only at the highest verbosity
    if verbosity < MAX_VERBOSITY:
        for name in ("httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.WARNING)


@click.command()
@click.version_option(version=__version__, prog_name="dotgit")
@click.argument("url")
@click.argument("output", type=click.Path(file_okay=False))
@click.option(
    "-j", "--jobs",
    type=click.IntRange(min=1),
    default=DEFAULT_JOBS,
    show_default=True,
    help="Number of concurrent requests.",
)
@click.option(
    "-r", "--retries",
    type=click.IntRange(min=1),
    default=DEFAULT_RETRIES,
    show_default=True,
    help="Attempts per request before giving up.",
)
@click.option(
    "-t", "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    metavar="SECONDS",
    help="Deadline for a request, retries included.",
)
@click.option("-v", "--verbose", count=True, help="Increase log detail (-v, -vv).")
@click.option(
    "--checkout/--no-checkout",
    default=True,
    help="Run 'git checkout .' in OUTPUT once files are downloaded.",
)
def main(
    url: str,
    output: str,
    jobs: int,
    retries: int,
    timeout: float,
    verbose: int,
    checkout: bool,
):
    """Download the repository exposed at URL into OUTPUT.

    URL may point at the site root, at the ``.git`` directory or at any
    file inside it; everything from ``.git`` on is ignored.
    """
    if verbose > MAX_VERBOSITY:
        raise click.BadParameter(
            f"at most {MAX_VERBOSITY} levels of verbosity are supported",
            param_hint="'-v'",
        )
    _setup_logging(verbose)
    console.print(BANNER.format(version=__version__))

    try:
        output_dir = prepare_output_dir(output)
        config = DumpConfig(
            url=url,
            output_dir=output_dir,
            jobs=jobs,
            retries=retries,
            timeout=timeout,
            verbose=verbose,
            checkout=checkout,
        )
        result = dump(config)
    except FatalError as exc:
        console.print(f"[bold red]error:[/bold red] {exc}")
        raise SystemExit(1)

    _print_summary(result)


def _print_summary(result: DumpResult) -> None:
    table = RichTable(title="dotgit summary", show_header=False)
    table.add_column("Key", style="bold cyan")
    table.add_column("Value")
    table.add_row("Target", result.base_url)
    table.add_row("Mode", result.mode.value if result.mode else "-")
    table.add_row("Files written", str(result.files_written))
    if result.objects_scheduled:
        table.add_row("Objects requested", str(result.objects_scheduled))
    if result.checkout_ok is None:
        checkout = "[dim]skipped[/dim]"
    elif result.checkout_ok:
        checkout = "[green]ok[/green]"
    else:
        checkout = "[yellow]incomplete[/yellow]"
    table.add_row("Checkout", checkout)
    console.print(table)


if __name__ == "__main__":
    main()
