"""
Command-line interface.

Parses arguments, builds the configuration and runs the generation driver,
reporting progress and results with rich.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .codegen.core.config import DEFAULT_INPUT, ConfigError, GeneratorConfig, load_config
from .codegen.core.generator import GeneratorError
from .driver import GenerationDriver, NoTypesFoundError, RunSummary
from .logging_config import get_logger, setup_logging
from .metadata.loader import MetadataLoadError
from .utils import AssemblyNotFoundError, OutputWriteError

logger = get_logger(__name__)

# Initialize rich console
console = Console()

MAX_LISTED_WARNINGS = 10


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bnm-structgen",
        description="Generate BNM C++ proxy headers from a .NET assembly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bnm-structgen ./Files/Assembly-CSharp.dll
  bnm-structgen -s -o Generated Assembly-CSharp.dll
  bnm-structgen --reflection --config structgen.json game.dll
        """.strip(),
    )

    parser.add_argument(
        "input",
        nargs="?",
        default=DEFAULT_INPUT,
        help=f"Assembly to read (default: {DEFAULT_INPUT})",
    )

    # Store-true flags default to None so they don't override a config file
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "--single-file",
        "-s",
        action="store_true",
        default=None,
        help="Write one combined header instead of one header per type",
    )
    output_group.add_argument("--output", "-o", metavar="DIR", help="Output directory (default: Output)")
    output_group.add_argument(
        "--image-name",
        metavar="NAME",
        help="Image name used by GetClass() (default: input file name)",
    )
    output_group.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip the advisory validation pass",
    )

    input_group = parser.add_argument_group("metadata")
    input_group.add_argument(
        "--reflection",
        "-r",
        action="store_true",
        default=None,
        help="Also load types through the .NET reflection backend (needs pythonnet)",
    )

    parser.add_argument("--config", metavar="FILE", help="JSON configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show progress logging")
    parser.add_argument("--log-file", metavar="FILE", help="Write a debug log to FILE")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> GeneratorConfig:
    """Merge the config file (if any) with command-line overrides."""
    overrides = {
        "single_file": args.single_file,
        "use_reflection": args.reflection,
        "output_dir": args.output,
        "image_name": args.image_name,
        "validate_output": False if args.no_validate else None,
    }
    return load_config(custom_config=overrides, config_file=args.config)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = create_parser().parse_args(argv)
    setup_logging(
        level=logging.INFO if args.verbose else logging.WARNING,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[red]✗ Configuration error:[/red] {e}")
        return 1

    driver = GenerationDriver(config)
    return _run(driver, args.input)


def _run(driver: GenerationDriver, input_path: str) -> int:
    """Run the driver and report the outcome."""
    mode = "single file" if driver.config.single_file else "folder"
    console.print(f"Running in {mode} mode...")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"[cyan]Generating headers from {input_path}...", total=None)
            summary = driver.run(input_path)

    except AssemblyNotFoundError as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        console.print("[dim]Please make sure the assembly exists (default location: ./Files).[/dim]")
        return _fail(driver, e)
    except (MetadataLoadError, NoTypesFoundError) as e:
        console.print(f"[red]✗ Error:[/red] {e}")
        return _fail(driver, e)
    except (GeneratorError, OutputWriteError) as e:
        console.print(f"[red]✗ Generation failed:[/red] {e}")
        return _fail(driver, e)
    except Exception as e:
        logger.exception("Unexpected failure")
        console.print(f"[red]✗ Unexpected error:[/red] {e}")
        return _fail(driver, e)

    _print_summary(summary, driver.config)
    return 0


def _fail(driver: GenerationDriver, error: BaseException) -> int:
    report = driver.write_error_report(error)
    if report:
        console.print(f"[dim]Error details saved to: {report}[/dim]")
    return 1


def _print_summary(summary: RunSummary, config: GeneratorConfig):
    table = Table(title="📊 Generation Summary", box=box.SIMPLE, show_header=True, header_style="bold cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value", style="green")

    table.add_row("Assembly", str(summary.assembly))
    table.add_row("Backends", ", ".join(summary.backends) or "-")
    table.add_row("Types Loaded", str(summary.loaded_count))
    table.add_row("Types Processed", str(summary.type_count))
    table.add_row("Types Emitted", str(summary.emitted_count))
    table.add_row("Files Written", str(len(summary.written)))
    table.add_row("Warnings", str(len(summary.warnings)))

    console.print()
    console.print(table)

    if summary.warnings:
        console.print("\n[yellow]⚠️  Warnings:[/yellow]")
        for warning in summary.warnings[:MAX_LISTED_WARNINGS]:
            console.print(f"  [yellow]•[/yellow] {escape(warning)}")
        remaining = len(summary.warnings) - MAX_LISTED_WARNINGS
        if remaining > 0:
            console.print(f"  [dim]... and {remaining} more[/dim]")
        console.print(f"All warnings saved to: [cyan]{summary.warnings_path}[/cyan]")

    if summary.validation is not None:
        if summary.validation.ok:
            console.print("[green]✓[/green] Validation passed")
        else:
            console.print(
                f"[yellow]⚠️  Validation found {len(summary.validation.issues)} issue(s), "
                f"see {summary.validation_path}[/yellow]"
            )

    target = summary.output_dir / config.combined_file_name if config.single_file else summary.output_dir
    console.print()
    console.print(
        Panel(
            f"[bold]C++ headers saved to:[/bold] [cyan]{target}[/cyan]",
            title="✓ Done",
            border_style="green",
        )
    )


if __name__ == "__main__":
    sys.exit(main())
