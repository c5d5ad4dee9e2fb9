"""
tracegen - Trace Test Generator Command-Line Interface
======================================================

Usage Examples
--------------
Basic generation:
    $ tracegen tip.ptt

With assembly labels from a symbol file:
    $ tracegen tip.ptt -s tip.sym

With assembly labels on the command line:
    $ tracegen -L l1=0x100000 -L l2=0x100004 tip.ptt

Verbose mode (logs every packet):
    $ tracegen -v tip.ptt
"""

import logging
from pathlib import Path
from typing import Optional

import click

from tracegen import __version__
from tracegen.cli.errors import handle_cli_exception
from tracegen.encoder import EncoderConfig
from tracegen.script import ExternalLabels, ScriptSource, Session


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "script",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-s", "--symbols",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Load assembly labels from a symbol file (can be repeated)",
)
@click.option(
    "-L", "--label",
    multiple=True,
    help="Define assembly label (format: NAME=VALUE)",
)
@click.option(
    "--buffer-size",
    type=click.IntRange(min=1),
    default=EncoderConfig.buffer_size,
    show_default=True,
    help="Encoder scratch buffer size in bytes",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="tracegen")
def main(
    script: Path,
    symbols: tuple[Path, ...],
    label: tuple[str, ...],
    buffer_size: int,
    verbose: bool,
) -> None:
    """
    Generate a trace stream and expected decoder output.

    SCRIPT is the test script to process. The trace stream is written to
    SCRIPT with a .pt extension, expected output to .exp files named by
    each .exp directive. The name of every .exp file written is printed.

    \b
    Examples:
        tracegen tip.ptt                 # Writes tip.pt and tip.exp
        tracegen tip.ptt -s tip.sym      # Resolve %labels from tip.sym
        tracegen -L l1=0x1000 tip.ptt    # Define an assembly label
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        external = ExternalLabels()
        for symbol_file in symbols:
            external.merge(ExternalLabels.from_symbol_file(symbol_file))
        external.merge(ExternalLabels.from_definitions(list(label)))

        if verbose:
            click.echo(f"Assembly labels: {len(external)}")
            click.echo(f"Processing {script}...")

        source = ScriptSource.from_file(script, external=external)
        session = Session(
            source,
            config=EncoderConfig(buffer_size=buffer_size),
            on_written=lambda path: click.echo(str(path)),
        )
        session.run()

        if verbose:
            click.echo(f"Wrote {session.bytes_written} bytes to {session.pt_path}")
            click.echo(f"Defined {len(session.namespace.local)} directive labels")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Generation")


if __name__ == "__main__":
    main()
