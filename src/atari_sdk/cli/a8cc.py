"""
a8cc - 6502 Backend Compiler Command-Line Interface
===================================================

This module implements the command-line interface for the backend. It
reads a program in the text IR (`.a8ir`) or an AT&T x86 listing and
writes 6502 assembly for the Atari 8-bit.

Usage Examples
--------------
Basic compilation to stdout:
    $ a8cc rainbow.a8ir

With output file:
    $ a8cc rainbow.a8ir -o rainbow.asm

Strict crash-safety checking and size optimization:
    $ a8cc rainbow.a8ir --nocrash -O size

Debug listing:
    $ a8cc rainbow.a8ir --asm-style att-like-debug

From an AT&T listing:
    $ a8cc prog.s --input-format att
"""

import logging
from pathlib import Path
from typing import Optional

import click

from atari_sdk import __version__
from atari_sdk.backend import Backend, BackendConfig
from atari_sdk.backend.config import DEFAULT_TARGET, parse_address
from atari_sdk.cli.errors import handle_cli_exception
from atari_sdk.ir import import_att_file, read_file
from atari_sdk.sdk.hardware import PROFILES, get_profile

logger = logging.getLogger(__name__)

ATT_SUFFIXES = (".s", ".S", ".att")


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def detect_format(path: Path) -> str:
    """Guess the input format from the file suffix."""
    return "att" if path.suffix in ATT_SUFFIXES else "ir"


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output assembly file (default: stdout)",
)
@click.option(
    "--input-format",
    type=click.Choice(["ir", "att"]),
    default=None,
    help="Input format (default: att for .s files, ir otherwise)",
)
@click.option(
    "--asm-style",
    type=click.Choice(["native", "att-like-debug"]),
    default="native",
    show_default=True,
    help="Output dialect",
)
@click.option(
    "--target",
    default=DEFAULT_TARGET,
    show_default=True,
    help="Host triple shown in the debug dialect header",
)
@click.option(
    "--nocrash",
    is_flag=True,
    help="Strict mode: crash-safety findings are errors",
)
@click.option(
    "-O", "--optimize",
    "optimization",
    type=click.Choice(["none", "default", "size"]),
    default="default",
    show_default=True,
    help="Code-size optimization level",
)
@click.option(
    "--origin",
    default="$2000",
    show_default=True,
    help="Load address ($hex, 0xhex or decimal)",
)
@click.option(
    "--hardware",
    type=click.Choice(sorted(PROFILES)),
    default="atari-xl",
    show_default=True,
    help="Machine memory map",
)
@click.option(
    "--no-runtime",
    is_flag=True,
    help="Do not append runtime library routines",
)
@click.option(
    "--resolve-addresses",
    is_flag=True,
    help="Render label operands as addresses instead of names",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="a8cc")
def main(
    input_file: Path,
    output: Optional[Path],
    input_format: Optional[str],
    asm_style: str,
    target: str,
    nocrash: bool,
    optimization: str,
    origin: str,
    hardware: str,
    no_runtime: bool,
    resolve_addresses: bool,
    verbose: bool,
) -> None:
    """
    Compile an IR program to 6502 assembly for the Atari 8-bit.

    INPUT_FILE is a text IR file (.a8ir) or an AT&T x86 listing (.s).

    Warnings are printed to stderr and attached to the output as
    comments. Any error stops the build before output is written.

    \b
    Examples:
        a8cc demo.a8ir                   # Assembly to stdout
        a8cc demo.a8ir -o demo.asm       # Specify output file
        a8cc demo.a8ir --nocrash -O size # Strict, smallest code
    """
    setup_logging(verbose)

    try:
        config = BackendConfig(
            asm_style=asm_style,
            target=target,
            nocrash=nocrash,
            optimization=optimization,
            origin=parse_address(origin),
            hardware=get_profile(hardware),
            include_runtime=not no_runtime,
            symbolic_labels=not resolve_addresses,
        )

        input_format = input_format or detect_format(input_file)
        if input_format == "att":
            program = import_att_file(input_file)
        else:
            program = read_file(input_file)

        result = Backend(config).compile(program)

        for warning in result.warnings:
            click.echo(str(warning), err=True)

        if output:
            output.write_text(result.text, encoding="utf-8")
            click.echo(f"Compiled {input_file} -> {output} ({len(result.code)} bytes)", err=True)
        else:
            click.echo(result.text, nl=False)

        if verbose:
            click.echo(f"Optimizer: {result.stats}", err=True)
            if result.runtime_routines:
                click.echo(f"Runtime: {', '.join(result.runtime_routines)}", err=True)
            if result.relaxed_branches:
                click.echo(f"Relaxed branches: {result.relaxed_branches}", err=True)

    except Exception as e:
        handle_cli_exception(e, verbose, "Compilation")


if __name__ == "__main__":
    main()
