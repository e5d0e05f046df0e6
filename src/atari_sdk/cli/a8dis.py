"""
a8dis - 6502 Disassembler Command-Line Interface
================================================

Disassembles raw 6502 machine code into the native dialect.

Usage Examples
--------------
Disassemble a binary loaded at $2000:
    $ a8dis game.bin --address '$2000'

Limit number of instructions:
    $ a8dis game.bin --count 20

Without register annotations:
    $ a8dis game.bin --no-symbols
"""

from pathlib import Path
from typing import Optional

import click

from atari_sdk import __version__
from atari_sdk.backend.config import parse_address
from atari_sdk.cli.errors import handle_cli_exception
from atari_sdk.disassembler import ATARI_SYSTEM_SYMBOLS, Mos6502Disassembler


@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: stdout)",
)
@click.option(
    "-a", "--address",
    default="$2000",
    show_default=True,
    help="Load address of the first byte ($hex, 0xhex or decimal)",
)
@click.option(
    "-c", "--count",
    type=int,
    default=None,
    help="Maximum number of instructions to disassemble (default: all)",
)
@click.option(
    "--no-bytes",
    is_flag=True,
    help="Omit addresses and raw bytes (output reassembles)",
)
@click.option(
    "--symbols/--no-symbols",
    default=True,
    help="Annotate Atari register addresses (default: enabled)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="a8dis")
def main(
    input_file: Path,
    output: Optional[Path],
    address: str,
    count: Optional[int],
    no_bytes: bool,
    symbols: bool,
    verbose: bool,
) -> None:
    """
    Disassemble 6502 machine code.

    INPUT_FILE is the raw binary to disassemble.
    """
    try:
        base_address = parse_address(address)
        if not 0 <= base_address <= 0xFFFF:
            raise click.BadParameter(f"address must be $0000-$FFFF, got {address}")

        data = input_file.read_bytes()
        if not data:
            raise click.BadParameter(f"{input_file} is empty")

        disasm = Mos6502Disassembler(ATARI_SYSTEM_SYMBOLS if symbols else None)
        instructions = disasm.disassemble(data, start_address=base_address, count=count)

        lines = [
            f"; Disassembly of {input_file.name}",
            f"; Size: {len(data)} bytes",
            f"\tORG ${base_address:04X}",
        ]
        for instr in instructions:
            if no_bytes:
                line = f"\t{instr.text}"
                if instr.comment:
                    line += f"  ; {instr.comment}"
                lines.append(line)
            else:
                lines.append(str(instr))
        text = "\n".join(lines) + "\n"

        if output:
            output.write_text(text, encoding="utf-8")
        else:
            click.echo(text, nl=False)

        if verbose:
            click.echo(f"Instructions disassembled: {len(instructions)}", err=True)

    except Exception as e:
        handle_cli_exception(e, verbose)


if __name__ == "__main__":
    main()
