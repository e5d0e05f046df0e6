#!/usr/bin/env python3
"""
Atari 8-bit Backend Demo
========================

This script demonstrates how to use the Atari SDK to:
1. Read a text IR program
2. Compile it at each optimization level
3. Reassemble and disassemble the output
4. Run the code in the reference interpreter

Usage:
    python examples/backend_demo.py
"""

from pathlib import Path

from atari_sdk import Backend, BackendConfig, assemble, read_file
from atari_sdk.disassembler import create_atari_disassembler
from atari_sdk.emulator import run_code
from atari_sdk.ir import import_att_file


def main():
    here = Path(__file__).parent

    # ==========================================================================
    # 1. Read a program
    # ==========================================================================
    program = read_file(here / "rainbow.a8ir")
    print(f"Program '{program.name}': {len(program.symbols)} symbols, "
          f"{len(program.operations)} operations")

    # ==========================================================================
    # 2. Compile at each level
    # ==========================================================================
    # Levels:
    #   none    - straight selector output
    #   default - one optimizer pass
    #   size    - iterate the optimizer to a fixpoint
    for level in ("none", "default", "size"):
        result = Backend(BackendConfig(optimization=level, nocrash=True)).compile(program)
        print(f"  -O {level:<8} {len(result.code):4d} bytes  ({result.stats.total_optimizations} rewrites)")

    result = Backend(BackendConfig(optimization="size")).compile(program)
    print("\nNative listing:")
    print(result.text)

    # ==========================================================================
    # 3. Round trip through the assembler and disassembler
    # ==========================================================================
    again = assemble(result.text, "rainbow.asm")
    print(f"Reassembled to identical bytes: {again.code == result.code}")

    disasm = create_atari_disassembler()
    print("\nFirst instructions:")
    for instr in disasm.disassemble(result.code, start_address=0x2000, count=8):
        print(f"  {instr}")

    # ==========================================================================
    # 4. Run in the reference interpreter
    # ==========================================================================
    # The rainbow loop waits on the OS clock, so the AT&T example is used
    # here: it writes eight stripes and returns.
    stripes = import_att_file(here / "stripes.s")
    compiled = Backend().compile(stripes)
    cpu, run = run_code(compiled.code, 0x2000)
    print(f"\nstripes: stopped with '{run.reason}' after {run.steps} steps, {run.cycles} cycles")
    for address, value in run.io_writes[:6]:
        print(f"  ${address:04X} <- ${value:02X}")


if __name__ == "__main__":
    main()
