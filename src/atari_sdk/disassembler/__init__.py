"""
Atari SDK Disassembler Module
=============================

Disassembles NMOS 6502 machine code into the native assembly dialect,
for inspecting backend output and for round-trip tests.

Usage:
    from atari_sdk.disassembler import Mos6502Disassembler

    disasm = Mos6502Disassembler()
    instructions = disasm.disassemble(code, start_address=0x2000)
"""

from .mos6502 import (
    Mos6502Disassembler,
    DisassembledInstruction,
    ATARI_SYSTEM_SYMBOLS,
    create_atari_disassembler,
)

__all__ = [
    "Mos6502Disassembler",
    "DisassembledInstruction",
    "ATARI_SYSTEM_SYMBOLS",
    "create_atari_disassembler",
]
