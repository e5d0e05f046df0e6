"""
Atari SDK Reference Interpreter
===============================

Instruction-level 6502 interpreter used to check that generated and
optimized code behaves the same.

Usage:
    from atari_sdk.emulator import run_code
    cpu, result = run_code(code, 0x2000)
"""

from atari_sdk.emulator.interpreter import (
    CPUState,
    DECODE_TABLE,
    Flags,
    Mos6502,
    RunResult,
    run_code,
)

__all__ = [
    "CPUState",
    "DECODE_TABLE",
    "Flags",
    "Mos6502",
    "RunResult",
    "run_code",
]
