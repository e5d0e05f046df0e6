"""
Atari SDK CPU Package
=====================

This package contains the MOS 6502 architecture definitions shared by the
backend (instruction selection, optimization, validation), the native
assembler, the disassembler and the reference interpreter.

Both the encoder and the decoder use the same OPCODE_TABLE, so an
instruction stream and its disassembly can never disagree about sizes or
opcode bytes.

Usage:
    from atari_sdk.cpu import AddressingMode, get_instruction_info
"""

from atari_sdk.cpu.mos6502 import (
    # Core types
    AddressingMode,
    InstructionInfo,
    # Master instruction database
    OPCODE_TABLE,
    MNEMONICS,
    DOCUMENTED_MNEMONICS,
    JAM_OPCODES,
    # Mode groups
    ZERO_PAGE_MODES,
    INDEXED_MODES,
    MEMORY_MODES,
    ZERO_PAGE_EQUIVALENT,
    # Instruction classes
    BRANCH_INSTRUCTIONS,
    BRANCH_INVERSION,
    UNCONDITIONAL_TRANSFERS,
    MEMORY_WRITERS,
    MEMORY_READERS,
    STACK_PUSHES,
    STACK_PULLS,
    # Flag effects
    ALL_FLAGS,
    FLAGS_READ,
    FLAGS_WRITTEN,
    # Lookup functions
    get_instruction_info,
    get_valid_modes,
    is_valid_instruction,
    is_documented,
    is_branch_instruction,
    get_inverted_branch,
    flags_read,
    flags_written,
)

__all__ = [
    "AddressingMode",
    "InstructionInfo",
    "OPCODE_TABLE",
    "MNEMONICS",
    "DOCUMENTED_MNEMONICS",
    "JAM_OPCODES",
    "ZERO_PAGE_MODES",
    "INDEXED_MODES",
    "MEMORY_MODES",
    "ZERO_PAGE_EQUIVALENT",
    "BRANCH_INSTRUCTIONS",
    "BRANCH_INVERSION",
    "UNCONDITIONAL_TRANSFERS",
    "MEMORY_WRITERS",
    "MEMORY_READERS",
    "STACK_PUSHES",
    "STACK_PULLS",
    "ALL_FLAGS",
    "FLAGS_READ",
    "FLAGS_WRITTEN",
    "get_instruction_info",
    "get_valid_modes",
    "is_valid_instruction",
    "is_documented",
    "is_branch_instruction",
    "get_inverted_branch",
    "flags_read",
    "flags_written",
]
