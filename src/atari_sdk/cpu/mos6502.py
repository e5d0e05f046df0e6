"""
MOS 6502 Instruction Set Definition
===================================

This module defines the NMOS 6502 instruction set as used by the Atari
8-bit family (the SALLY 6502C variant): opcodes, addressing modes,
instruction sizes, base cycle counts and the flag effects needed by the
optimizer and the crash-safety validator.

Addressing Modes
----------------
1. **IMPLIED**: No operand (e.g., NOP, RTS, PHA) - 1 byte
2. **ACCUMULATOR**: Operates on A (e.g., ASL A) - 1 byte
3. **IMMEDIATE**: Literal byte (e.g., LDA #$41) - 2 bytes
4. **ZERO_PAGE**: Address $00-$FF (e.g., LDA $80) - 2 bytes
5. **ZERO_PAGE_X / ZERO_PAGE_Y**: zp + index, wraps inside page zero - 2 bytes
6. **ABSOLUTE**: Full 16-bit address, little-endian - 3 bytes
7. **ABSOLUTE_X / ABSOLUTE_Y**: abs + index, may cross a page - 3 bytes
8. **INDIRECT**: JMP ($1234) only - 3 bytes
9. **INDEXED_INDIRECT**: ($80,X) - 2 bytes
10. **INDIRECT_INDEXED**: ($80),Y - 2 bytes
11. **RELATIVE**: Branch displacement, -128..+127 - 2 bytes

Indirect modes only read their pointer from zero page; that single fact
drives the allocator priorities and the selector's fatal diagnostics.

Undocumented Opcodes
--------------------
The NMOS part decodes every byte. The stable "illegal" combinations (LAX,
SAX, DCP, ISC, SLO, RLA, SRE, RRA, ANC, ALR, ARR, SBX, LAS) are listed with
documented=False; the analog-unstable ones (XAA, AHX, SHX, SHY, TAS and
LXA) are additionally flagged unstable. JAM halts the CPU.

Reference
---------
- MOS MCS6500 Microcomputer Family Programming Manual
- "No More Secrets" NMOS 6510 unintended opcodes, rev. 0.95
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Addressing Mode Enumeration
# =============================================================================

class AddressingMode(Enum):
    """6502 addressing modes."""
    IMPLIED = auto()
    ACCUMULATOR = auto()
    IMMEDIATE = auto()
    ZERO_PAGE = auto()
    ZERO_PAGE_X = auto()
    ZERO_PAGE_Y = auto()
    ABSOLUTE = auto()
    ABSOLUTE_X = auto()
    ABSOLUTE_Y = auto()
    INDIRECT = auto()
    INDEXED_INDIRECT = auto()
    INDIRECT_INDEXED = auto()
    RELATIVE = auto()

    def __str__(self) -> str:
        """Return human-readable name for error messages."""
        return _MODE_NAMES[self]

    @property
    def operand_size(self) -> int:
        """Number of operand bytes following the opcode."""
        return _OPERAND_SIZES[self]

    @property
    def is_zero_page(self) -> bool:
        return self in ZERO_PAGE_MODES

    @property
    def is_indexed(self) -> bool:
        return self in INDEXED_MODES

    @property
    def is_memory(self) -> bool:
        """True for modes whose operand designates a memory location."""
        return self in MEMORY_MODES


_MODE_NAMES = {
    AddressingMode.IMPLIED: "implied",
    AddressingMode.ACCUMULATOR: "accumulator",
    AddressingMode.IMMEDIATE: "immediate",
    AddressingMode.ZERO_PAGE: "zero-page",
    AddressingMode.ZERO_PAGE_X: "zero-page,X",
    AddressingMode.ZERO_PAGE_Y: "zero-page,Y",
    AddressingMode.ABSOLUTE: "absolute",
    AddressingMode.ABSOLUTE_X: "absolute,X",
    AddressingMode.ABSOLUTE_Y: "absolute,Y",
    AddressingMode.INDIRECT: "indirect",
    AddressingMode.INDEXED_INDIRECT: "(zero-page,X)",
    AddressingMode.INDIRECT_INDEXED: "(zero-page),Y",
    AddressingMode.RELATIVE: "relative",
}

_OPERAND_SIZES = {
    AddressingMode.IMPLIED: 0,
    AddressingMode.ACCUMULATOR: 0,
    AddressingMode.IMMEDIATE: 1,
    AddressingMode.ZERO_PAGE: 1,
    AddressingMode.ZERO_PAGE_X: 1,
    AddressingMode.ZERO_PAGE_Y: 1,
    AddressingMode.ABSOLUTE: 2,
    AddressingMode.ABSOLUTE_X: 2,
    AddressingMode.ABSOLUTE_Y: 2,
    AddressingMode.INDIRECT: 2,
    AddressingMode.INDEXED_INDIRECT: 1,
    AddressingMode.INDIRECT_INDEXED: 1,
    AddressingMode.RELATIVE: 1,
}

ZERO_PAGE_MODES = frozenset({
    AddressingMode.ZERO_PAGE,
    AddressingMode.ZERO_PAGE_X,
    AddressingMode.ZERO_PAGE_Y,
    AddressingMode.INDEXED_INDIRECT,
    AddressingMode.INDIRECT_INDEXED,
})

INDEXED_MODES = frozenset({
    AddressingMode.ZERO_PAGE_X,
    AddressingMode.ZERO_PAGE_Y,
    AddressingMode.ABSOLUTE_X,
    AddressingMode.ABSOLUTE_Y,
    AddressingMode.INDEXED_INDIRECT,
    AddressingMode.INDIRECT_INDEXED,
})

MEMORY_MODES = frozenset({
    AddressingMode.ZERO_PAGE,
    AddressingMode.ZERO_PAGE_X,
    AddressingMode.ZERO_PAGE_Y,
    AddressingMode.ABSOLUTE,
    AddressingMode.ABSOLUTE_X,
    AddressingMode.ABSOLUTE_Y,
    AddressingMode.INDEXED_INDIRECT,
    AddressingMode.INDIRECT_INDEXED,
})

# Absolute mode -> zero-page mode with the same indexing behaviour
ZERO_PAGE_EQUIVALENT = {
    AddressingMode.ABSOLUTE: AddressingMode.ZERO_PAGE,
    AddressingMode.ABSOLUTE_X: AddressingMode.ZERO_PAGE_X,
    AddressingMode.ABSOLUTE_Y: AddressingMode.ZERO_PAGE_Y,
}


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    Information about a specific instruction encoding.

    Attributes:
        opcode: The opcode byte
        size: Total instruction size in bytes (opcode + operand)
        cycles: Base cycle count
        page_penalty: True if crossing a page adds one cycle (indexed reads)
        documented: False for unintended NMOS opcodes
        unstable: True for opcodes whose result depends on analog effects
    """
    opcode: int
    size: int
    cycles: int
    page_penalty: bool = False
    documented: bool = True
    unstable: bool = False

    def __repr__(self) -> str:
        return f"InstructionInfo(opcode=${self.opcode:02X}, size={self.size}, cycles={self.cycles})"


# =============================================================================
# Opcode Table
# =============================================================================
# Compact source form: mnemonic -> {mode: (opcode, cycles)}. A trailing "*"
# in the cycle column is written as a True third element and marks the
# +1 cycle page-crossing penalty of indexed reads.
# =============================================================================

_M = AddressingMode

_DOCUMENTED: dict[str, dict[AddressingMode, tuple]] = {
    "ADC": {_M.IMMEDIATE: (0x69, 2), _M.ZERO_PAGE: (0x65, 3), _M.ZERO_PAGE_X: (0x75, 4),
            _M.ABSOLUTE: (0x6D, 4), _M.ABSOLUTE_X: (0x7D, 4, True), _M.ABSOLUTE_Y: (0x79, 4, True),
            _M.INDEXED_INDIRECT: (0x61, 6), _M.INDIRECT_INDEXED: (0x71, 5, True)},
    "AND": {_M.IMMEDIATE: (0x29, 2), _M.ZERO_PAGE: (0x25, 3), _M.ZERO_PAGE_X: (0x35, 4),
            _M.ABSOLUTE: (0x2D, 4), _M.ABSOLUTE_X: (0x3D, 4, True), _M.ABSOLUTE_Y: (0x39, 4, True),
            _M.INDEXED_INDIRECT: (0x21, 6), _M.INDIRECT_INDEXED: (0x31, 5, True)},
    "ASL": {_M.ACCUMULATOR: (0x0A, 2), _M.ZERO_PAGE: (0x06, 5), _M.ZERO_PAGE_X: (0x16, 6),
            _M.ABSOLUTE: (0x0E, 6), _M.ABSOLUTE_X: (0x1E, 7)},
    "BCC": {_M.RELATIVE: (0x90, 2)},
    "BCS": {_M.RELATIVE: (0xB0, 2)},
    "BEQ": {_M.RELATIVE: (0xF0, 2)},
    "BIT": {_M.ZERO_PAGE: (0x24, 3), _M.ABSOLUTE: (0x2C, 4)},
    "BMI": {_M.RELATIVE: (0x30, 2)},
    "BNE": {_M.RELATIVE: (0xD0, 2)},
    "BPL": {_M.RELATIVE: (0x10, 2)},
    "BRK": {_M.IMPLIED: (0x00, 7)},
    "BVC": {_M.RELATIVE: (0x50, 2)},
    "BVS": {_M.RELATIVE: (0x70, 2)},
    "CLC": {_M.IMPLIED: (0x18, 2)},
    "CLD": {_M.IMPLIED: (0xD8, 2)},
    "CLI": {_M.IMPLIED: (0x58, 2)},
    "CLV": {_M.IMPLIED: (0xB8, 2)},
    "CMP": {_M.IMMEDIATE: (0xC9, 2), _M.ZERO_PAGE: (0xC5, 3), _M.ZERO_PAGE_X: (0xD5, 4),
            _M.ABSOLUTE: (0xCD, 4), _M.ABSOLUTE_X: (0xDD, 4, True), _M.ABSOLUTE_Y: (0xD9, 4, True),
            _M.INDEXED_INDIRECT: (0xC1, 6), _M.INDIRECT_INDEXED: (0xD1, 5, True)},
    "CPX": {_M.IMMEDIATE: (0xE0, 2), _M.ZERO_PAGE: (0xE4, 3), _M.ABSOLUTE: (0xEC, 4)},
    "CPY": {_M.IMMEDIATE: (0xC0, 2), _M.ZERO_PAGE: (0xC4, 3), _M.ABSOLUTE: (0xCC, 4)},
    "DEC": {_M.ZERO_PAGE: (0xC6, 5), _M.ZERO_PAGE_X: (0xD6, 6), _M.ABSOLUTE: (0xCE, 6),
            _M.ABSOLUTE_X: (0xDE, 7)},
    "DEX": {_M.IMPLIED: (0xCA, 2)},
    "DEY": {_M.IMPLIED: (0x88, 2)},
    "EOR": {_M.IMMEDIATE: (0x49, 2), _M.ZERO_PAGE: (0x45, 3), _M.ZERO_PAGE_X: (0x55, 4),
            _M.ABSOLUTE: (0x4D, 4), _M.ABSOLUTE_X: (0x5D, 4, True), _M.ABSOLUTE_Y: (0x59, 4, True),
            _M.INDEXED_INDIRECT: (0x41, 6), _M.INDIRECT_INDEXED: (0x51, 5, True)},
    "INC": {_M.ZERO_PAGE: (0xE6, 5), _M.ZERO_PAGE_X: (0xF6, 6), _M.ABSOLUTE: (0xEE, 6),
            _M.ABSOLUTE_X: (0xFE, 7)},
    "INX": {_M.IMPLIED: (0xE8, 2)},
    "INY": {_M.IMPLIED: (0xC8, 2)},
    "JMP": {_M.ABSOLUTE: (0x4C, 3), _M.INDIRECT: (0x6C, 5)},
    "JSR": {_M.ABSOLUTE: (0x20, 6)},
    "LDA": {_M.IMMEDIATE: (0xA9, 2), _M.ZERO_PAGE: (0xA5, 3), _M.ZERO_PAGE_X: (0xB5, 4),
            _M.ABSOLUTE: (0xAD, 4), _M.ABSOLUTE_X: (0xBD, 4, True), _M.ABSOLUTE_Y: (0xB9, 4, True),
            _M.INDEXED_INDIRECT: (0xA1, 6), _M.INDIRECT_INDEXED: (0xB1, 5, True)},
    "LDX": {_M.IMMEDIATE: (0xA2, 2), _M.ZERO_PAGE: (0xA6, 3), _M.ZERO_PAGE_Y: (0xB6, 4),
            _M.ABSOLUTE: (0xAE, 4), _M.ABSOLUTE_Y: (0xBE, 4, True)},
    "LDY": {_M.IMMEDIATE: (0xA0, 2), _M.ZERO_PAGE: (0xA4, 3), _M.ZERO_PAGE_X: (0xB4, 4),
            _M.ABSOLUTE: (0xAC, 4), _M.ABSOLUTE_X: (0xBC, 4, True)},
    "LSR": {_M.ACCUMULATOR: (0x4A, 2), _M.ZERO_PAGE: (0x46, 5), _M.ZERO_PAGE_X: (0x56, 6),
            _M.ABSOLUTE: (0x4E, 6), _M.ABSOLUTE_X: (0x5E, 7)},
    "NOP": {_M.IMPLIED: (0xEA, 2)},
    "ORA": {_M.IMMEDIATE: (0x09, 2), _M.ZERO_PAGE: (0x05, 3), _M.ZERO_PAGE_X: (0x15, 4),
            _M.ABSOLUTE: (0x0D, 4), _M.ABSOLUTE_X: (0x1D, 4, True), _M.ABSOLUTE_Y: (0x19, 4, True),
            _M.INDEXED_INDIRECT: (0x01, 6), _M.INDIRECT_INDEXED: (0x11, 5, True)},
    "PHA": {_M.IMPLIED: (0x48, 3)},
    "PHP": {_M.IMPLIED: (0x08, 3)},
    "PLA": {_M.IMPLIED: (0x68, 4)},
    "PLP": {_M.IMPLIED: (0x28, 4)},
    "ROL": {_M.ACCUMULATOR: (0x2A, 2), _M.ZERO_PAGE: (0x26, 5), _M.ZERO_PAGE_X: (0x36, 6),
            _M.ABSOLUTE: (0x2E, 6), _M.ABSOLUTE_X: (0x3E, 7)},
    "ROR": {_M.ACCUMULATOR: (0x6A, 2), _M.ZERO_PAGE: (0x66, 5), _M.ZERO_PAGE_X: (0x76, 6),
            _M.ABSOLUTE: (0x6E, 6), _M.ABSOLUTE_X: (0x7E, 7)},
    "RTI": {_M.IMPLIED: (0x40, 6)},
    "RTS": {_M.IMPLIED: (0x60, 6)},
    "SBC": {_M.IMMEDIATE: (0xE9, 2), _M.ZERO_PAGE: (0xE5, 3), _M.ZERO_PAGE_X: (0xF5, 4),
            _M.ABSOLUTE: (0xED, 4), _M.ABSOLUTE_X: (0xFD, 4, True), _M.ABSOLUTE_Y: (0xF9, 4, True),
            _M.INDEXED_INDIRECT: (0xE1, 6), _M.INDIRECT_INDEXED: (0xF1, 5, True)},
    "SEC": {_M.IMPLIED: (0x38, 2)},
    "SED": {_M.IMPLIED: (0xF8, 2)},
    "SEI": {_M.IMPLIED: (0x78, 2)},
    "STA": {_M.ZERO_PAGE: (0x85, 3), _M.ZERO_PAGE_X: (0x95, 4), _M.ABSOLUTE: (0x8D, 4),
            _M.ABSOLUTE_X: (0x9D, 5), _M.ABSOLUTE_Y: (0x99, 5),
            _M.INDEXED_INDIRECT: (0x81, 6), _M.INDIRECT_INDEXED: (0x91, 6)},
    "STX": {_M.ZERO_PAGE: (0x86, 3), _M.ZERO_PAGE_Y: (0x96, 4), _M.ABSOLUTE: (0x8E, 4)},
    "STY": {_M.ZERO_PAGE: (0x84, 3), _M.ZERO_PAGE_X: (0x94, 4), _M.ABSOLUTE: (0x8C, 4)},
    "TAX": {_M.IMPLIED: (0xAA, 2)},
    "TAY": {_M.IMPLIED: (0xA8, 2)},
    "TSX": {_M.IMPLIED: (0xBA, 2)},
    "TXA": {_M.IMPLIED: (0x8A, 2)},
    "TXS": {_M.IMPLIED: (0x9A, 2)},
    "TYA": {_M.IMPLIED: (0x98, 2)},
}

# Read-modify-write combinations share one mode/cycle layout
_RMW_LAYOUT = (
    (_M.ZERO_PAGE, 5), (_M.ZERO_PAGE_X, 6), (_M.ABSOLUTE, 6), (_M.ABSOLUTE_X, 7),
    (_M.ABSOLUTE_Y, 7), (_M.INDEXED_INDIRECT, 8), (_M.INDIRECT_INDEXED, 8),
)

_RMW_OPCODES = {
    "SLO": (0x07, 0x17, 0x0F, 0x1F, 0x1B, 0x03, 0x13),
    "RLA": (0x27, 0x37, 0x2F, 0x3F, 0x3B, 0x23, 0x33),
    "SRE": (0x47, 0x57, 0x4F, 0x5F, 0x5B, 0x43, 0x53),
    "RRA": (0x67, 0x77, 0x6F, 0x7F, 0x7B, 0x63, 0x73),
    "DCP": (0xC7, 0xD7, 0xCF, 0xDF, 0xDB, 0xC3, 0xD3),
    "ISC": (0xE7, 0xF7, 0xEF, 0xFF, 0xFB, 0xE3, 0xF3),
}

_UNDOCUMENTED: dict[str, dict[AddressingMode, tuple]] = {
    mnemonic: {mode: (opcode, cycles) for (mode, cycles), opcode in zip(_RMW_LAYOUT, opcodes)}
    for mnemonic, opcodes in _RMW_OPCODES.items()
}
_UNDOCUMENTED.update({
    "SAX": {_M.ZERO_PAGE: (0x87, 3), _M.ZERO_PAGE_Y: (0x97, 4), _M.ABSOLUTE: (0x8F, 4),
            _M.INDEXED_INDIRECT: (0x83, 6)},
    "LAX": {_M.ZERO_PAGE: (0xA7, 3), _M.ZERO_PAGE_Y: (0xB7, 4), _M.ABSOLUTE: (0xAF, 4),
            _M.ABSOLUTE_Y: (0xBF, 4, True), _M.INDEXED_INDIRECT: (0xA3, 6),
            _M.INDIRECT_INDEXED: (0xB3, 5, True)},
    "ANC": {_M.IMMEDIATE: (0x0B, 2)},
    "ALR": {_M.IMMEDIATE: (0x4B, 2)},
    "ARR": {_M.IMMEDIATE: (0x6B, 2)},
    "SBX": {_M.IMMEDIATE: (0xCB, 2)},
    "LAS": {_M.ABSOLUTE_Y: (0xBB, 4, True)},
    "JAM": {_M.IMPLIED: (0x02, 0)},
    "NOP": {_M.IMMEDIATE: (0x80, 2), _M.ZERO_PAGE: (0x04, 3), _M.ZERO_PAGE_X: (0x14, 4),
            _M.ABSOLUTE: (0x0C, 4), _M.ABSOLUTE_X: (0x1C, 4, True)},
})

_UNSTABLE: dict[str, dict[AddressingMode, tuple]] = {
    "XAA": {_M.IMMEDIATE: (0x8B, 2)},
    "LXA": {_M.IMMEDIATE: (0xAB, 2)},
    "AHX": {_M.ABSOLUTE_Y: (0x9F, 5), _M.INDIRECT_INDEXED: (0x93, 6)},
    "SHX": {_M.ABSOLUTE_Y: (0x9E, 5)},
    "SHY": {_M.ABSOLUTE_X: (0x9C, 5)},
    "TAS": {_M.ABSOLUTE_Y: (0x9B, 5)},
}

# Every opcode byte that locks up the NMOS core (KIL/JAM/HLT)
JAM_OPCODES = frozenset({0x02, 0x12, 0x22, 0x32, 0x42, 0x52, 0x62, 0x72, 0x92, 0xB2, 0xD2, 0xF2})


def _build_table() -> dict[tuple[str, AddressingMode], InstructionInfo]:
    table: dict[tuple[str, AddressingMode], InstructionInfo] = {}
    for source, documented, unstable in (
        (_DOCUMENTED, True, False),
        (_UNDOCUMENTED, False, False),
        (_UNSTABLE, False, True),
    ):
        for mnemonic, modes in source.items():
            for mode, entry in modes.items():
                opcode, cycles = entry[0], entry[1]
                penalty = len(entry) > 2 and entry[2]
                table[(mnemonic, mode)] = InstructionInfo(
                    opcode=opcode,
                    size=1 + mode.operand_size,
                    cycles=cycles,
                    page_penalty=penalty,
                    documented=documented,
                    unstable=unstable,
                )
    return table


OPCODE_TABLE: dict[tuple[str, AddressingMode], InstructionInfo] = _build_table()

MNEMONICS = frozenset(mnemonic for mnemonic, _ in OPCODE_TABLE)

DOCUMENTED_MNEMONICS = frozenset(_DOCUMENTED)


# =============================================================================
# Instruction Classes
# =============================================================================

BRANCH_INSTRUCTIONS = frozenset({"BCC", "BCS", "BEQ", "BMI", "BNE", "BPL", "BVC", "BVS"})

BRANCH_INVERSION = {
    "BCC": "BCS", "BCS": "BCC",
    "BEQ": "BNE", "BNE": "BEQ",
    "BMI": "BPL", "BPL": "BMI",
    "BVC": "BVS", "BVS": "BVC",
}

# Control never falls through these
UNCONDITIONAL_TRANSFERS = frozenset({"JMP", "RTS", "RTI", "BRK", "JAM"})

# Instructions that write their memory operand
MEMORY_WRITERS = frozenset({
    "STA", "STX", "STY", "INC", "DEC", "ASL", "LSR", "ROL", "ROR",
    "SAX", "SLO", "RLA", "SRE", "RRA", "DCP", "ISC", "AHX", "SHX", "SHY", "TAS",
})

# Instructions that read their memory operand
MEMORY_READERS = frozenset({
    "LDA", "LDX", "LDY", "ADC", "SBC", "AND", "ORA", "EOR", "CMP", "CPX", "CPY", "BIT",
    "INC", "DEC", "ASL", "LSR", "ROL", "ROR",
    "LAX", "LAS", "SLO", "RLA", "SRE", "RRA", "DCP", "ISC",
})

STACK_PUSHES = frozenset({"PHA", "PHP"})
STACK_PULLS = frozenset({"PLA", "PLP"})


# =============================================================================
# Flag Effects
# =============================================================================
# Only N, V, Z and C are tracked; the decimal and interrupt flags are not
# consulted by generated code.
# =============================================================================

ALL_FLAGS = frozenset("NVZC")

_NZ = frozenset("NZ")
_NZC = frozenset("NZC")
_NVZC = ALL_FLAGS

FLAGS_WRITTEN: dict[str, frozenset] = {
    **{m: _NZ for m in ("LDA", "LDX", "LDY", "TAX", "TAY", "TXA", "TYA", "TSX", "PLA",
                        "INX", "INY", "DEX", "DEY", "INC", "DEC", "AND", "ORA", "EOR",
                        "LAX", "LAS", "LXA", "XAA")},
    **{m: _NZC for m in ("CMP", "CPX", "CPY", "ASL", "LSR", "ROL", "ROR",
                         "DCP", "SLO", "RLA", "SRE", "ANC", "ALR", "SBX")},
    **{m: _NVZC for m in ("ADC", "SBC", "PLP", "RTI", "ISC", "RRA", "ARR")},
    "BIT": frozenset("NVZ"),
    "CLC": frozenset("C"),
    "SEC": frozenset("C"),
    "CLV": frozenset("V"),
}

FLAGS_READ: dict[str, frozenset] = {
    **{m: frozenset("C") for m in ("ADC", "SBC", "ROL", "ROR", "BCC", "BCS",
                                   "RLA", "RRA", "ISC", "ARR")},
    "BEQ": frozenset("Z"),
    "BNE": frozenset("Z"),
    "BMI": frozenset("N"),
    "BPL": frozenset("N"),
    "BVC": frozenset("V"),
    "BVS": frozenset("V"),
    "PHP": _NVZC,
}


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(mnemonic: str, mode: AddressingMode) -> Optional[InstructionInfo]:
    """Return the encoding of (mnemonic, mode), or None if it does not exist."""
    return OPCODE_TABLE.get((mnemonic.upper(), mode))


def get_valid_modes(mnemonic: str) -> list[AddressingMode]:
    """Return all addressing modes valid for a mnemonic, in enum order."""
    upper = mnemonic.upper()
    return [mode for mode in AddressingMode if (upper, mode) in OPCODE_TABLE]


def is_valid_instruction(mnemonic: str, mode: AddressingMode) -> bool:
    return (mnemonic.upper(), mode) in OPCODE_TABLE


def is_documented(mnemonic: str, mode: AddressingMode) -> bool:
    info = get_instruction_info(mnemonic, mode)
    return info is not None and info.documented


def is_branch_instruction(mnemonic: str) -> bool:
    return mnemonic.upper() in BRANCH_INSTRUCTIONS


def get_inverted_branch(mnemonic: str) -> str:
    """Return the branch with the opposite condition (BEQ -> BNE)."""
    return BRANCH_INVERSION[mnemonic.upper()]


def flags_written(mnemonic: str) -> frozenset:
    return FLAGS_WRITTEN.get(mnemonic.upper(), frozenset())


def flags_read(mnemonic: str) -> frozenset:
    return FLAGS_READ.get(mnemonic.upper(), frozenset())
