"""
6502 Disassembler
=================

Disassembles NMOS 6502 machine code into the native assembly dialect.
This is the inverse of the backend's encoder: every line it prints
reassembles to the same bytes.

Architecture:
    - 8-bit data bus, 16-bit address bus
    - Registers: A, X, Y (8-bit), S (stack pointer, page 1), PC
    - Little-endian operands (low byte first)

Opcodes outside the table (most of the undocumented NOP aliases, for
example) are shown as `.BYTE $xx`.

Usage:
    disasm = Mos6502Disassembler(symbol_table=ATARI_SYSTEM_SYMBOLS)
    for instr in disasm.disassemble(code, start_address=0x2000):
        print(instr)
"""

from dataclasses import dataclass
from typing import Optional

from atari_sdk.cpu.mos6502 import AddressingMode, OPCODE_TABLE
from atari_sdk.sdk.hardware import ATARI_REGISTERS


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class DisassembledInstruction:
    """
    A single disassembled 6502 instruction.

    Attributes:
        address: Memory address of the instruction
        opcode: The opcode byte
        mnemonic: The instruction mnemonic (e.g., "LDA", "JSR")
        mode: The addressing mode used
        operand_bytes: Raw operand bytes (may be empty)
        operand_str: Operand in native syntax
        size: Total instruction size in bytes
        raw_bytes: All bytes comprising this instruction
        documented: False for undocumented opcodes
        comment: Optional annotation (symbol names, branch displacement)
    """
    address: int
    opcode: int
    mnemonic: str
    mode: Optional[AddressingMode]
    operand_bytes: bytes
    operand_str: str
    size: int
    raw_bytes: bytes
    documented: bool = True
    comment: str = ""

    @property
    def target(self) -> Optional[int]:
        """Branch or jump destination, if the instruction has one."""
        if self.mode is AddressingMode.RELATIVE:
            disp = self.operand_bytes[0]
            if disp >= 0x80:
                disp -= 256
            return (self.address + self.size + disp) & 0xFFFF
        if self.mnemonic in ("JMP", "JSR") and self.mode is AddressingMode.ABSOLUTE:
            return self.operand_bytes[0] | (self.operand_bytes[1] << 8)
        return None

    @property
    def text(self) -> str:
        """Assembly text without address, bytes or comment."""
        return f"{self.mnemonic} {self.operand_str}" if self.operand_str else self.mnemonic

    def __str__(self) -> str:
        hex_bytes = " ".join(f"{b:02X}" for b in self.raw_bytes).ljust(8)
        if self.comment:
            return f"${self.address:04X}: {hex_bytes}  {self.text:<16} ; {self.comment}"
        return f"${self.address:04X}: {hex_bytes}  {self.text}"

    def to_dict(self) -> dict:
        return {
            "address": f"${self.address:04X}",
            "opcode": f"${self.opcode:02X}",
            "mnemonic": self.mnemonic,
            "mode": str(self.mode) if self.mode else None,
            "operand": self.operand_str,
            "size": self.size,
            "bytes": [f"${b:02X}" for b in self.raw_bytes],
            "documented": self.documented,
            "comment": self.comment,
        }


# =============================================================================
# 6502 Disassembler
# =============================================================================

class Mos6502Disassembler:
    """
    Table-driven 6502 disassembler.

    Attributes:
        _reverse_table: opcode -> (mnemonic, mode, size, documented)
        _symbol_table: Optional address -> name map for annotations
    """

    def __init__(self, symbol_table: Optional[dict[int, str]] = None):
        self._symbol_table = dict(symbol_table or {})
        self._reverse_table = self._build_reverse_table()

    @staticmethod
    def _build_reverse_table() -> dict[int, tuple[str, AddressingMode, int, bool]]:
        """Invert OPCODE_TABLE; documented encodings win over aliases."""
        reverse: dict[int, tuple[str, AddressingMode, int, bool]] = {}
        for (mnemonic, mode), info in OPCODE_TABLE.items():
            existing = reverse.get(info.opcode)
            if existing is not None and (existing[3] or not info.documented):
                continue
            reverse[info.opcode] = (mnemonic, mode, info.size, info.documented)
        return reverse

    def disassemble_one(self, data: bytes, address: int = 0, offset: int = 0) -> DisassembledInstruction:
        """
        Disassemble a single instruction.

        Raises:
            ValueError: If offset is past the end of data
        """
        if offset >= len(data):
            raise ValueError(f"Offset {offset} beyond data length {len(data)}")

        opcode = data[offset]
        if opcode not in self._reverse_table:
            return DisassembledInstruction(
                address=address,
                opcode=opcode,
                mnemonic=".BYTE",
                mode=None,
                operand_bytes=bytes(),
                operand_str=f"${opcode:02X}",
                size=1,
                raw_bytes=bytes([opcode]),
                documented=False,
                comment="unknown opcode",
            )

        mnemonic, mode, size, documented = self._reverse_table[opcode]
        if offset + size > len(data):
            partial = bytes(data[offset:])
            return DisassembledInstruction(
                address=address,
                opcode=opcode,
                mnemonic=mnemonic,
                mode=mode,
                operand_bytes=bytes(),
                operand_str="???",
                size=len(partial),
                raw_bytes=partial,
                documented=documented,
                comment="incomplete instruction",
            )

        raw_bytes = bytes(data[offset:offset + size])
        operand_str, comment = self._format_operand(mode, raw_bytes[1:], address, size)
        if not documented:
            comment = f"undocumented; {comment}" if comment else "undocumented"
        return DisassembledInstruction(
            address=address,
            opcode=opcode,
            mnemonic=mnemonic,
            mode=mode,
            operand_bytes=raw_bytes[1:],
            operand_str=operand_str,
            size=size,
            raw_bytes=raw_bytes,
            documented=documented,
            comment=comment,
        )

    def _format_operand(self, mode: AddressingMode, operand_bytes: bytes,
                        address: int, size: int) -> tuple[str, str]:
        if mode is AddressingMode.IMPLIED:
            return "", ""
        if mode is AddressingMode.ACCUMULATOR:
            return "@", ""
        if mode is AddressingMode.IMMEDIATE:
            value = operand_bytes[0]
            comment = f"'{chr(value)}'" if 0x20 <= value < 0x7F else ""
            return f"#${value:02X}", comment

        if mode is AddressingMode.RELATIVE:
            disp = operand_bytes[0]
            if disp >= 0x80:
                disp -= 256
            target = (address + size + disp) & 0xFFFF
            comment = self._symbol_table.get(target, f"{disp:+d}")
            return f"${target:04X}", comment

        if len(operand_bytes) == 1:
            value = operand_bytes[0]
            base = f"${value:02X}"
        else:
            value = operand_bytes[0] | (operand_bytes[1] << 8)
            base = f"a:${value:04X}" if value < 0x100 else f"${value:04X}"
        comment = self._symbol_table.get(value, "")

        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return f"{base},X", comment
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return f"{base},Y", comment
        if mode is AddressingMode.INDIRECT:
            return f"({base})", comment
        if mode is AddressingMode.INDEXED_INDIRECT:
            return f"({base},X)", comment
        if mode is AddressingMode.INDIRECT_INDEXED:
            return f"({base}),Y", comment
        return base, comment

    def disassemble(
        self,
        data: bytes,
        start_address: int = 0,
        count: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ) -> list[DisassembledInstruction]:
        """Disassemble up to count instructions or max_bytes bytes."""
        result = []
        offset = 0
        address = start_address
        while offset < len(data):
            if count is not None and len(result) >= count:
                break
            if max_bytes is not None and offset >= max_bytes:
                break
            instr = self.disassemble_one(data, address, offset)
            result.append(instr)
            offset += instr.size
            address += instr.size
        return result

    def disassemble_to_text(self, data: bytes, start_address: int = 0, count: Optional[int] = None) -> str:
        instructions = self.disassemble(data, start_address, count)
        return "\n".join(str(instr) for instr in instructions)

    def add_symbol(self, address: int, name: str) -> None:
        self._symbol_table[address] = name

    def add_symbols(self, symbols: dict[int, str]) -> None:
        self._symbol_table.update(symbols)


# =============================================================================
# Well-Known Atari Addresses
# =============================================================================

ATARI_SYSTEM_SYMBOLS = {address: name for name, address in ATARI_REGISTERS}


def create_atari_disassembler() -> Mos6502Disassembler:
    """Create a disassembler annotated with Atari register names."""
    return Mos6502Disassembler(symbol_table=ATARI_SYSTEM_SYMBOLS.copy())
