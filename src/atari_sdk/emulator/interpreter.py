"""
6502 Reference Interpreter
==========================

A small instruction-level NMOS 6502 interpreter over a flat 64K memory.
It exists to check backend output: tests run a program before and after
optimization and compare the memory it leaves behind.

Modelled:
- every documented opcode, with NMOS flag behaviour
- the JMP ($xxFF) page-wrap bug and zero-page pointer wrap
- the dummy write of read-modify-write instructions
- base cycles plus page-crossing and taken-branch penalties

Not modelled: decimal mode arithmetic, interrupts, undocumented opcodes
(they raise InterpreterError) and any chip behind the I/O addresses.
Writes to volatile locations are recorded in `io_writes` in order, so
tests can compare hardware effects too.

Example:
    >>> cpu = Mos6502(memory)
    >>> cpu.load(code, 0x2000)
    >>> result = cpu.run(0x2000)
    >>> result.reason
    'return'
"""

import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Callable, Optional

from atari_sdk.cpu.mos6502 import AddressingMode, JAM_OPCODES, OPCODE_TABLE
from atari_sdk.errors import InterpreterError
from atari_sdk.sdk.hardware import DEFAULT_PROFILE, HardwareProfile

logger = logging.getLogger(__name__)

M = AddressingMode


class Flags(IntFlag):
    """
    Processor status (P) bits.

        7  6  5  4  3  2  1  0
        N  V  -  B  D  I  Z  C
    """
    C = 0x01
    Z = 0x02
    I = 0x04
    D = 0x08
    B = 0x10
    U = 0x20
    V = 0x40
    N = 0x80


@dataclass
class CPUState:
    """Register file. SP is the offset into page 1."""
    a: int = 0
    x: int = 0
    y: int = 0
    sp: int = 0xFF
    pc: int = 0
    p: int = Flags.U | Flags.I


@dataclass
class RunResult:
    """
    Why and where a run stopped.

    reason is one of "return" (RTS from the start routine), "brk", "jam"
    or "limit" (max_steps reached).
    """
    reason: str
    pc: int
    steps: int
    cycles: int
    io_writes: list[tuple[int, int]] = field(default_factory=list)


def _build_decode_table() -> dict[int, tuple[str, AddressingMode, int, int]]:
    table = {}
    for (mnemonic, mode), info in OPCODE_TABLE.items():
        if info.documented:
            table[info.opcode] = (mnemonic, mode, info.cycles, info.page_penalty)
    return table


DECODE_TABLE = _build_decode_table()

_RMW = frozenset({"ASL", "LSR", "ROL", "ROR", "INC", "DEC"})
_BRANCH_FLAGS = {
    "BCC": (Flags.C, False), "BCS": (Flags.C, True),
    "BNE": (Flags.Z, False), "BEQ": (Flags.Z, True),
    "BPL": (Flags.N, False), "BMI": (Flags.N, True),
    "BVC": (Flags.V, False), "BVS": (Flags.V, True),
}


class Mos6502:
    """
    NMOS 6502 interpreter.

    Attributes:
        memory: 64K bytearray
        state: Register file
        profile: Memory map deciding which writes go to io_writes
        io_writes: (address, value) for every write to a volatile location
        on_memory_write: Optional hook(address, value)
    """

    def __init__(self, memory: Optional[bytearray] = None, profile: HardwareProfile = DEFAULT_PROFILE):
        self.memory = memory if memory is not None else bytearray(0x10000)
        self.state = CPUState()
        self.profile = profile
        self.io_writes: list[tuple[int, int]] = []
        self.on_memory_write: Optional[Callable[[int, int], None]] = None
        self.cycles = 0
        self._depth = 0

    # ========================================
    # Flags
    # ========================================

    def _flag(self, flag: Flags) -> bool:
        return bool(self.state.p & flag)

    def _set_flag(self, flag: Flags, value: bool) -> None:
        if value:
            self.state.p |= flag
        else:
            self.state.p &= ~flag

    def _nz(self, value: int) -> int:
        value &= 0xFF
        self._set_flag(Flags.Z, value == 0)
        self._set_flag(Flags.N, bool(value & 0x80))
        return value

    # ========================================
    # Memory Access
    # ========================================

    def load(self, code: bytes, address: int) -> None:
        self.memory[address:address + len(code)] = code

    def read(self, address: int) -> int:
        return self.memory[address & 0xFFFF]

    def write(self, address: int, value: int) -> None:
        address &= 0xFFFF
        value &= 0xFF
        if self.profile.is_volatile(address):
            self.io_writes.append((address, value))
        if self.on_memory_write:
            self.on_memory_write(address, value)
        self.memory[address] = value

    def _read_word(self, address: int) -> int:
        return self.read(address) | (self.read(address + 1) << 8)

    def _fetch(self) -> int:
        value = self.read(self.state.pc)
        self.state.pc = (self.state.pc + 1) & 0xFFFF
        return value

    def _fetch_word(self) -> int:
        low = self._fetch()
        return low | (self._fetch() << 8)

    def _push(self, value: int) -> None:
        self.write(0x100 + self.state.sp, value)
        self.state.sp = (self.state.sp - 1) & 0xFF

    def _pull(self) -> int:
        self.state.sp = (self.state.sp + 1) & 0xFF
        return self.read(0x100 + self.state.sp)

    # ========================================
    # Addressing
    # ========================================

    def _effective_address(self, mode: AddressingMode) -> tuple[Optional[int], bool]:
        """Return (address, page_crossed) and advance PC past the operand."""
        s = self.state
        if mode in (M.IMPLIED, M.ACCUMULATOR):
            return None, False
        if mode is M.IMMEDIATE:
            address = s.pc
            s.pc = (s.pc + 1) & 0xFFFF
            return address, False
        if mode is M.ZERO_PAGE:
            return self._fetch(), False
        if mode is M.ZERO_PAGE_X:
            return (self._fetch() + s.x) & 0xFF, False
        if mode is M.ZERO_PAGE_Y:
            return (self._fetch() + s.y) & 0xFF, False
        if mode is M.ABSOLUTE:
            return self._fetch_word(), False
        if mode in (M.ABSOLUTE_X, M.ABSOLUTE_Y):
            base = self._fetch_word()
            address = (base + (s.x if mode is M.ABSOLUTE_X else s.y)) & 0xFFFF
            return address, (base & 0xFF00) != (address & 0xFF00)
        if mode is M.INDIRECT:
            pointer = self._fetch_word()
            # NMOS bug: the high byte never carries into the next page
            high = (pointer & 0xFF00) | ((pointer + 1) & 0xFF)
            return self.read(pointer) | (self.read(high) << 8), False
        if mode is M.INDEXED_INDIRECT:
            zp = (self._fetch() + s.x) & 0xFF
            return self.read(zp) | (self.read((zp + 1) & 0xFF) << 8), False
        if mode is M.INDIRECT_INDEXED:
            zp = self._fetch()
            base = self.read(zp) | (self.read((zp + 1) & 0xFF) << 8)
            address = (base + s.y) & 0xFFFF
            return address, (base & 0xFF00) != (address & 0xFF00)
        if mode is M.RELATIVE:
            disp = self._fetch()
            if disp >= 0x80:
                disp -= 256
            return (s.pc + disp) & 0xFFFF, False
        raise InterpreterError(f"unsupported addressing mode {mode}", s.pc)

    # ========================================
    # ALU
    # ========================================

    def _adc(self, value: int) -> None:
        a = self.state.a
        total = a + value + (1 if self._flag(Flags.C) else 0)
        self._set_flag(Flags.C, total > 0xFF)
        self._set_flag(Flags.V, bool(~(a ^ value) & (a ^ total) & 0x80))
        self.state.a = self._nz(total)

    def _compare(self, register: int, value: int) -> None:
        self._set_flag(Flags.C, register >= value)
        self._nz(register - value)

    def _shift(self, mnemonic: str, value: int) -> int:
        carry_in = 1 if self._flag(Flags.C) else 0
        if mnemonic == "ASL":
            self._set_flag(Flags.C, bool(value & 0x80))
            result = value << 1
        elif mnemonic == "LSR":
            self._set_flag(Flags.C, bool(value & 0x01))
            result = value >> 1
        elif mnemonic == "ROL":
            self._set_flag(Flags.C, bool(value & 0x80))
            result = (value << 1) | carry_in
        else:
            self._set_flag(Flags.C, bool(value & 0x01))
            result = (value >> 1) | (carry_in << 7)
        return self._nz(result)

    # ========================================
    # Execution
    # ========================================

    def step(self) -> Optional[str]:
        """
        Execute one instruction.

        Returns:
            A stop reason ("return", "brk", "jam") or None to continue

        Raises:
            InterpreterError: On an opcode outside the documented set
        """
        s = self.state
        pc = s.pc
        opcode = self._fetch()
        if opcode not in DECODE_TABLE:
            if opcode in JAM_OPCODES:
                s.pc = pc
                return "jam"
            raise InterpreterError(f"undocumented opcode ${opcode:02X}", pc)

        mnemonic, mode, cycles, page_penalty = DECODE_TABLE[opcode]
        address, crossed = self._effective_address(mode)
        if crossed and page_penalty:
            cycles += 1

        if mnemonic in ("LDA", "LDX", "LDY"):
            value = self._nz(self.read(address))
            setattr(s, mnemonic[2].lower(), value)
        elif mnemonic in ("STA", "STX", "STY"):
            self.write(address, getattr(s, mnemonic[2].lower()))
        elif mnemonic in ("TAX", "TAY", "TXA", "TYA"):
            source, target = mnemonic[1].lower(), mnemonic[2].lower()
            setattr(s, target, self._nz(getattr(s, source)))
        elif mnemonic == "TSX":
            s.x = self._nz(s.sp)
        elif mnemonic == "TXS":
            s.sp = s.x
        elif mnemonic == "PHA":
            self._push(s.a)
        elif mnemonic == "PHP":
            self._push(s.p | Flags.B | Flags.U)
        elif mnemonic == "PLA":
            s.a = self._nz(self._pull())
        elif mnemonic == "PLP":
            s.p = (self._pull() & ~Flags.B) | Flags.U
        elif mnemonic == "ADC":
            self._adc(self.read(address))
        elif mnemonic == "SBC":
            self._adc(self.read(address) ^ 0xFF)
        elif mnemonic == "AND":
            s.a = self._nz(s.a & self.read(address))
        elif mnemonic == "ORA":
            s.a = self._nz(s.a | self.read(address))
        elif mnemonic == "EOR":
            s.a = self._nz(s.a ^ self.read(address))
        elif mnemonic == "CMP":
            self._compare(s.a, self.read(address))
        elif mnemonic == "CPX":
            self._compare(s.x, self.read(address))
        elif mnemonic == "CPY":
            self._compare(s.y, self.read(address))
        elif mnemonic == "BIT":
            value = self.read(address)
            self._set_flag(Flags.Z, (s.a & value) == 0)
            self._set_flag(Flags.N, bool(value & 0x80))
            self._set_flag(Flags.V, bool(value & 0x40))
        elif mnemonic in _RMW and mode is not M.ACCUMULATOR:
            old = self.read(address)
            self.write(address, old)
            if mnemonic == "INC":
                new = self._nz(old + 1)
            elif mnemonic == "DEC":
                new = self._nz(old - 1)
            else:
                new = self._shift(mnemonic, old)
            self.write(address, new)
        elif mnemonic in ("ASL", "LSR", "ROL", "ROR"):
            s.a = self._shift(mnemonic, s.a)
        elif mnemonic in ("INX", "DEX"):
            s.x = self._nz(s.x + (1 if mnemonic == "INX" else -1))
        elif mnemonic in ("INY", "DEY"):
            s.y = self._nz(s.y + (1 if mnemonic == "INY" else -1))
        elif mnemonic in _BRANCH_FLAGS:
            flag, wanted = _BRANCH_FLAGS[mnemonic]
            if self._flag(flag) == wanted:
                cycles += 1
                if (s.pc & 0xFF00) != (address & 0xFF00):
                    cycles += 1
                s.pc = address
        elif mnemonic == "JMP":
            s.pc = address
        elif mnemonic == "JSR":
            return_address = (s.pc - 1) & 0xFFFF
            self._push(return_address >> 8)
            self._push(return_address & 0xFF)
            s.pc = address
            self._depth += 1
        elif mnemonic == "RTS":
            if self._depth == 0:
                self.cycles += cycles
                return "return"
            low = self._pull()
            s.pc = (((self._pull() << 8) | low) + 1) & 0xFFFF
            self._depth -= 1
        elif mnemonic == "RTI":
            s.p = (self._pull() & ~Flags.B) | Flags.U
            low = self._pull()
            s.pc = (self._pull() << 8) | low
        elif mnemonic == "BRK":
            s.pc = pc
            return "brk"
        elif mnemonic in ("CLC", "SEC"):
            self._set_flag(Flags.C, mnemonic == "SEC")
        elif mnemonic in ("CLI", "SEI"):
            self._set_flag(Flags.I, mnemonic == "SEI")
        elif mnemonic in ("CLD", "SED"):
            self._set_flag(Flags.D, mnemonic == "SED")
        elif mnemonic == "CLV":
            self._set_flag(Flags.V, False)
        elif mnemonic != "NOP":
            raise InterpreterError(f"{mnemonic} not modelled", pc)

        self.cycles += cycles
        return None

    def snapshot(self, include_stack: bool = False) -> bytes:
        """Copy of memory; the stack page is zeroed unless include_stack."""
        data = bytearray(self.memory)
        if not include_stack:
            data[0x100:0x200] = bytes(0x100)
        return bytes(data)

    def run(self, start: int, max_steps: int = 100_000) -> RunResult:
        """
        Run from start until the start routine returns, BRK, JAM or max_steps.

        An RTS executed at call depth zero ends the run without touching the
        stack, so the code under test needs no caller.
        """
        self.state.pc = start & 0xFFFF
        self._depth = 0
        steps = 0
        reason = "limit"
        while steps < max_steps:
            steps += 1
            stop = self.step()
            if stop is not None:
                reason = stop
                break
        logger.debug("run from $%04X stopped (%s) after %d steps", start, reason, steps)
        return RunResult(reason, self.state.pc, steps, self.cycles, list(self.io_writes))


def run_code(
    code: bytes,
    origin: int,
    entry: Optional[int] = None,
    memory: Optional[bytearray] = None,
    max_steps: int = 100_000,
) -> tuple[Mos6502, RunResult]:
    """Load code at origin into a fresh interpreter and run it from entry."""
    cpu = Mos6502(bytearray(memory) if memory is not None else None)
    cpu.load(code, origin)
    result = cpu.run(origin if entry is None else entry, max_steps)
    return cpu, result
