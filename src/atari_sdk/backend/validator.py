"""
Crash-Safety Validator
======================

Static checks over the final instruction stream for code that can hang,
crash or misbehave on real Atari hardware.

Checks
------
Opcodes:
    - (mnemonic, mode) pairs missing from the opcode table (always fatal)
    - undocumented opcodes, unstable opcodes (XAA, AHX, ...), JAM, BRK

Memory map:
    - writes into ROM, cartridge control, unmapped space or the stack page
    - read-modify-write on I/O registers (the 6502 writes the old value back
      before the new one, which hardware registers see as two writes)

Stack:
    - per subroutine: pull with nothing pushed, return with bytes still
      pushed, different depths where paths merge, depth past the page

Addressing:
    - zero-page indexed access that can wrap past $FF
    - indexed reads that cross a page when the index bound is known, or that
      may cross on volatile locations (the extra cycle reads a wrong address)
    - absolute indexed access that can wrap past $FFFF
    - JMP ($xxFF), which fetches the high byte from $xx00
    - zero-page pointers at $FF, whose high byte comes from $00

Flow:
    - execution running past the last instruction

Severity
--------
Strict mode (`nocrash`) reports hardware-fault risks as FATAL; the
default permissive mode reports them as WARNING and emission proceeds.
"""

import logging
from typing import Optional

from atari_sdk.backend.config import BackendConfig
from atari_sdk.backend.layout import compute_layout
from atari_sdk.backend.stream import Instruction, InstructionStream, Label
from atari_sdk.cpu.mos6502 import AddressingMode, MEMORY_READERS, MEMORY_WRITERS, STACK_PULLS, STACK_PUSHES
from atari_sdk.errors import (
    Diagnostic,
    DiagnosticCode,
    HardwareFaultRiskError,
    IllegalAddressingModeError,
    Severity,
)
from atari_sdk.sdk.hardware import RegionKind

logger = logging.getLogger(__name__)

READ_MODIFY_WRITE = frozenset({
    "INC", "DEC", "ASL", "LSR", "ROL", "ROR",
    "SLO", "RLA", "SRE", "RRA", "DCP", "ISC",
})

STACK_LIMIT = 256

_ABSOLUTE_INDEXED = (AddressingMode.ABSOLUTE_X, AddressingMode.ABSOLUTE_Y)
_ZERO_PAGE_INDEXED = (AddressingMode.ZERO_PAGE_X, AddressingMode.ZERO_PAGE_Y)
_POINTER_MODES = (AddressingMode.INDEXED_INDIRECT, AddressingMode.INDIRECT_INDEXED)


class CrashSafetyValidator:
    """
    Runs every crash-safety check over a stream.

    Usage:
        diagnostics = CrashSafetyValidator(config).validate(stream)
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()
        self.profile = self.config.hardware
        self.severity = Severity.FATAL if self.config.strict else Severity.WARNING
        self._diagnostics: list[Diagnostic] = []

    def validate(self, stream: InstructionStream) -> list[Diagnostic]:
        self._diagnostics = []
        labels = compute_layout(stream, self.config.origin).labels

        for position, item in enumerate(stream):
            if isinstance(item, Instruction):
                resolved = item.with_operand(item.operand.resolved(labels))
                self._check_opcode(position, item)
                self._check_memory(position, resolved)
                self._check_addressing(position, resolved)

        self._check_stack(stream)
        self._check_fall_off(stream)

        fatal = sum(1 for d in self._diagnostics if d.is_fatal)
        logger.info(
            "validator: %d finding(s), %d fatal (%s mode)",
            len(self._diagnostics), fatal, "strict" if self.config.strict else "permissive",
        )
        return self._diagnostics

    def check(self, stream: InstructionStream) -> list[Diagnostic]:
        """
        Validate and raise on the first fatal finding.

        Returns:
            The warnings, when nothing was fatal

        Raises:
            HardwareFaultRiskError: On a fatal crash-safety finding
            IllegalAddressingModeError: On an instruction with no encoding
        """
        diagnostics = self.validate(stream)
        for diagnostic in diagnostics:
            if not diagnostic.is_fatal:
                continue
            hint = f"in {diagnostic.location}" if diagnostic.location else None
            if diagnostic.code is DiagnosticCode.ILLEGAL_ADDRESSING_MODE:
                raise IllegalAddressingModeError(diagnostic.message, diagnostic.source, hint)
            raise HardwareFaultRiskError(diagnostic.message, diagnostic.source, hint)
        return diagnostics

    def _report(self, position: int, item, message: str,
                severity: Optional[Severity] = None,
                code: DiagnosticCode = DiagnosticCode.HARDWARE_FAULT_RISK) -> None:
        origin = item.origin
        where = f"{origin}: {item}" if origin else str(item)
        diagnostic = Diagnostic(
            severity or self.severity,
            where,
            message,
            code,
            origin.location if origin else None,
            position,
        )
        logger.debug("%s", diagnostic)
        self._diagnostics.append(diagnostic)

    # -------------------------------------------------------------------------
    # Opcodes
    # -------------------------------------------------------------------------

    def _check_opcode(self, position: int, item: Instruction) -> None:
        info = item.info
        if info is None:
            self._report(
                position, item,
                f"{item.mnemonic} has no {item.mode} form",
                Severity.FATAL, DiagnosticCode.ILLEGAL_ADDRESSING_MODE,
            )
            return
        if item.mnemonic == "JAM":
            self._report(position, item, f"JAM (${info.opcode:02X}) halts the CPU until reset")
        elif info.unstable:
            self._report(position, item, f"unstable undocumented opcode ${info.opcode:02X} ({item.mnemonic})")
        elif not info.documented:
            self._report(position, item, f"undocumented opcode ${info.opcode:02X} ({item.mnemonic})")
        elif item.mnemonic == "BRK":
            self._report(position, item, "BRK jumps through the IRQ vector")

    # -------------------------------------------------------------------------
    # Memory map
    # -------------------------------------------------------------------------

    def _written_range(self, item: Instruction) -> Optional[range]:
        """Addresses the instruction may write, when they can be bounded."""
        address = item.operand.address
        if address is None or item.mode in _POINTER_MODES:
            return None
        if item.mode in (AddressingMode.ZERO_PAGE, AddressingMode.ABSOLUTE):
            return range(address, address + 1)
        if item.index_limit is not None:
            end = address + item.index_limit
            if item.mode in _ZERO_PAGE_INDEXED:
                return range(address, min(end, 0x100))
            return range(address, min(end, 0x10000))
        return range(address, address + 1)

    def _check_memory(self, position: int, item: Instruction) -> None:
        if item.mnemonic not in MEMORY_WRITERS or not item.operand.is_memory:
            return
        written = self._written_range(item)
        if written is None:
            return

        for address in written:
            if self.profile.is_reserved_for_write(address):
                region = self.profile.region_at(address)
                name = region.name if region else "unmapped space"
                self._report(position, item, f"write to ${address:04X} in {name}")
                break

        address = item.operand.address
        if item.mnemonic in READ_MODIFY_WRITE and self.profile.kind_at(address) is RegionKind.IO:
            register = self.profile.register_name(address) or f"${address:04X}"
            self._report(
                position, item,
                f"read-modify-write on I/O register {register} writes it twice",
            )

    # -------------------------------------------------------------------------
    # Addressing hazards
    # -------------------------------------------------------------------------

    def _check_addressing(self, position: int, item: Instruction) -> None:
        mode = item.mode
        operand = item.operand
        limit = item.index_limit

        if mode in _ZERO_PAGE_INDEXED:
            if limit is None or operand.value + limit - 1 > 0xFF:
                self._report(position, item, "zero-page indexed access can wrap past $FF")

        elif mode in _ABSOLUTE_INDEXED:
            base = operand.value
            if (limit is not None and base + limit - 1 > 0xFFFF) or (limit is None and base > 0xFF00):
                self._report(position, item, "indexed access can wrap past $FFFF")
            elif item.mnemonic in MEMORY_READERS and item.mnemonic not in MEMORY_WRITERS:
                crosses = limit is not None and (base & 0xFF) + limit - 1 > 0xFF
                if crosses or (limit is None and item.volatile):
                    self._report(position, item, "indexed read crosses a page boundary; timing and dummy read vary")

        elif mode is AddressingMode.INDIRECT:
            address = operand.value
            if address & 0xFF == 0xFF:
                self._report(position, item, f"JMP (${address:04X}) reads its high byte from ${address & 0xFF00:04X}")

        elif mode in _POINTER_MODES:
            if operand.value == 0xFF:
                self._report(position, item, "zero-page pointer at $FF takes its high byte from $00")

    # -------------------------------------------------------------------------
    # Stack balance
    # -------------------------------------------------------------------------

    def _check_stack(self, stream: InstructionStream) -> None:
        items = list(stream)
        labels = {item.name: index for index, item in enumerate(items) if isinstance(item, Label)}

        starts = []
        if stream.entry in labels:
            starts.append(labels[stream.entry])
        elif items:
            starts.append(0)
        for item in items:
            if isinstance(item, Instruction) and item.mnemonic == "JSR" \
                    and item.target in labels and labels[item.target] not in starts:
                starts.append(labels[item.target])

        for start in starts:
            self._walk_stack(items, labels, start)

    def _walk_stack(self, items: list, labels: dict[str, int], start: int) -> None:
        depth_at: dict[int, int] = {}
        reported: set[int] = set()
        work = [(start, 0)]

        def report_once(position: int, message: str) -> None:
            if position not in reported:
                reported.add(position)
                self._report(position, items[position], message)

        while work:
            position, depth = work.pop()
            while position < len(items):
                if position in depth_at:
                    if depth_at[position] != depth:
                        report_once(position, f"stack depth differs where paths merge ({depth_at[position]} vs {depth})")
                    break
                depth_at[position] = depth
                item = items[position]
                if isinstance(item, Label):
                    position += 1
                    continue

                mnemonic = item.mnemonic
                if mnemonic in STACK_PUSHES:
                    depth += 1
                    if depth > STACK_LIMIT:
                        report_once(position, "stack overflow: more than 256 bytes pushed")
                        break
                elif mnemonic in STACK_PULLS:
                    if depth == 0:
                        report_once(position, f"{mnemonic} pulls from an empty stack frame")
                    else:
                        depth -= 1
                elif mnemonic in ("RTS", "RTI"):
                    if depth:
                        report_once(position, f"{mnemonic} with {depth} byte(s) still pushed")
                    break
                elif mnemonic in ("TXS", "JAM", "BRK"):
                    break
                elif item.is_branch:
                    if item.target in labels:
                        work.append((labels[item.target], depth))
                elif mnemonic == "JMP":
                    if item.is_jump and item.target in labels:
                        position = labels[item.target]
                        continue
                    break
                position += 1

    # -------------------------------------------------------------------------
    # Flow
    # -------------------------------------------------------------------------

    def _check_fall_off(self, stream: InstructionStream) -> None:
        items = list(stream)
        if not items:
            return
        last = items[-1]
        if isinstance(last, Label) or not last.ends_flow:
            self._report(len(items) - 1, last, "execution can run past the end of the program")
