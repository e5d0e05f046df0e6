"""
Instruction Selector
====================

Lowers each IR operation to 6502 instructions.

For every operation the selector builds a list of InstructionCandidates,
each a fixed template instantiated with the operands' storage slots. Any
candidate containing an illegal (mnemonic, mode) pair is dropped, and the
survivor with the smallest key wins:

    (byte_cost, register_rank, cycle_cost)      register rank: A < X < Y

so code size comes first, the accumulator is preferred because it has the
widest set of addressing modes, and cycles break the remaining ties. The
result is deterministic for a given allocation.

Templates
---------
    move/load/store   LDA src / STA dst per byte (or LDX/STX, LDY/STY);
                      one LDA shared by identical constant bytes
    inc/dec           INC/DEC memory; word INC with a skip label
                      (INC d / BNE skip / INC d+1); word DEC
                      (LDA d / BNE skip / DEC d+1 / skip: DEC d)
    add/sub           CLC or SEC, then LDA/ADC|SBC/STA per byte so the
                      carry propagates; +1/-1 in place use the inc/dec paths
    and/or/xor        LDA/AND|ORA|EOR/STA per byte
    shl/shr           ASL/ROL or LSR/ROR chains in memory, or through A
    indirect          LDY #offset / LDA|STA (ptr),Y; the pointer must live in
                      zero page or the operation is rejected
    indexed           LDX i / LDA base,X (zp,X only when the index bound
                      cannot wrap past $FF), or LDY i / LDA base,Y
    branches          LDA/CMP with BEQ/BNE/BCC/BCS; zero tests with ORA
    push/pop          LDA/PHA, PLA/STA
    jump/call/return  JMP, JSR, RTS
    inline            one literal instruction, parsed in native syntax

Failures
--------
An operation with no legal encoding produces a FATAL IllegalAddressingMode
diagnostic naming the operation, and selection continues so every such
problem is reported in one run.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from atari_sdk.backend.allocator import Allocation
from atari_sdk.backend.config import BackendConfig
from atari_sdk.backend.runtime import RUNTIME_ROUTINES, runtime_stream
from atari_sdk.backend.stream import (
    ACCUMULATOR,
    IMPLIED,
    Instruction,
    InstructionStream,
    Label,
    Operand,
    Origin,
    StreamItem,
)
from atari_sdk.cpu.mos6502 import AddressingMode
from atari_sdk.errors import (
    AssemblerError,
    Diagnostic,
    DiagnosticCode,
    IllegalAddressingModeError,
    Severity,
)
from atari_sdk.ir.model import (
    Address,
    Const,
    IntermediateProgram,
    OpKind,
    Operation,
    Ref,
    Value,
)

logger = logging.getLogger(__name__)

REGISTER_RANK = {"A": 0, "X": 1, "Y": 2}

_LOAD = {"A": "LDA", "X": "LDX", "Y": "LDY"}
_STORE = {"A": "STA", "X": "STX", "Y": "STY"}
_COMPARE = {"A": "CMP", "X": "CPX", "Y": "CPY"}

_LOGIC = {OpKind.AND: "AND", OpKind.OR: "ORA", OpKind.XOR: "EOR"}

_BRANCH_ON = {
    OpKind.BRANCH_EQ: "BEQ",
    OpKind.BRANCH_NE: "BNE",
    OpKind.BRANCH_LT: "BCC",
    OpKind.BRANCH_GE: "BCS",
    OpKind.BRANCH_ZERO: "BEQ",
    OpKind.BRANCH_NONZERO: "BNE",
}


# =============================================================================
# Candidates
# =============================================================================

@dataclass(frozen=True)
class InstructionCandidate:
    """
    One legal-or-not encoding of an IR operation.

    Attributes:
        template: Name of the template that produced it
        instructions: Instructions and internal labels, in order
        register: Main register the template works through (A, X or Y)
    """
    template: str
    instructions: tuple
    register: str = "A"

    @property
    def byte_cost(self) -> int:
        return sum(i.size for i in self.instructions if isinstance(i, Instruction))

    @property
    def cycle_cost(self) -> int:
        return sum(i.cycles for i in self.instructions if isinstance(i, Instruction))

    @property
    def is_legal(self) -> bool:
        return all(i.is_legal for i in self.instructions if isinstance(i, Instruction))

    def key(self) -> tuple[int, int, int]:
        return (self.byte_cost, REGISTER_RANK[self.register], self.cycle_cost)


@dataclass
class SelectionResult:
    """Output of instruction selection."""
    stream: InstructionStream
    diagnostics: list[Diagnostic] = field(default_factory=list)
    runtime_routines: list[str] = field(default_factory=list)

    @property
    def has_fatal(self) -> bool:
        return any(d.is_fatal for d in self.diagnostics)


# =============================================================================
# Selector
# =============================================================================

class InstructionSelector:
    """
    Candidate-based instruction selection for one program.

    Usage:
        selector = InstructionSelector(program, allocation, config)
        result = selector.select()
    """

    def __init__(
        self,
        program: IntermediateProgram,
        allocation: Allocation,
        config: Optional[BackendConfig] = None,
    ):
        self.program = program
        self.allocation = allocation
        self.config = config or BackendConfig()
        self.profile = self.config.hardware
        self._origin: Optional[Origin] = None
        self._index = 0
        self._equates: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    def select(self) -> SelectionResult:
        self._equates = self.allocation.equates()
        stream = InstructionStream(equates=self._equates, entry=self.program.entry)
        result = SelectionResult(stream)

        for index, op in enumerate(self.program.operations):
            self._index = index
            self._origin = Origin(index, str(op), op.location)
            try:
                candidates = self.candidates(op)
            except IllegalAddressingModeError as e:
                result.diagnostics.append(self._fatal(e.message))
                continue

            legal = [c for c in candidates if c.is_legal]
            if not legal:
                rejected = ", ".join(
                    str(i) for c in candidates for i in c.instructions
                    if isinstance(i, Instruction) and not i.is_legal
                )
                result.diagnostics.append(self._fatal(
                    f"no legal 6502 encoding for '{op}' (rejected: {rejected or 'nothing to try'})"
                ))
                continue

            best = min(legal, key=InstructionCandidate.key)
            logger.debug(
                "op %d '%s': %s (%d bytes, %d cycles, %d candidates)",
                index, op, best.template, best.byte_cost, best.cycle_cost, len(legal),
            )
            stream.extend(best.instructions)

        if self.config.include_runtime:
            result.runtime_routines = self._append_runtime(stream)

        stream.equates = dict(self._equates)
        fatal = sum(1 for d in result.diagnostics if d.is_fatal)
        logger.info(
            "selected %d instructions (%d bytes) from %d operations, %d fatal",
            len(stream.instructions()), stream.byte_cost, len(self.program.operations), fatal,
        )
        return result

    def _append_runtime(self, stream: InstructionStream) -> list[str]:
        called = {op.target for op in self.program.operations if op.kind is OpKind.CALL}
        defined = set(self.program.labels())
        wanted = [name for name in RUNTIME_ROUTINES if name in called and name not in defined]
        if not wanted:
            return []
        routines = runtime_stream(wanted)
        stream.extend(routines.items)
        for name, address in routines.equates.items():
            self._equates.setdefault(name, address)
        logger.info("runtime routines included: %s", ", ".join(wanted))
        return wanted

    def _fatal(self, message: str) -> Diagnostic:
        return Diagnostic(
            Severity.FATAL,
            str(self._origin),
            message,
            DiagnosticCode.ILLEGAL_ADDRESSING_MODE,
            self._origin.location if self._origin else None,
        )

    # -------------------------------------------------------------------------
    # Operand helpers
    # -------------------------------------------------------------------------

    def _ins(self, mnemonic: str, operand: Operand = IMPLIED,
             index_limit: Optional[int] = None, volatile: bool = False) -> Instruction:
        return Instruction(mnemonic, operand, self._origin, index_limit, volatile)

    def _width(self, value: Value) -> int:
        return self.program.width_of(value)

    def _is_volatile(self, value: Value) -> bool:
        return isinstance(value, Address) and self.profile.is_volatile(value.address)

    def _byte(self, value: Value, k: int) -> Operand:
        """Operand for byte k (0 = low) of a value; zero-extends past its width."""
        if isinstance(value, Const):
            return Operand.immediate((value.value >> (8 * k)) & 0xFF)
        if isinstance(value, Ref):
            if k >= self.allocation.width(value.name):
                return Operand.immediate(0)
            base = self.allocation.address(value.name)
            return Operand.memory(base + k, symbol=value.name, offset=k)
        if k >= 1:
            return Operand.immediate(0)
        name = self.profile.register_name(value.address)
        if name is not None:
            self._equates.setdefault(name, value.address)
        return Operand.memory(value.address, symbol=name)

    def _load(self, register: str, value: Value, k: int) -> Instruction:
        return self._ins(_LOAD[register], self._byte(value, k), volatile=self._is_volatile(value))

    def _store(self, register: str, value: Value, k: int) -> Instruction:
        operand = self._byte(value, k)
        return self._ins(_STORE[register], operand, volatile=self._is_volatile(value))

    def _op_with(self, mnemonic: str, value: Value, k: int) -> Instruction:
        return self._ins(mnemonic, self._byte(value, k), volatile=self._is_volatile(value))

    def _skip_label(self, k: int = 0) -> str:
        return f"__skip{self._index}_{k}"

    def _pointer(self, op: Operation, value: Value) -> Operand:
        """Zero-page pointer operand for indirect access, or reject the op."""
        if isinstance(value, Ref):
            slot = self.allocation.slot(value.name)
            if not slot.is_zero_page:
                raise IllegalAddressingModeError(
                    f"'{op}' needs pointer '{value.name}' in zero page for (zp),Y "
                    f"addressing, but it was placed in {slot}",
                    location=op.location,
                    hint="reduce zero-page pressure or declare the pointer earlier",
                )
            return Operand(AddressingMode.INDIRECT_INDEXED, slot.address, symbol=value.name)
        if isinstance(value, Address) and value.address < 0x100:
            name = self.profile.register_name(value.address)
            if name is not None:
                self._equates.setdefault(name, value.address)
            return Operand(AddressingMode.INDIRECT_INDEXED, value.address, symbol=name)
        raise IllegalAddressingModeError(
            f"'{op}' needs a zero-page pointer for (zp),Y addressing, got {value}",
            location=op.location,
        )

    # -------------------------------------------------------------------------
    # Candidate enumeration
    # -------------------------------------------------------------------------

    def candidates(self, op: Operation) -> list[InstructionCandidate]:
        kind = op.kind
        if kind in (OpKind.MOVE, OpKind.LOAD, OpKind.STORE):
            return self._transfer(op.operands[0], op.operands[1])
        if kind is OpKind.INC:
            return self._increment(op.operands[0])
        if kind is OpKind.DEC:
            return self._decrement(op.operands[0])
        if kind in (OpKind.ADD, OpKind.SUB):
            return self._add_sub(op)
        if kind in _LOGIC:
            return self._logic(op)
        if kind in (OpKind.SHL, OpKind.SHR):
            return self._shift(op)
        if kind is OpKind.LOAD_INDIRECT:
            return self._load_indirect(op)
        if kind is OpKind.STORE_INDIRECT:
            return self._store_indirect(op)
        if kind is OpKind.LOAD_INDEXED:
            return self._load_indexed(op)
        if kind is OpKind.STORE_INDEXED:
            return self._store_indexed(op)
        if kind is OpKind.PUSH:
            return self._push(op.operands[0])
        if kind is OpKind.POP:
            return self._pop(op.operands[0])
        if kind is OpKind.JUMP:
            return [InstructionCandidate("jump", (self._ins("JMP", Operand.to_label(op.target)),))]
        if op.is_branch:
            return self._branch(op)
        if kind is OpKind.CALL:
            return [InstructionCandidate("call", (self._ins("JSR", Operand.to_label(op.target)),))]
        if kind is OpKind.RETURN:
            return [InstructionCandidate("return", (self._ins("RTS"),))]
        if kind in (OpKind.LABEL, OpKind.ENTRY):
            return [InstructionCandidate("label", (Label(op.target, self._origin),))]
        if kind is OpKind.INLINE:
            return self._inline(op)
        raise IllegalAddressingModeError(f"unsupported operation '{op}'", location=op.location)

    # -- data movement --------------------------------------------------------

    def _transfer(self, dst: Value, src: Value) -> list[InstructionCandidate]:
        if dst == src:
            return [InstructionCandidate("nop", ())]
        width = self._width(dst)
        result = []
        for register in "AXY":
            seq = []
            for k in range(width):
                seq.append(self._load(register, src, k))
                seq.append(self._store(register, dst, k))
            result.append(InstructionCandidate("transfer", tuple(seq), register))

        if width > 1 and isinstance(src, Const):
            values = {self._byte(src, k).value for k in range(width)}
            if len(values) == 1:
                seq = [self._load("A", src, 0)]
                seq.extend(self._store("A", dst, k) for k in range(width))
                result.append(InstructionCandidate("splat", tuple(seq)))
        return result

    def _push(self, src: Value) -> list[InstructionCandidate]:
        seq = []
        for k in reversed(range(self._width(src))):
            seq.append(self._load("A", src, k))
            seq.append(self._ins("PHA"))
        return [InstructionCandidate("push", tuple(seq))]

    def _pop(self, dst: Value) -> list[InstructionCandidate]:
        seq = []
        for k in range(self._width(dst)):
            seq.append(self._ins("PLA"))
            seq.append(self._store("A", dst, k))
        return [InstructionCandidate("pop", tuple(seq))]

    # -- arithmetic -----------------------------------------------------------

    def _increment(self, dst: Value) -> list[InstructionCandidate]:
        width = self._width(dst)
        result = [self._carry_chain("add_chain", "CLC", "ADC", dst, dst, Const(1))]
        if width == 1:
            result.append(InstructionCandidate("inc_mem", (self._op_with("INC", dst, 0),)))
        else:
            seq: list[StreamItem] = []
            for k in range(width):
                seq.append(self._op_with("INC", dst, k))
                if k < width - 1:
                    seq.append(self._ins("BNE", Operand.to_label(self._skip_label(), AddressingMode.RELATIVE)))
            seq.append(Label(self._skip_label(), self._origin))
            result.append(InstructionCandidate("inc_word", tuple(seq)))
        return result

    def _decrement(self, dst: Value) -> list[InstructionCandidate]:
        width = self._width(dst)
        result = [self._carry_chain("sub_chain", "SEC", "SBC", dst, dst, Const(1))]
        if width == 1:
            result.append(InstructionCandidate("dec_mem", (self._op_with("DEC", dst, 0),)))
        elif width == 2:
            skip = self._skip_label()
            seq = (
                self._load("A", dst, 0),
                self._ins("BNE", Operand.to_label(skip, AddressingMode.RELATIVE)),
                self._op_with("DEC", dst, 1),
                Label(skip, self._origin),
                self._op_with("DEC", dst, 0),
            )
            result.append(InstructionCandidate("dec_word", seq))
        return result

    def _carry_chain(self, template: str, setup: str, mnemonic: str,
                     dst: Value, a: Value, b: Value) -> InstructionCandidate:
        seq = [self._ins(setup)]
        for k in range(self._width(dst)):
            seq.append(self._load("A", a, k))
            seq.append(self._op_with(mnemonic, b, k))
            seq.append(self._store("A", dst, k))
        return InstructionCandidate(template, tuple(seq))

    def _add_sub(self, op: Operation) -> list[InstructionCandidate]:
        dst, a, b = op.operands
        if op.kind is OpKind.ADD:
            result = [self._carry_chain("add_chain", "CLC", "ADC", dst, a, b)]
            if a == dst and b == Const(1):
                result.extend(self._increment(dst))
            elif b == dst and a == Const(1):
                result.extend(self._increment(dst))
        else:
            result = [self._carry_chain("sub_chain", "SEC", "SBC", dst, a, b)]
            if a == dst and b == Const(1):
                result.extend(self._decrement(dst))
        return result

    def _logic(self, op: Operation) -> list[InstructionCandidate]:
        dst, a, b = op.operands
        mnemonic = _LOGIC[op.kind]
        seq = []
        for k in range(self._width(dst)):
            seq.append(self._load("A", a, k))
            seq.append(self._op_with(mnemonic, b, k))
            seq.append(self._store("A", dst, k))
        return [InstructionCandidate(op.kind.value, tuple(seq))]

    def _shift(self, op: Operation) -> list[InstructionCandidate]:
        dst, src = op.operands
        count = 1 if op.count is None else op.count
        width = self._width(dst)
        left = op.kind is OpKind.SHL

        # In memory: copy, then shift the bytes with the carry chain
        seq: list[StreamItem] = []
        if dst != src:
            for k in range(width):
                seq.append(self._load("A", src, k))
                seq.append(self._store("A", dst, k))
        order = list(range(width)) if left else list(reversed(range(width)))
        for _ in range(count):
            for position, k in enumerate(order):
                if left:
                    mnemonic = "ASL" if position == 0 else "ROL"
                else:
                    mnemonic = "LSR" if position == 0 else "ROR"
                seq.append(self._op_with(mnemonic, dst, k))
        result = [InstructionCandidate("shift_mem", tuple(seq))]

        if width == 1:
            mnemonic = "ASL" if left else "LSR"
            seq = [self._load("A", src, 0)]
            seq.extend(self._ins(mnemonic, ACCUMULATOR) for _ in range(count))
            seq.append(self._store("A", dst, 0))
            result.append(InstructionCandidate("shift_a", tuple(seq)))
        return result

    # -- indirect and indexed -------------------------------------------------

    def _check_indirect_span(self, op: Operation, width: int) -> None:
        if op.offset + width - 1 > 0xFF:
            raise IllegalAddressingModeError(
                f"'{op}' reaches past offset 255 of its pointer; (zp),Y cannot address it",
                location=op.location,
            )

    def _load_indirect(self, op: Operation) -> list[InstructionCandidate]:
        dst, ptr = op.operands
        pointer = self._pointer(op, ptr)
        width = self._width(dst)
        self._check_indirect_span(op, width)

        seq = [self._ins("LDY", Operand.immediate(op.offset))]
        for k in range(width):
            if k:
                seq.append(self._ins("INY"))
            seq.append(self._ins("LDA", pointer, volatile=True))
            seq.append(self._store("A", dst, k))
        result = [InstructionCandidate("indirect_y", tuple(seq))]

        if width == 1 and op.offset == 0:
            via_x = pointer.with_mode(AddressingMode.INDEXED_INDIRECT)
            seq = (
                self._ins("LDX", Operand.immediate(0)),
                self._ins("LDA", via_x, volatile=True),
                self._store("A", dst, 0),
            )
            result.append(InstructionCandidate("indirect_x", seq))
        return result

    def _store_indirect(self, op: Operation) -> list[InstructionCandidate]:
        ptr, src = op.operands
        pointer = self._pointer(op, ptr)
        width = self._width(src)
        self._check_indirect_span(op, width)

        seq = [self._ins("LDY", Operand.immediate(op.offset))]
        for k in range(width):
            if k:
                seq.append(self._ins("INY"))
            seq.append(self._load("A", src, k))
            seq.append(self._ins("STA", pointer, volatile=True))
        result = [InstructionCandidate("indirect_y", tuple(seq))]

        if width == 1 and op.offset == 0:
            via_x = pointer.with_mode(AddressingMode.INDEXED_INDIRECT)
            seq = (
                self._ins("LDX", Operand.immediate(0)),
                self._load("A", src, 0),
                self._ins("STA", via_x, volatile=True),
            )
            result.append(InstructionCandidate("indirect_x", seq))
        return result

    def _indexed_operand(self, base: Address, register: str, bound: Optional[int]) -> Operand:
        """base,X or base,Y; zero-page indexing only when the index cannot wrap."""
        address = base.address
        name = self.profile.register_name(address)
        if name is not None:
            self._equates.setdefault(name, address)
        fits = bound is not None and address + bound - 1 <= 0xFF
        if register == "X":
            mode = AddressingMode.ZERO_PAGE_X if fits else AddressingMode.ABSOLUTE_X
        else:
            mode = AddressingMode.ZERO_PAGE_Y if fits else AddressingMode.ABSOLUTE_Y
        return Operand.memory(address, mode, symbol=name)

    def _load_indexed(self, op: Operation) -> list[InstructionCandidate]:
        dst, base, index = op.operands
        volatile = self._is_volatile(base)
        if isinstance(index, Const):
            direct = Address((base.address + index.value) & 0xFFFF)
            return self._transfer(dst, direct)

        result = []
        for register in "XY":
            element = self._indexed_operand(base, register, op.count)
            seq = [
                self._load(register, index, 0),
                self._ins("LDA", element, index_limit=op.count, volatile=volatile),
                self._store("A", dst, 0),
            ]
            for k in range(1, self._width(dst)):
                seq.append(self._ins("LDA", Operand.immediate(0)))
                seq.append(self._store("A", dst, k))
            result.append(InstructionCandidate("indexed", tuple(seq), register))
            # LDA has no zp,Y form; fall back to abs,Y as well
            if element.mode is AddressingMode.ZERO_PAGE_Y:
                absolute = element.with_mode(AddressingMode.ABSOLUTE_Y)
                seq = list(seq)
                seq[1] = self._ins("LDA", absolute, index_limit=op.count, volatile=volatile)
                result.append(InstructionCandidate("indexed", tuple(seq), register))
        return result

    def _store_indexed(self, op: Operation) -> list[InstructionCandidate]:
        base, index, src = op.operands
        volatile = self._is_volatile(base)
        if isinstance(index, Const):
            direct = Address((base.address + index.value) & 0xFFFF)
            return self._transfer(direct, src)

        result = []
        for register in "XY":
            element = self._indexed_operand(base, register, op.count)
            variants = [element]
            if element.mode is AddressingMode.ZERO_PAGE_Y:
                variants.append(element.with_mode(AddressingMode.ABSOLUTE_Y))
            for operand in variants:
                seq = (
                    self._load(register, index, 0),
                    self._load("A", src, 0),
                    self._ins("STA", operand, index_limit=op.count, volatile=volatile),
                )
                result.append(InstructionCandidate("indexed", seq, register))
        return result

    # -- control flow ---------------------------------------------------------

    def _branch(self, op: Operation) -> list[InstructionCandidate]:
        target = Operand.to_label(op.target, AddressingMode.RELATIVE)
        mnemonic = _BRANCH_ON[op.kind]
        a = op.operands[0]

        if op.kind in (OpKind.BRANCH_ZERO, OpKind.BRANCH_NONZERO):
            return self._zero_test(a, mnemonic, target)

        b = op.operands[1]
        width = max(self._width(a), self._width(b))
        if b == Const(0) and op.kind in (OpKind.BRANCH_EQ, OpKind.BRANCH_NE):
            return self._zero_test(a, mnemonic, target)

        if width == 1:
            result = []
            for register in "AXY":
                seq = (
                    self._load(register, a, 0),
                    self._op_with(_COMPARE[register], b, 0),
                    self._ins(mnemonic, target),
                )
                result.append(InstructionCandidate("compare", seq, register))
            return result

        seq: list[StreamItem] = []
        if op.kind is OpKind.BRANCH_EQ:
            skip = self._skip_label()
            for k in range(width):
                seq.append(self._load("A", a, k))
                seq.append(self._op_with("CMP", b, k))
                if k < width - 1:
                    seq.append(self._ins("BNE", Operand.to_label(skip, AddressingMode.RELATIVE)))
            seq.append(self._ins("BEQ", target))
            seq.append(Label(skip, self._origin))
        elif op.kind is OpKind.BRANCH_NE:
            for k in range(width):
                seq.append(self._load("A", a, k))
                seq.append(self._op_with("CMP", b, k))
                seq.append(self._ins("BNE", target))
        else:
            # Multi-byte unsigned compare: CMP the low byte, SBC the rest
            for k in range(width):
                seq.append(self._load("A", a, k))
                seq.append(self._op_with("CMP" if k == 0 else "SBC", b, k))
            seq.append(self._ins(mnemonic, target))
        return [InstructionCandidate("compare_word", tuple(seq))]

    def _zero_test(self, a: Value, mnemonic: str, target: Operand) -> list[InstructionCandidate]:
        width = self._width(a)
        if isinstance(a, Const):
            # Constant condition: the load still sets Z
            seq = (self._ins("LDA", Operand.immediate(a.value)), self._ins(mnemonic, target))
            return [InstructionCandidate("test", seq)]
        result = []
        registers = "AXY" if width == 1 else "A"
        for register in registers:
            seq = [self._load(register, a, 0)]
            for k in range(1, width):
                seq.append(self._op_with("ORA", a, k))
            seq.append(self._ins(mnemonic, target))
            result.append(InstructionCandidate("test", tuple(seq), register))
        return result

    # -- inline ---------------------------------------------------------------

    def _inline(self, op: Operation) -> list[InstructionCandidate]:
        from atari_sdk.assembler.parser import parse_instruction

        symbols = self.profile.register_map
        symbols.update(self._equates)
        try:
            instruction = parse_instruction(op.inline, symbols)
        except AssemblerError as e:
            raise IllegalAddressingModeError(
                f"cannot encode inline instruction '{op.inline}': {e.message}",
                location=op.location,
            ) from None

        name = instruction.operand.symbol
        if name is not None and name not in self._equates:
            self._equates[name] = symbols[name]

        address = instruction.operand.address
        volatile = address is not None and (
            self.profile.is_volatile(address)
            or instruction.operand.mode in (AddressingMode.INDIRECT_INDEXED,
                                            AddressingMode.INDEXED_INDIRECT)
        )
        instruction = Instruction(
            instruction.mnemonic, instruction.operand, self._origin, volatile=volatile,
        )
        if not instruction.is_legal:
            raise IllegalAddressingModeError(
                f"inline instruction '{op.inline}' uses {instruction.mode} addressing, "
                f"which {instruction.mnemonic} does not support",
                location=op.location,
            )
        return [InstructionCandidate("inline", (instruction,))]


def select_instructions(
    program: IntermediateProgram,
    allocation: Allocation,
    config: Optional[BackendConfig] = None,
) -> SelectionResult:
    """Convenience wrapper around InstructionSelector."""
    return InstructionSelector(program, allocation, config).select()
