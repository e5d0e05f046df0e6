"""
6502 Code-Size Peephole Optimizer
=================================

Conservative rewrites over an InstructionStream that never increase its
byte cost and never change the program's observable memory effects.

Design Philosophy
-----------------
1. **Safety First**: a rewrite that changes a flag some later instruction
   reads is refused. Flag liveness follows branches and jumps through the
   whole stream; flags are not carried across JSR, RTS or RTI, matching how
   the selector lowers every conditional branch together with its compare.

2. **Label-Aware**: register-content tracking restarts at every label, as a
   label may be reached from anywhere.

3. **Volatile-Aware**: loads and stores of hardware registers and OS
   locations are never removed, merged or tracked.

Supported Optimizations
-----------------------
1. **Dead code**: instructions after JMP/RTS/RTI up to the next label
2. **Unused labels**: labels nobody references (the entry point is kept)
3. **Jump to next**: JMP/Bcc whose target is the next instruction
4. **Branch chains**: Bcc/JMP to a JMP retargets to the final label
   (branches only when still in range); JMP to RTS becomes RTS
5. **Redundant loads and stores**: LDr of a value r already holds;
   STr of a value the location already holds
6. **Register transfers**: LDA of a value X or Y holds becomes TXA/TYA,
   LDX/LDY of a value A holds becomes TAX/TAY
7. **Push/pull pairs**: adjacent PHA/PLA and PHP/PLP
8. **Zero-page forms**: absolute operands below $100 use the shorter
   zero-page form; indexed forms only when the index bound cannot wrap

Levels
------
`none` returns the stream unchanged, `default` runs one pass, `size`
iterates to a fixpoint or `max_optimizer_passes`. Reaching the bound is
normal completion; `stats.converged` records which happened.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from atari_sdk.backend.config import BackendConfig, OptimizationLevel
from atari_sdk.backend.layout import BRANCH_MAX, BRANCH_MIN, branch_offset, compute_layout
from atari_sdk.backend.stream import IMPLIED, Instruction, InstructionStream, Label, StreamItem
from atari_sdk.cpu.mos6502 import (
    AddressingMode,
    DOCUMENTED_MNEMONICS,
    MEMORY_WRITERS,
    ZERO_PAGE_EQUIVALENT,
    flags_read,
    flags_written,
    is_valid_instruction,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Optimization Statistics
# =============================================================================

@dataclass
class OptimizationStats:
    """
    Statistics about optimizations performed.

    Attributes:
        dead_code: Unreachable instructions removed
        unused_labels: Unreferenced labels removed
        jump_to_next: Jumps and branches to the next instruction removed
        branch_chains: Branches and jumps retargeted or folded into RTS
        redundant_loads: Loads of values already in the register removed
        redundant_stores: Stores of values already in memory removed
        register_transfers: Loads replaced by TXA/TYA/TAX/TAY
        push_pull_pairs: PHA/PLA and PHP/PLP pairs removed
        zero_page: Absolute operands shortened to zero page
        total_passes: Number of passes run
        converged: True if the last pass changed nothing
        bytes_before: Byte cost of the input stream
        bytes_after: Byte cost of the output stream
    """
    dead_code: int = 0
    unused_labels: int = 0
    jump_to_next: int = 0
    branch_chains: int = 0
    redundant_loads: int = 0
    redundant_stores: int = 0
    register_transfers: int = 0
    push_pull_pairs: int = 0
    zero_page: int = 0
    total_passes: int = 0
    converged: bool = True
    bytes_before: int = 0
    bytes_after: int = 0

    @property
    def total_optimizations(self) -> int:
        """Total number of individual rewrites applied."""
        return (
            self.dead_code +
            self.unused_labels +
            self.jump_to_next +
            self.branch_chains +
            self.redundant_loads +
            self.redundant_stores +
            self.register_transfers +
            self.push_pull_pairs +
            self.zero_page
        )

    @property
    def bytes_saved(self) -> int:
        return self.bytes_before - self.bytes_after

    def __str__(self) -> str:
        lines = ["Optimization Statistics:"]
        if self.dead_code:
            lines.append(f"  Dead code removed: {self.dead_code}")
        if self.unused_labels:
            lines.append(f"  Unused labels removed: {self.unused_labels}")
        if self.jump_to_next:
            lines.append(f"  Jumps to next removed: {self.jump_to_next}")
        if self.branch_chains:
            lines.append(f"  Branch chains collapsed: {self.branch_chains}")
        if self.redundant_loads:
            lines.append(f"  Redundant loads removed: {self.redundant_loads}")
        if self.redundant_stores:
            lines.append(f"  Redundant stores removed: {self.redundant_stores}")
        if self.register_transfers:
            lines.append(f"  Loads turned into transfers: {self.register_transfers}")
        if self.push_pull_pairs:
            lines.append(f"  Push/pull pairs eliminated: {self.push_pull_pairs}")
        if self.zero_page:
            lines.append(f"  Zero-page substitutions: {self.zero_page}")
        lines.append(f"  Total optimizations: {self.total_optimizations}")
        lines.append(f"  Total passes: {self.total_passes} ({'converged' if self.converged else 'pass limit'})")
        lines.append(f"  Bytes: {self.bytes_before} -> {self.bytes_after}")
        return "\n".join(lines)


# =============================================================================
# Flag Liveness
# =============================================================================

# Flags do not flow into or out of these
_FLAG_BARRIERS = frozenset({"JSR", "RTS", "RTI", "BRK", "JAM"})


def live_flags_after(items: list[StreamItem], index: int, flags: frozenset) -> frozenset:
    """
    Return which of `flags` may be read after items[index] executes.

    Follows fallthrough, branches and absolute jumps. Indirect jumps are
    treated as reading everything still pending.
    """
    labels = {item.name: i for i, item in enumerate(items) if isinstance(item, Label)}
    live: set = set()
    seen: set = set()
    work = [(index + 1, frozenset(flags))]

    while work:
        position, pending = work.pop()
        while pending and position < len(items):
            if (position, pending) in seen:
                break
            seen.add((position, pending))
            item = items[position]
            if isinstance(item, Label):
                position += 1
                continue
            mnemonic = item.mnemonic
            if mnemonic in _FLAG_BARRIERS:
                pending = frozenset()
                break
            live |= pending & flags_read(mnemonic)
            pending = pending - flags_written(mnemonic)
            if item.is_branch:
                if item.target in labels:
                    work.append((labels[item.target], pending))
                else:
                    live |= pending
            elif mnemonic == "JMP":
                if item.is_jump and item.target in labels:
                    position = labels[item.target]
                    continue
                live |= pending
                pending = frozenset()
                break
            position += 1
    return frozenset(live)


# =============================================================================
# Register Tracking
# =============================================================================

_TRANSFERS = {"TAX": ("X", "A"), "TAY": ("Y", "A"), "TXA": ("A", "X"), "TYA": ("A", "Y")}

_CLOBBERS = {
    **{m: "A" for m in ("ADC", "SBC", "AND", "ORA", "EOR", "PLA")},
    "INX": "X", "DEX": "X", "TSX": "X",
    "INY": "Y", "DEY": "Y",
}

_NO_REGISTER_EFFECT = frozenset({
    "CMP", "CPX", "CPY", "BIT", "CLC", "SEC", "CLD", "SED", "CLI", "SEI", "CLV",
    "NOP", "PHA", "PHP", "PLP", "TXS", "STA", "STX", "STY", "JMP",
    "BCC", "BCS", "BEQ", "BMI", "BNE", "BPL", "BVC", "BVS",
})

_LOADS = {"LDA": "A", "LDX": "X", "LDY": "Y"}
_STORES = {"STA": "A", "STX": "X", "STY": "Y"}

_DIRECT = (AddressingMode.ZERO_PAGE, AddressingMode.ABSOLUTE)


def _value_key(item: Instruction) -> Optional[tuple]:
    """Key describing the value an operand denotes, when it can be tracked."""
    operand = item.operand
    if item.volatile or operand.label is not None:
        return None
    if operand.mode is AddressingMode.IMMEDIATE:
        return ("imm", operand.value)
    if operand.mode in _DIRECT:
        return ("mem", operand.value)
    return None


class _Registers:
    """What each register is known to hold, as sets of value keys."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.held = {"A": set(), "X": set(), "Y": set()}

    def holding(self, key: tuple) -> Optional[str]:
        for register in "AXY":
            if key in self.held[register]:
                return register
        return None

    def forget_memory(self, address: Optional[int] = None) -> None:
        for keys in self.held.values():
            for key in list(keys):
                if key[0] == "mem" and (address is None or key[1] == address):
                    keys.discard(key)

    def update(self, item: Instruction) -> None:
        mnemonic = item.mnemonic
        key = _value_key(item)

        if mnemonic in _LOADS:
            self.held[_LOADS[mnemonic]] = {key} if key else set()
            return
        if mnemonic in _STORES:
            if key is None:
                self.forget_memory()
            else:
                self.forget_memory(key[1])
                self.held[_STORES[mnemonic]].add(key)
            return
        if mnemonic in _TRANSFERS:
            target, source = _TRANSFERS[mnemonic]
            self.held[target] = set(self.held[source])
            return
        if mnemonic in MEMORY_WRITERS and item.operand.is_memory:
            self.forget_memory(key[1] if key else None)
            return
        if mnemonic in _CLOBBERS:
            self.held[_CLOBBERS[mnemonic]] = set()
            return
        if item.mode is AddressingMode.ACCUMULATOR:
            self.held["A"] = set()
            return
        if mnemonic in _NO_REGISTER_EFFECT:
            return
        # JSR, BRK, RTS and undocumented opcodes
        self.reset()


# =============================================================================
# Peephole Optimizer
# =============================================================================

class PeepholeOptimizer:
    """
    Peephole optimizer for 6502 instruction streams.

    Attributes:
        config: Backend configuration (level, pass bound, origin)
        stats: Statistics about the last run
    """

    BLOCK_ENDING = frozenset({"JMP", "RTS", "RTI"})

    PUSH_PULL_PAIRS = {"PHA": "PLA", "PHP": "PLP"}

    def __init__(self, config: Optional[BackendConfig] = None, max_passes: Optional[int] = None):
        self.config = config or BackendConfig()
        self.max_passes = max_passes or self.config.max_optimizer_passes
        self.stats = OptimizationStats()

    def optimize(self, stream: InstructionStream) -> InstructionStream:
        """Return an optimized copy of stream."""
        self.stats = OptimizationStats(bytes_before=stream.byte_cost)
        level = self.config.optimization
        if level is OptimizationLevel.NONE:
            self.stats.bytes_after = stream.byte_cost
            return stream.copy(list(stream))

        passes = 1 if level is OptimizationLevel.DEFAULT else self.max_passes
        items = list(stream)
        self._entry = stream.entry
        self.stats.converged = False
        for _ in range(passes):
            self.stats.total_passes += 1
            before = self.stats.total_optimizations

            items = self._dead_code_pass(items)
            items = self._unused_label_pass(items)
            items = self._jump_to_next_pass(items)
            items = self._branch_chain_pass(items)
            items = self._redundancy_pass(items)
            items = self._push_pull_pass(items)
            items = self._zero_page_pass(items)

            if self.stats.total_optimizations == before:
                self.stats.converged = True
                break

        result = stream.copy(items)
        self.stats.bytes_after = result.byte_cost
        logger.info(
            "optimizer: %d rewrite(s) in %d pass(es), %d -> %d bytes%s",
            self.stats.total_optimizations, self.stats.total_passes,
            self.stats.bytes_before, self.stats.bytes_after,
            "" if self.stats.converged else " (pass limit)",
        )
        return result

    # =========================================================================
    # Control Flow Cleanup
    # =========================================================================

    def _dead_code_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        """Remove instructions that follow JMP/RTS/RTI before the next label."""
        result = []
        skip_until_label = False
        for item in items:
            if isinstance(item, Label):
                skip_until_label = False
                result.append(item)
                continue
            if skip_until_label:
                logger.debug("dead code: %s", item)
                self.stats.dead_code += 1
                continue
            result.append(item)
            if item.mnemonic in self.BLOCK_ENDING:
                skip_until_label = True
        return result

    def _unused_label_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        referenced = {item.target for item in items
                      if isinstance(item, Instruction) and item.target is not None}
        result = []
        for item in items:
            if isinstance(item, Label) and item.name not in referenced and item.name != self._entry:
                self.stats.unused_labels += 1
                continue
            result.append(item)
        return result

    def _jump_to_next_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        """Drop JMP/Bcc whose target label sits before the next instruction."""
        result = []
        for index, item in enumerate(items):
            if isinstance(item, Instruction) and (item.is_jump or item.is_branch) \
                    and item.target is not None and item.operand.offset == 0:
                following = index + 1
                labels_between = set()
                while following < len(items) and isinstance(items[following], Label):
                    labels_between.add(items[following].name)
                    following += 1
                if item.target in labels_between:
                    logger.debug("jump to next: %s", item)
                    self.stats.jump_to_next += 1
                    continue
            result.append(item)
        return result

    def _first_instruction_at(self, items: list[StreamItem], label: str) -> Optional[Instruction]:
        for index, item in enumerate(items):
            if isinstance(item, Label) and item.name == label:
                for following in items[index + 1:]:
                    if isinstance(following, Instruction):
                        return following
                return None
        return None

    def _final_target(self, items: list[StreamItem], label: str, mnemonic: str) -> str:
        """Follow JMPs (and for branches, the same branch) to the last label."""
        seen = {label}
        while True:
            next_item = self._first_instruction_at(items, label)
            if next_item is None or next_item.target is None or next_item.operand.offset:
                return label
            if not (next_item.is_jump or next_item.mnemonic == mnemonic and next_item.is_branch):
                return label
            if next_item.target in seen:
                return label
            label = next_item.target
            seen.add(label)

    def _branch_chain_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        layout = compute_layout(InstructionStream(items), self.config.origin)
        result = list(items)
        for index, item in enumerate(items):
            if not isinstance(item, Instruction) or item.target is None or item.operand.offset:
                continue
            if not (item.is_jump or item.is_branch):
                continue

            if item.is_jump:
                destination = self._first_instruction_at(items, item.target)
                if destination is not None and destination.mnemonic == "RTS":
                    result[index] = Instruction("RTS", IMPLIED, item.origin)
                    logger.debug("jump to RTS: %s", item)
                    self.stats.branch_chains += 1
                    continue

            final = self._final_target(items, item.target, item.mnemonic)
            if final == item.target:
                continue
            if item.is_branch:
                distance = branch_offset(layout.addresses[index], layout.labels[final])
                if not BRANCH_MIN <= distance <= BRANCH_MAX:
                    continue
            result[index] = item.retarget(final)
            logger.debug("branch chain: %s -> %s", item, final)
            self.stats.branch_chains += 1
        return result

    # =========================================================================
    # Data Flow Rewrites
    # =========================================================================

    def _nz_dead(self, items: list[StreamItem], index: int) -> bool:
        return not live_flags_after(items, index, frozenset("NZ"))

    def _redundancy_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        """
        Remove loads and stores whose value is already in place.

        Removing a load also removes its N/Z update, so it is only done when
        N and Z are dead afterwards. TXA/TYA/TAX/TAY set N/Z exactly like the
        load they replace.
        """
        result = list(items)
        registers = _Registers()
        for index, item in enumerate(items):
            if isinstance(item, Label):
                registers.reset()
                continue

            key = _value_key(item)
            mnemonic = item.mnemonic
            if key is not None and mnemonic in _LOADS:
                register = _LOADS[mnemonic]
                if key in registers.held[register] and self._nz_dead(items, index):
                    logger.debug("redundant load: %s", item)
                    result[index] = None
                    self.stats.redundant_loads += 1
                    continue
                holder = registers.holding(key)
                transfer = None
                if register == "A" and holder in ("X", "Y"):
                    transfer = f"T{holder}A"
                elif register in ("X", "Y") and holder == "A":
                    transfer = f"TA{register}"
                if transfer is not None and item.size > 1:
                    logger.debug("transfer: %s -> %s", item, transfer)
                    result[index] = Instruction(transfer, IMPLIED, item.origin)
                    registers.update(result[index])
                    self.stats.register_transfers += 1
                    continue
            elif key is not None and key[0] == "mem" and mnemonic in _STORES:
                if key in registers.held[_STORES[mnemonic]]:
                    logger.debug("redundant store: %s", item)
                    result[index] = None
                    self.stats.redundant_stores += 1
                    continue

            if mnemonic not in DOCUMENTED_MNEMONICS:
                registers.reset()
                if item.operand.is_memory:
                    registers.forget_memory()
            else:
                registers.update(item)
        return [item for item in result if item is not None]

    def _push_pull_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        result = []
        index = 0
        while index < len(items):
            item = items[index]
            following = items[index + 1] if index + 1 < len(items) else None
            if isinstance(item, Instruction) and isinstance(following, Instruction) \
                    and self.PUSH_PULL_PAIRS.get(item.mnemonic) == following.mnemonic:
                # PLA sets N/Z from A; PLP restores the flags it just saved
                if following.mnemonic == "PLP" or self._nz_dead(items, index + 1):
                    logger.debug("push/pull pair: %s/%s", item, following)
                    self.stats.push_pull_pairs += 1
                    index += 2
                    continue
            result.append(item)
            index += 1
        return result

    def _zero_page_pass(self, items: list[StreamItem]) -> list[StreamItem]:
        result = []
        for item in items:
            if isinstance(item, Instruction) and item.operand.label is None:
                mode = item.mode
                zero_page = ZERO_PAGE_EQUIVALENT.get(mode)
                if zero_page is not None and item.operand.value <= 0xFF \
                        and is_valid_instruction(item.mnemonic, zero_page):
                    indexed = mode in (AddressingMode.ABSOLUTE_X, AddressingMode.ABSOLUTE_Y)
                    limit = item.index_limit
                    if not indexed or (limit is not None and item.operand.value + limit - 1 <= 0xFF):
                        logger.debug("zero page: %s", item)
                        item = item.with_operand(item.operand.with_mode(zero_page))
                        self.stats.zero_page += 1
            result.append(item)
        return result


# =============================================================================
# Convenience Function
# =============================================================================

def optimize_stream(
    stream: InstructionStream,
    config: Optional[BackendConfig] = None,
) -> tuple[InstructionStream, OptimizationStats]:
    """
    Optimize a stream.

    Returns:
        Tuple of (optimized stream, optimization statistics)
    """
    optimizer = PeepholeOptimizer(config)
    result = optimizer.optimize(stream)
    return result, optimizer.stats
