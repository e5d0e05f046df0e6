"""
Zero-Page Allocator
===================

Assigns every symbol a StorageSlot: a run of bytes in the configured
zero-page window when one is free for the symbol's whole live range, or
Absolute storage in general RAM otherwise.

Algorithm
---------
This is linear-scan interval coloring over live ranges:

1. Sort intervals by start; ties go to the more frequently accessed
   symbol, then to declaration order.
2. Before placing an interval, expire every active interval that ended
   earlier and return its bytes to the free list.
3. Take the lowest run of `width` contiguous free bytes. A run never
   extends past the window end, so two-byte values never straddle $FF.
4. If no run fits, the symbol spills. Spilled symbols receive sequential
   Absolute addresses from `data_base` in declaration order.

Exhaustion is a normal outcome and is only logged. Symbols record their
slot by value in the Allocation map; slots hold no back references.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from atari_sdk.backend.config import BackendConfig
from atari_sdk.ir.liveness import LivenessInfo, analyze_liveness
from atari_sdk.ir.model import IntermediateProgram, LiveRange

logger = logging.getLogger(__name__)


# =============================================================================
# Storage Slots
# =============================================================================

@dataclass(frozen=True)
class ZeroPage:
    """Zero-page storage. The offset is the zero-page address itself."""
    offset: int

    @property
    def address(self) -> int:
        return self.offset

    @property
    def is_zero_page(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"ZeroPage(${self.offset:02X})"


@dataclass(frozen=True)
class Absolute:
    """Storage in general RAM."""
    address: int

    @property
    def is_zero_page(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"Absolute(${self.address:04X})"


StorageSlot = Union[ZeroPage, Absolute]


@dataclass(frozen=True)
class Assignment:
    """The slot chosen for one symbol and the range it holds it for."""
    name: str
    slot: StorageSlot
    width: int
    live: LiveRange


class Allocation:
    """
    Result of allocation: symbol name -> slot.

    Iteration order is declaration order.
    """

    def __init__(self, assignments: list[Assignment]):
        self._assignments = {a.name: a for a in assignments}

    def __contains__(self, name: str) -> bool:
        return name in self._assignments

    def __iter__(self):
        return iter(self._assignments.values())

    def __len__(self) -> int:
        return len(self._assignments)

    def slot(self, name: str) -> StorageSlot:
        return self._assignments[name].slot

    def address(self, name: str) -> int:
        return self._assignments[name].slot.address

    def width(self, name: str) -> int:
        return self._assignments[name].width

    def is_zero_page(self, name: str) -> bool:
        return self._assignments[name].slot.is_zero_page

    @property
    def spilled(self) -> list[str]:
        return [a.name for a in self._assignments.values() if not a.slot.is_zero_page]

    @property
    def zero_page_bytes(self) -> set[int]:
        """Every zero-page byte used by at least one symbol."""
        used = set()
        for a in self._assignments.values():
            if a.slot.is_zero_page:
                used.update(range(a.slot.offset, a.slot.offset + a.width))
        return used

    def equates(self) -> dict[str, int]:
        """Name -> base address, in declaration order."""
        return {a.name: a.slot.address for a in self._assignments.values()}

    def __str__(self) -> str:
        return "\n".join(f"{a.name}: {a.slot} live {a.live}" for a in self._assignments.values())


# =============================================================================
# Allocator
# =============================================================================

class ZeroPageAllocator:
    """
    Interval-coloring allocator over the configured zero-page window.

    Usage:
        allocation = ZeroPageAllocator(config).allocate(program)
        allocation.slot("count")        # ZeroPage(0x80)
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()

    def _take_run(self, free: list[int], width: int) -> Optional[int]:
        """Remove and return the lowest run of width contiguous free bytes."""
        free_set = set(free)
        for start in free:
            if all(start + k in free_set for k in range(width)):
                if start + width - 1 > self.config.zero_page_end:
                    continue
                for k in range(width):
                    free.remove(start + k)
                return start
        return None

    def allocate(
        self,
        program: IntermediateProgram,
        liveness: Optional[dict[str, LivenessInfo]] = None,
    ) -> Allocation:
        if liveness is None:
            liveness = analyze_liveness(program)

        declaration = {sym.name: index for index, sym in enumerate(program.symbols)}
        order = sorted(
            program.symbols,
            key=lambda s: (liveness[s.name].live.start, -liveness[s.name].frequency, declaration[s.name]),
        )

        free = list(range(self.config.zero_page_start, self.config.zero_page_end + 1))
        active: list[tuple[int, int, int]] = []   # (end, offset, width)
        placed: dict[str, StorageSlot] = {}
        spilled: list[str] = []

        for sym in order:
            live = liveness[sym.name].live

            # Expire intervals that ended before this one starts
            still_active = []
            for end, offset, width in active:
                if end < live.start:
                    free.extend(range(offset, offset + width))
                else:
                    still_active.append((end, offset, width))
            active = still_active
            free.sort()

            offset = self._take_run(free, sym.width)
            if offset is None:
                spilled.append(sym.name)
                logger.debug("spill %s (%d bytes, live %s)", sym.name, sym.width, live)
                continue

            placed[sym.name] = ZeroPage(offset)
            active.append((live.end, offset, sym.width))
            logger.debug("allocate %s -> $%02X (live %s)", sym.name, offset, live)

        # Spills get sequential addresses in declaration order
        address = self.config.data_base
        for sym in program.symbols:
            if sym.name in spilled:
                placed[sym.name] = Absolute(address)
                address += sym.width

        if spilled:
            logger.info(
                "zero page exhausted: %d symbol(s) placed in absolute storage from $%04X",
                len(spilled), self.config.data_base,
            )

        assignments = [
            Assignment(sym.name, placed[sym.name], sym.width, liveness[sym.name].live)
            for sym in program.symbols
        ]
        allocation = Allocation(assignments)
        logger.info(
            "allocated %d symbol(s): %d zero-page byte(s) used, %d spilled",
            len(assignments), len(allocation.zero_page_bytes), len(spilled),
        )
        return allocation


def allocate(program: IntermediateProgram, config: Optional[BackendConfig] = None) -> Allocation:
    """Convenience wrapper around ZeroPageAllocator."""
    return ZeroPageAllocator(config).allocate(program)
