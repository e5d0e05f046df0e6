"""
Liveness Analysis
=================

Computes a LiveRange and an access frequency for every symbol of an
IntermediateProgram. The ranges feed the zero-page allocator, which treats
them as intervals to color.

Rules
-----
1. A symbol with an explicit live range keeps it.
2. Global symbols are live over the whole program.
3. Otherwise the range runs from the first to the last operation that
   touches the symbol.
4. A loop is a backward transfer (jump or branch to an earlier label). A
   range that overlaps a loop is stretched to cover the whole loop, unless
   it lies entirely inside the loop, starts with a write and has no label
   between that write and its last touch (a temporary that is recomputed
   on every path through the iteration). A label there is a join point
   that a branch can reach without passing the write, so the value from
   the previous iteration may still be read. Stretching repeats until
   stable so nested loops compose.
5. A symbol touched inside a called subroutine (from its label to the next
   return) can be live at any call site, so it is widened to the whole
   program.
6. A symbol no operation touches gets the single-point range [0, 0].

Access frequency is the number of operations touching the symbol and is
only used as an allocation tie-break.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from atari_sdk.ir.model import (
    DEFINING_KINDS,
    IntermediateProgram,
    LiveRange,
    OpKind,
    Ref,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LivenessInfo:
    """Computed liveness for one symbol."""
    live: LiveRange
    frequency: int


def _inline_symbols(text: str, names: set[str]) -> set[str]:
    """Symbols mentioned by name in an inline instruction."""
    tokens = set()
    word = []
    for ch in text + " ":
        if ch.isalnum() or ch == "_":
            word.append(ch)
        else:
            if word:
                tokens.add("".join(word))
            word = []
    return tokens & names


def touched_symbols(program: IntermediateProgram) -> list[set[str]]:
    """Per operation, the set of symbol names it touches."""
    names = {s.name for s in program.symbols}
    result = []
    for op in program.operations:
        touched = op.symbols()
        if op.kind is OpKind.INLINE and op.inline:
            touched |= _inline_symbols(op.inline, names)
        result.append(touched)
    return result


def find_loops(program: IntermediateProgram) -> list[tuple[int, int]]:
    """Return (header, latch) index pairs for every backward transfer."""
    labels = program.labels()
    loops = []
    for index, op in enumerate(program.operations):
        if op.kind is OpKind.JUMP or op.is_branch:
            header = labels.get(op.target)
            if header is not None and header <= index:
                loops.append((header, index))
    return loops


def find_subroutines(program: IntermediateProgram) -> list[tuple[int, int]]:
    """Return (start, end) index pairs for the bodies of called labels."""
    labels = program.labels()
    called = {op.target for op in program.operations if op.kind is OpKind.CALL}
    bodies = []
    for name in sorted(called):
        start = labels.get(name)
        if start is None:
            # External routine (runtime library)
            continue
        end = len(program.operations) - 1
        for index in range(start, len(program.operations)):
            if program.operations[index].kind is OpKind.RETURN:
                end = index
                break
        bodies.append((start, end))
    return bodies


def _first_access_is_write(program: IntermediateProgram, name: str, start: int) -> bool:
    op = program.operations[start]
    written = any(isinstance(v, Ref) and v.name == name for v in op.defs())
    read = any(isinstance(v, Ref) and v.name == name for v in op.uses())
    return written and not read


def analyze_liveness(program: IntermediateProgram) -> dict[str, LivenessInfo]:
    """
    Compute liveness for every declared symbol.

    Returns:
        Mapping from symbol name to LivenessInfo, in declaration order
    """
    n_ops = len(program.operations)
    last = max(n_ops - 1, 0)
    touched = touched_symbols(program)

    first_touch: dict[str, int] = {}
    last_touch: dict[str, int] = {}
    frequency: dict[str, int] = {s.name: 0 for s in program.symbols}
    for index, names in enumerate(touched):
        for name in names:
            first_touch.setdefault(name, index)
            last_touch[name] = index
            frequency[name] = frequency.get(name, 0) + 1

    in_subroutine: set[str] = set()
    for start, end in find_subroutines(program):
        for index in range(start, end + 1):
            in_subroutine |= touched[index]

    loops = find_loops(program)
    result: dict[str, LivenessInfo] = {}

    for sym in program.symbols:
        name = sym.name
        live: Optional[LiveRange] = sym.live
        if live is None:
            if sym.is_global or name in in_subroutine:
                live = LiveRange(0, last)
            elif name not in first_touch:
                live = LiveRange(0, 0)
            else:
                live = _extend_over_loops(
                    program, name, first_touch[name], last_touch[name], loops,
                )
        result[name] = LivenessInfo(live, frequency.get(name, 0))
        logger.debug("liveness %s: %s (frequency %d)", name, live, frequency.get(name, 0))

    return result


def _has_join(program: IntermediateProgram, start: int, end: int) -> bool:
    """True if a label lies after start and at or before end."""
    return any(
        program.operations[index].kind in DEFINING_KINDS
        for index in range(start + 1, end + 1)
    )


def _extend_over_loops(
    program: IntermediateProgram,
    name: str,
    start: int,
    end: int,
    loops: list[tuple[int, int]],
) -> LiveRange:
    changed = True
    while changed:
        changed = False
        for header, latch in loops:
            if start > latch or end < header:
                continue
            if (
                start >= header
                and end <= latch
                and _first_access_is_write(program, name, start)
                and not _has_join(program, start, end)
            ):
                continue
            new_start, new_end = min(start, header), max(end, latch)
            if (new_start, new_end) != (start, end):
                start, end = new_start, new_end
                changed = True
    return LiveRange(start, end)
