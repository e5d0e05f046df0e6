"""
Intermediate Program Model
==========================

The IntermediateProgram is the contract between a front-end and the 6502
backend: an immutable, ordered tuple of Operations over declared Symbols.
Nothing in the backend mutates it.

Values
------
Operands are one of three value kinds:

    Ref("count")     a declared symbol (byte, word or pointer)
    Const(5)         an immediate constant
    Address(0xD40A)  a fixed memory location, typically a hardware register

Operation Kinds
---------------
Each kind has a fixed operand shape (see OP_SHAPES). Widths follow the
destination: a word destination makes the operation 16-bit, and narrower
sources are zero-extended.

    move dst, src               dst := src
    load dst, src               dst := memory (src is an Address or symbol)
    store dst, src              memory := src (dst is an Address or symbol)
    load_indirect dst, ptr      dst := [ptr + offset]
    store_indirect ptr, src     [ptr + offset] := src
    load_indexed dst, base, i   dst := [base + i]     (count = bound of i)
    store_indexed base, i, src  [base + i] := src     (count = bound of i)
    add/sub/and/or/xor d, a, b  d := a op b
    shl/shr dst, src            dst := src shifted by count (default 1)
    inc/dec dst                 dst := dst +/- 1
    push src / pop dst          hardware stack transfer
    jump L                      unconditional transfer
    branch_eq/ne/lt/ge a, b, L  compare (unsigned) and branch
    branch_zero/nonzero a, L    test and branch
    call L / return             subroutine linkage
    label L                     define a label
    entry L                     define the program entry point
    inline "text"               one literal 6502 instruction

Example:
    b = ProgramBuilder("demo")
    x = b.symbol("x")
    b.entry("main")
    b.op("move", x, 5)
    str(b.build().operations[1])   # -> "move x, #5"
"""

import difflib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from atari_sdk.errors import IRError, SourceLocation, UndefinedSymbolError


# =============================================================================
# Size Classes and Live Ranges
# =============================================================================

class SizeClass(Enum):
    """Declared size of a symbol."""
    BYTE = "byte"
    WORD = "word"
    POINTER = "pointer"

    @property
    def width(self) -> int:
        """Storage width in bytes."""
        return 1 if self is SizeClass.BYTE else 2

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LiveRange:
    """Inclusive range of operation indices over which a symbol is live."""
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid live range [{self.start}, {self.end}]")

    def overlaps(self, other: "LiveRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def __contains__(self, index: int) -> bool:
        return self.start <= index <= self.end

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"


@dataclass(frozen=True)
class Symbol:
    """
    A named value declared by the front-end.

    Attributes:
        name: Unique symbol name
        size: Declared size class
        live: Explicit live range; computed by liveness analysis when None
        is_global: Global symbols are live for the whole program
        location: Declaration site, for diagnostics
    """
    name: str
    size: SizeClass = SizeClass.BYTE
    live: Optional[LiveRange] = None
    is_global: bool = False
    location: Optional[SourceLocation] = None

    @property
    def width(self) -> int:
        return self.size.width


# =============================================================================
# Operand Values
# =============================================================================

@dataclass(frozen=True)
class Ref:
    """Reference to a declared symbol."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Const:
    """Immediate constant (interpreted modulo 2**16)."""
    value: int

    def __str__(self) -> str:
        if self.value < 10:
            return f"#{self.value}"
        return f"#${self.value & 0xFFFF:02X}"


@dataclass(frozen=True)
class Address:
    """Fixed absolute memory location."""
    address: int

    def __post_init__(self):
        if not 0 <= self.address <= 0xFFFF:
            raise ValueError(f"address out of range: {self.address}")

    def __str__(self) -> str:
        if self.address < 0x100:
            return f"${self.address:02X}"
        return f"${self.address:04X}"


Value = Union[Ref, Const, Address]


# =============================================================================
# Operations
# =============================================================================

class OpKind(Enum):
    """IR operation kinds."""
    MOVE = "move"
    LOAD = "load"
    STORE = "store"
    LOAD_INDIRECT = "load_indirect"
    STORE_INDIRECT = "store_indirect"
    LOAD_INDEXED = "load_indexed"
    STORE_INDEXED = "store_indexed"
    ADD = "add"
    SUB = "sub"
    AND = "and"
    OR = "or"
    XOR = "xor"
    SHL = "shl"
    SHR = "shr"
    INC = "inc"
    DEC = "dec"
    PUSH = "push"
    POP = "pop"
    JUMP = "jump"
    BRANCH_EQ = "branch_eq"
    BRANCH_NE = "branch_ne"
    BRANCH_LT = "branch_lt"
    BRANCH_GE = "branch_ge"
    BRANCH_ZERO = "branch_zero"
    BRANCH_NONZERO = "branch_nonzero"
    CALL = "call"
    RETURN = "return"
    LABEL = "label"
    ENTRY = "entry"
    INLINE = "inline"

    def __str__(self) -> str:
        return self.value


# Operand shapes. Letters name the role of each operand:
#   d = destination (Ref or Address)    s = source (any value)
#   p = pointer (Ref or zero-page-capable Address)
#   b = base address (Address)          i = index (Ref or Const)
OP_SHAPES: dict[OpKind, str] = {
    OpKind.MOVE: "ds",
    OpKind.LOAD: "ds",
    OpKind.STORE: "ds",
    OpKind.LOAD_INDIRECT: "dp",
    OpKind.STORE_INDIRECT: "ps",
    OpKind.LOAD_INDEXED: "dbi",
    OpKind.STORE_INDEXED: "bis",
    OpKind.ADD: "dss",
    OpKind.SUB: "dss",
    OpKind.AND: "dss",
    OpKind.OR: "dss",
    OpKind.XOR: "dss",
    OpKind.SHL: "ds",
    OpKind.SHR: "ds",
    OpKind.INC: "d",
    OpKind.DEC: "d",
    OpKind.PUSH: "s",
    OpKind.POP: "d",
    OpKind.JUMP: "",
    OpKind.BRANCH_EQ: "ss",
    OpKind.BRANCH_NE: "ss",
    OpKind.BRANCH_LT: "ss",
    OpKind.BRANCH_GE: "ss",
    OpKind.BRANCH_ZERO: "s",
    OpKind.BRANCH_NONZERO: "s",
    OpKind.CALL: "",
    OpKind.RETURN: "",
    OpKind.LABEL: "",
    OpKind.ENTRY: "",
    OpKind.INLINE: "",
}

# Kinds that carry a label in Operation.target
TARGETED_KINDS = frozenset({
    OpKind.JUMP, OpKind.BRANCH_EQ, OpKind.BRANCH_NE, OpKind.BRANCH_LT,
    OpKind.BRANCH_GE, OpKind.BRANCH_ZERO, OpKind.BRANCH_NONZERO,
    OpKind.CALL, OpKind.LABEL, OpKind.ENTRY,
})

BRANCH_KINDS = frozenset({
    OpKind.BRANCH_EQ, OpKind.BRANCH_NE, OpKind.BRANCH_LT, OpKind.BRANCH_GE,
    OpKind.BRANCH_ZERO, OpKind.BRANCH_NONZERO,
})

DEFINING_KINDS = frozenset({OpKind.LABEL, OpKind.ENTRY})


@dataclass(frozen=True)
class Operation:
    """
    One IR operation.

    Attributes:
        kind: Operation kind
        operands: Operand values, shaped per OP_SHAPES[kind]
        target: Label for control transfers and label definitions
        count: Shift count for shl/shr; index bound for indexed access
        offset: Byte offset for indirect access (0-255)
        inline: Instruction text for INLINE operations
        location: Source location, for diagnostics
    """
    kind: OpKind
    operands: tuple = ()
    target: Optional[str] = None
    count: Optional[int] = None
    offset: int = 0
    inline: Optional[str] = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    def defs(self) -> tuple:
        """Operand values written by this operation."""
        shape = OP_SHAPES[self.kind]
        return tuple(v for v, role in zip(self.operands, shape) if role == "d")

    def uses(self) -> tuple:
        """Operand values read by this operation."""
        shape = OP_SHAPES[self.kind]
        read = tuple(v for v, role in zip(self.operands, shape) if role != "d")
        if self.kind in (OpKind.INC, OpKind.DEC):
            read += self.operands
        return read

    def symbols(self) -> set[str]:
        """Names of all symbols this operation touches."""
        return {v.name for v in self.operands if isinstance(v, Ref)}

    @property
    def is_branch(self) -> bool:
        return self.kind in BRANCH_KINDS

    def __str__(self) -> str:
        if self.kind is OpKind.INLINE:
            return f"inline {self.inline}"
        parts = [str(v) for v in self.operands]
        if self.kind in TARGETED_KINDS and self.target is not None:
            parts.append(self.target)
        if self.kind in (OpKind.LOAD_INDIRECT, OpKind.STORE_INDIRECT) and self.offset:
            parts.append(str(self.offset))
        if self.count is not None:
            parts.append(str(self.count))
        if not parts:
            return self.kind.value
        return f"{self.kind.value} {', '.join(parts)}"


# =============================================================================
# Intermediate Program
# =============================================================================

@dataclass(frozen=True)
class IntermediateProgram:
    """
    Immutable program handed to the backend.

    Attributes:
        symbols: Declared symbols in declaration order
        operations: Operations in program order
        name: Program name, used in emitted headers
    """
    symbols: tuple[Symbol, ...]
    operations: tuple[Operation, ...]
    name: str = "program"

    @property
    def symbol_map(self) -> dict[str, Symbol]:
        return {s.name: s for s in self.symbols}

    def symbol(self, name: str) -> Symbol:
        for sym in self.symbols:
            if sym.name == name:
                return sym
        raise UndefinedSymbolError(name, similar_symbols=self._similar(name))

    def width_of(self, value: Value) -> int:
        """Width in bytes of an operand value."""
        if isinstance(value, Ref):
            return self.symbol(value.name).width
        if isinstance(value, Const):
            return 1 if 0 <= value.value <= 0xFF or -0x80 <= value.value < 0 else 2
        return 1

    def labels(self) -> dict[str, int]:
        """Map each defined label to the index of its defining operation."""
        result = {}
        for index, op in enumerate(self.operations):
            if op.kind in DEFINING_KINDS:
                result.setdefault(op.target, index)
        return result

    @property
    def entry(self) -> Optional[str]:
        for op in self.operations:
            if op.kind is OpKind.ENTRY:
                return op.target
        return None

    def _similar(self, name: str) -> list[str]:
        return difflib.get_close_matches(name, [s.name for s in self.symbols], n=3)

    def validate(self) -> None:
        """
        Check the program is well formed.

        Raises:
            IRError: On operand-shape errors, duplicate declarations or
                duplicate labels
            UndefinedSymbolError: On references to undeclared symbols
        """
        declared: dict[str, Symbol] = {}
        for sym in self.symbols:
            if sym.name in declared:
                raise IRError(f"symbol '{sym.name}' declared twice", location=sym.location)
            declared[sym.name] = sym

        defined: set[str] = set()
        entries = 0
        for op in self.operations:
            self._validate_operation(op, declared)
            if op.kind in DEFINING_KINDS:
                if op.target in defined:
                    raise IRError(f"label '{op.target}' defined twice", location=op.location)
                defined.add(op.target)
            if op.kind is OpKind.ENTRY:
                entries += 1
                if entries > 1:
                    raise IRError("program has more than one entry point", location=op.location)

    def _validate_operation(self, op: Operation, declared: dict[str, Symbol]) -> None:
        shape = OP_SHAPES[op.kind]
        if len(op.operands) != len(shape):
            raise IRError(
                f"'{op.kind}' takes {len(shape)} operand(s), got {len(op.operands)}",
                location=op.location,
            )

        for value, role in zip(op.operands, shape):
            if not isinstance(value, (Ref, Const, Address)):
                raise IRError(f"invalid operand {value!r} in '{op}'", location=op.location)
            if isinstance(value, Ref) and value.name not in declared:
                raise UndefinedSymbolError(
                    value.name,
                    location=op.location,
                    similar_symbols=difflib.get_close_matches(value.name, list(declared), n=3),
                )
            if role == "d" and isinstance(value, Const):
                raise IRError(f"cannot assign to a constant in '{op}'", location=op.location)
            if role == "b" and not isinstance(value, Address):
                raise IRError(f"indexed base must be an address in '{op}'", location=op.location)
            if role == "i" and isinstance(value, Address):
                raise IRError(f"index must be a symbol or constant in '{op}'", location=op.location)
            if role == "p":
                if isinstance(value, Const):
                    raise IRError(f"pointer operand cannot be a constant in '{op}'", location=op.location)
                if isinstance(value, Ref) and declared[value.name].size is SizeClass.BYTE:
                    raise IRError(
                        f"pointer operand '{value.name}' must be a word or pointer in '{op}'",
                        location=op.location,
                    )

        if op.kind in TARGETED_KINDS and not op.target:
            raise IRError(f"'{op.kind}' requires a label", location=op.location)
        if op.kind is OpKind.INLINE and not (op.inline and op.inline.strip()):
            raise IRError("inline operation requires instruction text", location=op.location)
        if not 0 <= op.offset <= 0xFF:
            raise IRError(f"offset {op.offset} out of range 0..255", location=op.location)
        if op.count is not None:
            if op.kind in (OpKind.SHL, OpKind.SHR) and not 0 <= op.count <= 16:
                raise IRError(f"shift count {op.count} out of range 0..16", location=op.location)
            if op.kind in (OpKind.LOAD_INDEXED, OpKind.STORE_INDEXED) and not 1 <= op.count <= 256:
                raise IRError(f"index bound {op.count} out of range 1..256", location=op.location)
        if op.kind in (OpKind.LOAD_INDEXED, OpKind.STORE_INDEXED):
            index = op.operands[OP_SHAPES[op.kind].index("i")]
            if isinstance(index, Ref) and declared[index.name].size is not SizeClass.BYTE:
                raise IRError(f"index '{index.name}' must be a byte in '{op}'", location=op.location)


# =============================================================================
# Program Builder
# =============================================================================

def as_value(value) -> Value:
    """Coerce int to Const and str to Ref; pass values through."""
    if isinstance(value, (Ref, Const, Address)):
        return value
    if isinstance(value, bool):
        raise TypeError("boolean is not a valid operand")
    if isinstance(value, int):
        return Const(value)
    if isinstance(value, str):
        return Ref(value)
    raise TypeError(f"cannot use {value!r} as an operand")


class ProgramBuilder:
    """
    Convenience builder for IntermediatePrograms.

    Plain ints become constants and plain strings become symbol
    references, so tests and front-ends can write:

        b = ProgramBuilder()
        a = b.symbol("a")
        c = b.symbol("c", "word")
        b.op("add", c, a, 1)
    """

    def __init__(self, name: str = "program"):
        self.name = name
        self._symbols: list[Symbol] = []
        self._operations: list[Operation] = []

    def symbol(
        self,
        name: str,
        size: Union[SizeClass, str] = SizeClass.BYTE,
        is_global: bool = False,
        live: Optional[tuple[int, int]] = None,
        location: Optional[SourceLocation] = None,
    ) -> Ref:
        size_class = size if isinstance(size, SizeClass) else SizeClass(size)
        live_range = LiveRange(*live) if live is not None else None
        self._symbols.append(Symbol(name, size_class, live_range, is_global, location))
        return Ref(name)

    def op(
        self,
        kind: Union[OpKind, str],
        *operands,
        target: Optional[str] = None,
        count: Optional[int] = None,
        offset: int = 0,
        location: Optional[SourceLocation] = None,
    ) -> int:
        """Append an operation and return its index."""
        op_kind = kind if isinstance(kind, OpKind) else OpKind(kind)
        values = tuple(as_value(v) for v in operands)
        self._operations.append(Operation(
            op_kind, values, target=target, count=count, offset=offset, location=location,
        ))
        return len(self._operations) - 1

    def label(self, name: str) -> int:
        return self.op(OpKind.LABEL, target=name)

    def entry(self, name: str) -> int:
        return self.op(OpKind.ENTRY, target=name)

    def jump(self, name: str) -> int:
        return self.op(OpKind.JUMP, target=name)

    def call(self, name: str) -> int:
        return self.op(OpKind.CALL, target=name)

    def ret(self) -> int:
        return self.op(OpKind.RETURN)

    def inline(self, text: str, location: Optional[SourceLocation] = None) -> int:
        self._operations.append(Operation(OpKind.INLINE, inline=text, location=location))
        return len(self._operations) - 1

    def build(self) -> IntermediateProgram:
        return IntermediateProgram(tuple(self._symbols), tuple(self._operations), self.name)
