"""
Instruction Stream
==================

The backend's working representation between instruction selection and
emission: an ordered list of Instructions and Labels plus the equates the
emitter must declare.

Operands
--------
An Operand pairs an addressing mode with its value. Memory operands carry
the resolved address in `value` even when they also name a symbol (the
symbol is only for display), so optimizer rules compare addresses
numerically. Control-transfer operands and references to code labels carry
`label` instead; their address is only known after layout.

Origins
-------
Every instruction produced from an IR operation records an Origin (the IR
operation index, its text and its source location). Diagnostics quote the
origin so a finding can be traced back to the operation that caused it.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Optional, Union

from atari_sdk.cpu.mos6502 import (
    AddressingMode,
    BRANCH_INSTRUCTIONS,
    InstructionInfo,
    UNCONDITIONAL_TRANSFERS,
    get_instruction_info,
)
from atari_sdk.errors import SourceLocation


# =============================================================================
# Origins
# =============================================================================

@dataclass(frozen=True)
class Origin:
    """The IR operation an instruction was generated from."""
    index: int
    text: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        if self.index < 0:
            return self.text
        return f"op {self.index} '{self.text}'"


# =============================================================================
# Operands
# =============================================================================

@dataclass(frozen=True)
class Operand:
    """
    An addressing mode and its value.

    Attributes:
        mode: Addressing mode
        value: Immediate byte, resolved address, or 0 for unresolved labels
        label: Code label referenced by this operand, if any
        symbol: Display name of the data symbol or register, if any
        offset: Byte offset added to label or symbol
    """
    mode: AddressingMode
    value: int = 0
    label: Optional[str] = None
    symbol: Optional[str] = None
    offset: int = 0

    @classmethod
    def implied(cls) -> "Operand":
        return cls(AddressingMode.IMPLIED)

    @classmethod
    def accumulator(cls) -> "Operand":
        return cls(AddressingMode.ACCUMULATOR)

    @classmethod
    def immediate(cls, value: int) -> "Operand":
        return cls(AddressingMode.IMMEDIATE, value & 0xFF)

    @classmethod
    def memory(cls, address: int, mode: Optional[AddressingMode] = None,
               symbol: Optional[str] = None, offset: int = 0) -> "Operand":
        """Memory operand; picks zero-page or absolute mode when mode is None."""
        if mode is None:
            mode = AddressingMode.ZERO_PAGE if address < 0x100 else AddressingMode.ABSOLUTE
        return cls(mode, address & 0xFFFF, symbol=symbol, offset=offset)

    @classmethod
    def to_label(cls, label: str, mode: AddressingMode = AddressingMode.ABSOLUTE,
                 offset: int = 0) -> "Operand":
        return cls(mode, 0, label=label, offset=offset)

    @property
    def is_memory(self) -> bool:
        return self.mode.is_memory

    @property
    def address(self) -> Optional[int]:
        """Resolved data address, or None for labels and non-memory modes."""
        if self.label is not None or not self.is_memory:
            return None
        return self.value

    def with_mode(self, mode: AddressingMode) -> "Operand":
        return replace(self, mode=mode)

    def resolved(self, labels: dict[str, int]) -> "Operand":
        """Return a copy with the label address filled into value."""
        if self.label is None or self.label not in labels:
            return self
        return replace(self, value=(labels[self.label] + self.offset) & 0xFFFF)

    def _base_text(self) -> str:
        if self.label is not None:
            name = self.label
        elif self.symbol is not None:
            name = self.symbol
        else:
            return f"${self.value:02X}" if self.value < 0x100 else f"${self.value:04X}"
        if self.offset:
            return f"{name}{self.offset:+d}"
        return name

    def __str__(self) -> str:
        mode = self.mode
        if mode is AddressingMode.IMPLIED:
            return ""
        if mode is AddressingMode.ACCUMULATOR:
            return "A"
        if mode is AddressingMode.IMMEDIATE:
            return f"#${self.value:02X}"
        base = self._base_text()
        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return f"{base},X"
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return f"{base},Y"
        if mode is AddressingMode.INDIRECT:
            return f"({base})"
        if mode is AddressingMode.INDEXED_INDIRECT:
            return f"({base},X)"
        if mode is AddressingMode.INDIRECT_INDEXED:
            return f"({base}),Y"
        return base


IMPLIED = Operand.implied()
ACCUMULATOR = Operand.accumulator()


# =============================================================================
# Stream Items
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """
    One 6502 instruction.

    Attributes:
        mnemonic: Upper-case mnemonic
        operand: Addressing mode and value
        origin: IR operation this instruction came from
        index_limit: Known upper bound (exclusive) of the index register for
            indexed modes, when the selector could prove one
        volatile: The operand is a memory-mapped or OS-owned location whose
            accesses must not be removed or merged
    """
    mnemonic: str
    operand: Operand = IMPLIED
    origin: Optional[Origin] = None
    index_limit: Optional[int] = None
    volatile: bool = False

    @property
    def mode(self) -> AddressingMode:
        return self.operand.mode

    @property
    def info(self) -> Optional[InstructionInfo]:
        return get_instruction_info(self.mnemonic, self.operand.mode)

    @property
    def is_legal(self) -> bool:
        return self.info is not None

    @property
    def size(self) -> int:
        info = self.info
        return info.size if info else 1 + self.operand.mode.operand_size

    @property
    def cycles(self) -> int:
        info = self.info
        return info.cycles if info else 0

    @property
    def is_branch(self) -> bool:
        return self.mnemonic in BRANCH_INSTRUCTIONS

    @property
    def is_jump(self) -> bool:
        return self.mnemonic == "JMP" and self.operand.mode is AddressingMode.ABSOLUTE

    @property
    def ends_flow(self) -> bool:
        """True if control never falls through to the next item."""
        return self.mnemonic in UNCONDITIONAL_TRANSFERS

    @property
    def target(self) -> Optional[str]:
        """Label referenced by this instruction, if any."""
        return self.operand.label

    def with_operand(self, operand: Operand) -> "Instruction":
        return replace(self, operand=operand)

    def retarget(self, label: str) -> "Instruction":
        return replace(self, operand=replace(self.operand, label=label, value=0, offset=0))

    def __str__(self) -> str:
        text = str(self.operand)
        return f"{self.mnemonic} {text}" if text else self.mnemonic


@dataclass(frozen=True)
class Label:
    """A label definition."""
    name: str
    origin: Optional[Origin] = None

    def __str__(self) -> str:
        return f"{self.name}:"


StreamItem = Union[Instruction, Label]


# =============================================================================
# Instruction Stream
# =============================================================================

class InstructionStream:
    """
    Ordered instructions and labels, plus emitter metadata.

    Attributes:
        items: Instructions and labels in program order
        equates: Name -> address for every symbol the emitter must declare
        entry: Label of the program entry point
    """

    def __init__(
        self,
        items: Optional[Iterable[StreamItem]] = None,
        equates: Optional[dict[str, int]] = None,
        entry: Optional[str] = None,
    ):
        self.items: list[StreamItem] = list(items or [])
        self.equates: dict[str, int] = dict(equates or {})
        self.entry = entry

    def __iter__(self) -> Iterator[StreamItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def append(self, item: StreamItem) -> None:
        self.items.append(item)

    def extend(self, items: Iterable[StreamItem]) -> None:
        self.items.extend(items)

    def copy(self, items: Optional[Iterable[StreamItem]] = None) -> "InstructionStream":
        """Return a new stream with the same metadata and the given items."""
        return InstructionStream(
            self.items if items is None else items,
            equates=self.equates,
            entry=self.entry,
        )

    def instructions(self) -> list[Instruction]:
        return [item for item in self.items if isinstance(item, Instruction)]

    def label_names(self) -> list[str]:
        return [item.name for item in self.items if isinstance(item, Label)]

    def referenced_labels(self) -> set[str]:
        return {item.target for item in self.items
                if isinstance(item, Instruction) and item.target is not None}

    @property
    def byte_cost(self) -> int:
        return sum(item.size for item in self.items if isinstance(item, Instruction))

    @property
    def cycle_cost(self) -> int:
        return sum(item.cycles for item in self.items if isinstance(item, Instruction))

    def __str__(self) -> str:
        lines = []
        for item in self.items:
            lines.append(str(item) if isinstance(item, Label) else f"    {item}")
        return "\n".join(lines)
