"""
Layout and Encoding
===================

Address assignment, label checking, branch relaxation and byte encoding
for an InstructionStream.

Branch Relaxation
-----------------
6502 conditional branches reach -128..+127 bytes from the byte after the
branch. A branch whose target is farther away is rewritten as the inverted
branch over an absolute jump:

    BEQ far             BNE __relax0
                        JMP far
                    __relax0:

Rewriting grows the code, which can push other branches out of range, so
relaxation repeats until every branch fits. Sizes only grow, so this
terminates.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from atari_sdk.backend.stream import Instruction, InstructionStream, Label, Operand
from atari_sdk.cpu.mos6502 import AddressingMode, get_instruction_info, get_inverted_branch
from atari_sdk.errors import (
    BranchRangeError,
    Diagnostic,
    DiagnosticCode,
    IllegalAddressingModeError,
    Severity,
    UnresolvedLabelError,
)

logger = logging.getLogger(__name__)

BRANCH_MIN = -128
BRANCH_MAX = 127


@dataclass
class Layout:
    """
    Addresses assigned to a stream.

    Attributes:
        origin: Address of the first item
        addresses: Address of each stream item (labels share the address
            of the next instruction)
        labels: Label name -> address
        end: First address past the code
    """
    origin: int
    addresses: list[int]
    labels: dict[str, int]
    end: int

    @property
    def size(self) -> int:
        return self.end - self.origin


def compute_layout(stream: InstructionStream, origin: int) -> Layout:
    """Assign an address to every item. The first definition of a label wins."""
    address = origin
    addresses = []
    labels: dict[str, int] = {}
    for item in stream:
        addresses.append(address)
        if isinstance(item, Label):
            labels.setdefault(item.name, address)
        else:
            address += item.size
    return Layout(origin, addresses, labels, address)


def check_labels(stream: InstructionStream) -> list[Diagnostic]:
    """
    Report duplicate definitions and references to undefined labels.

    Both are FATAL: encoding needs exactly one definition per label.
    """
    diagnostics = []
    seen: dict[str, Label] = {}
    for position, item in enumerate(stream):
        if not isinstance(item, Label):
            continue
        if item.name in seen:
            diagnostics.append(Diagnostic(
                Severity.FATAL,
                str(item.origin) if item.origin else item.name,
                f"label '{item.name}' defined more than once",
                DiagnosticCode.DUPLICATE_LABEL,
                item.origin.location if item.origin else None,
                position,
            ))
        else:
            seen[item.name] = item

    for position, item in enumerate(stream):
        if isinstance(item, Instruction) and item.target is not None and item.target not in seen:
            origin = item.origin
            diagnostics.append(Diagnostic(
                Severity.FATAL,
                f"{origin}: {item}" if origin else str(item),
                f"unresolved label '{item.target}'",
                DiagnosticCode.UNRESOLVED_LABEL,
                origin.location if origin else None,
                position,
            ))
    return diagnostics


def branch_offset(source: int, target: int) -> int:
    """Relative displacement for a 2-byte branch at source."""
    return target - (source + 2)


def _branch_fits(item: Instruction, address: int, labels: dict[str, int]) -> bool:
    if item.target is None or item.target not in labels:
        return True
    distance = branch_offset(address, labels[item.target] + item.operand.offset)
    return BRANCH_MIN <= distance <= BRANCH_MAX


def relax_branches(stream: InstructionStream, origin: int) -> tuple[InstructionStream, int]:
    """
    Rewrite out-of-range conditional branches.

    Returns:
        The relaxed stream and the number of branches rewritten
    """
    taken = set(stream.label_names())
    counter = 0
    rewritten = 0

    def fresh() -> str:
        nonlocal counter
        while f"__relax{counter}" in taken:
            counter += 1
        name = f"__relax{counter}"
        taken.add(name)
        return name

    items = list(stream)
    while True:
        layout = compute_layout(stream.copy(items), origin)
        changed = False
        result = []
        for item, address in zip(items, layout.addresses):
            if isinstance(item, Instruction) and item.is_branch and not _branch_fits(item, address, layout.labels):
                skip = fresh()
                inverted = get_inverted_branch(item.mnemonic)
                result.append(Instruction(inverted, Operand.to_label(skip, AddressingMode.RELATIVE), item.origin))
                result.append(Instruction("JMP", Operand.to_label(item.target, offset=item.operand.offset), item.origin))
                result.append(Label(skip, item.origin))
                logger.debug("relaxed %s at $%04X via %s", item, address, skip)
                changed = True
                rewritten += 1
            else:
                result.append(item)
        items = result
        if not changed:
            break

    if rewritten:
        logger.info("relaxed %d out-of-range branch(es)", rewritten)
    return stream.copy(items), rewritten


def resolve_operands(stream: InstructionStream, origin: int) -> InstructionStream:
    """Return a copy whose label operands carry their resolved addresses."""
    labels = compute_layout(stream, origin).labels
    items = [
        item.with_operand(item.operand.resolved(labels)) if isinstance(item, Instruction) else item
        for item in stream
    ]
    return stream.copy(items)


def encode_instruction(item: Instruction, address: int, labels: dict[str, int]) -> bytes:
    """
    Encode one instruction at address.

    Raises:
        IllegalAddressingModeError: (mnemonic, mode) not in the opcode table,
            or a zero-page operand above $FF
        UnresolvedLabelError: Operand label has no address
        BranchRangeError: Branch displacement outside -128..127
    """
    location = item.origin.location if item.origin else None
    info = get_instruction_info(item.mnemonic, item.mode)
    if info is None:
        raise IllegalAddressingModeError(
            f"{item.mnemonic} does not support {item.mode} addressing", location=location,
        )

    operand = item.operand
    if operand.label is not None:
        if operand.label not in labels:
            raise UnresolvedLabelError(operand.label, location=location)
        value = labels[operand.label] + operand.offset
    else:
        value = operand.value

    mode = item.mode
    if mode is AddressingMode.RELATIVE:
        distance = branch_offset(address, value)
        if not BRANCH_MIN <= distance <= BRANCH_MAX:
            raise BranchRangeError(operand.label or f"${value:04X}", distance, location)
        return bytes([info.opcode, distance & 0xFF])

    size = mode.operand_size
    if size == 0:
        return bytes([info.opcode])
    if size == 1:
        if mode is not AddressingMode.IMMEDIATE and not 0 <= value <= 0xFF:
            raise IllegalAddressingModeError(
                f"'{item}' needs a zero-page address, got ${value & 0xFFFF:04X}", location=location,
            )
        return bytes([info.opcode, value & 0xFF])
    value &= 0xFFFF
    return bytes([info.opcode, value & 0xFF, value >> 8])


def encode(stream: InstructionStream, origin: int, layout: Optional[Layout] = None) -> bytes:
    """Encode a whole stream to machine code loaded at origin."""
    if layout is None:
        layout = compute_layout(stream, origin)
    code = bytearray()
    for item, address in zip(stream, layout.addresses):
        if isinstance(item, Instruction):
            code.extend(encode_instruction(item, address, layout.labels))
    return bytes(code)
