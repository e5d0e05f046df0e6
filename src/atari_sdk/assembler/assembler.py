"""
Native Assembler - Main Interface
=================================

Assembles the MADS-compatible dialect written by the native renderer back
into 6502 machine code. The backend uses it to read the runtime library;
tests use it to check that emitted text reassembles to the same bytes.

Example Usage
-------------
>>> from atari_sdk.assembler import Assembler
>>> result = Assembler().assemble('''
...         ORG $2000
... main    LDA #$41
...         STA $D01A
...         RTS
...         RUN main
... ''')
>>> result.code.hex()
'a9418d1ad060'

Equates may refer to each other in any order. Names that are neither
equates, known hardware registers nor caller-supplied symbols are treated
as code labels and resolved after layout.
"""

import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from atari_sdk.assembler.parser import (
    Directive,
    LabelDef,
    ParsedInstruction,
    parse_source,
    to_stream_operand,
)
from atari_sdk.backend.layout import check_labels, compute_layout, encode
from atari_sdk.backend.stream import Instruction, InstructionStream, Label
from atari_sdk.errors import AssemblerError, AssemblySyntaxError, BackendError
from atari_sdk.sdk.hardware import DEFAULT_PROFILE, HardwareProfile

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = 0x2000


@dataclass
class SourceUnit:
    """
    Parsed source: the instruction stream plus ORG and RUN values.

    The stream's equates hold the equates defined in the source and every
    external symbol the code referenced.
    """
    stream: InstructionStream
    origin: int = DEFAULT_ORIGIN
    entry: Optional[str] = None


@dataclass
class AssemblyResult:
    """Machine code and symbol information from one assembly."""
    code: bytes
    origin: int
    labels: dict[str, int] = field(default_factory=dict)
    entry: Optional[str] = None
    stream: Optional[InstructionStream] = None

    @property
    def entry_address(self) -> Optional[int]:
        if self.entry is None:
            return None
        return self.labels.get(self.entry)


def _resolve_equates(directives: list[Directive], known: dict[str, int]) -> dict[str, int]:
    """Evaluate equates in dependency order."""
    equates: dict[str, int] = {}
    pending = list(directives)
    while pending:
        remaining = []
        for directive in pending:
            scope = {**known, **equates}
            value = directive.arguments[0].evaluate(scope.get)
            if value is None:
                remaining.append(directive)
            else:
                equates[directive.label] = value & 0xFFFF
        if len(remaining) == len(pending):
            first = remaining[0]
            missing = [n for n in first.arguments[0].names if n not in known and n not in equates]
            raise AssemblySyntaxError(
                f"cannot evaluate equate '{first.label}': undefined {', '.join(missing)}",
                location=first.location,
            )
        pending = remaining
    return equates


def read_stream(
    text: str,
    filename: str = "<input>",
    symbols: Optional[dict[str, int]] = None,
    profile: HardwareProfile = DEFAULT_PROFILE,
) -> SourceUnit:
    """
    Parse native-dialect source into an InstructionStream.

    Args:
        text: Assembly source
        filename: Name used in error messages
        symbols: Externally known names; defaults to the profile's registers
        profile: Memory map used to flag volatile operands

    Raises:
        AssemblySyntaxError: On syntax errors, unknown mnemonics, illegal
            addressing modes or unresolvable equates
    """
    statements = parse_source(text, filename)
    external = profile.register_map if symbols is None else dict(symbols)

    equate_directives = [s for s in statements if isinstance(s, Directive) and s.name == "EQU"]
    equates = _resolve_equates(equate_directives, external)
    known = {**external, **equates}

    stream = InstructionStream(equates=equates)
    origin = DEFAULT_ORIGIN
    entry = None
    for statement in statements:
        if isinstance(statement, LabelDef):
            if statement.name in known:
                raise AssemblySyntaxError(
                    f"label '{statement.name}' clashes with an equate", location=statement.location,
                )
            stream.append(Label(statement.name))
        elif isinstance(statement, ParsedInstruction):
            operand = to_stream_operand(statement.mnemonic, statement.operand, known, statement.location)
            address = operand.address
            instruction = Instruction(
                statement.mnemonic,
                operand,
                volatile=address is not None and profile.is_volatile(address),
            )
            if not instruction.is_legal:
                raise AssemblySyntaxError(
                    f"{instruction.mnemonic} does not support {instruction.mode} addressing",
                    location=statement.location,
                )
            if operand.symbol is not None and operand.symbol in external:
                stream.equates.setdefault(operand.symbol, external[operand.symbol])
            stream.append(instruction)
        elif statement.name == "ORG":
            value = statement.arguments[0].evaluate(known.get)
            if value is None:
                raise AssemblySyntaxError("ORG needs a constant address", location=statement.location)
            origin = value & 0xFFFF
        elif statement.name == "RUN":
            entry = statement.arguments[0].base or statement.arguments[0].text

    stream.entry = entry
    return SourceUnit(stream, origin, entry)


class Assembler:
    """
    Two-pass assembler for the native dialect.

    The first pass lays out addresses (label sizes are fixed once the mode
    is chosen, since forward label references always assemble absolute),
    the second encodes.

    Attributes:
        profile: Memory map supplying register names
        symbols: Extra predefined names
    """

    def __init__(self, profile: HardwareProfile = DEFAULT_PROFILE,
                 symbols: Optional[dict[str, int]] = None):
        self.profile = profile
        self.symbols = symbols

    def assemble(self, text: str, filename: str = "<input>") -> AssemblyResult:
        """
        Assemble source text.

        Raises:
            AssemblerError: On any syntax, label or encoding error
        """
        symbols = None
        if self.symbols is not None:
            symbols = {**self.profile.register_map, **self.symbols}
        unit = read_stream(text, filename, symbols, self.profile)

        problems = check_labels(unit.stream)
        if problems:
            raise AssemblerError(problems[0].message, hint=f"{len(problems)} label problem(s)")

        layout = compute_layout(unit.stream, unit.origin)
        try:
            code = encode(unit.stream, unit.origin, layout)
        except BackendError as e:
            raise AssemblerError(e.message, location=e.location, hint=e.hint) from None

        logger.info("assembled %d bytes at $%04X", len(code), unit.origin)
        return AssemblyResult(code, unit.origin, layout.labels, unit.entry, unit.stream)


def assemble(text: str, filename: str = "<input>") -> AssemblyResult:
    """Assemble source text with the default profile."""
    return Assembler().assemble(text, filename)


def assemble_file(path) -> AssemblyResult:
    """Assemble a source file."""
    path = Path(path)
    return Assembler().assemble(path.read_text(encoding="utf-8"), str(path))
