"""
Text IR Reader
==============

Reads and writes the line-oriented text form of an IntermediateProgram
(conventionally stored in `.a8ir` files). The format mirrors
`str(Operation)` so a program can be dumped and read back.

Syntax
------
    ; comment to end of line
    program rainbow                     optional program name
    symbol x byte                       declare a symbol
    symbol screen pointer global        ...global symbols live everywhere
    symbol t word live 3 9              ...explicit live range
    entry main                          program entry point
    loop:                               label (also: label loop)
    move x, #0                          operations: kind operand, operand, ...
    store $D40A, #0                     addresses are $hex or decimal
    load_indirect ch, screen, 2         trailing number = offset
    load_indexed v, $0600, i, 40        trailing number = index bound
    branch_ne x, #10, loop              branch label comes last
    asm sta $D01A                       inline instruction (also: inline ...)

Constants are written `#5`, `#$FF`, `#%1010`, `#-1` or `#'A'`.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from atari_sdk.errors import IRSyntaxError, SourceLocation
from atari_sdk.ir.model import (
    Address,
    Const,
    IntermediateProgram,
    LiveRange,
    OP_SHAPES,
    OpKind,
    Operation,
    Ref,
    SizeClass,
    Symbol,
    TARGETED_KINDS,
    Value,
)

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Kinds whose optional trailing number is an offset rather than a count
_OFFSET_KINDS = frozenset({OpKind.LOAD_INDIRECT, OpKind.STORE_INDIRECT})
_COUNT_KINDS = frozenset({OpKind.LOAD_INDEXED, OpKind.STORE_INDEXED, OpKind.SHL, OpKind.SHR})


def parse_number(text: str) -> int:
    """
    Parse a numeric literal.

    Accepts $hex, 0xhex, %binary, 'c' character and decimal forms, with an
    optional leading minus sign.

    Raises:
        ValueError: If the text is not a number
    """
    text = text.strip()
    if not text:
        raise ValueError("empty number")
    negative = text.startswith("-")
    if negative:
        text = text[1:]
    if len(text) == 3 and text[0] == text[2] == "'":
        value = ord(text[1])
    elif text.startswith("$"):
        value = int(text[1:], 16)
    elif text.lower().startswith("0x"):
        value = int(text[2:], 16)
    elif text.startswith("%"):
        value = int(text[1:], 2)
    else:
        value = int(text, 10)
    return -value if negative else value


class IRReader:
    """
    Parser for the text IR format.

    Usage:
        program = IRReader("demo.a8ir").read(text)
    """

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._symbols: list[Symbol] = []
        self._operations: list[Operation] = []
        self._name = Path(filename).stem if filename != "<input>" else "program"

    def read(self, text: str) -> IntermediateProgram:
        for line_number, raw in enumerate(text.splitlines(), start=1):
            self._read_line(raw, line_number)
        program = IntermediateProgram(tuple(self._symbols), tuple(self._operations), self._name)
        logger.info(
            "read %s: %d symbols, %d operations",
            self.filename, len(program.symbols), len(program.operations),
        )
        return program

    # -------------------------------------------------------------------------
    # Line handling
    # -------------------------------------------------------------------------

    def _error(self, message: str, line: str, line_number: int, column: int = 1,
               hint: Optional[str] = None) -> IRSyntaxError:
        return IRSyntaxError(
            message,
            location=SourceLocation(self.filename, line_number, column),
            hint=hint,
            source_line=line,
        )

    def _read_line(self, raw: str, line_number: int) -> None:
        line = self._strip_comment(raw).strip()
        if not line:
            return
        location = SourceLocation(self.filename, line_number, len(raw) - len(raw.lstrip()) + 1)

        if line.endswith(":") and _IDENTIFIER.match(line[:-1]):
            self._operations.append(Operation(OpKind.LABEL, target=line[:-1], location=location))
            return

        keyword, _, rest = line.partition(" ")
        keyword = keyword.lower()
        rest = rest.strip()

        if keyword == "program":
            self._name = rest or self._name
        elif keyword == "symbol":
            self._read_symbol(rest, raw, line_number, location)
        elif keyword in ("asm", "inline"):
            if not rest:
                raise self._error("inline operation requires instruction text", raw, line_number)
            self._operations.append(Operation(OpKind.INLINE, inline=rest, location=location))
        else:
            try:
                kind = OpKind(keyword)
            except ValueError:
                raise self._error(
                    f"unknown operation '{keyword}'", raw, line_number, location.column,
                    hint="see atari_sdk.ir.model.OpKind for the operation list",
                ) from None
            self._operations.append(self._read_operation(kind, rest, raw, line_number, location))

    @staticmethod
    def _strip_comment(line: str) -> str:
        # ';' inside a character constant is not a comment
        in_quote = False
        for index, ch in enumerate(line):
            if ch == "'":
                in_quote = not in_quote
            elif ch == ";" and not in_quote:
                return line[:index]
        return line

    def _read_symbol(self, rest: str, raw: str, line_number: int, location: SourceLocation) -> None:
        words = rest.split()
        if not words or not _IDENTIFIER.match(words[0]):
            raise self._error("symbol declaration requires a name", raw, line_number)
        name = words[0]
        size = SizeClass.BYTE
        is_global = False
        live = None
        index = 1
        while index < len(words):
            word = words[index].lower()
            if word in ("byte", "word", "pointer"):
                size = SizeClass(word)
            elif word == "global":
                is_global = True
            elif word == "live":
                if index + 2 >= len(words):
                    raise self._error("'live' requires a start and an end index", raw, line_number)
                try:
                    live = LiveRange(int(words[index + 1]), int(words[index + 2]))
                except ValueError as e:
                    raise self._error(f"invalid live range: {e}", raw, line_number) from None
                index += 2
            else:
                raise self._error(f"unknown symbol attribute '{words[index]}'", raw, line_number)
            index += 1
        self._symbols.append(Symbol(name, size, live, is_global, location))

    def _read_operation(self, kind: OpKind, rest: str, raw: str, line_number: int,
                        location: SourceLocation) -> Operation:
        fields = [f.strip() for f in rest.split(",")] if rest else []
        shape = OP_SHAPES[kind]
        n_values = len(shape)
        wants_target = kind in TARGETED_KINDS
        expected = n_values + (1 if wants_target else 0)

        if len(fields) < expected:
            raise self._error(
                f"'{kind}' expects {expected} operand(s), got {len(fields)}",
                raw, line_number, location.column,
            )

        values = tuple(
            self._read_value(f, role, raw, line_number)
            for f, role in zip(fields[:n_values], shape)
        )

        target = None
        position = n_values
        if wants_target:
            target = fields[position]
            if not _IDENTIFIER.match(target):
                raise self._error(f"invalid label '{target}'", raw, line_number)
            position += 1

        count = None
        offset = 0
        extra = fields[position:]
        if extra:
            if len(extra) > 1 or kind not in _OFFSET_KINDS | _COUNT_KINDS:
                raise self._error(f"too many operands for '{kind}'", raw, line_number)
            try:
                number = parse_number(extra[0])
            except ValueError:
                raise self._error(f"expected a number, got '{extra[0]}'", raw, line_number) from None
            if kind in _OFFSET_KINDS:
                offset = number
            else:
                count = number

        return Operation(kind, values, target=target, count=count, offset=offset, location=location)

    def _read_value(self, text: str, role: str, raw: str, line_number: int) -> Value:
        if not text:
            raise self._error("empty operand", raw, line_number)
        try:
            if text.startswith("#"):
                return Const(parse_number(text[1:]))
            if _IDENTIFIER.match(text):
                return Ref(text)
            return Address(parse_number(text))
        except ValueError:
            raise self._error(f"malformed operand '{text}'", raw, line_number) from None


def read_program(text: str, filename: str = "<input>") -> IntermediateProgram:
    """Parse text IR into an IntermediateProgram."""
    return IRReader(filename).read(text)


def read_file(path: Union[str, Path]) -> IntermediateProgram:
    """Read a `.a8ir` file."""
    path = Path(path)
    return IRReader(str(path)).read(path.read_text(encoding="utf-8"))


def format_program(program: IntermediateProgram) -> str:
    """Render a program in the text IR format read by IRReader."""
    lines = [f"program {program.name}"]
    for sym in program.symbols:
        parts = [f"symbol {sym.name} {sym.size}"]
        if sym.is_global:
            parts.append("global")
        if sym.live is not None:
            parts.append(f"live {sym.live.start} {sym.live.end}")
        lines.append(" ".join(parts))
    for op in program.operations:
        if op.kind is OpKind.LABEL:
            lines.append(f"{op.target}:")
        elif op.kind is OpKind.INLINE:
            lines.append(f"    asm {op.inline}")
        else:
            lines.append(f"    {op}")
    return "\n".join(lines) + "\n"
