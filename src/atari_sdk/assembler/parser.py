"""
Native Assembly Parser
======================

Line parser for the MADS-compatible 6502 dialect written by the native
renderer. It is used three ways: to read the runtime library source, to
parse INLINE instructions, and to reassemble emitted programs.

Statement Types
---------------
1. **LabelDef**: a name in column 0, with or without a trailing colon
   ```asm
   main
   loop:   LDA #$00
   ```

2. **Instruction**: a mnemonic and its operand, indented
   ```asm
           LDA #$41        ; immediate
           STA COLBK       ; zero page or absolute by value
           LDA a:$0080,X   ; a: forces absolute addressing
           ASL @           ; accumulator
           LDA (ptr),Y     ; indirect indexed
   ```

3. **Directive**: ORG, RUN and equates
   ```asm
           ORG $2000
   COLBK   equ $D01A
   TMP     = $80
           RUN main
   ```

Addressing Mode Detection
-------------------------
| Syntax       | Mode                      |
|--------------|---------------------------|
| (none)       | Implied (Accumulator for shifts) |
| @ or A       | Accumulator               |
| #expr        | Immediate (#<expr, #>expr select a byte) |
| expr         | Zero page if <= $FF, else Absolute; Relative for branches |
| expr,X / ,Y  | Indexed, zero page when it fits |
| (expr)       | Indirect (JMP)            |
| (expr,X)     | Indexed indirect          |
| (expr),Y     | Indirect indexed          |

Expressions are sums and differences of numbers ($hex, %bin, decimal,
'c'), names and `*` (the current location).
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional, Union

from atari_sdk.backend.stream import Instruction, Operand
from atari_sdk.cpu.mos6502 import (
    AddressingMode,
    BRANCH_INSTRUCTIONS,
    MNEMONICS,
    is_valid_instruction,
)
from atari_sdk.errors import AssemblySyntaxError, SourceLocation


DIRECTIVES = frozenset({"ORG", "RUN", "EQU", "="})

_NAME = re.compile(r"[A-Za-z_?][A-Za-z0-9_?]*")


# =============================================================================
# Expressions
# =============================================================================

@dataclass(frozen=True)
class Expression:
    """
    A signed sum of terms. Each term is an int, a name, or "*".

    Attributes:
        terms: (sign, term) pairs with sign +1 or -1
        text: Source text, for error messages
    """
    terms: tuple
    text: str = ""

    @property
    def names(self) -> list[str]:
        return [term for _, term in self.terms if isinstance(term, str) and term != "*"]

    @property
    def base(self) -> Optional[str]:
        """The single positive name in the expression, if there is exactly one."""
        names = [(sign, term) for sign, term in self.terms if isinstance(term, str) and term != "*"]
        if len(names) == 1 and names[0][0] > 0:
            return names[0][1]
        return None

    @property
    def constant(self) -> int:
        return sum(sign * term for sign, term in self.terms if isinstance(term, int))

    def evaluate(self, resolve: Callable[[str], Optional[int]], here: int = 0) -> Optional[int]:
        """Value of the expression, or None if a name is unresolved."""
        total = 0
        for sign, term in self.terms:
            if isinstance(term, int):
                total += sign * term
            elif term == "*":
                total += sign * here
            else:
                value = resolve(term)
                if value is None:
                    return None
                total += sign * value
        return total


def parse_number(text: str) -> int:
    """Parse $hex, %binary, 'c' or decimal. Raises ValueError."""
    if len(text) == 3 and text[0] == text[2] == "'":
        return ord(text[1])
    if text.startswith("$"):
        return int(text[1:], 16)
    if text.startswith("%"):
        return int(text[1:], 2)
    if text.lower().startswith("0x"):
        return int(text[2:], 16)
    return int(text, 10)


def parse_expression(text: str) -> Expression:
    """
    Parse an expression.

    Raises:
        ValueError: On malformed input
    """
    source = text
    text = text.replace(" ", "")
    if not text:
        raise ValueError("empty expression")
    terms = []
    sign = 1
    position = 0
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        position = 1
    while position < len(text):
        match = _NAME.match(text, position)
        if text[position] == "*":
            term, position = "*", position + 1
        elif text[position] == "'" and position + 2 < len(text) and text[position + 2] == "'":
            term, position = ord(text[position + 1]), position + 3
        elif match:
            term, position = match.group(0), match.end()
        else:
            end = position
            while end < len(text) and text[end] not in "+-":
                end += 1
            term = parse_number(text[position:end])
            position = end
        terms.append((sign, term))
        if position < len(text):
            if text[position] not in "+-":
                raise ValueError(f"unexpected '{text[position]}' in '{source}'")
            sign = -1 if text[position] == "-" else 1
            position += 1
            if position == len(text):
                raise ValueError(f"dangling operator in '{source}'")
    return Expression(tuple(terms), source.strip())


# =============================================================================
# Statements
# =============================================================================

class ParsedAddressingMode(Enum):
    """Addressing mode as written, before zero-page/absolute resolution."""
    IMPLIED = auto()
    ACCUMULATOR = auto()
    IMMEDIATE = auto()
    DIRECT_OR_ABSOLUTE = auto()
    INDEXED_X = auto()
    INDEXED_Y = auto()
    INDIRECT = auto()
    INDEXED_INDIRECT = auto()
    INDIRECT_INDEXED = auto()


@dataclass
class Statement:
    """Base class for all parsed statements."""
    location: SourceLocation


@dataclass
class LabelDef(Statement):
    name: str


@dataclass
class ParsedOperand:
    """
    Operand as written.

    Attributes:
        mode: Syntactic addressing mode
        expression: Operand expression (None for implied/accumulator)
        force: "a" or "z" when the a:/z: prefix forces the width
        byte_select: "<" or ">" for low/high byte immediates
    """
    mode: ParsedAddressingMode
    expression: Optional[Expression] = None
    force: Optional[str] = None
    byte_select: Optional[str] = None


@dataclass
class ParsedInstruction(Statement):
    mnemonic: str
    operand: ParsedOperand


@dataclass
class Directive(Statement):
    name: str
    arguments: list[Expression] = field(default_factory=list)
    label: Optional[str] = None


# =============================================================================
# Parser
# =============================================================================

def _strip_comment(line: str) -> str:
    in_quote = False
    for index, ch in enumerate(line):
        if ch == "'":
            in_quote = not in_quote
        elif ch == ";" and not in_quote:
            return line[:index]
    return line


class Parser:
    """
    Parses native-dialect source into statements.

    Usage:
        statements = Parser(text, "prog.asm").parse()
    """

    def __init__(self, text: str, filename: str = "<input>"):
        self.text = text
        self.filename = filename

    def parse(self) -> list[Statement]:
        statements: list[Statement] = []
        for line_number, raw in enumerate(self.text.splitlines(), start=1):
            statements.extend(self._parse_line(raw, line_number))
        return statements

    def _error(self, message: str, raw: str, line_number: int) -> AssemblySyntaxError:
        return AssemblySyntaxError(
            message,
            location=SourceLocation(self.filename, line_number),
            source_line=raw,
        )

    def _parse_line(self, raw: str, line_number: int) -> list[Statement]:
        line = _strip_comment(raw).rstrip()
        if not line.strip() or line.lstrip().startswith("*"):
            return []
        location = SourceLocation(self.filename, line_number)

        label = None
        rest = line
        if line[0] not in " \t":
            word, _, rest = line.partition(" ") if " " in line else line.partition("\t")
            if "\t" in word:
                word, _, tail = word.partition("\t")
                rest = tail + " " + rest
            label = word.rstrip(":")
            if not _NAME.fullmatch(label):
                raise self._error(f"invalid label '{label}'", raw, line_number)
        rest = rest.strip()

        if label is not None:
            keyword, _, value = rest.partition(" ")
            if keyword.lower() == "equ" or keyword == "=" or rest.startswith("="):
                value = rest[1:] if rest.startswith("=") and keyword != "=" else value
                try:
                    expression = parse_expression(value.strip())
                except ValueError as e:
                    raise self._error(f"invalid equate value: {e}", raw, line_number) from None
                return [Directive(location, "EQU", [expression], label)]

        statements: list[Statement] = []
        if label is not None:
            statements.append(LabelDef(location, label))
        if not rest:
            return statements

        mnemonic, _, operand_text = rest.partition(" ")
        mnemonic = mnemonic.upper()
        operand_text = operand_text.strip()

        if mnemonic in ("ORG", "RUN"):
            try:
                expression = parse_expression(operand_text)
            except ValueError as e:
                raise self._error(f"invalid {mnemonic} argument: {e}", raw, line_number) from None
            statements.append(Directive(location, mnemonic, [expression]))
            return statements

        if mnemonic not in MNEMONICS:
            raise self._error(f"unknown mnemonic '{mnemonic}'", raw, line_number)

        try:
            operand = parse_operand(mnemonic, operand_text)
        except ValueError as e:
            raise self._error(f"invalid operand '{operand_text}': {e}", raw, line_number) from None
        statements.append(ParsedInstruction(location, mnemonic, operand))
        return statements


def parse_operand(mnemonic: str, text: str) -> ParsedOperand:
    """
    Parse operand text for a mnemonic.

    Raises:
        ValueError: On malformed operands
    """
    text = text.strip()
    if not text:
        if not is_valid_instruction(mnemonic, AddressingMode.IMPLIED) and \
                is_valid_instruction(mnemonic, AddressingMode.ACCUMULATOR):
            return ParsedOperand(ParsedAddressingMode.ACCUMULATOR)
        return ParsedOperand(ParsedAddressingMode.IMPLIED)

    if text == "@" or (text == "A" and is_valid_instruction(mnemonic, AddressingMode.ACCUMULATOR)):
        return ParsedOperand(ParsedAddressingMode.ACCUMULATOR)

    if text.startswith("#"):
        body = text[1:].strip()
        select = None
        if body[:1] in ("<", ">"):
            select, body = body[0], body[1:]
        return ParsedOperand(ParsedAddressingMode.IMMEDIATE, parse_expression(body), byte_select=select)

    force = None
    if text[:2].lower() in ("a:", "z:"):
        force, text = text[0].lower(), text[2:].strip()

    upper = text.upper().replace(" ", "")
    if upper.startswith("("):
        compact = text.replace(" ", "")
        if upper.endswith(",X)"):
            return ParsedOperand(ParsedAddressingMode.INDEXED_INDIRECT, parse_expression(compact[1:-3]), force)
        if upper.endswith("),Y"):
            return ParsedOperand(ParsedAddressingMode.INDIRECT_INDEXED, parse_expression(compact[1:-3]), force)
        if upper.endswith(")") and upper.count("(") == 1:
            return ParsedOperand(ParsedAddressingMode.INDIRECT, parse_expression(compact[1:-1]), force)
        raise ValueError("unbalanced parentheses")

    if upper.endswith(",X"):
        return ParsedOperand(ParsedAddressingMode.INDEXED_X, parse_expression(text[:-2]), force)
    if upper.endswith(",Y"):
        return ParsedOperand(ParsedAddressingMode.INDEXED_Y, parse_expression(text[:-2]), force)
    return ParsedOperand(ParsedAddressingMode.DIRECT_OR_ABSOLUTE, parse_expression(text), force)


_DIRECT_MODES = {
    ParsedAddressingMode.DIRECT_OR_ABSOLUTE: (AddressingMode.ZERO_PAGE, AddressingMode.ABSOLUTE),
    ParsedAddressingMode.INDEXED_X: (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X),
    ParsedAddressingMode.INDEXED_Y: (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y),
}

_FIXED_MODES = {
    ParsedAddressingMode.IMPLIED: AddressingMode.IMPLIED,
    ParsedAddressingMode.ACCUMULATOR: AddressingMode.ACCUMULATOR,
    ParsedAddressingMode.IMMEDIATE: AddressingMode.IMMEDIATE,
    ParsedAddressingMode.INDIRECT: AddressingMode.INDIRECT,
    ParsedAddressingMode.INDEXED_INDIRECT: AddressingMode.INDEXED_INDIRECT,
    ParsedAddressingMode.INDIRECT_INDEXED: AddressingMode.INDIRECT_INDEXED,
}


def resolve_mode(mnemonic: str, operand: ParsedOperand, value: Optional[int]) -> AddressingMode:
    """
    Choose the concrete addressing mode.

    Zero-page forms are used when the value is known, fits in a byte, the
    mnemonic supports it and no a: prefix forces absolute. Unknown (forward)
    values resolve to absolute so sizes stay stable between passes.
    """
    if operand.mode in _FIXED_MODES:
        return _FIXED_MODES[operand.mode]
    if mnemonic in BRANCH_INSTRUCTIONS and operand.mode is ParsedAddressingMode.DIRECT_OR_ABSOLUTE:
        return AddressingMode.RELATIVE

    zero_page, absolute = _DIRECT_MODES[operand.mode]
    fits = value is not None and 0 <= value <= 0xFF
    if operand.force == "z":
        return zero_page
    if operand.force != "a" and fits and is_valid_instruction(mnemonic, zero_page):
        return zero_page
    if not is_valid_instruction(mnemonic, absolute) and fits and operand.force != "a":
        return zero_page
    return absolute


# =============================================================================
# Conversion to stream instructions
# =============================================================================

def to_stream_operand(
    mnemonic: str,
    operand: ParsedOperand,
    symbols: dict[str, int],
    location: Optional[SourceLocation] = None,
) -> Operand:
    """
    Convert a parsed operand to a stream Operand.

    Names found in symbols become resolved memory operands (keeping the
    name for display); other names are code-label references.
    """
    mode_hint = operand.mode
    if mode_hint in (ParsedAddressingMode.IMPLIED, ParsedAddressingMode.ACCUMULATOR):
        return Operand(resolve_mode(mnemonic, operand, None))

    expression = operand.expression
    base = expression.base
    unresolved = [name for name in expression.names if name not in symbols]

    if mode_hint is ParsedAddressingMode.IMMEDIATE:
        if unresolved:
            raise AssemblySyntaxError(
                f"immediate operand '{expression.text}' must be a constant",
                location=location,
            )
        value = expression.evaluate(symbols.get)
        if operand.byte_select == ">":
            value >>= 8
        return Operand.immediate(value)

    if unresolved:
        if base is None or len(expression.names) != 1:
            raise AssemblySyntaxError(
                f"cannot resolve '{expression.text}'", location=location,
            )
        mode = resolve_mode(mnemonic, operand, None)
        return Operand.to_label(base, mode, offset=expression.constant)

    value = expression.evaluate(symbols.get) & 0xFFFF
    mode = resolve_mode(mnemonic, operand, value)
    if mode is AddressingMode.RELATIVE:
        return Operand(mode, value)
    if base is not None:
        return Operand(mode, value, symbol=base, offset=expression.constant)
    return Operand(mode, value)


def parse_instruction(text: str, symbols: Optional[dict[str, int]] = None) -> Instruction:
    """
    Parse one instruction (no label) into a stream Instruction.

    Raises:
        AssemblySyntaxError: If the text is not a single valid instruction
    """
    statements = Parser("    " + text.strip(), "<inline>").parse()
    if len(statements) != 1 or not isinstance(statements[0], ParsedInstruction):
        raise AssemblySyntaxError(f"expected one instruction, got '{text.strip()}'")
    parsed = statements[0]
    operand = to_stream_operand(parsed.mnemonic, parsed.operand, symbols or {}, parsed.location)
    return Instruction(parsed.mnemonic, operand)


def parse_source(text: str, filename: str = "<input>") -> list[Statement]:
    """Parse native-dialect source into statements."""
    return Parser(text, filename).parse()


Resolver = Union[dict, Callable[[str], Optional[int]]]
