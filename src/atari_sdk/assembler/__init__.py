"""
Native-Dialect Assembler
========================

Parses and assembles the MADS-compatible 6502 syntax that the native
renderer writes. The backend uses it to read its runtime library and to
parse INLINE instructions; tests use it to reassemble emitted programs.

Main Components
---------------
- **Parser**: Line parser producing labels, instructions and directives
- **read_stream**: Source text to an InstructionStream
- **Assembler**: Two-pass assembler producing machine code

Example Usage
-------------
>>> from atari_sdk.assembler import assemble
>>> result = assemble('''
...         ORG $2000
... main    LDA #$41
...         RTS
... ''')
>>> result.labels["main"]
8192
"""

from atari_sdk.assembler.parser import (
    Parser,
    Statement,
    LabelDef,
    ParsedInstruction,
    ParsedOperand,
    ParsedAddressingMode,
    Directive,
    Expression,
    parse_expression,
    parse_instruction,
    parse_source,
    resolve_mode,
)
from atari_sdk.assembler.assembler import (
    Assembler,
    AssemblyResult,
    SourceUnit,
    assemble,
    assemble_file,
    read_stream,
)

__all__ = [
    # Main class and functions
    "Assembler",
    "AssemblyResult",
    "SourceUnit",
    "assemble",
    "assemble_file",
    "read_stream",
    # Parser
    "Parser",
    "Statement",
    "LabelDef",
    "ParsedInstruction",
    "ParsedOperand",
    "ParsedAddressingMode",
    "Directive",
    "Expression",
    "parse_expression",
    "parse_instruction",
    "parse_source",
    "resolve_mode",
]
