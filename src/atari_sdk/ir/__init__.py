"""
Intermediate Representation
===========================

The IntermediateProgram data model consumed by the 6502 backend, the
liveness analysis that feeds the zero-page allocator, and two readers:

**model.py**: Symbols, values, operations and the program container
**liveness.py**: Live ranges and access frequencies per symbol
**reader.py**: The `.a8ir` text format (read and write)
**att.py**: Importer for AT&T x86 listings produced by a host compiler
"""

from atari_sdk.ir.model import (
    SizeClass,
    LiveRange,
    Symbol,
    Ref,
    Const,
    Address,
    Value,
    OpKind,
    OP_SHAPES,
    BRANCH_KINDS,
    TARGETED_KINDS,
    Operation,
    IntermediateProgram,
    ProgramBuilder,
    as_value,
)
from atari_sdk.ir.liveness import LivenessInfo, analyze_liveness
from atari_sdk.ir.reader import IRReader, read_program, read_file, format_program, parse_number
from atari_sdk.ir.att import AttImporter, import_att, import_att_file

__all__ = [
    "SizeClass",
    "LiveRange",
    "Symbol",
    "Ref",
    "Const",
    "Address",
    "Value",
    "OpKind",
    "OP_SHAPES",
    "BRANCH_KINDS",
    "TARGETED_KINDS",
    "Operation",
    "IntermediateProgram",
    "ProgramBuilder",
    "as_value",
    "LivenessInfo",
    "analyze_liveness",
    "IRReader",
    "read_program",
    "read_file",
    "format_program",
    "parse_number",
    "AttImporter",
    "import_att",
    "import_att_file",
]
