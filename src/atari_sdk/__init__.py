"""
Atari SDK - 6502 Backend Toolchain for the Atari 8-bit Family
=============================================================

This package lowers a small, architecture-neutral intermediate
representation to MOS 6502 assembly for the Atari 400/800/XL/XE.

The Atari 8-bit machines run an NMOS 6502 (SALLY on the XL/XE) at about
1.79 MHz (NTSC). Zero page ($00-$FF) is the scarce, fast storage that
most of the backend's decisions revolve around; the hardware registers
of GTIA, POKEY, PIA and ANTIC live at $D000-$D4FF.

Main Components
---------------
- **ir**: Intermediate representation, text reader, AT&T importer, liveness
- **backend**: Allocation, selection, optimization, validation, emission
- **assembler**: Native (MADS-dialect) assembler
- **disassembler**: 6502 disassembler
- **emulator**: Reference interpreter used to check generated code
- **sdk**: Atari memory map and register names

Quick Start
-----------
Compile a text IR program:
    >>> from atari_sdk import Backend, BackendConfig, read_file
    >>> result = Backend(BackendConfig(nocrash=True)).compile(read_file("rainbow.a8ir"))
    >>> print(result.text)

Reassemble the output:
    >>> from atari_sdk import assemble
    >>> assemble(result.text).code == result.code
    True

Or use the command-line tools:
    $ a8cc rainbow.a8ir -o rainbow.asm
    $ a8dis rainbow.bin --address '$2000'

Reference Documentation
-----------------------
- Mapping the Atari: https://www.atariarchives.org/mapping/
- 6502 Instruction Set: https://www.masswerk.at/6502/6502_instruction_set.html
- MADS Assembler: https://mads.atari8.info/
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from atari_sdk.errors import (
    AtariError,
    IRError,
    IRSyntaxError,
    UndefinedSymbolError,
    BackendError,
    IllegalAddressingModeError,
    UnresolvedLabelError,
    HardwareFaultRiskError,
    BranchRangeError,
    BackendCompilationError,
    AssemblerError,
    AssemblySyntaxError,
    InterpreterError,
    Severity,
    DiagnosticCode,
    Diagnostic,
)
from atari_sdk.ir import IntermediateProgram, ProgramBuilder, read_program, read_file, import_att
from atari_sdk.backend import Backend, BackendConfig, CompileResult, compile_program
from atari_sdk.assembler import Assembler, assemble
from atari_sdk.disassembler import Mos6502Disassembler

__all__ = [
    "__version__",
    # Errors
    "AtariError",
    "IRError",
    "IRSyntaxError",
    "UndefinedSymbolError",
    "BackendError",
    "IllegalAddressingModeError",
    "UnresolvedLabelError",
    "HardwareFaultRiskError",
    "BranchRangeError",
    "BackendCompilationError",
    "AssemblerError",
    "AssemblySyntaxError",
    "InterpreterError",
    "Severity",
    "DiagnosticCode",
    "Diagnostic",
    # IR
    "IntermediateProgram",
    "ProgramBuilder",
    "read_program",
    "read_file",
    "import_att",
    # Backend
    "Backend",
    "BackendConfig",
    "CompileResult",
    "compile_program",
    # Tools
    "Assembler",
    "assemble",
    "Mos6502Disassembler",
]
