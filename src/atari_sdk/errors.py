"""
Atari SDK Error Hierarchy
=========================

This module defines the exception hierarchy and the diagnostic records for
the entire Atari SDK. All exceptions inherit from AtariError, allowing
callers to catch all SDK-related errors with a single except clause.

Exception Hierarchy
-------------------
AtariError (base)
├── IRError (intermediate representation problems)
│   ├── IRSyntaxError - malformed text IR or AT&T listing line
│   └── UndefinedSymbolError - reference to an undeclared symbol
├── BackendError (code generation problems)
│   ├── IllegalAddressingModeError - operation has no legal encoding
│   ├── UnresolvedLabelError - label referenced but never defined
│   ├── HardwareFaultRiskError - crash-safety finding in strict mode
│   └── BranchRangeError - relative branch target too far
├── BackendCompilationError - aggregate of all fatal diagnostics
├── AssemblerError (native-dialect assembler)
│   └── AssemblySyntaxError - syntax error in assembly source
└── InterpreterError - reference interpreter cannot continue

Diagnostics
-----------
The backend does not stop at the first problem. Each stage records
Diagnostic values (severity, location, message, code) in a
DiagnosticCollector. Warnings never abort; any FATAL diagnostic aborts the
pipeline before emission and the collected report is raised as a
BackendCompilationError.

Error messages follow this format:
    filename:line:column: error: description
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class AtariError(Exception):
    """
    Base exception for all Atari SDK errors.

        try:
            compile_program(program)
        except AtariError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int = 1

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


class _LocatedError(AtariError):
    """
    Shared formatting for errors that carry a location and a hint.

    Example output:
        rainbow.a8ir:7:5: error: undefined symbol 'colr'
        hint: did you mean 'color'?
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        # Source context with caret pointer
        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# IR Exceptions
# =============================================================================

class IRError(_LocatedError):
    """
    Base exception for malformed intermediate programs.

    Raised by IntermediateProgram.validate() and by the IR readers when an
    operation has the wrong operand shape, a label is defined twice, or a
    line cannot be parsed.
    """
    pass


class IRSyntaxError(IRError):
    """
    Syntax error in a text IR file or an imported AT&T listing.

    Examples:
        - Unknown operation keyword
        - Wrong number of operands
        - Malformed number or register name
    """
    pass


class UndefinedSymbolError(IRError):
    """
    Reference to a symbol that was never declared.

    The hint lists similarly-named declared symbols when there are any,
    which catches most typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        hint = None
        if self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(f"undefined symbol '{symbol}'", location=location, hint=hint)


# =============================================================================
# Backend Exceptions
# =============================================================================

class BackendError(_LocatedError):
    """
    Base exception for code generation errors.

    Backend stages normally report through Diagnostics; these exception
    types are used when a single problem must stop a lower-level helper
    (layout, encoding) and as the code attached to each Diagnostic.
    """
    pass


class IllegalAddressingModeError(BackendError):
    """
    An IR operation cannot be encoded with any legal 6502 addressing mode.

    The classic case is indirect addressing through a pointer that was
    spilled to absolute storage: (zp),Y only reaches through zero page.
    """
    pass


class UnresolvedLabelError(BackendError):
    """A label is referenced but has no definition, or has several."""

    def __init__(self, label: str, location: Optional[SourceLocation] = None, hint: Optional[str] = None):
        self.label = label
        super().__init__(f"unresolved label '{label}'", location=location, hint=hint)


class HardwareFaultRiskError(BackendError):
    """A crash-safety finding promoted to an error by strict mode."""
    pass


class BranchRangeError(BackendError):
    """
    Relative branch target is out of range.

    6502 branches reach -128..+127 bytes from the next instruction. The
    layout stage relaxes long branches; this is raised only when encoding a
    stream that was never relaxed.
    """

    def __init__(
        self,
        target: str,
        distance: int,
        location: Optional[SourceLocation] = None,
    ):
        self.target = target
        self.distance = distance
        super().__init__(
            f"branch target '{target}' out of range ({distance} bytes, allowed -128..127)",
            location=location,
            hint="run branch relaxation before encoding",
        )


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(_LocatedError):
    """Base exception for errors in the native-dialect assembler."""
    pass


class AssemblySyntaxError(AssemblerError):
    """Syntax error in native-dialect assembly source."""
    pass


class InterpreterError(AtariError):
    """
    The reference interpreter met an instruction it does not model
    (undocumented opcodes) or ran away from the code under test.
    """

    def __init__(self, message: str, pc: int):
        self.message = message
        self.pc = pc
        super().__init__(f"${pc:04X}: {message}")


# =============================================================================
# Diagnostics
# =============================================================================

class Severity(Enum):
    """Diagnostic severity. FATAL aborts emission, WARNING does not."""
    WARNING = "warning"
    FATAL = "error"

    def __str__(self) -> str:
        return self.value


class DiagnosticCode(Enum):
    """Taxonomy of backend findings."""
    ILLEGAL_ADDRESSING_MODE = "illegal-addressing-mode"
    UNRESOLVED_LABEL = "unresolved-label"
    DUPLICATE_LABEL = "duplicate-label"
    HARDWARE_FAULT_RISK = "hardware-fault-risk"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Diagnostic:
    """
    A single backend finding.

    Attributes:
        severity: WARNING or FATAL
        location: Human-readable context (IR operation and instruction)
        message: Description of the problem
        code: Category of the finding
        source: Source location of the originating IR operation, if known
        position: Index of the offending item in the instruction stream,
            used by the emitter to attach warnings as comments
    """
    severity: Severity
    location: str
    message: str
    code: DiagnosticCode = DiagnosticCode.HARDWARE_FAULT_RISK
    source: Optional[SourceLocation] = None
    position: Optional[int] = None

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL

    def __str__(self) -> str:
        prefix = f"{self.source}: " if self.source else ""
        where = f" [{self.location}]" if self.location else ""
        return f"{prefix}{self.severity}: {self.message}{where} ({self.code})"


class DiagnosticCollector:
    """
    Collects diagnostics across pipeline stages for batch reporting.

    Example:
        collector = DiagnosticCollector()
        collector.extend(validator.validate(stream))
        if collector.has_fatal():
            raise BackendCompilationError(collector.diagnostics)
    """

    def __init__(self):
        self.diagnostics: list[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def extend(self, diagnostics) -> None:
        self.diagnostics.extend(diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_fatal]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_fatal]

    def has_fatal(self) -> bool:
        return any(d.is_fatal for d in self.diagnostics)

    def report(self) -> str:
        """Format all diagnostics, errors first, with a summary line."""
        lines = [str(d) for d in self.errors]
        lines.extend(str(d) for d in self.warnings)

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(f"{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}")
        return "\n".join(lines)

    def clear(self) -> None:
        self.diagnostics.clear()


class BackendCompilationError(AtariError):
    """
    Aggregate error raised when a pipeline run produced FATAL diagnostics.

    Carries every diagnostic collected up to the aborting stage, warnings
    included, so callers can print the full report.
    """

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = list(diagnostics)
        collector = DiagnosticCollector()
        collector.extend(self.diagnostics)
        self.message = collector.report()
        super().__init__(self.message)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_fatal]
