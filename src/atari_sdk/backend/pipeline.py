"""
Backend Pipeline
================

Runs every backend stage in order over one IntermediateProgram:

    validate IR -> liveness -> allocate -> select -> check labels
      -> optimize -> relax branches -> crash-safety validation
      -> emit text + encode bytes

Diagnostics from every stage are collected. FATAL diagnostics stop the
run before emission with a BackendCompilationError carrying the full
list; warnings are kept on the result and attached to the output as
comments.

Example:
    >>> from atari_sdk.backend import Backend, BackendConfig
    >>> result = Backend(BackendConfig(optimization="size")).compile(program)
    >>> print(result.text)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from atari_sdk.backend.allocator import Allocation, ZeroPageAllocator
from atari_sdk.backend.config import BackendConfig
from atari_sdk.backend.emitter import emit
from atari_sdk.backend.layout import check_labels, encode, relax_branches
from atari_sdk.backend.optimizer import OptimizationStats, PeepholeOptimizer
from atari_sdk.backend.selector import InstructionSelector
from atari_sdk.backend.stream import InstructionStream
from atari_sdk.backend.validator import CrashSafetyValidator
from atari_sdk.errors import BackendCompilationError, Diagnostic, DiagnosticCollector
from atari_sdk.ir.liveness import analyze_liveness
from atari_sdk.ir.model import IntermediateProgram

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """
    Everything one compilation produced.

    Attributes:
        text: Rendered assembly
        code: Machine code loaded at config.origin
        stream: Final instruction stream
        allocation: Storage chosen for each symbol
        diagnostics: Warnings (fatal runs raise instead)
        stats: Optimizer statistics
        runtime_routines: Runtime library routines that were linked in
        relaxed_branches: Branches rewritten by relaxation
    """
    text: str
    code: bytes
    stream: InstructionStream
    allocation: Allocation
    diagnostics: list[Diagnostic] = field(default_factory=list)
    stats: OptimizationStats = field(default_factory=OptimizationStats)
    runtime_routines: list[str] = field(default_factory=list)
    relaxed_branches: int = 0

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_fatal]


class Backend:
    """
    The 6502 backend driver.

    A Backend holds only its frozen configuration, so one instance can
    compile any number of programs.
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()

    def compile(
        self,
        program: IntermediateProgram,
        sink=None,
    ) -> CompileResult:
        """
        Compile a program.

        Args:
            program: Program to compile
            sink: Optional object with write(); receives the text on success

        Returns:
            CompileResult

        Raises:
            IRError: If the program is malformed
            BackendCompilationError: If any stage reported a FATAL diagnostic
        """
        config = self.config
        collector = DiagnosticCollector()

        program.validate()
        logger.info(
            "compiling '%s': %d symbol(s), %d operation(s)",
            program.name, len(program.symbols), len(program.operations),
        )

        liveness = analyze_liveness(program)
        allocation = ZeroPageAllocator(config).allocate(program, liveness)

        selection = InstructionSelector(program, allocation, config).select()
        collector.extend(selection.diagnostics)
        stream = selection.stream
        collector.extend(check_labels(stream))
        if collector.has_fatal():
            raise BackendCompilationError(collector.diagnostics)

        optimizer = PeepholeOptimizer(config)
        stream = optimizer.optimize(stream)

        stream, relaxed = relax_branches(stream, config.origin)

        collector.extend(CrashSafetyValidator(config).validate(stream))
        if collector.has_fatal():
            raise BackendCompilationError(collector.diagnostics)

        text = emit(stream, config, collector.diagnostics, name=program.name)
        code = encode(stream, config.origin)
        if sink is not None:
            sink.write(text)

        logger.info(
            "compiled '%s': %d bytes at $%04X, %d warning(s)",
            program.name, len(code), config.origin, len(collector.warnings),
        )
        return CompileResult(
            text=text,
            code=code,
            stream=stream,
            allocation=allocation,
            diagnostics=list(collector.diagnostics),
            stats=optimizer.stats,
            runtime_routines=selection.runtime_routines,
            relaxed_branches=relaxed,
        )


def compile_program(
    program: IntermediateProgram,
    config: Optional[BackendConfig] = None,
    sink=None,
) -> CompileResult:
    """Convenience wrapper around Backend."""
    return Backend(config).compile(program, sink)
