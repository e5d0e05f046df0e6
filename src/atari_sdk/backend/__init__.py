"""
6502 Backend
============

Lowers an IntermediateProgram to 6502 code for the Atari 8-bit family.

Stages
------
- **allocator**: Zero-page interval coloring with absolute spill
- **selector**: Candidate-based instruction selection (+ runtime library)
- **optimizer**: Code-size peephole rewrites
- **layout**: Addresses, label checks, branch relaxation, encoding
- **validator**: Crash-safety checks against the hardware profile
- **emitter**: Native (MADS) and AT&T-like debug renderers
- **pipeline**: The Backend driver tying the stages together

Example
-------
>>> from atari_sdk.backend import Backend, BackendConfig
>>> from atari_sdk.ir import read_file
>>> result = Backend(BackendConfig(nocrash=True)).compile(read_file("rainbow.a8ir"))
>>> len(result.code)
"""

from atari_sdk.backend.config import (
    AsmStyle,
    OptimizationLevel,
    BackendConfig,
    DEFAULT_TARGET,
    parse_address,
)
from atari_sdk.backend.stream import (
    Origin,
    Operand,
    Instruction,
    Label,
    InstructionStream,
)
from atari_sdk.backend.allocator import (
    ZeroPage,
    Absolute,
    Allocation,
    ZeroPageAllocator,
    allocate,
)
from atari_sdk.backend.selector import (
    InstructionCandidate,
    InstructionSelector,
    SelectionResult,
    select_instructions,
)
from atari_sdk.backend.runtime import RUNTIME_ROUTINES, runtime_stream
from atari_sdk.backend.layout import (
    Layout,
    compute_layout,
    check_labels,
    relax_branches,
    resolve_operands,
    encode,
)
from atari_sdk.backend.optimizer import PeepholeOptimizer, OptimizationStats, optimize_stream
from atari_sdk.backend.validator import CrashSafetyValidator
from atari_sdk.backend.emitter import Renderer, NativeRenderer, DebugRenderer, get_renderer, emit
from atari_sdk.backend.pipeline import Backend, CompileResult, compile_program

__all__ = [
    # Configuration
    "AsmStyle",
    "OptimizationLevel",
    "BackendConfig",
    "DEFAULT_TARGET",
    "parse_address",
    # Stream
    "Origin",
    "Operand",
    "Instruction",
    "Label",
    "InstructionStream",
    # Allocation
    "ZeroPage",
    "Absolute",
    "Allocation",
    "ZeroPageAllocator",
    "allocate",
    # Selection
    "InstructionCandidate",
    "InstructionSelector",
    "SelectionResult",
    "select_instructions",
    "RUNTIME_ROUTINES",
    "runtime_stream",
    # Layout
    "Layout",
    "compute_layout",
    "check_labels",
    "relax_branches",
    "resolve_operands",
    "encode",
    # Optimization and validation
    "PeepholeOptimizer",
    "OptimizationStats",
    "optimize_stream",
    "CrashSafetyValidator",
    # Emission
    "Renderer",
    "NativeRenderer",
    "DebugRenderer",
    "get_renderer",
    "emit",
    # Driver
    "Backend",
    "CompileResult",
    "compile_program",
]
