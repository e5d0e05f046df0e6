"""
Backend Configuration
=====================

A single frozen BackendConfig value is threaded through every pipeline
stage. There is no module-level mutable configuration, so independent
compilations can run side by side with different settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from atari_sdk.sdk.hardware import DEFAULT_PROFILE, HardwareProfile


class AsmStyle(Enum):
    """Output dialect of the assembly emitter."""
    NATIVE = "native"
    ATT_LIKE_DEBUG = "att-like-debug"

    def __str__(self) -> str:
        return self.value


class OptimizationLevel(Enum):
    """
    Code-size optimizer level.

    NONE skips the optimizer, DEFAULT runs a single pass of the rewrite
    library, SIZE iterates it to a fixpoint or the pass bound.
    """
    NONE = "none"
    DEFAULT = "default"
    SIZE = "size"

    def __str__(self) -> str:
        return self.value


DEFAULT_TARGET = "x86_64-unknown-linux-gnu"


@dataclass(frozen=True)
class BackendConfig:
    """
    Compiler-wide options.

    Attributes:
        asm_style: Emitter dialect
        target: Host triple shown by the debug dialect (the 6502 target is fixed)
        nocrash: Strict crash-safety mode; findings become fatal
        optimization: Code-size optimizer level
        origin: Load address of the program
        zero_page_start: First zero-page byte available to the allocator
        zero_page_end: Last zero-page byte available to the allocator
        data_base: First address for symbols spilled out of zero page
        hardware: Memory map used by the validator and the emitter
        max_optimizer_passes: Bound on optimizer iterations
        symbolic_labels: Render labels by name (False renders addresses)
        include_runtime: Append runtime library routines the program calls
    """
    asm_style: AsmStyle = AsmStyle.NATIVE
    target: str = DEFAULT_TARGET
    nocrash: bool = False
    optimization: OptimizationLevel = OptimizationLevel.DEFAULT
    origin: int = 0x2000
    zero_page_start: int = 0x80
    zero_page_end: int = 0xFF
    data_base: int = 0x0600
    hardware: HardwareProfile = field(default=DEFAULT_PROFILE, compare=False)
    max_optimizer_passes: int = 10
    symbolic_labels: bool = True
    include_runtime: bool = True

    def __post_init__(self):
        # Accept plain strings for the enum options
        if not isinstance(self.asm_style, AsmStyle):
            object.__setattr__(self, "asm_style", AsmStyle(self.asm_style))
        if not isinstance(self.optimization, OptimizationLevel):
            object.__setattr__(self, "optimization", OptimizationLevel(self.optimization))

        if not 0 <= self.zero_page_start <= self.zero_page_end <= 0xFF:
            raise ValueError(
                f"invalid zero-page window ${self.zero_page_start:02X}-${self.zero_page_end:02X}"
            )
        if not 0 <= self.origin <= 0xFFFF:
            raise ValueError(f"origin ${self.origin:X} out of range")
        if not 0x100 <= self.data_base <= 0xFFFF:
            raise ValueError(f"data base ${self.data_base:X} must be outside zero page")
        if self.max_optimizer_passes < 1:
            raise ValueError("max_optimizer_passes must be at least 1")

    @property
    def zero_page_capacity(self) -> int:
        return self.zero_page_end - self.zero_page_start + 1

    @property
    def strict(self) -> bool:
        return self.nocrash

    def with_options(self, **changes) -> "BackendConfig":
        """Return a copy with some options changed."""
        values = {name: getattr(self, name) for name in self.__dataclass_fields__}
        values.update(changes)
        return BackendConfig(**values)


def parse_address(text: Union[str, int]) -> int:
    """Parse $hex, 0xhex or decimal address text (used by the CLI)."""
    if isinstance(text, int):
        return text
    text = text.strip()
    if text.startswith("$"):
        return int(text[1:], 16)
    return int(text, 0)
