"""
Assembly Emitter
================

Renders a finished InstructionStream as text. The dialect is chosen by
`BackendConfig.asm_style`:

native (NativeRenderer)
    MADS syntax, reassemblable by MADS and by atari_sdk.assembler:

        COLBK    equ $D01A
        count    equ $80
                ORG $2000
        main
                LDA #$00
                STA count
                ASL @
                LDA a:$0042,X
                RUN main

    `@` marks accumulator mode, `a:` forces the absolute form of an
    operand below $100. Warnings become `; warning:` comments on the line
    before the instruction they concern.

att-like-debug (DebugRenderer)
    Not reassemblable; an AT&T-flavoured listing for reading generated
    code next to the IR:

        .target x86_64-unknown-linux-gnu
        .org    0x2000
    main:                       # 0x2000
        lda     $0x00           # 2000: 2b 2c  op 1 'move count, #0'

Both renderers are pure functions of their input, so output is
deterministic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from atari_sdk.backend.config import AsmStyle, BackendConfig
from atari_sdk.backend.layout import Layout, compute_layout
from atari_sdk.backend.stream import Instruction, InstructionStream, Label, Operand
from atari_sdk.cpu.mos6502 import AddressingMode
from atari_sdk.errors import Diagnostic


def _hex(value: int) -> str:
    return f"${value:02X}" if value < 0x100 else f"${value:04X}"


class Renderer(ABC):
    """
    Text rendering capability for instruction streams.

    Subclasses render one stream item at a time; render() drives them and
    places warning comments.
    """

    comment = ";"

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()

    def render(
        self,
        stream: InstructionStream,
        diagnostics: Optional[list[Diagnostic]] = None,
        name: Optional[str] = None,
    ) -> str:
        layout = compute_layout(stream, self.config.origin)
        notes: dict[int, list[Diagnostic]] = {}
        for diagnostic in diagnostics or []:
            if diagnostic.position is not None and not diagnostic.is_fatal:
                notes.setdefault(diagnostic.position, []).append(diagnostic)

        lines = self.header(stream, layout, name)
        for position, item in enumerate(stream):
            for diagnostic in notes.get(position, []):
                lines.append(f"{self.comment} warning: {diagnostic.message}")
            if isinstance(item, Label):
                lines.append(self.label(item, layout))
            else:
                lines.append(self.instruction(item, layout, layout.addresses[position]))
        lines.extend(self.footer(stream, layout))
        return "\n".join(lines) + "\n"

    @abstractmethod
    def header(self, stream: InstructionStream, layout: Layout, name: Optional[str]) -> list[str]:
        """Lines before the code."""

    @abstractmethod
    def label(self, item: Label, layout: Layout) -> str:
        """One label definition."""

    @abstractmethod
    def instruction(self, item: Instruction, layout: Layout, address: int) -> str:
        """One instruction line."""

    def footer(self, stream: InstructionStream, layout: Layout) -> list[str]:
        return []

    def _label_text(self, operand: Operand, layout: Layout) -> str:
        """Symbolic label reference, or its address when labels are resolved."""
        if self.config.symbolic_labels or operand.label not in layout.labels:
            if operand.offset:
                return f"{operand.label}{operand.offset:+d}"
            return operand.label
        return _hex((layout.labels[operand.label] + operand.offset) & 0xFFFF)


# =============================================================================
# Native (MADS) Renderer
# =============================================================================

class NativeRenderer(Renderer):
    """MADS-syntax renderer."""

    def header(self, stream, layout, name):
        lines = []
        if name:
            lines.append(f"; {name}")
        for equate, address in stream.equates.items():
            lines.append(f"{equate:<8} equ {_hex(address)}")
        lines.append(f"\tORG {_hex(self.config.origin)}")
        return lines

    def footer(self, stream, layout):
        if stream.entry and stream.entry in layout.labels:
            return [f"\tRUN {stream.entry}"]
        return []

    def label(self, item, layout):
        return item.name

    def operand_text(self, item: Instruction, layout: Layout) -> str:
        operand = item.operand
        mode = operand.mode
        if mode is AddressingMode.IMPLIED:
            return ""
        if mode is AddressingMode.ACCUMULATOR:
            return "@"
        if mode is AddressingMode.IMMEDIATE:
            return f"#{_hex(operand.value)}"

        if operand.label is not None:
            base = self._label_text(operand, layout)
        elif operand.symbol is not None:
            base = f"{operand.symbol}{operand.offset:+d}" if operand.offset else operand.symbol
        else:
            base = _hex(operand.value)

        # Values below $100 would assemble to zero page without the prefix
        absolute = mode in (AddressingMode.ABSOLUTE, AddressingMode.ABSOLUTE_X, AddressingMode.ABSOLUTE_Y)
        if absolute and operand.label is None and operand.value < 0x100:
            base = "a:" + (f"${operand.value:04X}" if operand.symbol is None else base)

        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return f"{base},X"
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return f"{base},Y"
        if mode is AddressingMode.INDIRECT:
            return f"({base})"
        if mode is AddressingMode.INDEXED_INDIRECT:
            return f"({base},X)"
        if mode is AddressingMode.INDIRECT_INDEXED:
            return f"({base}),Y"
        return base

    def instruction(self, item, layout, address):
        text = self.operand_text(item, layout)
        return f"\t{item.mnemonic} {text}" if text else f"\t{item.mnemonic}"


# =============================================================================
# AT&T-like Debug Renderer
# =============================================================================

class DebugRenderer(Renderer):
    """AT&T-flavoured debug listing with costs and IR origins."""

    comment = "#"

    def header(self, stream, layout, name):
        lines = []
        if name:
            lines.append(f"\t.file\t\"{name}\"")
        lines.append(f"\t.target\t{self.config.target}")
        lines.append("\t.cpu\tmos6502")
        lines.append(f"\t.org\t0x{self.config.origin:04x}")
        for equate, address in stream.equates.items():
            lines.append(f"\t.equ\t{equate}, 0x{address:04x}")
        lines.append(
            f"# {len(stream.instructions())} instructions, "
            f"{stream.byte_cost} bytes, {stream.cycle_cost} base cycles"
        )
        return lines

    def footer(self, stream, layout):
        lines = [f"# end 0x{layout.end:04x}"]
        if stream.entry:
            lines.insert(0, f"\t.entry\t{stream.entry}")
        return lines

    def label(self, item, layout):
        address = layout.labels.get(item.name)
        if address is None:
            return f"{item.name}:"
        return f"{item.name}:{'':<24}# 0x{address:04x}"

    def operand_text(self, item: Instruction, layout: Layout) -> str:
        operand = item.operand
        mode = operand.mode
        if mode is AddressingMode.IMPLIED:
            return ""
        if mode is AddressingMode.ACCUMULATOR:
            return "%a"
        if mode is AddressingMode.IMMEDIATE:
            return f"$0x{operand.value:02x}"
        if operand.label is not None:
            base = self._label_text(operand, layout).replace("$", "0x")
        elif operand.symbol is not None:
            base = f"{operand.symbol}{operand.offset:+d}" if operand.offset else operand.symbol
        else:
            base = f"0x{operand.value:02x}" if mode.is_zero_page else f"0x{operand.value:04x}"

        if mode in (AddressingMode.ZERO_PAGE_X, AddressingMode.ABSOLUTE_X):
            return f"{base}(%x)"
        if mode in (AddressingMode.ZERO_PAGE_Y, AddressingMode.ABSOLUTE_Y):
            return f"{base}(%y)"
        if mode is AddressingMode.INDIRECT:
            return f"*({base})"
        if mode is AddressingMode.INDEXED_INDIRECT:
            return f"({base}(%x))"
        if mode is AddressingMode.INDIRECT_INDEXED:
            return f"({base})(%y)"
        return base

    def instruction(self, item, layout, address):
        text = self.operand_text(item, layout)
        body = f"\t{item.mnemonic.lower()}\t{text}" if text else f"\t{item.mnemonic.lower()}"
        origin = f"  {item.origin}" if item.origin else ""
        return f"{body:<32}# {address:04x}: {item.size}b {item.cycles}c{origin}"


RENDERERS = {
    AsmStyle.NATIVE: NativeRenderer,
    AsmStyle.ATT_LIKE_DEBUG: DebugRenderer,
}


def get_renderer(config: Optional[BackendConfig] = None) -> Renderer:
    """Return the renderer selected by config.asm_style."""
    config = config or BackendConfig()
    return RENDERERS[config.asm_style](config)


def emit(
    stream: InstructionStream,
    config: Optional[BackendConfig] = None,
    diagnostics: Optional[list[Diagnostic]] = None,
    sink=None,
    name: Optional[str] = None,
) -> str:
    """
    Render stream and optionally write it to sink.

    Args:
        stream: Relaxed, validated instruction stream
        config: Selects the dialect and label rendering
        diagnostics: Warnings to attach as comments
        sink: Object with a write() method (a file, sys.stdout, StringIO)
        name: Program name for the header

    Returns:
        The rendered text
    """
    text = get_renderer(config).render(stream, diagnostics, name)
    if sink is not None:
        sink.write(text)
    return text
