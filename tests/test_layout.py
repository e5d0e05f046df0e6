# =============================================================================
# test_layout.py - Layout, Relaxation and Encoding Tests
# =============================================================================
# Tests for the address and byte stages:
#   - Addresses and label values from compute_layout
#   - Duplicate and unresolved label diagnostics
#   - Relaxation of out-of-range branches into inverted branch + JMP
#   - Encoding of every operand width and branch displacements
# =============================================================================

import pytest

from atari_sdk.backend import (
    Instruction,
    InstructionStream,
    Label,
    Operand,
    check_labels,
    compute_layout,
    encode,
    relax_branches,
    resolve_operands,
)
from atari_sdk.cpu import AddressingMode
from atari_sdk.errors import BranchRangeError, DiagnosticCode, IllegalAddressingModeError, UnresolvedLabelError

M = AddressingMode


def far_loop(filler: int) -> InstructionStream:
    """A loop whose backward branch spans `filler` two-byte loads."""
    items = [Label("top")]
    items.extend(Instruction("LDA", Operand.immediate(k)) for k in range(filler))
    items.append(Instruction("BNE", Operand.to_label("top", M.RELATIVE)))
    items.append(Instruction("RTS"))
    return InstructionStream(items, entry="top")


class TestLayout:
    """Test address assignment."""

    def test_addresses(self):
        stream = InstructionStream([
            Label("main"),
            Instruction("LDA", Operand.immediate(1)),
            Instruction("STA", Operand.memory(0xD01A)),
            Label("done"),
            Instruction("RTS"),
        ])
        layout = compute_layout(stream, 0x2000)
        assert layout.addresses == [0x2000, 0x2000, 0x2002, 0x2005, 0x2005]
        assert layout.labels == {"main": 0x2000, "done": 0x2005}
        assert layout.size == 6

    def test_resolve_operands(self):
        stream = InstructionStream([Label("main"), Instruction("JMP", Operand.to_label("main"))])
        resolved = resolve_operands(stream, 0x3000)
        assert resolved.instructions()[0].operand.value == 0x3000


class TestLabelChecks:
    """Test label diagnostics."""

    def test_clean(self):
        stream = InstructionStream([Label("a"), Instruction("JMP", Operand.to_label("a"))])
        assert check_labels(stream) == []

    def test_duplicate(self):
        stream = InstructionStream([Label("a"), Instruction("NOP"), Label("a"), Instruction("RTS")])
        (diagnostic,) = check_labels(stream)
        assert diagnostic.is_fatal
        assert diagnostic.code is DiagnosticCode.DUPLICATE_LABEL
        assert diagnostic.position == 2

    def test_unresolved(self):
        stream = InstructionStream([Instruction("JSR", Operand.to_label("nowhere")), Instruction("RTS")])
        (diagnostic,) = check_labels(stream)
        assert diagnostic.code is DiagnosticCode.UNRESOLVED_LABEL
        assert "nowhere" in diagnostic.message


class TestRelaxation:
    """Test long-branch rewriting."""

    def test_short_branch_untouched(self):
        stream = far_loop(10)
        relaxed, count = relax_branches(stream, 0x2000)
        assert count == 0
        assert [str(i) for i in relaxed] == [str(i) for i in stream]

    def test_long_branch_rewritten(self):
        relaxed, count = relax_branches(far_loop(70), 0x2000)
        assert count == 1
        tail = [str(item) for item in relaxed][-4:]
        assert tail == ["BEQ __relax0", "JMP top", "__relax0:", "RTS"]

    def test_boundary(self):
        # 63 loads + branch: displacement -(126 + 2) = -128 still fits
        _, count = relax_branches(far_loop(63), 0x2000)
        assert count == 0
        _, count = relax_branches(far_loop(64), 0x2000)
        assert count == 1

    def test_relaxed_stream_encodes(self):
        relaxed, _ = relax_branches(far_loop(70), 0x2000)
        code = encode(relaxed, 0x2000)
        assert code[140:145] == bytes([0xF0, 0x03, 0x4C, 0x00, 0x20])

    def test_fresh_names_avoid_existing_labels(self):
        stream = far_loop(70)
        stream.append(Label("__relax0"))
        stream.append(Instruction("RTS"))
        relaxed, _ = relax_branches(stream, 0x2000)
        assert "__relax1" in relaxed.label_names()


class TestEncoding:
    """Test byte encoding."""

    def test_operand_widths(self):
        stream = InstructionStream([
            Instruction("LDA", Operand.immediate(0x41)),
            Instruction("STA", Operand.memory(0xD01A)),
            Instruction("STA", Operand.memory(0x80)),
            Instruction("ASL", Operand.accumulator()),
            Instruction("RTS"),
        ])
        assert encode(stream, 0x2000) == bytes.fromhex("a941 8d1ad0 8580 0a 60")

    def test_forward_branch(self):
        stream = InstructionStream([
            Instruction("BEQ", Operand.to_label("out", M.RELATIVE)),
            Instruction("NOP"),
            Label("out"),
            Instruction("RTS"),
        ])
        assert encode(stream, 0x2000) == bytes([0xF0, 0x01, 0xEA, 0x60])

    def test_label_with_offset(self):
        stream = InstructionStream([
            Label("table"),
            Instruction("LDA", Operand.to_label("table", offset=1)),
        ])
        assert encode(stream, 0x2000) == bytes([0xAD, 0x01, 0x20])

    def test_unrelaxed_branch_raises(self):
        with pytest.raises(BranchRangeError) as exc:
            encode(far_loop(70), 0x2000)
        assert exc.value.distance == -142

    def test_unresolved_label_raises(self):
        stream = InstructionStream([Instruction("JMP", Operand.to_label("gone"))])
        with pytest.raises(UnresolvedLabelError):
            encode(stream, 0x2000)

    def test_illegal_pair_raises(self):
        stream = InstructionStream([Instruction("STA", Operand.immediate(1))])
        with pytest.raises(IllegalAddressingModeError):
            encode(stream, 0x2000)

    def test_zero_page_mode_needs_small_address(self):
        stream = InstructionStream([Instruction("LDA", Operand(M.ZERO_PAGE, 0x0600))])
        with pytest.raises(IllegalAddressingModeError, match="zero-page"):
            encode(stream, 0x2000)
