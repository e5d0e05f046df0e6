# =============================================================================
# test_disassembler.py - 6502 Disassembler Tests
# =============================================================================
# Tests for the table-driven disassembler:
#   - Operand formatting for every addressing mode
#   - Register-name and branch-displacement annotations
#   - Unknown, undocumented and truncated instructions
#   - Agreement with the backend's instruction stream
#   - Reassembly of disassembled output
# =============================================================================

import pytest

from atari_sdk.assembler import assemble
from atari_sdk.backend import Backend, BackendConfig
from atari_sdk.cpu import AddressingMode
from atari_sdk.disassembler import ATARI_SYSTEM_SYMBOLS, Mos6502Disassembler, create_atari_disassembler

M = AddressingMode


@pytest.fixture
def disasm():
    return create_atari_disassembler()


# =============================================================================
# Basic Disassembly
# =============================================================================

class TestBasic:
    """Test single instructions."""

    def test_small_program(self, disasm):
        code = bytes.fromhex("a9418d1ad060")
        instrs = disasm.disassemble(code, start_address=0x2000)
        assert [i.text for i in instrs] == ["LDA #$41", "STA $D01A", "RTS"]
        assert [i.address for i in instrs] == [0x2000, 0x2002, 0x2005]
        assert instrs[0].comment == "'A'"
        assert instrs[1].comment == "COLBK"

    def test_line_format(self, disasm):
        (instr,) = disasm.disassemble(bytes([0x8D, 0x0A, 0xD4]), 0x2000)
        line = str(instr)
        assert line.startswith("$2000: 8D 0A D4  STA $D40A")
        assert line.endswith("; WSYNC")

    def test_line_without_comment(self, disasm):
        (instr,) = disasm.disassemble(bytes([0x60]), 0x2000)
        assert str(instr) == "$2000: 60        RTS"

    @pytest.mark.parametrize("data,text,mode", [
        ([0x0A], "ASL @", M.ACCUMULATOR),
        ([0xA5, 0x80], "LDA $80", M.ZERO_PAGE),
        ([0xB5, 0x80], "LDA $80,X", M.ZERO_PAGE_X),
        ([0xB6, 0x80], "LDX $80,Y", M.ZERO_PAGE_Y),
        ([0xAD, 0x00, 0x06], "LDA $0600", M.ABSOLUTE),
        ([0xBD, 0x00, 0x06], "LDA $0600,X", M.ABSOLUTE_X),
        ([0xB9, 0x00, 0x06], "LDA $0600,Y", M.ABSOLUTE_Y),
        ([0xAD, 0x80, 0x00], "LDA a:$0080", M.ABSOLUTE),
        ([0xA1, 0x82], "LDA ($82,X)", M.INDEXED_INDIRECT),
        ([0xB1, 0x82], "LDA ($82),Y", M.INDIRECT_INDEXED),
        ([0x6C, 0x30, 0x02], "JMP ($0230)", M.INDIRECT),
    ])
    def test_modes(self, disasm, data, text, mode):
        (instr,) = disasm.disassemble(bytes(data))
        assert instr.text == text
        assert instr.mode is mode


class TestBranches:
    """Test relative targets."""

    def test_backward_branch(self, disasm):
        instrs = disasm.disassemble(bytes([0xCA, 0xD0, 0xFD]), 0x2000)
        branch = instrs[1]
        assert branch.text == "BNE $2000"
        assert branch.comment == "-3"
        assert branch.target == 0x2000

    def test_branch_to_named_address(self):
        disasm = Mos6502Disassembler({0x2010: "loop"})
        (branch,) = disasm.disassemble(bytes([0xF0, 0x0E]), 0x2000)
        assert branch.comment == "loop"

    def test_jump_target(self, disasm):
        (jump,) = disasm.disassemble(bytes([0x20, 0x34, 0x12]))
        assert jump.target == 0x1234

    def test_no_target(self, disasm):
        (load,) = disasm.disassemble(bytes([0xA9, 0x00]))
        assert load.target is None


class TestOddBytes:
    """Test unknown, undocumented and truncated input."""

    def test_unknown_opcode(self, disasm):
        (instr,) = disasm.disassemble(bytes([0x1A]))
        assert instr.text == ".BYTE $1A"
        assert instr.size == 1
        assert not instr.documented

    def test_undocumented_opcode(self, disasm):
        (instr,) = disasm.disassemble(bytes([0xA7, 0x80]))
        assert instr.text == "LAX $80"
        assert not instr.documented
        assert instr.comment == "undocumented"

    def test_jam(self, disasm):
        (instr,) = disasm.disassemble(bytes([0x02]))
        assert instr.mnemonic == "JAM"

    def test_documented_nop_wins(self, disasm):
        (instr,) = disasm.disassemble(bytes([0xEA]))
        assert instr.documented

    def test_truncated(self, disasm):
        (instr,) = disasm.disassemble(bytes([0x8D, 0x1A]))
        assert instr.operand_str == "???"
        assert instr.comment == "incomplete instruction"
        assert instr.size == 2

    def test_offset_past_end(self, disasm):
        with pytest.raises(ValueError):
            disasm.disassemble_one(bytes([0xEA]), offset=1)


class TestOptions:
    """Test limits, symbols and serialization."""

    def test_count(self, disasm):
        assert len(disasm.disassemble(bytes([0xEA] * 10), count=3)) == 3

    def test_max_bytes(self, disasm):
        code = bytes([0xAD, 0x00, 0x06] * 4)
        assert len(disasm.disassemble(code, max_bytes=6)) == 2

    def test_add_symbol(self):
        disasm = Mos6502Disassembler()
        disasm.add_symbol(0x0080, "count")
        (instr,) = disasm.disassemble(bytes([0xE6, 0x80]))
        assert instr.comment == "count"

    def test_system_symbols(self):
        assert ATARI_SYSTEM_SYMBOLS[0xD01A] == "COLBK"
        assert ATARI_SYSTEM_SYMBOLS[0x0012] == "RTCLOK"

    def test_to_dict(self, disasm):
        (instr,) = disasm.disassemble(bytes([0xA9, 0x41]), 0x2000)
        data = instr.to_dict()
        assert data["address"] == "$2000"
        assert data["mnemonic"] == "LDA"
        assert data["bytes"] == ["$A9", "$41"]

    def test_to_text(self, disasm):
        text = disasm.disassemble_to_text(bytes([0xEA, 0x60]), 0x2000)
        assert text.splitlines()[1].startswith("$2001: 60")


# =============================================================================
# Backend Agreement
# =============================================================================

class TestBackendAgreement:
    """Disassembly matches what the backend generated."""

    @pytest.mark.parametrize("fixture", ["sum_program", "calls_program", "stripes_program"])
    def test_same_instructions(self, request, disasm, fixture):
        result = Backend(BackendConfig()).compile(request.getfixturevalue(fixture))
        decoded = disasm.disassemble(result.code, 0x2000)
        expected = [(i.mnemonic, i.mode) for i in result.stream.instructions()]
        assert [(i.mnemonic, i.mode) for i in decoded] == expected

    def test_disassembly_reassembles(self, disasm, calls_program):
        result = Backend(BackendConfig()).compile(calls_program)
        lines = ["\tORG $2000"]
        lines.extend(f"\t{i.text}" for i in disasm.disassemble(result.code, 0x2000))
        assert assemble("\n".join(lines) + "\n").code == result.code
