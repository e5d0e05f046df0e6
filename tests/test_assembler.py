# =============================================================================
# test_assembler.py - Native Assembler Integration Tests
# =============================================================================
# End-to-end tests for the MADS-dialect assembler.
# These tests verify the path from source text to machine code.
#
# Test coverage includes:
#   - Complete program assembly with ORG, RUN and equates
#   - Zero-page vs absolute mode selection and the a: prefix
#   - Expressions and forward references
#   - Error reporting with line numbers
#   - Reassembly of backend output to identical bytes
# =============================================================================

import pytest

from atari_sdk.assembler import (
    Assembler,
    assemble,
    assemble_file,
    parse_expression,
    parse_instruction,
    read_stream,
)
from atari_sdk.backend import Backend, BackendConfig
from atari_sdk.cpu import AddressingMode
from atari_sdk.errors import AssemblerError, AssemblySyntaxError

M = AddressingMode


# =============================================================================
# Full Assembly Pipeline Tests
# =============================================================================

class TestFullPipeline:
    """Test the complete assembly pipeline from source to bytes."""

    def test_minimal_program(self):
        """Assemble a single instruction at the default origin."""
        result = assemble("\tRTS\n")
        assert result.code == b"\x60"
        assert result.origin == 0x2000

    def test_docstring_program(self):
        result = Assembler().assemble(
            "\tORG $2000\n"
            "main\tLDA #$41\n"
            "\tSTA $D01A\n"
            "\tRTS\n"
            "\tRUN main\n"
        )
        assert result.code.hex() == "a9418d1ad060"
        assert result.entry == "main"
        assert result.entry_address == 0x2000

    def test_labels_with_and_without_colon(self):
        result = assemble(
            "\tORG $3000\n"
            "first:\tNOP\n"
            "second\n"
            "\tRTS\n"
        )
        assert result.labels == {"first": 0x3000, "second": 0x3001}

    def test_comments_ignored(self):
        result = assemble("; header\n\tNOP ; trailing\n* star comment\n")
        assert result.code == b"\xea"


class TestEquates:
    """Test equ and = definitions."""

    def test_equ_and_equals(self):
        result = assemble(
            "count    equ $80\n"
            "limit    = 10\n"
            "\tLDA #limit\n"
            "\tSTA count\n"
        )
        assert result.code == bytes([0xA9, 0x0A, 0x85, 0x80])

    def test_equates_in_any_order(self):
        result = assemble(
            "later    equ base+2\n"
            "base     equ $0600\n"
            "\tSTA later\n"
        )
        assert result.code == bytes([0x8D, 0x02, 0x06])

    def test_hardware_registers_predefined(self):
        result = assemble("\tSTA WSYNC\n\tLDA VCOUNT\n")
        assert result.code == bytes([0x8D, 0x0A, 0xD4, 0xAD, 0x0B, 0xD4])

    def test_extra_symbols(self):
        result = Assembler(symbols={"SCREEN": 0x4000}).assemble("\tSTA SCREEN\n")
        assert result.code == bytes([0x8D, 0x00, 0x40])

    def test_referenced_registers_become_equates(self):
        unit = read_stream("\tSTA COLBK\n")
        assert unit.stream.equates == {"COLBK": 0xD01A}
        assert unit.stream.instructions()[0].volatile


# =============================================================================
# Addressing Modes
# =============================================================================

class TestAddressing:
    """Test addressing-mode detection."""

    @pytest.mark.parametrize("text,mode", [
        ("LDA #$41", M.IMMEDIATE),
        ("LDA $80", M.ZERO_PAGE),
        ("LDA $0600", M.ABSOLUTE),
        ("LDA a:$80", M.ABSOLUTE),
        ("LDA $80,X", M.ZERO_PAGE_X),
        ("LDX $80,Y", M.ZERO_PAGE_Y),
        ("LDA $80,Y", M.ABSOLUTE_Y),
        ("LDA ($80),Y", M.INDIRECT_INDEXED),
        ("LDA ($80,X)", M.INDEXED_INDIRECT),
        ("JMP ($0230)", M.INDIRECT),
        ("ASL @", M.ACCUMULATOR),
        ("ASL", M.ACCUMULATOR),
        ("ROL A", M.ACCUMULATOR),
        ("CLC", M.IMPLIED),
    ])
    def test_mode(self, text, mode):
        assert parse_instruction(text).mode is mode

    def test_lower_case_mnemonic(self):
        assert parse_instruction("sta $D01A").mnemonic == "STA"

    def test_high_byte_select(self):
        assert parse_instruction("LDA #>$1234").operand.value == 0x12
        assert parse_instruction("LDA #<$1234").operand.value == 0x34

    def test_character_constant(self):
        assert parse_instruction("LDA #'A'").operand.value == 0x41

    def test_forward_label_is_absolute(self):
        result = assemble(
            "\tJSR later\n"
            "\tRTS\n"
            "later\tLDA later+1\n"
            "\tRTS\n"
        )
        assert result.code == bytes([0x20, 0x04, 0x20, 0x60, 0xAD, 0x05, 0x20, 0x60])

    def test_branches(self):
        result = assemble(
            "top\tDEX\n"
            "\tBNE top\n"
        )
        assert result.code == bytes([0xCA, 0xD0, 0xFD])


class TestExpressions:
    """Test expression parsing."""

    def test_sum(self):
        expression = parse_expression("base+2-1")
        assert expression.names == ["base"]
        assert expression.base == "base"
        assert expression.constant == 1
        assert expression.evaluate({"base": 0x10}.get) == 0x11

    def test_unresolved(self):
        assert parse_expression("nowhere").evaluate({}.get) is None

    def test_current_location(self):
        assert parse_expression("*+3").evaluate({}.get, here=0x2000) == 0x2003

    def test_dangling_operator(self):
        with pytest.raises(ValueError, match="dangling"):
            parse_expression("1+")


# =============================================================================
# Error Handling
# =============================================================================

class TestErrorHandling:
    """Test error handling and reporting."""

    def test_unknown_mnemonic_line_number(self):
        """Syntax errors report the correct line number."""
        with pytest.raises(AssemblySyntaxError) as exc:
            assemble("\tNOP\n\tFOO #1\n", "bad.asm")
        assert exc.value.location.line == 2
        assert "unknown mnemonic 'FOO'" in str(exc.value)
        assert "bad.asm:2" in str(exc.value)

    def test_illegal_mode(self):
        with pytest.raises(AssemblySyntaxError, match="does not support"):
            assemble("\tSTA #1\n")

    def test_label_clashes_with_equate(self):
        with pytest.raises(AssemblySyntaxError, match="clashes"):
            assemble("COLBK\tNOP\n")

    def test_undefined_label(self):
        with pytest.raises(AssemblerError, match="unresolved label 'nowhere'"):
            assemble("\tJMP nowhere\n")

    def test_duplicate_label(self):
        with pytest.raises(AssemblerError, match="more than once"):
            assemble("twice\tNOP\ntwice\tRTS\n")

    def test_unresolvable_equate(self):
        with pytest.raises(AssemblySyntaxError, match="undefined missing"):
            assemble("value equ missing+1\n")

    def test_immediate_label(self):
        with pytest.raises(AssemblySyntaxError, match="must be a constant"):
            assemble("\tLDA #later\nlater\tRTS\n")

    def test_branch_out_of_range(self):
        body = "top\tNOP\n" + "\tLDA $0600\n" * 50 + "\tBNE top\n"
        with pytest.raises(AssemblerError, match="out of range"):
            assemble(body)


# =============================================================================
# Reassembly of Backend Output
# =============================================================================

class TestReassembly:
    """Emitted native text assembles back to the backend's own bytes."""

    @pytest.mark.parametrize("fixture", ["sum_program", "calls_program", "stripes_program"])
    @pytest.mark.parametrize("level", ["none", "default", "size"])
    def test_same_bytes(self, request, fixture, level):
        program = request.getfixturevalue(fixture)
        result = Backend(BackendConfig(optimization=level)).compile(program)
        again = assemble(result.text)
        assert again.code == result.code
        assert again.origin == 0x2000
        assert again.entry == "main"

    def test_custom_origin(self, sum_program):
        result = Backend(BackendConfig(origin=0x4000)).compile(sum_program)
        again = assemble(result.text)
        assert again.origin == 0x4000
        assert again.code == result.code

    def test_assemble_file(self, tmp_path, stripes_program):
        result = Backend(BackendConfig()).compile(stripes_program)
        path = tmp_path / "stripes.asm"
        path.write_text(result.text, encoding="utf-8")
        assert assemble_file(path).code == result.code
