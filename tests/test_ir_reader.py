# =============================================================================
# test_ir_reader.py - Text IR Reader Tests
# =============================================================================
# Tests for the .a8ir text format:
#   - Numbers, constants and addresses
#   - Symbol declarations and attributes
#   - Operation parsing (targets, offsets, counts, inline asm)
#   - Error reporting with locations
#   - format_program() output reads back to the same program
# =============================================================================

import pytest

from atari_sdk.errors import IRSyntaxError
from atari_sdk.ir import (
    Address,
    Const,
    LiveRange,
    OpKind,
    Ref,
    SizeClass,
    format_program,
    parse_number,
    read_file,
    read_program,
)


# =============================================================================
# Numbers
# =============================================================================

class TestParseNumber:
    """Test numeric literal forms."""

    @pytest.mark.parametrize("text,value", [
        ("42", 42),
        ("$FF", 255),
        ("0x10", 16),
        ("%1010", 10),
        ("'A'", 65),
        ("-1", -1),
    ])
    def test_forms(self, text, value):
        assert parse_number(text) == value

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_number("12z")


# =============================================================================
# Declarations
# =============================================================================

class TestSymbols:
    """Test symbol declarations."""

    def test_sizes_and_attributes(self):
        program = read_program(
            "symbol x byte\n"
            "symbol screen pointer global\n"
            "symbol t word live 3 9\n"
        )
        x, screen, t = program.symbols
        assert x.size is SizeClass.BYTE
        assert screen.size is SizeClass.POINTER and screen.is_global
        assert t.live == LiveRange(3, 9)

    def test_default_size_is_byte(self):
        program = read_program("symbol n\n")
        assert program.symbols[0].size is SizeClass.BYTE

    def test_unknown_attribute(self):
        with pytest.raises(IRSyntaxError, match="unknown symbol attribute"):
            read_program("symbol x huge\n")

    def test_program_name(self):
        assert read_program("program demo\n").name == "demo"
        assert read_program("", "rainbow.a8ir").name == "rainbow"


# =============================================================================
# Operations
# =============================================================================

class TestOperations:
    """Test operation lines."""

    def test_operands(self, sum_program):
        add = next(op for op in sum_program.operations if op.kind is OpKind.ADD)
        assert add.operands == (Ref("total"), Ref("total"), Ref("i"))

    def test_branch_target(self, sum_program):
        branch = next(op for op in sum_program.operations if op.is_branch)
        assert branch.kind is OpKind.BRANCH_NE
        assert branch.operands == (Ref("i"), Const(10))
        assert branch.target == "loop"

    def test_store_address(self, stripes_program):
        store = next(op for op in stripes_program.operations if op.kind is OpKind.STORE)
        assert store.operands[0] == Address(0xD40A)

    def test_offset_and_count(self):
        program = read_program(
            "symbol p pointer\n"
            "symbol v byte\n"
            "symbol i byte\n"
            "load_indirect v, p, 2\n"
            "load_indexed v, $0600, i, 40\n"
        )
        indirect, indexed = program.operations
        assert indirect.offset == 2
        assert indexed.count == 40

    def test_inline_asm(self):
        program = read_program("asm sta $D01A\ninline nop\n")
        assert [op.kind for op in program.operations] == [OpKind.INLINE, OpKind.INLINE]
        assert program.operations[0].inline == "sta $D01A"

    def test_label_forms(self):
        program = read_program("top:\nlabel bottom\n")
        assert program.labels() == {"top": 0, "bottom": 1}

    def test_comment_inside_char_constant(self):
        program = read_program("symbol c\nmove c, #';'   ; semicolon\n")
        assert program.operations[0].operands[1] == Const(ord(";"))


# =============================================================================
# Errors
# =============================================================================

class TestErrors:
    """Test syntax errors carry locations."""

    def test_unknown_operation(self):
        with pytest.raises(IRSyntaxError) as exc:
            read_program("symbol x\n    frob x\n", "bad.a8ir")
        assert exc.value.location.filename == "bad.a8ir"
        assert exc.value.location.line == 2
        assert "unknown operation 'frob'" in str(exc.value)

    def test_missing_operands(self):
        with pytest.raises(IRSyntaxError, match="expects 3 operand"):
            read_program("symbol x\nadd x, x\n")

    def test_too_many_operands(self):
        with pytest.raises(IRSyntaxError, match="too many operands"):
            read_program("symbol x\nmove x, #1, 4\n")

    def test_malformed_operand(self):
        with pytest.raises(IRSyntaxError, match="malformed operand"):
            read_program("symbol x\nmove x, #$GG\n")


# =============================================================================
# Formatting
# =============================================================================

class TestFormatProgram:
    """Test format_program() output reads back."""

    def test_reads_back(self, calls_program):
        text = format_program(calls_program)
        again = read_program(text)
        assert [(s.name, s.size) for s in again.symbols] == \
            [(s.name, s.size) for s in calls_program.symbols]
        assert again.operations == calls_program.operations
        assert again.name == calls_program.name

    def test_read_file(self, tmp_path, sum_source):
        path = tmp_path / "sum.a8ir"
        path.write_text(sum_source)
        program = read_file(path)
        assert program.name == "sum"
        assert len(program.symbols) == 2
