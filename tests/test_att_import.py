# =============================================================================
# test_att_import.py - AT&T Listing Importer Tests
# =============================================================================
# Tests for translating host-compiler x86 listings into IR:
#   - Register families become word symbols
#   - mov forms map to move/load/store/indirect operations
#   - cmp/test + jcc map to compare-and-branch operations
#   - Arithmetic, inc/dec and shifts set the zero flag for je/jne
#   - .globl marks the entry point; labels are sanitized
#   - Unsupported constructs raise IRSyntaxError with a location
# =============================================================================

import pytest

from atari_sdk.backend import Backend
from atari_sdk.emulator import run_code
from atari_sdk.errors import IRSyntaxError
from atari_sdk.ir import Address, Const, OpKind, Ref, SizeClass, import_att
from atari_sdk.ir.att import POINTER_TEMP


LISTING = """\
    .text
    .globl  rainbow
rainbow:
    xorl    %eax, %eax
.LBB0_1:
    movb    %al, 53274          # COLBK
    addl    $2, %eax
    cmpl    $16, %eax
    jb      .LBB0_1
    retq
"""

COUNTED_LOOP = """\
    .globl  count
count:
    movl    $3, %ecx
    xorl    %eax, %eax
.L1:
    incl    %eax
    decl    %ecx
    jne     .L1
    movb    %al, 1792
    retq
"""


def kinds(program):
    return [op.kind for op in program.operations]


class TestRegisters:
    """Test register mapping."""

    def test_families_share_a_symbol(self):
        program = import_att("movl $1, %eax\nmovb $2, %al\naddw $3, %ax\n")
        assert [s.name for s in program.symbols] == ["eax"]
        assert program.symbols[0].size is SizeClass.WORD

    def test_unsupported_register(self):
        with pytest.raises(IRSyntaxError, match="unsupported register"):
            import_att("movl $1, %r9d\n")


class TestListing:
    """Test a complete small listing."""

    def test_entry_and_labels(self):
        program = import_att(LISTING)
        assert program.entry == "rainbow"
        assert "LBB0_1" in program.labels()

    def test_operation_sequence(self):
        program = import_att(LISTING)
        assert kinds(program) == [
            OpKind.ENTRY,
            OpKind.MOVE,
            OpKind.LABEL,
            OpKind.STORE,
            OpKind.ADD,
            OpKind.BRANCH_LT,
            OpKind.RETURN,
        ]

    def test_xor_self_is_clear(self):
        move = import_att(LISTING).operations[1]
        assert move.operands == (Ref("eax"), Const(0))

    def test_store_to_address(self):
        store = import_att(LISTING).operations[3]
        assert store.operands == (Address(53274), Ref("eax"))

    def test_compare_order(self):
        branch = import_att(LISTING).operations[5]
        assert branch.operands == (Ref("eax"), Const(16))
        assert branch.target == "LBB0_1"

    def test_program_validates(self):
        import_att(LISTING).validate()


class TestMoves:
    """Test mov translation."""

    def test_load_from_address(self):
        op = import_att("movb 54283, %al\n").operations[0]
        assert op.kind is OpKind.LOAD
        assert op.operands == (Ref("eax"), Address(54283))

    def test_indirect_with_offset(self):
        op = import_att("movb 4(%ecx), %al\n").operations[0]
        assert op.kind is OpKind.LOAD_INDIRECT
        assert op.operands == (Ref("eax"), Ref("ecx"))
        assert op.offset == 4

    def test_store_indirect(self):
        op = import_att("movb %al, (%edi)\n").operations[0]
        assert op.kind is OpKind.STORE_INDIRECT
        assert op.operands == (Ref("edi"), Ref("eax"))

    def test_base_plus_index_uses_pointer_temp(self):
        program = import_att("movb (%edx,%ecx), %al\n")
        add, load = program.operations
        assert add.kind is OpKind.ADD
        assert add.operands == (Ref(POINTER_TEMP), Ref("edx"), Ref("ecx"))
        assert load.operands == (Ref("eax"), Ref(POINTER_TEMP))

    def test_memory_to_memory_rejected(self):
        with pytest.raises(IRSyntaxError, match="memory-to-memory"):
            import_att("movl (%ecx), (%edx)\n")


class TestBranches:
    """Test condition mapping."""

    def test_test_and_jne(self):
        program = import_att("top:\ntestl %ecx, %ecx\njne top\n")
        branch = program.operations[-1]
        assert branch.kind is OpKind.BRANCH_NONZERO
        assert branch.operands == (Ref("ecx"),)

    def test_above_swaps_operands(self):
        program = import_att("top:\ncmpl $5, %eax\nja top\n")
        branch = program.operations[-1]
        assert branch.kind is OpKind.BRANCH_LT
        assert branch.operands == (Const(5), Ref("eax"))

    def test_signed_condition_rejected(self):
        with pytest.raises(IRSyntaxError, match="signed condition"):
            import_att("top:\ncmpl $5, %eax\njl top\n")

    def test_jump_without_compare(self):
        with pytest.raises(IRSyntaxError, match="without a preceding cmp"):
            import_att("top:\nje top\n")

    def test_cmov_skips_over_move(self):
        program = import_att("cmpl $1, %eax\ncmovel %ecx, %eax\n")
        assert kinds(program) == [OpKind.BRANCH_NE, OpKind.MOVE, OpKind.LABEL]
        assert program.operations[0].target == program.operations[2].target

    def test_dec_sets_zero_flag(self):
        program = import_att("top:\ndecl %ecx\njne top\n")
        branch = program.operations[-1]
        assert branch.kind is OpKind.BRANCH_NONZERO
        assert branch.operands == (Ref("ecx"),)

    def test_arithmetic_replaces_earlier_compare(self):
        program = import_att("cmpl $5, %ecx\ntop:\nsubl $1, %ecx\njne top\n")
        branch = program.operations[-1]
        assert branch.kind is OpKind.BRANCH_NONZERO
        assert branch.operands == (Ref("ecx"),)

    def test_xor_self_then_je(self):
        program = import_att("top:\nxorl %eax, %eax\nje top\n")
        assert program.operations[-1].kind is OpKind.BRANCH_ZERO

    def test_push_keeps_compare(self):
        program = import_att("top:\ncmpl $5, %eax\npushl %eax\njb top\n")
        branch = program.operations[-1]
        assert branch.kind is OpKind.BRANCH_LT
        assert branch.operands == (Ref("eax"), Const(5))

    def test_carry_after_arithmetic_rejected(self):
        with pytest.raises(IRSyntaxError, match="after 'addl' is not supported"):
            import_att("top:\naddl $1, %eax\njb top\n")

    def test_counted_loop_runs(self):
        result = Backend().compile(import_att(COUNTED_LOOP))
        cpu, run_result = run_code(result.code, 0x2000)
        assert run_result.reason == "return"
        assert cpu.memory[0x0700] == 3


class TestMisc:
    """Test shifts, calls and errors."""

    def test_shift_count(self):
        op = import_att("shll $3, %eax\n").operations[0]
        assert op.kind is OpKind.SHL
        assert op.count == 3

    def test_call_and_push(self):
        program = import_att("pushl %eax\ncalll helper\npopl %eax\n")
        assert kinds(program) == [OpKind.PUSH, OpKind.CALL, OpKind.POP]
        assert program.operations[1].target == "helper"

    def test_unsupported_instruction_location(self):
        with pytest.raises(IRSyntaxError) as exc:
            import_att("nop\nimull %eax, %ecx\n", "out.s")
        assert exc.value.location.line == 2
        assert "unsupported instruction 'imull'" in str(exc.value)
