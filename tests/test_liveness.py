# =============================================================================
# test_liveness.py - Liveness Analysis Tests
# =============================================================================
# Tests for live-range computation:
#   - First/last touch ranges and access frequency
#   - Loop stretching (and the recomputed-temporary exception)
#   - Conditional writes inside a loop keep the value live
#   - Subroutine and global widening
#   - Explicit ranges and untouched symbols
# =============================================================================

from atari_sdk.ir import LiveRange, ProgramBuilder, analyze_liveness
from atari_sdk.ir.liveness import find_loops, find_subroutines


class TestStraightLine:
    """Test ranges without control flow."""

    def test_first_to_last_touch(self):
        b = ProgramBuilder()
        a = b.symbol("a")
        c = b.symbol("c")
        b.op("move", a, 1)          # 0
        b.op("move", c, a)          # 1
        b.op("inc", c)              # 2
        b.op("store", 0x600, c)     # 3
        info = analyze_liveness(b.build())
        assert info["a"].live == LiveRange(0, 1)
        assert info["c"].live == LiveRange(1, 3)

    def test_frequency_counts_operations(self):
        b = ProgramBuilder()
        a = b.symbol("a")
        b.op("move", a, 1)
        b.op("add", a, a, a)
        info = analyze_liveness(b.build())
        assert info["a"].frequency == 2

    def test_untouched_symbol(self):
        b = ProgramBuilder()
        b.symbol("unused")
        b.ret()
        assert analyze_liveness(b.build())["unused"].live == LiveRange(0, 0)

    def test_explicit_range_kept(self):
        b = ProgramBuilder()
        a = b.symbol("a", live=(2, 7))
        b.op("move", a, 1)
        assert analyze_liveness(b.build())["a"].live == LiveRange(2, 7)

    def test_global_spans_program(self):
        b = ProgramBuilder()
        g = b.symbol("g", is_global=True)
        b.op("move", g, 1)
        b.op("move", g, 2)
        b.ret()
        assert analyze_liveness(b.build())["g"].live == LiveRange(0, 2)

    def test_inline_mentions_count(self):
        b = ProgramBuilder()
        a = b.symbol("a")
        b.op("move", a, 1)      # 0
        b.ret()                 # 1
        b.inline("lda a")       # 2
        assert analyze_liveness(b.build())["a"].live == LiveRange(0, 2)


class TestLoops:
    """Test loop-aware stretching."""

    def test_find_loops(self, sum_program):
        assert find_loops(sum_program) == [(3, 6)]

    def test_counter_live_over_loop(self, sum_program):
        info = analyze_liveness(sum_program)
        assert info["i"].live == LiveRange(1, 6)
        assert info["total"].live == LiveRange(2, 7)
        assert info["i"].frequency == 4

    def test_value_read_in_loop_is_stretched(self):
        b = ProgramBuilder()
        n = b.symbol("n")
        k = b.symbol("k")
        b.op("move", n, 5)          # 0
        b.label("top")              # 1
        b.op("move", k, n)          # 2
        b.op("dec", n)              # 3
        b.op("branch_nonzero", n, target="top")   # 4
        info = analyze_liveness(b.build())
        assert info["n"].live == LiveRange(0, 4)

    def test_recomputed_temporary_not_stretched(self):
        b = ProgramBuilder()
        n = b.symbol("n")
        t = b.symbol("t")
        b.op("move", n, 5)          # 0
        b.label("top")              # 1
        b.op("move", t, n)          # 2
        b.op("store", 0xD01A, t)    # 3
        b.op("dec", n)              # 4
        b.op("branch_nonzero", n, target="top")   # 5
        info = analyze_liveness(b.build())
        assert info["t"].live == LiveRange(2, 3)

    def test_conditional_write_in_loop_is_stretched(self):
        b = ProgramBuilder()
        n = b.symbol("n")
        t = b.symbol("t")
        b.op("move", n, 2)          # 0
        b.label("top")              # 1
        b.op("branch_eq", n, 1, target="skip")    # 2
        b.op("move", t, 9)          # 3
        b.label("skip")             # 4
        b.op("store", 0x700, t)     # 5
        b.op("dec", n)              # 6
        b.op("branch_nonzero", n, target="top")   # 7
        info = analyze_liveness(b.build())
        # the store after skip can read the value from the previous pass
        assert info["t"].live == LiveRange(1, 7)


class TestSubroutines:
    """Test widening of symbols used by called routines."""

    def test_find_subroutines(self, calls_program):
        labels = calls_program.labels()
        [(start, end)] = find_subroutines(calls_program)
        assert start == labels["bump"]
        assert end == len(calls_program.operations) - 1

    def test_subroutine_symbol_spans_program(self, calls_program):
        info = analyze_liveness(calls_program)
        assert info["acc"].live == LiveRange(0, len(calls_program.operations) - 1)

    def test_external_call_ignored(self):
        b = ProgramBuilder()
        b.call("WAITVBL")
        b.ret()
        assert find_subroutines(b.build()) == []
